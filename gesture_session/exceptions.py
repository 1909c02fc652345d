"""
Custom exceptions for the gesture session client.
"""


class GestureSessionError(Exception):
    """Base exception for gesture session errors."""
    pass


class ProtocolError(GestureSessionError):
    """Raised when an inbound server message cannot be parsed."""
    pass


class ConfigurationError(GestureSessionError):
    """Raised when session configuration is invalid."""
    pass
