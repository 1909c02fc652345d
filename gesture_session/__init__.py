"""
Gesture Session - Client adapter for a gesture-recognition server.

This module connects to a running gesture-recognition server over WebSocket,
keeps the server in sync with the gestures the application registered,
and turns inbound protocol frames into typed events.

Usage:
    session = GestureSession(SessionConfig(require_registration=True))
    session.register_gestures("static", ["fist", "palm"])
    session.add_event_listener("gesture", on_gesture)
    session.connect("ws://127.0.0.1:6442")
"""

__version__ = "1.0.0"

from .events import (
    ConnectEvent,
    DisconnectEvent,
    ErrorEvent,
    EventDispatcher,
    EventKind,
    FrameEvent,
    GestureCategory,
    GestureEvent,
    GestureOccurrence,
)
from .exceptions import ConfigurationError, GestureSessionError, ProtocolError
from .registry import RegisteredGestureSet
from .session import GestureSession, SessionConfig
from .ws_client import CloseInfo, ReconnectingWebSocket

__all__ = [
    "CloseInfo",
    "ConfigurationError",
    "ConnectEvent",
    "DisconnectEvent",
    "ErrorEvent",
    "EventDispatcher",
    "EventKind",
    "FrameEvent",
    "GestureCategory",
    "GestureEvent",
    "GestureOccurrence",
    "GestureSession",
    "GestureSessionError",
    "ProtocolError",
    "ReconnectingWebSocket",
    "RegisteredGestureSet",
    "SessionConfig",
]
