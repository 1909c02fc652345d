"""
Gesture Session - connection lifecycle and public API.

Owns the transport and the Registration Store. Whenever the transport
(re)opens, the full store is pushed to the server so both sides agree on
which gestures to recognize.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, Union

from .events import (
    ConnectEvent,
    DisconnectEvent,
    ErrorEvent,
    EventDispatcher,
    EventKind,
    GestureCategory,
    Handler,
)
from .exceptions import ConfigurationError
from .message import OperationMessage, build_operations
from .registry import Names, RegisteredGestureSet
from .router import MessageRouter
from .ws_client import ReconnectingWebSocket

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = "ws://127.0.0.1:6442"

TransportFactory = Callable[..., Any]


@dataclass(frozen=True)
class SessionConfig:
    """
    Construction-time session settings.

    Attributes:
        timeout: Milliseconds to wait for a connection attempt before retrying
        interval: Milliseconds between two reconnection attempts
        require_registration: Only publish gestures that were registered
        address: Server address used when connect() gets none
        protocols: WebSocket sub-protocols offered to the server
    """
    timeout: float = 10000
    interval: float = 3000
    require_registration: bool = True
    address: str = DEFAULT_ADDRESS
    protocols: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")
        if self.interval <= 0:
            raise ConfigurationError(f"interval must be positive, got {self.interval}")


class GestureSession:
    """
    Client session with a gesture-recognition server.

    Features:
    - Gesture registration mirrored to the server, resynced on every reconnect
    - Typed frame/gesture/connect/disconnect/error events
    - Optional filtering of gestures the application did not register

    Transport callbacks may arrive on another thread (the default transport
    runs its own loop when there is no running asyncio loop), so session
    state is guarded by a lock. Handlers and sends run outside of it.
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        transport_factory: Optional[TransportFactory] = None,
    ):
        """
        Initialize session.

        Args:
            config: Session settings (defaults to SessionConfig())
            transport_factory: Builds the transport; called as
                factory(address, protocols, connection_timeout=..., reconnect_interval=...)
        """
        self.config = config or SessionConfig()
        self._transport_factory = transport_factory or ReconnectingWebSocket

        self._registry = RegisteredGestureSet()
        self._dispatcher = EventDispatcher()
        self.router = MessageRouter(
            self._dispatcher,
            self._registry,
            require_registration=self.config.require_registration,
        )

        # Connection state
        self._lock = threading.RLock()
        self._client: Optional[Any] = None
        self._connected = False

    @property
    def connected(self) -> bool:
        """True while the transport is open."""
        return self._connected

    @property
    def registered_gestures(self) -> Dict[str, Tuple[str, ...]]:
        """Snapshot of registered gesture names keyed by category."""
        return {category.value: names for category, names in self._registry.snapshot().items()}

    # Registration

    def register_gestures(self, category: Union[GestureCategory, str], names: Names) -> None:
        """
        Register gestures with the server.

        Names already registered are skipped. While connected, only the
        newly added names are sent.

        Args:
            category: "static" or "dynamic"; anything else is ignored
            names: A gesture name or a list of names
        """
        with self._lock:
            added = self._registry.add(category, names)
            pending = self._prepare_sync(category, added, register=True)
        self._send_sync(pending)

    def unregister_gestures(self, category: Union[GestureCategory, str], names: Names) -> None:
        """
        Unregister gestures from the server.

        While connected, only the names that were actually registered are sent.

        Args:
            category: "static" or "dynamic"; anything else is ignored
            names: A gesture name or a list of names
        """
        with self._lock:
            removed = self._registry.remove(category, names)
            pending = self._prepare_sync(category, removed, register=False)
        self._send_sync(pending)

    # Subscriptions

    def add_event_listener(self, kind: Union[EventKind, str], handler: Handler) -> None:
        self._dispatcher.add_event_listener(kind, handler)

    def remove_event_listener(self, kind: Union[EventKind, str], handler: Handler) -> None:
        self._dispatcher.remove_event_listener(kind, handler)

    def remove_event_listeners(self, kind: Union[EventKind, str, None] = None) -> None:
        self._dispatcher.remove_event_listeners(kind)

    # Connection

    def connect(self, address: Optional[str] = None) -> None:
        """
        Connect to the gesture-recognition server.

        Does nothing (besides logging) if a transport already exists.

        Args:
            address: Server URL (defaults to config.address)
        """
        address = address or self.config.address
        with self._lock:
            if self._client is not None:
                logger.error("Already connected!")
                return

            client = self._transport_factory(
                address,
                list(self.config.protocols),
                connection_timeout=self.config.timeout,
                reconnect_interval=self.config.interval,
            )
            client.onopen = lambda: self._handle_open(client)
            client.onmessage = lambda payload: self._handle_message(client, payload)
            client.onerror = lambda error: self._handle_error(client, error)
            client.onclose = lambda reason: self._handle_close(client, reason)
            self._client = client

        logger.info(f"Connecting to gesture server at {address}")
        client.start()

    def disconnect(self) -> None:
        """Close the transport. Safe to call when not connected."""
        with self._lock:
            client, self._client = self._client, None
            self._connected = False
        if client is not None:
            logger.info("Disconnecting from gesture server")
            client.close()

    # Transport callbacks

    def _handle_open(self, client: Any) -> None:
        try:
            with self._lock:
                if client is not self._client:
                    logger.debug("Ignoring open from a stale transport")
                    return
                self._connected = True
            logger.info("Connected to gesture server")
            self._dispatcher.emit(ConnectEvent())

            # Resync the whole store, the server may have lost it
            with self._lock:
                if client is not self._client:
                    return
                snapshot = self._registry.snapshot()
                pending = [
                    self._prepare_sync(category, snapshot[category], register=True)
                    for category in GestureCategory
                ]
            for sync in pending:
                self._send_sync(sync)
        except Exception as e:
            self._report_failure("open", e)

    def _handle_message(self, client: Any, payload: Any) -> None:
        if client is not self._client:
            return
        try:
            self.router.route(payload)
        except Exception as e:
            self._report_failure("message", e)

    def _handle_error(self, client: Any, error: Any) -> None:
        if client is not self._client:
            return
        self._dispatcher.emit(ErrorEvent(error))

    def _handle_close(self, client: Any, reason: Any) -> None:
        try:
            with self._lock:
                if client is self._client:
                    self._connected = False
                elif self._client is not None:
                    # A newer transport is active
                    return
            logger.info(f"Disconnected from gesture server: {reason}")
            self._dispatcher.emit(DisconnectEvent(reason))
        except Exception as e:
            self._report_failure("close", e)

    def _prepare_sync(
        self,
        category: Union[GestureCategory, str],
        names: Sequence[str],
        register: bool,
    ) -> Optional[Tuple[Any, str]]:
        """
        Build the sync for ``names`` while holding the lock.

        Returns:
            (transport, payload), or None when there is nothing to send or
            the session is not connected
        """
        operations = build_operations(category, names, register)
        if not operations or not self._connected or self._client is None:
            return None
        return self._client, OperationMessage(operations).to_json()

    def _send_sync(self, pending: Optional[Tuple[Any, str]]) -> None:
        """Send a prepared sync. Must be called without holding the lock."""
        if pending is None:
            return
        client, payload = pending
        try:
            client.send(payload)
        except Exception as e:
            logger.error(f"Failed to send registration sync: {e}")
            self._dispatcher.emit(ErrorEvent(e))

    def _report_failure(self, callback: str, error: Exception) -> None:
        logger.error(f"Error while handling transport {callback}: {error}")
        self._dispatcher.emit(ErrorEvent(error))
