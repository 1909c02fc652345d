"""
Reconnecting WebSocket transport.

Handles:
- Async WebSocket connection with a bounded connection timeout
- Fixed-interval reconnection after every drop or failed attempt
- Fire-and-forget sending (dropped, never queued, while disconnected)
- onopen/onmessage/onerror/onclose notifications for the session

Runs on the caller's asyncio loop when constructed inside one, otherwise
on a private event loop in a background thread.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Set

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

logger = logging.getLogger(__name__)


@dataclass
class CloseInfo:
    """Why a connection closed."""
    code: Optional[int] = None
    reason: str = ""

    def __str__(self) -> str:
        return f"{self.code} {self.reason}".strip()


@dataclass
class ConnectionStats:
    """Statistics about WebSocket connection."""
    connected: bool = False
    connect_time: Optional[float] = None
    disconnect_time: Optional[float] = None
    reconnect_attempts: int = 0
    messages_sent: int = 0
    messages_received: int = 0
    messages_failed: int = 0
    last_send_time: Optional[float] = None


class ReconnectingWebSocket:
    """
    WebSocket client with automatic reconnection.

    Callbacks are plain attributes and may be reassigned at any time:
    - onopen()
    - onmessage(payload)
    - onerror(error)
    - onclose(CloseInfo)

    Callbacks run in the event loop thread; exceptions they raise are
    logged and do not stop the connection loop.
    """

    def __init__(
        self,
        url: str,
        protocols: Optional[Sequence[str]] = None,
        connection_timeout: float = 10000,
        reconnect_interval: float = 3000,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        """
        Initialize WebSocket transport.

        Args:
            url: WebSocket server URL (e.g., ws://127.0.0.1:6442)
            protocols: WebSocket sub-protocols to offer
            connection_timeout: Milliseconds to wait for a connection attempt
            reconnect_interval: Milliseconds between reconnection attempts
            loop: Event loop to run on (defaults to the running loop, or a
                private loop in a background thread)
        """
        self.url = url
        self.protocols = list(protocols or [])
        self.connection_timeout = connection_timeout
        self.reconnect_interval = reconnect_interval

        self.onopen: Optional[Callable[[], Any]] = None
        self.onmessage: Optional[Callable[[Any], Any]] = None
        self.onerror: Optional[Callable[[Any], Any]] = None
        self.onclose: Optional[Callable[[CloseInfo], Any]] = None

        # Connection state
        self._ws: Optional[ClientConnection] = None
        self._connected = False
        self._started = False
        self._shutdown_requested = False

        # Statistics
        self.stats = ConnectionStats()

        # Tasks
        self._connect_task: Optional[asyncio.Task] = None
        self._send_tasks: Set[asyncio.Task] = set()
        self._bg_thread: Optional[threading.Thread] = None

        self._owns_loop = False
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = asyncio.new_event_loop()
                self._owns_loop = True
        self._loop = loop

    @property
    def connected(self) -> bool:
        """Check if currently connected."""
        return self._connected and self._ws is not None

    def start(self) -> None:
        """Start connecting. Call once the callbacks are installed."""
        if self._started:
            return
        self._started = True

        if self._owns_loop:
            self._bg_thread = threading.Thread(target=self._run_loop, daemon=True)
            self._bg_thread.start()

        self._loop.call_soon_threadsafe(self._start_connection_loop)
        logger.info(f"WebSocket transport started, connecting to {self.url}")

    def close(self) -> None:
        """Stop reconnecting and close the connection."""
        if self._shutdown_requested:
            return
        self._shutdown_requested = True

        if not self._started:
            if self._owns_loop:
                self._loop.close()
            return

        logger.info("WebSocket transport closing...")
        self._loop.call_soon_threadsafe(self._start_shutdown)

        # Wait for the private loop to finish unless called from inside it
        if self._bg_thread is not None and threading.current_thread() is not self._bg_thread:
            self._bg_thread.join(timeout=5.0)
            if self._bg_thread.is_alive():
                logger.warning("WebSocket transport thread did not stop in time")

    def send(self, data: str) -> bool:
        """
        Send a text message without waiting for it to be written.

        Returns:
            True if the message was handed to an open connection, False if
            the transport is not connected and the message was dropped
        """
        if not self.connected or self._shutdown_requested:
            self.stats.messages_failed += 1
            logger.warning("Not connected, dropping outgoing message")
            return False
        self._loop.call_soon_threadsafe(self._start_send, data)
        return True

    def _run_loop(self) -> None:
        """Run the private event loop."""
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_forever()
        finally:
            self._loop.close()

    def _start_connection_loop(self) -> None:
        self._connect_task = self._loop.create_task(self._connection_loop())

    def _start_shutdown(self) -> None:
        self._loop.create_task(self._shutdown())

    def _start_send(self, data: str) -> None:
        task = self._loop.create_task(self._send(data))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)

    async def _connection_loop(self) -> None:
        """Main connection loop with automatic reconnection."""
        while not self._shutdown_requested:
            try:
                await self._connect()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Connection error: {e}")
                self._notify(self.onerror, e)

            if self._shutdown_requested:
                break

            logger.info(f"Reconnecting in {self.reconnect_interval / 1000:.1f}s...")
            try:
                await asyncio.sleep(self.reconnect_interval / 1000)
            except asyncio.CancelledError:
                break
            self.stats.reconnect_attempts += 1

    async def _connect(self) -> None:
        """Open one connection and pump its messages until it closes."""
        logger.info(f"Connecting to {self.url}...")
        try:
            self._ws = await connect(
                self.url,
                subprotocols=self.protocols or None,
                open_timeout=self.connection_timeout / 1000,
            )
        except InvalidStatus as e:
            logger.error(f"Server rejected connection: {e.response.status_code}")
            raise
        except ConnectionRefusedError:
            logger.error("Connection refused - is the gesture server running?")
            raise

        if self._shutdown_requested:
            await self._ws.close()
            self._ws = None
            return

        self._connected = True
        self.stats.connected = True
        self.stats.connect_time = time.time()
        logger.info("WebSocket connected successfully")
        self._notify(self.onopen)

        close_info = CloseInfo()
        try:
            async for message in self._ws:
                self.stats.messages_received += 1
                self._notify(self.onmessage, message)
        except ConnectionClosed as e:
            logger.warning(f"Connection lost: {e}")
        finally:
            close_info = CloseInfo(code=self._ws.close_code, reason=self._ws.close_reason or "")
            self._connected = False
            self._ws = None
            self.stats.connected = False
            self.stats.disconnect_time = time.time()

        logger.info(f"WebSocket disconnected: {close_info}")
        self._notify(self.onclose, close_info)

    async def _send(self, data: str) -> None:
        ws = self._ws
        if ws is None or not self._connected:
            self.stats.messages_failed += 1
            logger.warning("Connection closed before send, dropping message")
            return
        try:
            await ws.send(data)
            self.stats.messages_sent += 1
            self.stats.last_send_time = time.time()
        except (ConnectionClosed, WebSocketException) as e:
            self.stats.messages_failed += 1
            logger.warning(f"Send failed: {e}")

    async def _shutdown(self) -> None:
        was_open = self._ws is not None
        if was_open:
            # Ends the receive loop, which reports onclose and exits
            await self._ws.close()

        if self._connect_task is not None and not self._connect_task.done():
            if not was_open:
                self._connect_task.cancel()
            try:
                await self._connect_task
            except asyncio.CancelledError:
                pass

        # Sends still in flight cannot complete on a closed connection
        pending = list(self._send_tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        logger.info("WebSocket transport closed")
        if self._owns_loop:
            self._loop.stop()

    def _notify(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Transport callback error: {e}")

    def get_stats(self) -> dict:
        """Get connection statistics."""
        return {
            "connected": self.connected,
            "connect_time": self.stats.connect_time,
            "disconnect_time": self.stats.disconnect_time,
            "reconnect_attempts": self.stats.reconnect_attempts,
            "messages_sent": self.stats.messages_sent,
            "messages_received": self.stats.messages_received,
            "messages_failed": self.stats.messages_failed,
            "last_send_time": self.stats.last_send_time,
        }
