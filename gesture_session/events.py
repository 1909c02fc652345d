"""
Typed events and the publish/subscribe dispatcher.

Every event kind carries exactly one payload shape:
- frame:      FrameEvent(frame)
- gesture:    GestureEvent(gesture, frame)
- connect:    ConnectEvent(message)
- disconnect: DisconnectEvent(message)
- error:      ErrorEvent(error)
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    """Event kinds a subscriber can listen to."""
    FRAME = "frame"
    GESTURE = "gesture"
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    ERROR = "error"


class GestureCategory(str, Enum):
    """Gesture categories known to the server.

    Static gestures are called "poses" on the wire.
    """
    STATIC = "static"
    DYNAMIC = "dynamic"


def coerce_kind(kind: Union[EventKind, str, None]) -> Optional[EventKind]:
    """Return the EventKind for ``kind`` or None when it is unknown."""
    try:
        return EventKind(kind)
    except ValueError:
        return None


def coerce_category(category: Union[GestureCategory, str, None]) -> Optional[GestureCategory]:
    """Return the GestureCategory for ``category`` or None when it is unknown."""
    try:
        return GestureCategory(category)
    except ValueError:
        return None


@dataclass(frozen=True)
class GestureOccurrence:
    """
    A gesture recognized by the server.

    Attributes:
        category: static or dynamic
        name: Gesture name as registered
        data: Server-defined gesture payload, passed through unmodified
    """
    category: GestureCategory
    name: str
    data: Any = None


@dataclass(frozen=True)
class FrameEvent:
    """One sensor frame sent by the server."""
    kind: ClassVar[EventKind] = EventKind.FRAME
    frame: Any = field(default_factory=dict)

    def __str__(self) -> str:
        return json.dumps(self.frame, default=str)


@dataclass(frozen=True)
class GestureEvent:
    """A recognized gesture paired with the frame from the same message."""
    kind: ClassVar[EventKind] = EventKind.GESTURE
    gesture: GestureOccurrence
    frame: Any = field(default_factory=dict)

    def __str__(self) -> str:
        return (
            f"{self.gesture.category.value} - {self.gesture.name} - "
            f"{json.dumps(self.gesture.data, default=str)}"
        )


@dataclass(frozen=True)
class ConnectEvent:
    kind: ClassVar[EventKind] = EventKind.CONNECT
    message: Any = None

    def __str__(self) -> str:
        return "" if self.message is None else str(self.message)


@dataclass(frozen=True)
class DisconnectEvent:
    kind: ClassVar[EventKind] = EventKind.DISCONNECT
    message: Any = None

    def __str__(self) -> str:
        return "" if self.message is None else str(self.message)


@dataclass(frozen=True)
class ErrorEvent:
    kind: ClassVar[EventKind] = EventKind.ERROR
    error: Any = None

    def __str__(self) -> str:
        return "" if self.error is None else str(self.error)


Event = Union[FrameEvent, GestureEvent, ConnectEvent, DisconnectEvent, ErrorEvent]
Handler = Callable[[Any], Any]


class EventDispatcher:
    """
    Publish/subscribe registry for the five event kinds.

    Handlers for a kind run synchronously in registration order, in the
    thread that publishes the event. A handler raising is logged and does
    not stop the remaining handlers.
    """

    def __init__(self):
        self._handlers: Dict[EventKind, List[Handler]] = {kind: [] for kind in EventKind}

    def add_event_listener(self, kind: Union[EventKind, str], handler: Handler) -> None:
        """
        Subscribe ``handler`` to ``kind``.

        Unknown kinds are ignored. The same handler may be added more than
        once and is then called once per registration.
        """
        event_kind = coerce_kind(kind)
        if event_kind is None:
            logger.debug(f"Ignoring listener for unknown event kind {kind!r}")
            return
        self._handlers[event_kind].append(handler)

    def remove_event_listener(self, kind: Union[EventKind, str], handler: Handler) -> None:
        """Remove every registration of ``handler`` for ``kind``."""
        event_kind = coerce_kind(kind)
        if event_kind is None:
            logger.debug(f"Ignoring removal for unknown event kind {kind!r}")
            return
        self._handlers[event_kind] = [h for h in self._handlers[event_kind] if h != handler]

    def remove_event_listeners(self, kind: Union[EventKind, str, None] = None) -> None:
        """Remove all handlers for ``kind``, or for every kind when omitted."""
        if kind is None:
            for event_kind in EventKind:
                self._handlers[event_kind] = []
            return
        event_kind = coerce_kind(kind)
        if event_kind is not None:
            self._handlers[event_kind] = []

    def listener_count(self, kind: Union[EventKind, str]) -> int:
        event_kind = coerce_kind(kind)
        return len(self._handlers[event_kind]) if event_kind is not None else 0

    def emit(self, event: Event) -> None:
        """Deliver ``event`` to every handler subscribed to its kind."""
        # Snapshot so handlers may (un)subscribe while being dispatched
        for handler in list(self._handlers[event.kind]):
            try:
                handler(event)
            except Exception:
                logger.exception(f"Handler {handler!r} failed on {event.kind.value} event")
