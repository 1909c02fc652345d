"""
Message Router - turns inbound server messages into events.

For each message:
- a leading frame element is published as a FrameEvent first
- each static/dynamic element becomes a GestureEvent paired with that frame
- gestures that were not registered are dropped when registration is required
"""

import copy
import logging
from typing import Union

from .events import ErrorEvent, EventDispatcher, FrameEvent, GestureEvent
from .exceptions import ProtocolError
from .message import parse_data_message
from .registry import RegisteredGestureSet

logger = logging.getLogger(__name__)


class MessageRouter:
    """
    Demultiplexes inbound frames into typed events.

    Tracks how many messages, frames and gestures went through so hosts
    can inspect the stream without subscribing to every event.
    """

    def __init__(
        self,
        dispatcher: EventDispatcher,
        registry: RegisteredGestureSet,
        require_registration: bool = True,
    ):
        """
        Initialize router.

        Args:
            dispatcher: Where events are published
            registry: Registered gestures, consulted by the registration filter
            require_registration: Only publish gestures present in the registry
        """
        self.dispatcher = dispatcher
        self.registry = registry
        self.require_registration = require_registration
        self._message_count = 0
        self._frame_count = 0
        self._gesture_count = 0
        self._dropped_count = 0
        self._error_count = 0

    def route(self, payload: Union[str, bytes]) -> int:
        """
        Parse one message and publish its events.

        Malformed messages are logged and published as an ErrorEvent.

        Returns:
            Number of frame and gesture events published
        """
        self._message_count += 1
        try:
            message = parse_data_message(payload)
        except ProtocolError as e:
            self._error_count += 1
            logger.error(f"Malformed message from server: {e}")
            self.dispatcher.emit(ErrorEvent(e))
            return 0

        if message is None:
            return 0

        published = 0
        frame = message.frame
        if message.has_frame:
            self._frame_count += 1
            self.dispatcher.emit(FrameEvent(copy.deepcopy(frame)))
            published += 1

        for gesture in message.gestures:
            if self.require_registration and not self.registry.contains(gesture.category, gesture.name):
                self._dropped_count += 1
                logger.debug(f"Dropping unregistered {gesture.category.value} gesture {gesture.name!r}")
                continue
            self._gesture_count += 1
            # Every event carries its own copy of the frame
            self.dispatcher.emit(GestureEvent(gesture, copy.deepcopy(frame)))
            published += 1

        return published

    def get_stats(self) -> dict:
        """Get routing statistics."""
        return {
            "messages": self._message_count,
            "frames": self._frame_count,
            "gestures": self._gesture_count,
            "dropped": self._dropped_count,
            "errors": self._error_count,
        }

