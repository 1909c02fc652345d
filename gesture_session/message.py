"""
Message schema for client-server communication.

Outbound (client -> server):
    {"type": "operation", "data": [{"type": "addPose", "name": "fist"}, ...]}

Inbound (server -> client):
    {"type": "data", "data": [
        {"type": "frame", "data": {...}},                   # optional, first
        {"type": "static", "name": "fist", "data": {...}},
        {"type": "dynamic", "name": "swipe", "data": {...}},
    ]}
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional, Union

from .events import GestureCategory, GestureOccurrence, coerce_category
from .exceptions import ProtocolError

logger = logging.getLogger(__name__)

OPERATION_TYPE = "operation"
DATA_TYPE = "data"
FRAME_TYPE = "frame"


class OpKind(str, Enum):
    """Operation kinds understood by the server. Poses are static gestures."""
    ADD_POSE = "addPose"
    ADD_GESTURE = "addGesture"
    REMOVE_POSE = "removePose"
    REMOVE_GESTURE = "removeGesture"


@dataclass
class Operation:
    """A single registration change."""
    type: OpKind
    name: str

    def to_dict(self) -> dict:
        return {"type": self.type.value, "name": self.name}


@dataclass
class OperationMessage:
    """
    Registration sync sent from client to server.

    Attributes:
        operations: Ordered operation records, applied by the server in order
    """
    operations: List[Operation] = field(default_factory=list)

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps({
            "type": OPERATION_TYPE,
            "data": [op.to_dict() for op in self.operations],
        })

    @classmethod
    def from_json(cls, data: str) -> 'OperationMessage':
        """Deserialize from JSON string."""
        d = json.loads(data)
        if d.get("type") != OPERATION_TYPE:
            raise ProtocolError(f"Not an operation message: type={d.get('type')!r}")
        return cls(operations=[
            Operation(type=OpKind(op["type"]), name=str(op["name"]))
            for op in d.get("data", [])
        ])


def build_operations(
    category: Union[GestureCategory, str],
    names: Iterable[str],
    register: bool,
) -> List[Operation]:
    """
    Build the operation records for a batch of names.

    Args:
        category: static or dynamic
        names: Gesture names, in the order they should be sent
        register: True for add operations, False for remove operations

    Returns:
        One Operation per name (empty for an unknown category)
    """
    gesture_category = coerce_category(category)
    if gesture_category is None:
        return []
    if gesture_category is GestureCategory.STATIC:
        kind = OpKind.ADD_POSE if register else OpKind.REMOVE_POSE
    else:
        kind = OpKind.ADD_GESTURE if register else OpKind.REMOVE_GESTURE
    return [Operation(type=kind, name=name) for name in names]


@dataclass
class DataMessage:
    """
    Parsed inbound data message.

    Attributes:
        has_frame: Whether the message started with a frame element
        frame: Frame payload (empty dict when the message carried no frame)
        gestures: Gesture occurrences in server order
    """
    has_frame: bool = False
    frame: Any = field(default_factory=dict)
    gestures: List[GestureOccurrence] = field(default_factory=list)


def parse_data_message(payload: Union[str, bytes]) -> Optional[DataMessage]:
    """
    Parse one inbound server message.

    Returns:
        DataMessage for a non-empty "data" envelope, None for anything the
        client does not handle (other envelope types, empty data)

    Raises:
        ProtocolError: If the payload is not JSON or has an unexpected shape
    """
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolError(f"Message is not valid UTF-8: {e}") from e

    try:
        envelope = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"Message is not valid JSON: {e}") from e

    if not isinstance(envelope, dict):
        raise ProtocolError(f"Expected a JSON object, got {type(envelope).__name__}")

    if envelope.get("type") != DATA_TYPE:
        return None

    elements = envelope.get("data")
    if not elements:
        return None
    if not isinstance(elements, list):
        raise ProtocolError(f"Expected data to be a list, got {type(elements).__name__}")

    message = DataMessage()
    start = 0
    first = elements[0]
    if isinstance(first, dict) and first.get("type") == FRAME_TYPE:
        message.has_frame = True
        message.frame = first.get("data", {})
        start = 1

    for element in elements[start:]:
        if not isinstance(element, dict):
            continue
        category = coerce_category(element.get("type"))
        if category is None:
            continue
        message.gestures.append(GestureOccurrence(
            category=category,
            name=element.get("name"),
            data=element.get("data"),
        ))

    return message
