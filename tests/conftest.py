"""Shared fixtures: an in-memory transport the tests drive by hand."""

import json

import pytest

from gesture_session import GestureSession, SessionConfig
from gesture_session.message import OperationMessage


class FakeTransport:
    """Records what the session sends and lets tests fire callbacks."""

    instances = []

    def __init__(self, url, protocols=None, connection_timeout=None, reconnect_interval=None):
        self.url = url
        self.protocols = protocols
        self.connection_timeout = connection_timeout
        self.reconnect_interval = reconnect_interval
        self.onopen = None
        self.onmessage = None
        self.onerror = None
        self.onclose = None
        self.sent = []
        self.started = False
        self.closed = False
        self.is_open = False
        FakeTransport.instances.append(self)

    def start(self):
        self.started = True

    def send(self, data):
        if not self.is_open:
            return False
        self.sent.append(data)
        return True

    def close(self):
        self.closed = True
        was_open, self.is_open = self.is_open, False
        if was_open:
            self.onclose("closed by client")

    # Test helpers

    def fire_open(self):
        self.is_open = True
        self.onopen()

    def fire_message(self, message):
        self.onmessage(message if isinstance(message, str) else json.dumps(message))

    def fire_error(self, error):
        self.onerror(error)

    def fire_close(self, reason="connection lost"):
        self.is_open = False
        self.onclose(reason)

    def operations(self):
        """All sent operations as (type, name) pairs, in send order."""
        return [
            (op.type.value, op.name)
            for payload in self.sent
            for op in OperationMessage.from_json(payload).operations
        ]


@pytest.fixture(autouse=True)
def reset_fake_transports():
    FakeTransport.instances = []
    yield
    FakeTransport.instances = []


@pytest.fixture
def make_session():
    def _make(**config):
        return GestureSession(SessionConfig(**config), transport_factory=FakeTransport)
    return _make


@pytest.fixture
def session(make_session):
    return make_session()


@pytest.fixture
def recorder():
    """Handler factory that appends every event it receives to a list."""
    class Recorder:
        def __init__(self):
            self.events = []

        def __call__(self, event):
            self.events.append(event)

    return Recorder


@pytest.fixture
def last_transport():
    """Returns the most recently created FakeTransport."""
    return lambda: FakeTransport.instances[-1]
