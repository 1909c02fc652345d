"""Tests for the session: registration sync, lifecycle and event routing."""

import threading

import pytest

from gesture_session import (
    ConfigurationError,
    ConnectEvent,
    DisconnectEvent,
    ErrorEvent,
    FrameEvent,
    GestureCategory,
    GestureEvent,
    SessionConfig,
)


def gesture_message(category, name, data=None):
    return {"type": "data", "data": [{"type": category, "name": name, "data": data or {}}]}


class TestConfig:
    def test_defaults(self):
        config = SessionConfig()
        assert config.timeout == 10000
        assert config.interval == 3000
        assert config.require_registration is True
        assert config.address == "ws://127.0.0.1:6442"

    def test_invalid_timeout(self):
        with pytest.raises(ConfigurationError):
            SessionConfig(timeout=0)

    def test_invalid_interval(self):
        with pytest.raises(ConfigurationError):
            SessionConfig(interval=-1)

    def test_transport_gets_config(self, make_session, last_transport):
        session = make_session(timeout=500, interval=200)
        session.connect("ws://example:1234")
        transport = last_transport()
        assert transport.url == "ws://example:1234"
        assert transport.connection_timeout == 500
        assert transport.reconnect_interval == 200
        assert transport.started

    def test_default_address(self, session, last_transport):
        session.connect()
        assert last_transport().url == "ws://127.0.0.1:6442"


class TestRegistration:
    def test_register_while_disconnected_sends_nothing(self, session):
        session.register_gestures("static", "fist")
        assert session.registered_gestures["static"] == ("fist",)

    def test_register_twice_keeps_one_entry(self, session, last_transport):
        session.connect()
        transport = last_transport()
        transport.fire_open()

        session.register_gestures("static", "fist")
        session.register_gestures("static", ["fist"])

        assert session.registered_gestures["static"] == ("fist",)
        assert transport.operations() == [("addPose", "fist")]

    def test_register_while_connected_sends_only_new_names(self, session, last_transport):
        session.register_gestures("dynamic", "swipe")
        session.connect()
        transport = last_transport()
        transport.fire_open()
        transport.sent.clear()

        session.register_gestures("dynamic", ["swipe", "wave"])
        assert transport.operations() == [("addGesture", "wave")]

    def test_unregister_missing_name_sends_nothing(self, session, last_transport):
        session.connect()
        transport = last_transport()
        transport.fire_open()

        session.unregister_gestures("static", "palm")
        assert transport.sent == []

    def test_unregister_sends_only_removed_names(self, session, last_transport):
        session.register_gestures("static", ["fist", "palm"])
        session.connect()
        transport = last_transport()
        transport.fire_open()
        transport.sent.clear()

        session.unregister_gestures("static", ["palm", "victory"])
        assert transport.operations() == [("removePose", "palm")]
        assert session.registered_gestures["static"] == ("fist",)

    def test_unregister_dynamic(self, session, last_transport):
        session.register_gestures("dynamic", "wave")
        session.connect()
        transport = last_transport()
        transport.fire_open()
        transport.sent.clear()

        session.unregister_gestures(GestureCategory.DYNAMIC, "wave")
        assert transport.operations() == [("removeGesture", "wave")]

    def test_unknown_category_ignored(self, session, last_transport):
        session.connect()
        transport = last_transport()
        transport.fire_open()

        session.register_gestures("bogus", "fist")
        session.unregister_gestures("bogus", "fist")
        assert transport.sent == []
        assert session.registered_gestures == {"static": (), "dynamic": ()}

    def test_changes_while_disconnected_resync_full_store(self, session, last_transport):
        session.register_gestures("static", ["fist", "palm"])
        session.connect()
        transport = last_transport()
        transport.fire_open()
        transport.fire_close()
        transport.sent.clear()

        session.register_gestures("dynamic", "wave")
        session.unregister_gestures("static", "palm")
        assert transport.sent == []

        transport.fire_open()
        assert transport.operations() == [("addPose", "fist"), ("addGesture", "wave")]


class TestConnection:
    def test_open_pushes_registered_gestures(self, session, last_transport):
        session.register_gestures("static", "fist")
        session.connect()
        last_transport().fire_open()
        assert last_transport().operations() == [("addPose", "fist")]

    def test_open_sends_one_message_per_category(self, session, last_transport):
        session.register_gestures("static", ["fist", "palm"])
        session.register_gestures("dynamic", "wave")
        session.connect()
        transport = last_transport()
        transport.fire_open()
        assert len(transport.sent) == 2

    def test_open_with_empty_store_sends_nothing(self, session, last_transport):
        session.connect()
        last_transport().fire_open()
        assert last_transport().sent == []

    def test_connect_twice_is_noop(self, session, last_transport):
        session.connect()
        first = last_transport()
        session.connect("ws://elsewhere:1")
        assert last_transport() is first

    def test_connect_and_disconnect_events(self, session, last_transport, recorder):
        connects, disconnects = recorder(), recorder()
        session.add_event_listener("connect", connects)
        session.add_event_listener("disconnect", disconnects)

        session.connect()
        transport = last_transport()
        transport.fire_open()
        assert session.connected
        assert isinstance(connects.events[0], ConnectEvent)

        transport.fire_close("server went away")
        assert not session.connected
        assert disconnects.events == [DisconnectEvent("server went away")]

    def test_reconnect_is_resynced(self, session, last_transport):
        session.register_gestures("dynamic", "wave")
        session.connect()
        transport = last_transport()
        transport.fire_open()
        transport.fire_close()
        transport.fire_open()
        assert transport.operations() == [("addGesture", "wave"), ("addGesture", "wave")]

    def test_error_does_not_change_state(self, session, last_transport, recorder):
        errors = recorder()
        session.add_event_listener("error", errors)
        session.connect()
        transport = last_transport()
        transport.fire_open()

        transport.fire_error("boom")
        assert session.connected
        assert errors.events == [ErrorEvent("boom")]

    def test_disconnect_when_never_connected(self, session):
        session.disconnect()
        assert not session.connected

    def test_disconnect_closes_transport(self, session, last_transport, recorder):
        disconnects = recorder()
        session.add_event_listener("disconnect", disconnects)
        session.connect()
        transport = last_transport()
        transport.fire_open()

        session.disconnect()
        assert transport.closed
        assert not session.connected
        assert len(disconnects.events) == 1

    def test_connect_after_disconnect_creates_new_transport(self, session, last_transport):
        session.connect()
        first = last_transport()
        session.disconnect()
        session.connect()
        assert last_transport() is not first

    def test_stale_transport_is_ignored(self, session, last_transport, recorder):
        gestures = recorder()
        session.add_event_listener("gesture", gestures)
        session.connect()
        old = last_transport()
        session.disconnect()
        session.connect()
        new = last_transport()
        new.fire_open()

        old.fire_close()
        assert session.connected
        old.fire_message(gesture_message("static", "fist"))
        assert gestures.events == []

    def test_send_failure_becomes_error_event(self, session, last_transport, recorder):
        errors = recorder()
        session.add_event_listener("error", errors)
        session.register_gestures("static", "fist")
        session.connect()
        transport = last_transport()

        def broken_send(data):
            raise RuntimeError("socket gone")

        transport.send = broken_send
        transport.fire_open()
        assert len(errors.events) == 1
        assert isinstance(errors.events[0].error, RuntimeError)

    def test_error_handler_can_use_session_from_another_thread(self, session, last_transport):
        session.register_gestures("static", "fist")
        session.connect()
        transport = last_transport()

        def broken_send(data):
            raise RuntimeError("socket gone")

        transport.send = broken_send
        finished = []

        def on_error(event):
            worker = threading.Thread(target=lambda: session.register_gestures("dynamic", "wave"))
            worker.start()
            worker.join(timeout=1.0)
            finished.append(not worker.is_alive())

        session.add_event_listener("error", on_error)
        opener = threading.Thread(target=transport.fire_open)
        opener.start()
        opener.join(timeout=5.0)

        assert not opener.is_alive()
        assert finished and all(finished)
        assert "wave" in session.registered_gestures["dynamic"]


class TestRouting:
    def test_unregistered_gesture_dropped(self, session, last_transport, recorder):
        gestures = recorder()
        session.add_event_listener("gesture", gestures)
        session.connect()
        transport = last_transport()
        transport.fire_open()

        transport.fire_message(gesture_message("dynamic", "wave"))
        assert gestures.events == []

        session.register_gestures("dynamic", "wave")
        transport.fire_message(gesture_message("dynamic", "wave"))
        assert len(gestures.events) == 1
        assert gestures.events[0].gesture.name == "wave"

    def test_registration_not_required(self, make_session, last_transport, recorder):
        session = make_session(require_registration=False)
        gestures = recorder()
        session.add_event_listener("gesture", gestures)
        session.connect()
        transport = last_transport()
        transport.fire_open()

        transport.fire_message(gesture_message("static", "thumbs_up"))
        assert [e.gesture.name for e in gestures.events] == ["thumbs_up"]

    def test_frame_before_gesture(self, session, last_transport):
        received = []
        session.add_event_listener("frame", received.append)
        session.add_event_listener("gesture", received.append)
        session.register_gestures("static", "palm")
        session.connect()
        transport = last_transport()
        transport.fire_open()

        transport.fire_message(
            '{"type":"data","data":[{"type":"frame","data":{"x":1}},'
            '{"type":"static","name":"palm","data":{}}]}'
        )

        assert received[0] == FrameEvent({"x": 1})
        assert isinstance(received[1], GestureEvent)
        assert received[1].gesture.name == "palm"
        assert received[1].gesture.category is GestureCategory.STATIC
        assert received[1].frame == {"x": 1}
        assert len(received) == 2

    def test_route_returns_published_count(self, session):
        session.register_gestures("static", "palm")
        published = session.router.route(
            '{"type":"data","data":[{"type":"frame","data":{}},'
            '{"type":"static","name":"palm"},{"type":"static","name":"fist"}]}'
        )
        assert published == 2
        assert session.router.get_stats()["dropped"] == 1

    def test_handlers_get_their_own_frame(self, session, last_transport):
        frames = []

        def mutating_frame_handler(event):
            event.frame["x"] = 99

        session.add_event_listener("frame", mutating_frame_handler)
        session.add_event_listener("gesture", lambda e: frames.append(e.frame))
        session.register_gestures("static", ["palm", "fist"])
        session.connect()
        transport = last_transport()
        transport.fire_open()

        transport.fire_message(
            '{"type":"data","data":[{"type":"frame","data":{"x":1}},'
            '{"type":"static","name":"palm"},{"type":"static","name":"fist"}]}'
        )
        assert frames == [{"x": 1}, {"x": 1}]
        assert frames[0] is not frames[1]

    def test_malformed_message_becomes_error_event(self, session, last_transport, recorder):
        errors = recorder()
        session.add_event_listener("error", errors)
        session.connect()
        transport = last_transport()
        transport.fire_open()

        transport.fire_message("{not json")
        assert len(errors.events) == 1
        assert session.router.get_stats()["errors"] == 1

    def test_failing_handler_does_not_block_others(self, session, last_transport, recorder):
        def bad_handler(event):
            raise ValueError("boom")

        good = recorder()
        session.add_event_listener("connect", bad_handler)
        session.add_event_listener("connect", good)
        session.register_gestures("static", "fist")
        session.connect()
        transport = last_transport()
        transport.fire_open()

        assert len(good.events) == 1
        assert transport.operations() == [("addPose", "fist")]

    def test_remove_event_listeners(self, session, last_transport, recorder):
        connects = recorder()
        session.add_event_listener("connect", connects)
        session.remove_event_listeners()
        session.connect()
        last_transport().fire_open()
        assert connects.events == []
