"""Tests for the debounced EmotionStateMachine."""

import threading

import pytest

from wexly.session.emotion import EmotionStateMachine


@pytest.fixture
def active():
    return {"value": True}


@pytest.fixture
def machine(active, scheduler, clock):
    return EmotionStateMachine(
        is_session_active=lambda: active["value"],
        dwell_seconds=3.0,
        scheduler=scheduler,
        clock=clock,
    )


@pytest.fixture
def changes(machine):
    seen = []
    machine.on_change(lambda state: seen.append(state.current))
    return seen


class TestRequestEmotion:
    def test_starts_neutral(self, machine):
        assert machine.current == "neutral"
        assert machine.snapshot().last_change_timestamp is None

    def test_first_change_applies_immediately(self, machine, changes, clock):
        assert machine.request_emotion("thinking") is True
        assert machine.current == "thinking"
        assert machine.snapshot().last_change_timestamp == clock.now
        assert changes == ["thinking"]

    def test_unknown_emotion_rejected(self, machine):
        with pytest.raises(ValueError):
            machine.request_emotion("grumpy")

    def test_same_emotion_is_noop(self, machine, changes):
        machine.request_emotion("thinking")
        assert machine.request_emotion("thinking") is False
        assert changes == ["thinking"]

    def test_only_latest_request_in_window_applies(self, machine, changes, scheduler):
        machine.request_emotion("thinking")
        scheduler.advance(1.0)
        assert machine.request_emotion("excited") is False
        scheduler.advance(0.5)
        machine.request_emotion("curious")
        assert machine.snapshot().pending_emotion == "curious"

        scheduler.advance(1.4)
        assert machine.current == "thinking"
        scheduler.advance(0.2)
        assert machine.current == "curious"
        assert changes == ["thinking", "curious"]

    def test_force_applies_inside_window(self, machine, changes, scheduler):
        machine.request_emotion("thinking")
        scheduler.advance(0.5)
        machine.request_emotion("excited")
        assert machine.request_emotion("concerned", force=True) is True
        assert machine.current == "concerned"
        assert machine.snapshot().pending_emotion is None

        scheduler.advance(2.9)
        assert changes == ["thinking", "concerned"]

    def test_request_after_dwell_applies(self, machine, scheduler):
        machine.request_emotion("listening")
        scheduler.advance(3.0)
        # the auto-return target is already showing, so the window stays open
        assert machine.request_emotion("helpful") is True
        assert machine.current == "helpful"

    def test_same_as_current_keeps_pending(self, machine, changes, scheduler):
        machine.request_emotion("thinking")
        scheduler.advance(1.0)
        machine.request_emotion("excited")
        assert machine.request_emotion("thinking") is False
        assert machine.snapshot().pending_emotion == "excited"

        scheduler.advance(2.1)
        assert machine.current == "excited"
        assert changes == ["thinking", "excited"]


class TestAutoReturn:
    def test_returns_to_listening_while_active(self, machine, scheduler):
        machine.request_emotion("thinking")
        scheduler.advance(3.0)
        assert machine.current == "listening"

    def test_returns_to_neutral_when_inactive(self, machine, scheduler, active):
        machine.request_emotion("thinking")
        active["value"] = False
        scheduler.advance(3.0)
        assert machine.current == "neutral"

    def test_pending_request_cancels_return(self, machine, scheduler):
        machine.request_emotion("thinking")
        scheduler.advance(1.0)
        machine.request_emotion("excited")
        scheduler.advance(2.0)
        assert machine.current == "excited"
        scheduler.advance(3.0)
        assert machine.current == "listening"

    def test_return_to_current_is_noop(self, machine, scheduler, changes):
        machine.request_emotion("listening")
        scheduler.advance(3.0)
        assert changes == ["listening"]


class TestShutdown:
    def test_no_changes_after_shutdown(self, machine, scheduler, changes):
        machine.request_emotion("thinking")
        scheduler.advance(1.0)
        machine.request_emotion("excited")
        machine.shutdown()

        scheduler.advance(10.0)
        assert machine.closed
        assert changes == ["thinking"]
        assert scheduler.pending == []

    def test_requests_ignored_after_shutdown(self, machine):
        machine.shutdown()
        assert machine.request_emotion("excited", force=True) is False
        assert machine.current == "neutral"

    def test_negative_dwell_rejected(self):
        with pytest.raises(ValueError):
            EmotionStateMachine(is_session_active=lambda: True, dwell_seconds=-1.0)


class TestListeners:
    def test_listener_sees_applied_state(self, machine):
        seen = []
        machine.on_change(lambda state: seen.append((state.current, machine.current)))

        machine.request_emotion("thinking")
        machine.request_emotion("concerned", force=True)

        assert seen == [("thinking", "thinking"), ("concerned", "concerned")]

    def test_failing_listener_does_not_abort_change(self, machine, changes):
        def boom(state):
            raise RuntimeError("ui gone")

        machine.on_change(boom)
        assert machine.request_emotion("thinking") is True
        assert machine.current == "thinking"
        assert changes == ["thinking"]

    def test_concurrent_changes_delivered_in_order(self, machine):
        delivered = []
        machine.on_change(lambda state: delivered.append((state.current, machine.current)))
        start = threading.Barrier(4)

        def worker(emotion):
            start.wait()
            for _ in range(50):
                machine.request_emotion(emotion, force=True)

        threads = [
            threading.Thread(target=worker, args=(emotion,))
            for emotion in ("thinking", "excited", "curious", "focused")
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(5.0)

        # every snapshot matches the state at delivery time
        assert len(delivered) == 200
        assert all(current == live for current, live in delivered)
        assert delivered[-1][0] == machine.current
