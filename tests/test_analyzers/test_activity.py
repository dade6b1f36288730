"""Tests for the voice-activity hysteresis gate."""

import numpy as np
import pytest

from wexly.analyzers.activity import ActivityClassifier, ActivityState


LOUD = 0.5
QUIET = 0.0


@pytest.fixture
def gate():
    return ActivityClassifier(sample_rate=16000, activation_threshold=0.15, silence_timeout=2.0)


class TestActivityClassifier:
    def test_starts_idle(self, gate):
        assert gate.state is ActivityState.IDLE

    def test_quiet_stays_idle(self, gate):
        assert gate.update(QUIET, 0.0) is None
        assert gate.state is ActivityState.IDLE

    def test_threshold_is_exclusive(self, gate):
        gate.update(0.15, 0.0)
        assert gate.state is ActivityState.IDLE

    def test_exactly_one_boundary_after_timeout(self, gate):
        boundaries = []
        boundaries.append(gate.update(LOUD, 0.0))
        boundaries.append(gate.update(QUIET, 1.0))
        boundaries.append(gate.update(QUIET, 2.5))
        boundaries.append(gate.update(QUIET, 3.0))
        boundaries.append(gate.update(QUIET, 3.1))

        emitted = [b for b in boundaries if b is not None]
        assert len(emitted) == 1
        assert emitted[0].started_at == 0.0
        assert emitted[0].ended_at == 3.0
        assert gate.state is ActivityState.IDLE

    def test_loud_sample_just_before_timeout_cancels(self, gate):
        gate.update(LOUD, 0.0)
        gate.update(QUIET, 1.0)
        assert gate.update(LOUD, 2.999) is None
        assert gate.state is ActivityState.ACTIVE
        assert gate.update(QUIET, 3.0) is None
        assert gate.state is ActivityState.COOLING_DOWN

    def test_segment_contains_chunks(self, gate):
        first = np.full(4, 0.5, dtype=np.float32)
        second = np.full(3, -0.25, dtype=np.float32)
        gate.update(LOUD, 0.0, first)
        gate.update(QUIET, 1.0, second)
        boundary = gate.update(QUIET, 3.0)

        np.testing.assert_array_equal(boundary.samples(), np.concatenate([first, second]))
        assert boundary.sample_rate == 16000

    def test_boundary_without_chunks_is_empty(self, gate):
        gate.update(LOUD, 0.0)
        gate.update(QUIET, 1.0)
        assert gate.update(QUIET, 3.0).is_empty

    def test_in_flight_blocks_new_segment(self, gate):
        gate.in_flight = True
        gate.update(LOUD, 0.0)
        assert gate.state is ActivityState.IDLE
        gate.in_flight = False
        gate.update(LOUD, 0.1)
        assert gate.state is ActivityState.ACTIVE

    def test_in_flight_does_not_interrupt_active_segment(self, gate):
        gate.update(LOUD, 0.0)
        gate.in_flight = True
        gate.update(QUIET, 1.0)
        assert gate.update(QUIET, 3.0) is not None

    def test_state_listener(self, gate):
        changes = []
        gate.on_state_change(lambda previous, current: changes.append((previous, current)))
        gate.update(LOUD, 0.0)
        gate.update(QUIET, 1.0)
        gate.update(QUIET, 3.0)
        assert changes == [
            (ActivityState.IDLE, ActivityState.ACTIVE),
            (ActivityState.ACTIVE, ActivityState.COOLING_DOWN),
            (ActivityState.COOLING_DOWN, ActivityState.IDLE),
        ]

    def test_reset_drops_segment(self, gate):
        gate.update(LOUD, 0.0, np.ones(4, dtype=np.float32))
        gate.reset()
        assert gate.state is ActivityState.IDLE
        gate.update(LOUD, 5.0)
        gate.update(QUIET, 6.0)
        assert gate.update(QUIET, 8.0).is_empty

    def test_negative_timeout_rejected(self):
        with pytest.raises(ValueError):
            ActivityClassifier(silence_timeout=-1.0)
