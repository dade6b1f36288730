"""
Voice-activity hysteresis gate.

Turns the per-tick volume into recording segment boundaries: a segment
starts when the volume rises above the activation threshold and ends
once the volume has stayed at or below it for the full silence timeout.
"""

import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from wexly.core.models import UtteranceBoundary


DEFAULT_ACTIVATION_THRESHOLD: float = 0.15
DEFAULT_SILENCE_TIMEOUT: float = 2.0  # seconds


class ActivityState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COOLING_DOWN = "cooling_down"


class ActivityClassifier:
    """
    Tick-driven state machine: Idle -> Active -> CoolingDown -> Idle.

    Time comes in with every update() call, so the silence timer is a
    timestamp comparison and needs no background thread. Segments start
    only while no classification is in flight (see `in_flight`).
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        activation_threshold: float = DEFAULT_ACTIVATION_THRESHOLD,
        silence_timeout: float = DEFAULT_SILENCE_TIMEOUT,
    ):
        if silence_timeout < 0:
            raise ValueError(f"silence_timeout must be >= 0, got {silence_timeout}")

        self.sample_rate = sample_rate
        self.activation_threshold = activation_threshold
        self.silence_timeout = silence_timeout
        self._state = ActivityState.IDLE
        self._segment: List[np.ndarray] = []
        self._segment_started: Optional[float] = None
        self._silence_started: Optional[float] = None
        self._in_flight = threading.Event()
        self._listeners: List[Callable[[ActivityState, ActivityState], None]] = []
        self.logger = logging.getLogger("analyzer.activity")

    @property
    def state(self) -> ActivityState:
        return self._state

    @property
    def in_flight(self) -> bool:
        """True while a finished segment is still being classified."""
        return self._in_flight.is_set()

    @in_flight.setter
    def in_flight(self, value: bool) -> None:
        if value:
            self._in_flight.set()
        else:
            self._in_flight.clear()

    def on_state_change(
        self, listener: Callable[[ActivityState, ActivityState], None]
    ) -> None:
        """Register listener(previous, current) for every state change."""
        self._listeners.append(listener)

    def update(
        self,
        volume: float,
        timestamp: float,
        chunk: Optional[np.ndarray] = None,
    ) -> Optional[UtteranceBoundary]:
        """
        Advance the gate by one tick.

        Args:
            volume: Normalised volume in [0, 1]
            timestamp: Tick time in seconds
            chunk: Samples captured since the previous tick

        Returns:
            UtteranceBoundary when the silence timeout just elapsed,
            otherwise None.
        """
        loud = volume > self.activation_threshold

        if self._state is ActivityState.IDLE:
            if loud and not self.in_flight:
                self._segment = []
                self._segment_started = timestamp
                self._append(chunk)
                self._transition(ActivityState.ACTIVE)
            return None

        self._append(chunk)

        if self._state is ActivityState.ACTIVE:
            if not loud:
                self._silence_started = timestamp
                self._transition(ActivityState.COOLING_DOWN)
            return None

        # COOLING_DOWN
        if loud:
            self._silence_started = None
            self._transition(ActivityState.ACTIVE)
            return None

        if timestamp - self._silence_started >= self.silence_timeout:
            return self._finish(timestamp)
        return None

    def reset(self) -> None:
        """Drop any partial segment and return to Idle."""
        self._segment = []
        self._segment_started = None
        self._silence_started = None
        if self._state is not ActivityState.IDLE:
            self._transition(ActivityState.IDLE)

    def _append(self, chunk: Optional[np.ndarray]) -> None:
        if chunk is not None and len(chunk):
            self._segment.append(np.asarray(chunk, dtype=np.float32))

    def _finish(self, timestamp: float) -> UtteranceBoundary:
        if self._segment:
            pcm = np.concatenate(self._segment).astype("<f4").tobytes()
        else:
            pcm = b""
        boundary = UtteranceBoundary(
            segment=pcm,
            sample_rate=self.sample_rate,
            started_at=self._segment_started if self._segment_started is not None else timestamp,
            ended_at=timestamp,
        )
        self._segment = []
        self._segment_started = None
        self._silence_started = None
        self._transition(ActivityState.IDLE)
        self.logger.info(
            f"Utterance boundary: {boundary.duration:.2f}s, {len(pcm)} bytes"
        )
        return boundary

    def _transition(self, new_state: ActivityState) -> None:
        previous = self._state
        self.logger.debug(f"{previous.value} -> {new_state.value}")
        self._state = new_state
        for listener in list(self._listeners):
            listener(previous, new_state)
