"""
Debounced presentation emotion.

The visible emotion never changes more than once per dwell interval
unless a change is forced. Requests that arrive too early park in a
single pending slot (latest request wins) and fire when the dwell
interval is over. Every applied change schedules an automatic return to
"listening" or "neutral", chosen when the return fires.
"""

import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

from wexly.core.models import EmotionState, validate_emotion
from wexly.session.scheduler import Scheduler, ThreadingScheduler, TimerHandle


DEFAULT_DWELL_SECONDS: float = 3.0
INITIAL_EMOTION: str = "neutral"
ACTIVE_RETURN_EMOTION: str = "listening"
IDLE_RETURN_EMOTION: str = "neutral"


class EmotionStateMachine:
    """
    Rate-limited owner of the current emotion.

    Args:
        is_session_active: Queried when an auto-return fires
        dwell_seconds: Minimum time an applied emotion is held
        scheduler: Source of cancellable timers
        clock: Monotonic time source in seconds
    """

    def __init__(
        self,
        is_session_active: Callable[[], bool],
        dwell_seconds: float = DEFAULT_DWELL_SECONDS,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if dwell_seconds < 0:
            raise ValueError(f"dwell_seconds must be >= 0, got {dwell_seconds}")

        self.dwell_seconds = dwell_seconds
        self._is_session_active = is_session_active
        self._scheduler = scheduler or ThreadingScheduler()
        self._clock = clock
        self._lock = threading.RLock()

        self._current = INITIAL_EMOTION
        self._last_change: Optional[float] = None
        self._pending: Optional[str] = None
        self._pending_timer: Optional[Tuple[object, TimerHandle]] = None
        self._return_timer: Optional[Tuple[object, TimerHandle]] = None
        self._closed = False
        self._listeners: List[Callable[[EmotionState], None]] = []
        self.logger = logging.getLogger("session.emotion")

    @property
    def current(self) -> str:
        return self._current

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> EmotionState:
        with self._lock:
            return EmotionState(
                current=self._current,
                last_change_timestamp=self._last_change,
                pending_emotion=self._pending,
            )

    def on_change(self, listener: Callable[[EmotionState], None]) -> None:
        self._listeners.append(listener)

    def request_emotion(self, candidate: str, force: bool = False) -> bool:
        """
        Ask for a new emotion.

        Returns:
            True if the emotion was applied immediately, False if it was
            ignored or parked as pending.

        Raises:
            ValueError: If candidate is not a known emotion
        """
        validate_emotion(candidate)

        with self._lock:
            if self._closed:
                self.logger.debug(f"Ignoring '{candidate}': state machine is shut down")
                return False

            if candidate == self._current and not force:
                return False

            now = self._clock()
            first_change = self._last_change is None
            elapsed = 0.0 if first_change else now - self._last_change

            if force or first_change or elapsed >= self.dwell_seconds:
                self._notify(self._apply(candidate, now))
                return True

            self._pending = candidate
            self._cancel_return()
            if self._pending_timer is None:
                self._pending_timer = self._schedule(
                    self.dwell_seconds - elapsed, self._fire_pending
                )
            self.logger.debug(
                f"Deferred '{candidate}' for {self.dwell_seconds - elapsed:.2f}s"
            )
            return False

    def shutdown(self) -> None:
        """Cancel all timers; later requests and callbacks are ignored."""
        with self._lock:
            self._closed = True
            self._clear_pending()
            self._cancel_return()
        self.logger.debug("Emotion state machine shut down")

    def _apply(self, emotion: str, now: float) -> EmotionState:
        previous = self._current
        self._clear_pending()
        self._cancel_return()
        self._current = emotion
        self._last_change = now
        self._return_timer = self._schedule(self.dwell_seconds, self._fire_return)
        self.logger.info(f"Emotion {previous} -> {emotion}")
        return EmotionState(current=emotion, last_change_timestamp=now)

    def _fire_pending(self, token: object) -> None:
        with self._lock:
            if self._closed or self._pending_timer is None or self._pending_timer[0] is not token:
                return
            self._pending_timer = None
            candidate = self._pending
            self._pending = None
            if candidate is None or candidate == self._current:
                return
            self._notify(self._apply(candidate, self._clock()))

    def _fire_return(self, token: object) -> None:
        with self._lock:
            if self._closed or self._return_timer is None or self._return_timer[0] is not token:
                return
            self._return_timer = None
            target = ACTIVE_RETURN_EMOTION if self._is_session_active() else IDLE_RETURN_EMOTION
            if target == self._current:
                return
            self._notify(self._apply(target, self._clock()))

    def _schedule(
        self, delay: float, callback: Callable[[object], None]
    ) -> Tuple[object, TimerHandle]:
        token = object()
        handle = self._scheduler.call_later(delay, lambda: callback(token))
        return token, handle

    def _clear_pending(self) -> None:
        self._pending = None
        if self._pending_timer is not None:
            self._pending_timer[1].cancel()
            self._pending_timer = None

    def _cancel_return(self) -> None:
        if self._return_timer is not None:
            self._return_timer[1].cancel()
            self._return_timer = None

    def _notify(self, snapshot: EmotionState) -> None:
        """Called with the lock held so listeners see changes in order."""
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                self.logger.exception("Emotion listener failed")
