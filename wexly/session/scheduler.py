"""
Cancellable delayed callbacks for session timers.
"""

import logging
import threading
from typing import Callable, Protocol


logger = logging.getLogger("session.scheduler")


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Anything that can run a callback once after a delay."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class ThreadingScheduler:
    """Scheduler backed by daemon `threading.Timer` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(max(0.0, delay), self._run, args=(callback,))
        timer.daemon = True
        timer.start()
        return timer

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("Scheduled callback failed")
