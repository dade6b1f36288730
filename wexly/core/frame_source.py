"""
Rolling audio buffer fed by the capture callback.

The analysis loop pulls the most recent frame from here once per tick;
the capture thread pushes raw blocks of any size.
"""

import logging
import threading
import time
from typing import Callable, Optional

import numpy as np

from wexly.core.models import AudioFrame


MIN_FRAME_SIZE: int = 512  # used when the configured size is not positive
MAX_FRAME_SIZE: int = 16384  # caps autocorrelation cost per tick

logger = logging.getLogger(__name__)


def ensure_power_of_two(size: int) -> int:
    """
    Map a frame length to the nearest power of two in [1, MAX_FRAME_SIZE].

    Non-positive sizes map to MIN_FRAME_SIZE. Ties between the lower and
    upper neighbour go to the upper one.
    """
    if size <= 0:
        return MIN_FRAME_SIZE
    if size > MAX_FRAME_SIZE:
        return MAX_FRAME_SIZE
    if size & (size - 1) == 0:
        return size

    upper = 1 << size.bit_length()
    lower = upper >> 1
    return lower if size - lower < upper - size else upper


def resample_nearest(samples: np.ndarray, target_size: int) -> np.ndarray:
    """Nearest-neighbour resample: out[i] = samples[floor(i * step)]."""
    if samples.shape[0] == target_size:
        return samples
    step = samples.shape[0] / target_size
    indices = np.floor(np.arange(target_size) * step).astype(np.int64)
    return samples[indices]


class FrameSource:
    """
    Thread-safe ring buffer holding the latest captured samples.

    `write()` is called from the capture thread, `get_frame()` and
    `take_recent()` from the analysis loop.
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        frame_size: int = 2048,
        buffer_seconds: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            sample_rate: Rate of the incoming capture stream
            frame_size: Number of most recent samples analysed per tick
            buffer_seconds: Ring buffer capacity
            clock: Time source used to stamp frames
        """
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")

        self.sample_rate = sample_rate
        self.frame_length = max(1, int(frame_size))
        self.output_size = ensure_power_of_two(int(frame_size))
        capacity = max(self.frame_length, int(sample_rate * buffer_seconds))
        self._buffer = np.zeros(capacity, dtype=np.float32)
        self._capacity = capacity
        self._write_pos = 0
        self._total_written = 0
        self._last_frame_total = 0
        self._last_recent_total = 0
        self._closed = False
        self._lock = threading.Lock()
        self._clock = clock

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, samples: np.ndarray) -> None:
        """
        Append captured samples to the ring buffer.

        Multi-channel input (shape ``(n, channels)``) is mixed down to mono.
        Writes after close() are dropped.
        """
        data = np.asarray(samples, dtype=np.float32)
        if data.ndim > 1:
            data = data.mean(axis=1)
        if data.size == 0:
            return

        with self._lock:
            if self._closed:
                return
            if data.shape[0] >= self._capacity:
                data = data[-self._capacity:]
            n = data.shape[0]
            end = self._write_pos + n
            if end <= self._capacity:
                self._buffer[self._write_pos:end] = data
            else:
                split = self._capacity - self._write_pos
                self._buffer[self._write_pos:] = data[:split]
                self._buffer[:n - split] = data[split:]
            self._write_pos = end % self._capacity
            # Count every sample offered, including any truncated above
            self._total_written += int(np.asarray(samples).shape[0])

    def get_frame(self) -> Optional[AudioFrame]:
        """
        Return the most recent frame, or None when no fresh frame exists.

        None is returned before `frame_size` samples have been written,
        when nothing new arrived since the previous call, and after close().
        """
        with self._lock:
            if self._closed:
                return None
            if self._total_written < self.frame_length:
                return None
            if self._total_written == self._last_frame_total:
                return None
            self._last_frame_total = self._total_written
            latest = self._read_latest(self.frame_length)

        samples = resample_nearest(latest, self.output_size)
        effective_rate = self.sample_rate * self.output_size / self.frame_length
        return AudioFrame(
            samples=samples,
            sample_rate=effective_rate,
            timestamp=self._clock(),
        )

    def take_recent(self) -> np.ndarray:
        """
        Return samples written since the previous call.

        Bounded by the buffer capacity; older unread samples are lost.
        """
        with self._lock:
            fresh = self._total_written - self._last_recent_total
            self._last_recent_total = self._total_written
            if fresh <= 0:
                return np.zeros(0, dtype=np.float32)
            return self._read_latest(min(fresh, self._capacity))

    def close(self) -> None:
        """Stop accepting samples; get_frame() returns None from now on."""
        with self._lock:
            self._closed = True
        logger.debug("Frame source closed")

    def _read_latest(self, count: int) -> np.ndarray:
        start = self._write_pos - count
        if start >= 0:
            return self._buffer[start:self._write_pos].copy()
        return np.concatenate((self._buffer[start:], self._buffer[:self._write_pos]))
