"""
Autocorrelation pitch tracking with median stabilization.

The raw estimate is the lag of maximal normalized autocorrelation within
the 80-800 Hz range. The reported stable pitch is the median of the last
few non-zero estimates and only moves when the median drifts by more
than a relative tolerance, so small jitter never reaches listeners.
"""

import logging
from collections import deque
from typing import Deque, List, Optional, Tuple

import numpy as np

from wexly.core.models import AudioFrame, PitchReading


MIN_PITCH_HZ: float = 80.0
MAX_PITCH_HZ: float = 800.0
CORRELATION_THRESHOLD: float = 0.0

SMOOTHING_WINDOW: int = 5
CHANGE_TOLERANCE: float = 0.1  # relative

HISTORY_LENGTH: int = 50
STABILITY_WINDOW: int = 10
MIN_STABILITY_SAMPLES: int = 5


def autocorrelation_pitch(samples: np.ndarray, sample_rate: float) -> float:
    """
    Estimate the fundamental frequency of a frame.

    Args:
        samples: Mono time-domain samples
        sample_rate: Sample rate in Hz

    Returns:
        Pitch in Hz, or 0.0 if no lag correlates positively.
    """
    x = np.asarray(samples, dtype=np.float64)
    n = x.shape[0]
    if n == 0 or sample_rate <= 0:
        return 0.0

    min_lag = int(sample_rate // MAX_PITCH_HZ)
    max_lag = int(sample_rate // MIN_PITCH_HZ)
    # Lags must stay below half the frame so every sum has enough overlap
    upper = min(max_lag, int(np.ceil(n / 2)))
    min_lag = max(min_lag, 1)
    if upper <= min_lag:
        return 0.0

    # Linear autocorrelation via zero-padded FFT
    n_fft = 1 << int(2 * n - 1).bit_length()
    spectrum = np.fft.rfft(x, n_fft)
    r = np.fft.irfft(spectrum * np.conj(spectrum), n_fft)[:n]

    energy = r[0]
    if energy <= 0:
        return 0.0

    normalized = r[min_lag:upper] / energy
    best = int(np.argmax(normalized))
    if normalized[best] <= CORRELATION_THRESHOLD:
        return 0.0

    return float(sample_rate / (min_lag + best))


class PitchStabilizer:
    """Sliding-median filter over the last non-zero pitch estimates."""

    def __init__(
        self,
        window: int = SMOOTHING_WINDOW,
        tolerance: float = CHANGE_TOLERANCE,
    ):
        self.tolerance = tolerance
        self._window: Deque[float] = deque(maxlen=window)
        self._stable: Optional[float] = None

    @property
    def stable(self) -> float:
        return self._stable or 0.0

    def update(self, pitch: float) -> bool:
        """
        Feed one raw estimate.

        Returns:
            True when the stable value was replaced by this estimate.
        """
        if pitch <= 0:
            self.reset()
            return False

        self._window.append(pitch)
        ordered = sorted(self._window)
        median = ordered[len(ordered) // 2]

        if self._stable is None or abs(median - self._stable) / self._stable > self.tolerance:
            self._stable = median
            return True
        return False

    def reset(self) -> None:
        self._window.clear()
        self._stable = None


class PitchTracker:
    """
    Per-session pitch tracker.

    Owns the stabilizer window and a longer history of non-zero raw
    estimates used for pitch stability and vocal range.
    """

    def __init__(
        self,
        window: int = SMOOTHING_WINDOW,
        tolerance: float = CHANGE_TOLERANCE,
        history_length: int = HISTORY_LENGTH,
    ):
        self._stabilizer = PitchStabilizer(window, tolerance)
        self._history: Deque[float] = deque(maxlen=history_length)
        self.logger = logging.getLogger("analyzer.pitch")

    @staticmethod
    def estimate(samples: np.ndarray, sample_rate: float) -> float:
        """Raw autocorrelation estimate (no smoothing)."""
        return autocorrelation_pitch(samples, sample_rate)

    def update(self, frame: AudioFrame) -> PitchReading:
        """Estimate the frame's pitch and advance the stabilizer."""
        raw = self.estimate(frame.samples, frame.sample_rate)
        changed = self._stabilizer.update(raw)
        if raw > 0:
            self._history.append(raw)
        if changed:
            self.logger.debug(f"Stable pitch -> {self._stabilizer.stable:.1f} Hz")

        return PitchReading(
            raw=raw,
            stable=self._stabilizer.stable,
            changed=changed,
            stability=self.stability(),
            vocal_range=self.vocal_range(),
        )

    def stability(self) -> float:
        """1 - coefficient of variation over the most recent estimates."""
        if len(self._history) < MIN_STABILITY_SAMPLES:
            return 0.0
        recent = list(self._history)[-STABILITY_WINDOW:]
        mean = float(np.mean(recent))
        if mean <= 0:
            return 0.0
        std = float(np.std(recent))
        return float(min(1.0, max(0.0, 1.0 - std / mean)))

    def vocal_range(self) -> Tuple[float, float]:
        if not self._history:
            return (0.0, 0.0)
        return (min(self._history), max(self._history))

    @property
    def history(self) -> List[float]:
        return list(self._history)

    def reset(self) -> None:
        self._stabilizer.reset()
        self._history.clear()
