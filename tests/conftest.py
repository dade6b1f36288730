"""Shared fixtures for the Wexly test suite."""

from typing import Callable, List, Optional

import numpy as np
import pytest

from wexly.core.models import (
    AudioFrame,
    ContentClassification,
    FeatureVector,
    PitchReading,
    TranscriptionResult,
)


SAMPLE_RATE = 44100
FRAME_SIZE = 2048

C_MAJOR_CHROMA = (1.0, 0.1, 0.1, 0.1, 1.0, 0.1, 0.1, 1.0, 0.1, 0.1, 0.1, 0.1)


# ---------------------------------------------------------------------------
# Synthetic audio
# ---------------------------------------------------------------------------


def sine(frequency: float, length: int, sample_rate: int = SAMPLE_RATE, amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(length) / sample_rate
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


@pytest.fixture
def make_sine() -> Callable[..., np.ndarray]:
    """Factory for float32 sine waves."""
    return sine


@pytest.fixture
def sine_frame() -> AudioFrame:
    """220 Hz sine, 2048 samples at 44.1 kHz."""
    return AudioFrame(samples=sine(220.0, FRAME_SIZE), sample_rate=SAMPLE_RATE, timestamp=1.0)


@pytest.fixture
def silent_frame() -> AudioFrame:
    return AudioFrame(
        samples=np.zeros(FRAME_SIZE, dtype=np.float32), sample_rate=SAMPLE_RATE, timestamp=1.0
    )


# ---------------------------------------------------------------------------
# Model builders
# ---------------------------------------------------------------------------


def _features(**overrides) -> FeatureVector:
    values = dict(
        rms=0.1,
        zcr=0.05,
        spectral_centroid=1000.0,
        spectral_rolloff=3000.0,
        spectral_bandwidth=500.0,
        chroma=C_MAJOR_CHROMA,
        mfcc=(1.0,) * 13,
        timestamp=1.0,
    )
    values.update(overrides)
    return FeatureVector(**values)


def _classification(**overrides) -> ContentClassification:
    values = dict(
        is_voice=False,
        is_singing=False,
        is_music_detected=True,
        voice_confidence=0.0,
        music_confidence=0.6,
        confidence=0.6,
        content_type="music",
        genre="pop",
        mood="happy",
        key="C",
        tempo=120,
        chords=("Cmaj",),
        instruments=("guitar", "piano"),
        rms=0.25,
        spectral_centroid=2000.0,
        spectral_rolloff=3000.0,
        zcr=0.2,
    )
    values.update(overrides)
    return ContentClassification(**values)


def _pitch(**overrides) -> PitchReading:
    values = dict(raw=261.6, stable=261.6, changed=False, stability=0.85, vocal_range=(250.0, 270.0))
    values.update(overrides)
    return PitchReading(**values)


@pytest.fixture
def make_features() -> Callable[..., FeatureVector]:
    """Factory for FeatureVector with plausible defaults (C major chroma)."""
    return _features


@pytest.fixture
def make_classification() -> Callable[..., ContentClassification]:
    """Factory for a music ContentClassification (confidence 0.6)."""
    return _classification


@pytest.fixture
def make_pitch() -> Callable[..., PitchReading]:
    return _pitch


# ---------------------------------------------------------------------------
# Time and timers
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock moved by hand."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualTimer:
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose timers fire only when advance() moves the clock past them."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.timers: List[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.clock.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        target = self.clock.now + seconds
        while True:
            due = [t for t in self.pending if t.due <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.clock.now = max(self.clock.now, timer.due)
            timer.fired = True
            timer.callback()
        self.clock.now = target


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock) -> ManualScheduler:
    return ManualScheduler(clock)


# ---------------------------------------------------------------------------
# Mock collaborators
# ---------------------------------------------------------------------------


class MockLLMClient:
    """Mock LLMClient that returns canned responses without API calls."""

    def __init__(
        self,
        response: str = '{"result": "mock"}',
        chunks: Optional[List[str]] = None,
        error: Optional[Exception] = None,
    ):
        self.provider = "mock"
        self.model = "mock-model"
        self._response = response
        self._chunks = chunks if chunks is not None else ["Sounds ", "great!"]
        self._error = error
        self.call_count = 0
        self.prompts: List[str] = []
        self.stream_calls: List[list] = []

    @property
    def model_id(self) -> str:
        return "mock/mock-model"

    def chat(self, system_prompt, user_prompt, temperature=None, max_tokens=None):
        self.call_count += 1
        self.prompts.append(user_prompt)
        if self._error is not None:
            raise self._error
        return self._response

    def chat_stream(self, system_prompt, messages, temperature=None, max_tokens=None):
        """Yields the canned chunks, then raises the configured error if any."""
        self.call_count += 1
        self.stream_calls.append(list(messages))
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error


class MockTranscriber:
    def __init__(self, transcript: str = "hello there", confidence: float = 0.9, error: Optional[Exception] = None):
        self.result = TranscriptionResult(transcript=transcript, confidence=confidence)
        self.error = error
        self.calls: List[tuple] = []

    def transcribe(self, segment: bytes, sample_rate: int) -> TranscriptionResult:
        self.calls.append((segment, sample_rate))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def mock_client():
    """MockLLMClient instance."""
    return MockLLMClient()


@pytest.fixture
def mock_transcriber():
    return MockTranscriber()


@pytest.fixture
def make_client() -> Callable[..., MockLLMClient]:
    return MockLLMClient


@pytest.fixture
def make_transcriber() -> Callable[..., MockTranscriber]:
    return MockTranscriber


@pytest.fixture
def make_scheduler() -> Callable[[FakeClock], ManualScheduler]:
    return ManualScheduler
