"""
Real-time analysis engine.

Runs the per-tick pipeline FrameSource -> FeatureExtractor ->
{PitchTracker, ContentClassifier} -> CompanionAnalyzer, feeds the
activity gate, and pushes snapshots to listeners.
"""

import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

import numpy as np

from wexly.analyzers.activity import ActivityClassifier, ActivityState
from wexly.analyzers.companion import CompanionAnalyzer
from wexly.analyzers.content import ContentClassifier
from wexly.analyzers.pitch import PitchTracker
from wexly.core.features import FeatureExtractor
from wexly.core.frame_source import FrameSource
from wexly.core.models import (
    AudioAnalysis,
    CompanionAnalysis,
    ContentClassification,
    UtteranceBoundary,
)
from wexly.utils.errors import AnalysisError


DEFAULT_INTERVAL: float = 0.1  # seconds between ticks
DEFAULT_HISTORY_SIZE: int = 100
VOLUME_GAIN: float = 10.0


class RealtimeAnalysisEngine:
    """
    Single analysis loop of a session.

    Design:
    - Dependency Injection: every stage is passed in (testable)
    - Fixed cadence: frames arriving between ticks are superseded
    - Push-only output: listeners receive immutable snapshots
    """

    def __init__(
        self,
        frame_source: FrameSource,
        pitch_tracker: PitchTracker,
        content_classifier: ContentClassifier,
        companion_analyzer: CompanionAnalyzer,
        activity_classifier: ActivityClassifier,
        interval: float = DEFAULT_INTERVAL,
        history_size: int = DEFAULT_HISTORY_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.frame_source = frame_source
        self.pitch_tracker = pitch_tracker
        self.content_classifier = content_classifier
        self.companion_analyzer = companion_analyzer
        self.activity_classifier = activity_classifier
        self.interval = interval
        self._clock = clock

        self._history: Deque[AudioAnalysis] = deque(maxlen=history_size)
        self._latest_classification: Optional[ContentClassification] = None
        self._latest_companion: Optional[CompanionAnalysis] = None
        self._carry = np.zeros(0, dtype=np.float32)
        self._state_lock = threading.Lock()
        self._tick_lock = threading.Lock()

        self._analysis_listeners: List[Callable[[AudioAnalysis], None]] = []
        self._companion_listeners: List[Callable[[CompanionAnalysis], None]] = []
        self._utterance_listeners: List[Callable[[UtteranceBoundary], None]] = []

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.logger = logging.getLogger('engine')

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_analysis(self, listener: Callable[[AudioAnalysis], None]) -> None:
        self._analysis_listeners.append(listener)

    def on_companion(self, listener: Callable[[CompanionAnalysis], None]) -> None:
        self._companion_listeners.append(listener)

    def on_utterance(self, listener: Callable[[UtteranceBoundary], None]) -> None:
        self._utterance_listeners.append(listener)

    def on_activity(self, listener: Callable[[ActivityState, ActivityState], None]) -> None:
        self.activity_classifier.on_state_change(listener)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    @property
    def history(self) -> List[AudioAnalysis]:
        """Most recent analyses, oldest first."""
        with self._state_lock:
            return list(self._history)

    @property
    def latest_analysis(self) -> Optional[AudioAnalysis]:
        with self._state_lock:
            return self._history[-1] if self._history else None

    @property
    def latest_classification(self) -> Optional[ContentClassification]:
        with self._state_lock:
            return self._latest_classification

    @property
    def latest_companion(self) -> Optional[CompanionAnalysis]:
        with self._state_lock:
            return self._latest_companion

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, now: Optional[float] = None) -> Optional[AudioAnalysis]:
        """
        Run one analysis cycle.

        Returns:
            The AudioAnalysis of this tick, or None when the tick was
            skipped (no fresh frame, extraction or analysis failure).
        """
        with self._tick_lock:
            return self._tick(self._clock() if now is None else now)

    def _tick(self, now: float) -> Optional[AudioAnalysis]:
        frame = self.frame_source.get_frame()
        if frame is None:
            return None

        chunk = self._take_chunk()

        features = FeatureExtractor.extract(frame)
        if features is None:
            self._carry = chunk
            return None

        pitch = self.pitch_tracker.update(frame)

        try:
            classification = self.content_classifier.analyze(
                features, pitch_stability=pitch.stability
            )
            companion = self.companion_analyzer.analyze(
                features, classification=classification, pitch=pitch
            )
        except AnalysisError as e:
            self.logger.warning(f"Skipping tick: {e}")
            self._carry = chunk
            return None

        analysis = AudioAnalysis(
            pitch=pitch.stable,
            volume=float(min(1.0, max(0.0, features.rms * VOLUME_GAIN))),
            tempo=classification.tempo,
            key=classification.key,
            chords=classification.chords,
            spectral_centroid=features.spectral_centroid,
            spectral_rolloff=features.spectral_rolloff,
            spectral_bandwidth=features.spectral_bandwidth,
            zcr=features.zcr,
            mfcc=features.mfcc,
            timestamp=now,
        )

        with self._state_lock:
            self._history.append(analysis)
            self._latest_classification = classification
            self._latest_companion = companion

        boundary = self.activity_classifier.update(analysis.volume, now, chunk)

        self._emit(self._analysis_listeners, analysis)
        self._emit(self._companion_listeners, companion)
        if boundary is not None:
            self._emit(self._utterance_listeners, boundary)

        return analysis

    def _take_chunk(self) -> np.ndarray:
        """Fresh samples plus those held over from skipped ticks.

        Bounded by the frame source capacity; the oldest samples are dropped.
        """
        chunk = self.frame_source.take_recent()
        if self._carry.size:
            chunk = np.concatenate([self._carry, chunk])[-self.frame_source.capacity:]
            self._carry = np.zeros(0, dtype=np.float32)
        return chunk

    def _emit(self, listeners: List[Callable[[Any], None]], payload: Any) -> None:
        for listener in list(listeners):
            try:
                listener(payload)
            except Exception:
                self.logger.exception(f"Listener failed for {type(payload).__name__}")

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background analysis loop."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="wexly-analysis", daemon=True
        )
        self._thread.start()
        self.logger.info(f"Analysis loop started ({1 / self.interval:.0f} Hz)")

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.tick()
            except Exception:
                self.logger.exception("Analysis tick failed")

    def stop(self, timeout: Optional[float] = 2.0) -> None:
        """Stop the loop and wait for the current tick to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self.logger.info("Analysis loop stopped")

    def reset(self) -> None:
        """Clear per-session state (histories, partial segments)."""
        with self._tick_lock:
            self.pitch_tracker.reset()
            self.companion_analyzer.reset()
            self.activity_classifier.reset()
            self._carry = np.zeros(0, dtype=np.float32)
            with self._state_lock:
                self._history.clear()
                self._latest_classification = None
                self._latest_companion = None

    def shutdown(self) -> None:
        """Stop the loop and close the frame source."""
        self.stop()
        self.frame_source.close()


def create_analysis_engine(
    config: Optional[Dict[str, Any]] = None,
    clock: Callable[[], float] = time.monotonic,
) -> RealtimeAnalysisEngine:
    """
    Factory function to create a fully configured analysis engine.

    Args:
        config: Application configuration dict (see get_default_config)
        clock: Monotonic time source shared by frame source and engine
    """
    config = config or {}
    audio_config = config.get('audio', {})
    analysis_config = config.get('analysis', {})
    activity_config = config.get('activity', {})

    sample_rate = audio_config.get('sample_rate', 44100)

    frame_source = FrameSource(
        sample_rate=sample_rate,
        frame_size=audio_config.get('frame_size', 2048),
        buffer_seconds=audio_config.get('buffer_seconds', 2.0),
        clock=clock,
    )
    activity = ActivityClassifier(
        sample_rate=sample_rate,
        activation_threshold=activity_config.get('activation_threshold', 0.15),
        silence_timeout=activity_config.get('silence_timeout', 2.0),
    )

    return RealtimeAnalysisEngine(
        frame_source=frame_source,
        pitch_tracker=PitchTracker(),
        content_classifier=ContentClassifier(),
        companion_analyzer=CompanionAnalyzer(),
        activity_classifier=activity,
        interval=analysis_config.get('interval', DEFAULT_INTERVAL),
        history_size=analysis_config.get('history_size', DEFAULT_HISTORY_SIZE),
        clock=clock,
    )
