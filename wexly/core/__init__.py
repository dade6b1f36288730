"""
Core module containing data models, frame capture, feature extraction
and the real-time analysis engine.

Uses lazy imports for modules with heavy dependencies (librosa).
"""

# Models are lightweight - import directly
from wexly.core.models import (
    EMOTIONS,
    AudioFrame,
    FeatureVector,
    PitchReading,
    AudioAnalysis,
    ContentClassification,
    VoiceAnalysis,
    InstrumentAnalysis,
    OverallAnalysis,
    CompanionAnalysis,
    EmotionState,
    UtteranceBoundary,
    TranscriptionResult,
    ChatMessage,
    validate_confidence,
    validate_emotion,
)
from wexly.core.frame_source import FrameSource

__all__ = [
    # Models (always available)
    "EMOTIONS",
    "AudioFrame",
    "FeatureVector",
    "PitchReading",
    "AudioAnalysis",
    "ContentClassification",
    "VoiceAnalysis",
    "InstrumentAnalysis",
    "OverallAnalysis",
    "CompanionAnalysis",
    "EmotionState",
    "UtteranceBoundary",
    "TranscriptionResult",
    "ChatMessage",
    "validate_confidence",
    "validate_emotion",
    "FrameSource",
    # Heavy modules (lazy loaded)
    "AudioLoader",
    "create_audio_loader",
    "FeatureExtractor",
    "Analyzer",
    "BaseAnalyzer",
    "RealtimeAnalysisEngine",
    "create_analysis_engine",
]


def __getattr__(name: str):
    """Lazy load modules with heavy dependencies."""
    if name in ("AudioLoader", "create_audio_loader"):
        from wexly.core.loader import AudioLoader, create_audio_loader
        return AudioLoader if name == "AudioLoader" else create_audio_loader
    elif name == "FeatureExtractor":
        from wexly.core.features import FeatureExtractor
        return FeatureExtractor
    elif name in ("Analyzer", "BaseAnalyzer"):
        from wexly.core.analyzer_base import Analyzer, BaseAnalyzer
        return Analyzer if name == "Analyzer" else BaseAnalyzer
    elif name in ("RealtimeAnalysisEngine", "create_analysis_engine"):
        from wexly.core.engine import RealtimeAnalysisEngine, create_analysis_engine
        return RealtimeAnalysisEngine if name == "RealtimeAnalysisEngine" else create_analysis_engine
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
