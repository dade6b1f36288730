"""
Core data models for the Wexly music companion.

Immutable value objects produced by the per-tick analysis loop and the
conversation session. Every sequence field is a tuple so that a snapshot
handed to a listener cannot be mutated by it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np


PITCH_CLASSES: Tuple[str, ...] = (
    "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"
)

EMOTIONS: Tuple[str, ...] = (
    "neutral",
    "excited",
    "listening",
    "thinking",
    "dancing",
    "suggesting",
    "speaking",
    "processing",
    "understanding",
    "empathetic",
    "curious",
    "helpful",
    "encouraging",
    "celebrating",
    "concerned",
    "focused",
)

CONTENT_TYPES = {"music", "voice", "silence"}
HARMONY_TYPES = {"consonant", "dissonant", "neutral"}
MUSIC_TYPES = {"instrumental", "vocal", "mixed"}
QUALITY_LEVELS = {"excellent", "good", "needs_work"}
MUSICAL_STRUCTURES = {"verse", "chorus", "bridge", "intro", "outro", "unknown"}


@dataclass(frozen=True)
class AudioFrame:
    """
    Most recent time-domain frame, produced once per analysis tick.

    `samples` is float32 in [-1, 1] and its length is a power of two.
    `sample_rate` is the effective rate of `samples` (scaled when the
    frame was resampled to its power-of-two length).
    """

    samples: np.ndarray
    sample_rate: float
    timestamp: float = field(default_factory=time.time)

    @property
    def size(self) -> int:
        return int(self.samples.shape[0])


@dataclass(frozen=True)
class FeatureVector:
    """Spectral and temporal features of a single frame."""

    rms: float
    zcr: float
    spectral_centroid: float  # Hz
    spectral_rolloff: float  # Hz
    spectral_bandwidth: float  # Hz
    chroma: Tuple[float, ...]  # 12 values (index 0 = C) or empty
    mfcc: Tuple[float, ...]
    timestamp: float = 0.0

    def __post_init__(self) -> None:
        """Validate fields."""
        if len(self.chroma) not in (0, 12):
            raise ValueError(
                f"Chroma must have 12 bins or be empty, got {len(self.chroma)}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'rms': self.rms,
            'zcr': self.zcr,
            'spectral_centroid': self.spectral_centroid,
            'spectral_rolloff': self.spectral_rolloff,
            'spectral_bandwidth': self.spectral_bandwidth,
            'chroma': list(self.chroma),
            'mfcc': list(self.mfcc),
            'timestamp': self.timestamp,
        }


@dataclass(frozen=True)
class PitchReading:
    """Pitch tracker output for one tick."""

    raw: float  # Hz, 0 = undetected
    stable: float  # Hz, 0 = no stable value
    changed: bool  # stable value was replaced this tick
    stability: float  # [0.0, 1.0]
    vocal_range: Tuple[float, float] = (0.0, 0.0)

    def __post_init__(self) -> None:
        validate_confidence(self.stability)

    @property
    def pitch(self) -> float:
        """Stable pitch when available, raw estimate otherwise."""
        return self.stable or self.raw

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'raw': self.raw,
            'stable': self.stable,
            'changed': self.changed,
            'stability': self.stability,
            'vocal_range': {'min': self.vocal_range[0], 'max': self.vocal_range[1]},
        }


@dataclass(frozen=True)
class AudioAnalysis:
    """Per-tick snapshot pushed to presentation listeners."""

    pitch: float  # Hz, 0 = undetected
    volume: float  # [0.0, 1.0]
    tempo: int  # BPM
    key: str
    chords: Tuple[str, ...]
    spectral_centroid: float
    spectral_rolloff: float
    spectral_bandwidth: float
    zcr: float
    mfcc: Tuple[float, ...]
    timestamp: float

    def __post_init__(self) -> None:
        """Validate fields."""
        validate_confidence(self.volume)
        if self.key not in PITCH_CLASSES:
            raise ValueError(f"Invalid key: {self.key}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'pitch': self.pitch,
            'volume': self.volume,
            'tempo': self.tempo,
            'key': self.key,
            'chords': list(self.chords),
            'spectral_centroid': self.spectral_centroid,
            'spectral_rolloff': self.spectral_rolloff,
            'spectral_bandwidth': self.spectral_bandwidth,
            'zcr': self.zcr,
            'mfcc': list(self.mfcc),
            'timestamp': self.timestamp,
        }


@dataclass(frozen=True)
class ContentClassification:
    """Heuristic voice/music classification of one feature vector."""

    is_voice: bool
    is_singing: bool
    is_music_detected: bool
    voice_confidence: float
    music_confidence: float
    confidence: float
    content_type: str  # music | voice | silence
    genre: str
    mood: str
    key: str
    tempo: int
    chords: Tuple[str, ...]
    instruments: Tuple[str, ...]
    rms: float
    spectral_centroid: float
    spectral_rolloff: float
    zcr: float

    def __post_init__(self) -> None:
        """Validate fields."""
        validate_confidence(self.voice_confidence)
        validate_confidence(self.music_confidence)
        validate_confidence(self.confidence)
        if self.content_type not in CONTENT_TYPES:
            raise ValueError(f"Invalid content type: {self.content_type}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'is_voice': self.is_voice,
            'is_singing': self.is_singing,
            'is_music_detected': self.is_music_detected,
            'voice_confidence': self.voice_confidence,
            'music_confidence': self.music_confidence,
            'confidence': self.confidence,
            'content_type': self.content_type,
            'genre': self.genre,
            'mood': self.mood,
            'key': self.key,
            'tempo': self.tempo,
            'chords': list(self.chords),
            'instruments': list(self.instruments),
            'rms': self.rms,
            'spectral_centroid': self.spectral_centroid,
            'spectral_rolloff': self.spectral_rolloff,
            'zcr': self.zcr,
        }


@dataclass(frozen=True)
class VoiceAnalysis:
    """Voice and singing properties of the current tick."""

    is_voice_detected: bool
    is_singing: bool
    confidence: float
    pitch: float
    pitch_stability: float  # [0.0, 1.0], 1 = perfectly stable
    vocal_range: Tuple[float, float]
    in_key: bool
    harmony: str  # consonant | dissonant | neutral

    def __post_init__(self) -> None:
        """Validate fields."""
        validate_confidence(self.confidence)
        validate_confidence(self.pitch_stability)
        if self.harmony not in HARMONY_TYPES:
            raise ValueError(f"Invalid harmony: {self.harmony}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'is_voice_detected': self.is_voice_detected,
            'is_singing': self.is_singing,
            'confidence': self.confidence,
            'pitch': self.pitch,
            'pitch_stability': self.pitch_stability,
            'vocal_range': {'min': self.vocal_range[0], 'max': self.vocal_range[1]},
            'in_key': self.in_key,
            'harmony': self.harmony,
        }


@dataclass(frozen=True)
class InstrumentAnalysis:
    """Instrumental content of the current tick."""

    instruments: Tuple[str, ...]
    confidence: float
    chords: Tuple[str, ...]
    chord_progression: Tuple[str, ...]
    key: str
    tempo: int
    time_signature: str = "4/4"
    musical_structure: str = "unknown"

    def __post_init__(self) -> None:
        """Validate fields."""
        if not self.instruments:
            raise ValueError("Instrument list must not be empty; use ('unknown',)")
        validate_confidence(self.confidence)
        if self.musical_structure not in MUSICAL_STRUCTURES:
            raise ValueError(f"Invalid musical structure: {self.musical_structure}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'instruments': list(self.instruments),
            'confidence': self.confidence,
            'chords': list(self.chords),
            'chord_progression': list(self.chord_progression),
            'key': self.key,
            'tempo': self.tempo,
            'time_signature': self.time_signature,
            'musical_structure': self.musical_structure,
        }


@dataclass(frozen=True)
class OverallAnalysis:
    """Combined verdict over voice and instruments."""

    music_type: str  # instrumental | vocal | mixed
    quality: str  # excellent | good | needs_work
    suggestions: Tuple[str, ...]

    def __post_init__(self) -> None:
        """Validate fields."""
        if self.music_type not in MUSIC_TYPES:
            raise ValueError(f"Invalid music type: {self.music_type}")
        if self.quality not in QUALITY_LEVELS:
            raise ValueError(f"Invalid quality: {self.quality}")
        if not self.suggestions:
            raise ValueError("Suggestions must not be empty")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'music_type': self.music_type,
            'quality': self.quality,
            'suggestions': list(self.suggestions),
        }


@dataclass(frozen=True)
class CompanionAnalysis:
    """Voice, instrument and overall analyses of one tick."""

    voice: VoiceAnalysis
    instruments: InstrumentAnalysis
    overall: OverallAnalysis
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'voice': self.voice.to_dict(),
            'instruments': self.instruments.to_dict(),
            'overall': self.overall.to_dict(),
            'timestamp': self.timestamp,
        }


@dataclass(frozen=True)
class EmotionState:
    """Snapshot of the presentation emotion."""

    current: str
    last_change_timestamp: Optional[float] = None
    pending_emotion: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate fields."""
        validate_emotion(self.current)
        if self.pending_emotion is not None:
            validate_emotion(self.pending_emotion)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'current': self.current,
            'last_change_timestamp': self.last_change_timestamp,
            'pending_emotion': self.pending_emotion,
        }


@dataclass(frozen=True)
class UtteranceBoundary:
    """Finished recording segment emitted by the activity gate."""

    segment: bytes  # float32 little-endian PCM
    sample_rate: int
    started_at: float
    ended_at: float

    @property
    def is_empty(self) -> bool:
        return len(self.segment) == 0

    @property
    def duration(self) -> float:
        return self.ended_at - self.started_at

    def samples(self) -> np.ndarray:
        """Decode the segment back into float32 samples."""
        return np.frombuffer(self.segment, dtype="<f4")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (segment reported by size only)."""
        return {
            'segment_bytes': len(self.segment),
            'sample_rate': self.sample_rate,
            'started_at': self.started_at,
            'ended_at': self.ended_at,
        }


@dataclass(frozen=True)
class TranscriptionResult:
    """Text returned by the speech-to-text collaborator."""

    transcript: str
    confidence: float

    def __post_init__(self) -> None:
        validate_confidence(self.confidence)

    def to_dict(self) -> Dict[str, Any]:
        return {'transcript': self.transcript, 'confidence': self.confidence}


@dataclass(frozen=True)
class ChatMessage:
    """One turn of the conversation log."""

    role: str  # user | assistant
    content: str
    timestamp: float = field(default_factory=time.time)
    is_streaming: bool = False
    message_id: str = ""

    def __post_init__(self) -> None:
        if self.role not in ("user", "assistant"):
            raise ValueError(f"Invalid role: {self.role}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'id': self.message_id,
            'role': self.role,
            'content': self.content,
            'timestamp': self.timestamp,
            'is_streaming': self.is_streaming,
        }


# Validation helpers

def validate_confidence(confidence: float) -> None:
    """Validate confidence score is in valid range."""
    if not (0.0 <= confidence <= 1.0):
        raise ValueError(f"Confidence must be in [0.0, 1.0], got {confidence}")


def validate_emotion(emotion: str) -> None:
    """Validate emotion is one of the supported presentation states."""
    if emotion not in EMOTIONS:
        raise ValueError(
            f"Invalid emotion: {emotion}. Must be one of {EMOTIONS}"
        )
