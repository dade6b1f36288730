"""
Heuristic content classifier.

Maps a FeatureVector onto voice/singing/music flags plus coarse musical
labels (key, chords, tempo, genre, mood, instruments). Every threshold
and weight is a named module constant; the lookup tables are
deliberately coarse and are reproduced as-is rather than tuned.
"""

from typing import Any, List, Sequence, Tuple

import numpy as np

from wexly.core.analyzer_base import BaseAnalyzer
from wexly.core.models import PITCH_CLASSES, ContentClassification, FeatureVector


# Voice
VOICE_CENTROID_RANGE: Tuple[float, float] = (200.0, 2000.0)  # Hz, exclusive
VOICE_ZCR_RANGE: Tuple[float, float] = (0.01, 0.3)  # exclusive
VOICE_RMS_FLOOR: float = 0.01
VOICE_WEIGHTS: Tuple[float, float, float] = (0.4, 0.3, 0.3)  # range, zcr, energy

# Singing
SINGING_MAX_ZCR: float = 0.15
SINGING_MIN_STABILITY: float = 0.7

# Music
MUSIC_MIN_CENTROID: float = 100.0  # Hz
MUSIC_MIN_ROLLOFF: float = 1000.0  # Hz
MUSIC_RMS_FLOOR: float = 0.005
MUSIC_MIN_ZCR: float = 0.001
MUSIC_RICH_ROLLOFF: float = 5000.0  # Hz
MUSIC_WEIGHTS: Tuple[float, float, float, float] = (0.4, 0.3, 0.2, 0.1)
MUSIC_CONFIDENCE_THRESHOLD: float = 0.3

# Chords / key
CHROMA_THRESHOLD: float = 0.3
DEFAULT_KEY: str = "C"

# Tempo
TEMPO_ZCR_SCALE: float = 60.0  # BPM-like measure per unit of zero-crossing rate
TEMPO_RANGE: Tuple[int, int] = (60, 200)

# Instruments
PERCUSSION_MFCC_THRESHOLD: float = 10.0
UNKNOWN_INSTRUMENT: str = "unknown"

# (tempo upper bound, brightness threshold, bright label, dull label)
GENRE_TABLE: Tuple[Tuple[float, float, str, str], ...] = (
    (80, 0.3, "ballad", "ambient"),
    (120, 0.4, "pop", "folk"),
    (140, 0.5, "rock", "blues"),
    (float("inf"), 0.6, "electronic", "punk"),
)

# (brightness lower bound, labels); first match wins
INSTRUMENT_BANDS: Tuple[Tuple[float, Tuple[str, ...]], ...] = (
    (0.6, ("guitar", "piano")),
    (0.4, ("vocals", "strings")),
    (0.0, ("bass", "drums")),
)


def brightness_ratio(centroid: float, rolloff: float) -> float:
    """Centroid / rolloff, 0 when there is no rolloff."""
    if rolloff <= 0:
        return 0.0
    return centroid / rolloff


def estimate_key(chroma: Sequence[float]) -> str:
    """Strongest chroma bin; the first bin wins ties."""
    if len(chroma) != 12:
        return DEFAULT_KEY
    best_index = 0
    best_value = 0.0
    for i, value in enumerate(chroma):
        if value > best_value:
            best_value = value
            best_index = i
    return PITCH_CLASSES[best_index]


def detect_chords(chroma: Sequence[float], threshold: float = CHROMA_THRESHOLD) -> List[str]:
    """
    Label the strongest triad in a chroma vector.

    Returns ["<root>maj"], ["<root>min"], the bare root when no triad is
    confirmed, or [] when even the root is below the threshold.
    """
    if len(chroma) != 12:
        return []

    root = PITCH_CLASSES.index(estimate_key(chroma))
    if chroma[root] < threshold:
        return []

    fifth = chroma[(root + 7) % 12]
    if chroma[(root + 4) % 12] > threshold and fifth > threshold:
        return [PITCH_CLASSES[root] + "maj"]
    if chroma[(root + 3) % 12] > threshold and fifth > threshold:
        return [PITCH_CLASSES[root] + "min"]
    return [PITCH_CLASSES[root]]


def estimate_tempo(zcr: float) -> int:
    """Fold a zero-crossing-rate based guess into the tempo range."""
    low, high = TEMPO_RANGE
    base = zcr * TEMPO_ZCR_SCALE
    if base < low:
        tempo = max(low, base * 2)
    elif base > high:
        tempo = min(high, base / 2)
    else:
        tempo = base
    return int(round(tempo))


def classify_genre(brightness: float, tempo: int) -> str:
    for upper, threshold, bright, dull in GENRE_TABLE:
        if tempo < upper:
            return bright if brightness > threshold else dull
    return GENRE_TABLE[-1][3]


def analyze_mood(centroid: float, rms: float, tempo: int) -> str:
    brightness = centroid / 1000.0
    if rms > 0.3 and tempo > 120:
        return "energetic" if brightness > 0.5 else "aggressive"
    if rms > 0.2:
        return "happy" if brightness > 0.4 else "confident"
    return "calm" if brightness > 0.3 else "melancholic"


def detect_instruments(brightness: float, mfcc: Sequence[float]) -> List[str]:
    """
    Instrument labels from the brightness band plus a percussion hint.

    A brightness of 0 (no spectrum) matches no band; callers that need a
    non-empty list substitute "unknown".
    """
    instruments: List[str] = []
    for lower, labels in INSTRUMENT_BANDS:
        if brightness > lower:
            instruments.extend(labels)
            break

    if len(mfcc) and float(np.mean(np.abs(mfcc))) > PERCUSSION_MFCC_THRESHOLD:
        instruments.append("percussion")
    return instruments


class ContentClassifier(BaseAnalyzer[ContentClassification]):
    """
    Voice-versus-music classifier.

    Voice and music detection are evaluated independently. When both
    match, music wins if its confidence exceeds
    MUSIC_CONFIDENCE_THRESHOLD; voice is the fallback.
    """

    def __init__(self):
        super().__init__("content", "1.0.0")

    def _analyze_impl(
        self, features: FeatureVector, pitch_stability: float = 0.0, **context: Any
    ) -> ContentClassification:
        centroid = features.spectral_centroid
        rolloff = features.spectral_rolloff
        zcr = features.zcr
        rms = features.rms

        # Voice
        voice_range = VOICE_CENTROID_RANGE[0] < centroid < VOICE_CENTROID_RANGE[1]
        voice_zcr = VOICE_ZCR_RANGE[0] < zcr < VOICE_ZCR_RANGE[1]
        voice_energy = rms > VOICE_RMS_FLOOR
        is_voice = voice_range and voice_zcr and voice_energy
        voice_confidence = _weighted((voice_range, voice_zcr, voice_energy), VOICE_WEIGHTS)
        is_singing = (
            is_voice
            and zcr < SINGING_MAX_ZCR
            and pitch_stability > SINGING_MIN_STABILITY
        )

        # Music
        musical_spectrum = centroid > MUSIC_MIN_CENTROID and rolloff > MUSIC_MIN_ROLLOFF
        musical_energy = rms > MUSIC_RMS_FLOOR
        musical_complexity = zcr > MUSIC_MIN_ZCR
        is_music = musical_spectrum and musical_energy and musical_complexity
        music_confidence = _weighted(
            (musical_spectrum, musical_energy, musical_complexity, rolloff > MUSIC_RICH_ROLLOFF),
            MUSIC_WEIGHTS,
        )

        if is_music and music_confidence > MUSIC_CONFIDENCE_THRESHOLD:
            content_type = "music"
            confidence = max(voice_confidence, music_confidence)
        elif is_voice:
            content_type = "voice"
            confidence = voice_confidence
        else:
            content_type = "silence"
            confidence = 0.0

        tempo = estimate_tempo(zcr)
        brightness = brightness_ratio(centroid, rolloff)

        return ContentClassification(
            is_voice=is_voice,
            is_singing=is_singing,
            is_music_detected=is_music,
            voice_confidence=voice_confidence,
            music_confidence=music_confidence,
            confidence=confidence,
            content_type=content_type,
            genre=classify_genre(brightness, tempo),
            mood=analyze_mood(centroid, rms, tempo),
            key=estimate_key(features.chroma),
            tempo=tempo,
            chords=tuple(detect_chords(features.chroma)),
            instruments=tuple(detect_instruments(brightness, features.mfcc)),
            rms=rms,
            spectral_centroid=centroid,
            spectral_rolloff=rolloff,
            zcr=zcr,
        )


def _weighted(conditions: Sequence[bool], weights: Sequence[float]) -> float:
    total = sum(w for ok, w in zip(conditions, weights) if ok)
    return round(min(1.0, total), 6)