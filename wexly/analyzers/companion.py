"""
Music companion analyzer.

Combines the content classification and the pitch reading of a tick
into voice, instrument and overall analyses, with a quality verdict and
practice suggestions. Owns the chord history used for progressions.
"""

import math
from collections import deque
from typing import Any, Deque, List, Optional, Sequence

from wexly.analyzers.content import CHROMA_THRESHOLD, UNKNOWN_INSTRUMENT
from wexly.core.analyzer_base import BaseAnalyzer
from wexly.core.models import (
    CompanionAnalysis,
    ContentClassification,
    FeatureVector,
    InstrumentAnalysis,
    OverallAnalysis,
    PitchReading,
    VoiceAnalysis,
)


CHORD_HISTORY_LENGTH: int = 50
PROGRESSION_LENGTH: int = 4
DEFAULT_KEY: str = "C"
STABLE_PITCH_THRESHOLD: float = 0.7
UNSTABLE_PITCH_THRESHOLD: float = 0.5
CONSONANT_INTERVALS = (0, 4, 7)  # root, major third, perfect fifth

# Suggestion texts
SUGGEST_KEY = "Try singing in the key of {key}"
SUGGEST_DISSONANCE = "Your voice is creating some dissonance - try adjusting your pitch"
SUGGEST_STABILITY = "Work on pitch stability for better singing"
SUGGEST_RESOLVE = "Try resolving to {key} for a stronger ending"
SUGGEST_DEFAULT = "Sounds great! Keep it up!"

NO_VOICE = VoiceAnalysis(
    is_voice_detected=False,
    is_singing=False,
    confidence=0.0,
    pitch=0.0,
    pitch_stability=0.0,
    vocal_range=(0.0, 0.0),
    in_key=False,
    harmony="neutral",
)


def pitch_class(pitch: float) -> Optional[int]:
    """Chroma index (0 = C) of a frequency, None for no pitch."""
    if pitch <= 0:
        return None
    semitones_from_a = int(round(12 * math.log2(pitch / 440.0)))
    return (semitones_from_a + 9) % 12


def is_in_key(pitch: float, chroma: Sequence[float]) -> bool:
    index = pitch_class(pitch)
    if index is None or len(chroma) != 12:
        return False
    return chroma[index] > CHROMA_THRESHOLD


def analyze_harmony(pitch: float, chroma: Sequence[float]) -> str:
    index = pitch_class(pitch)
    if index is None or len(chroma) != 12:
        return "neutral"
    if any(chroma[(index + interval) % 12] > CHROMA_THRESHOLD for interval in CONSONANT_INTERVALS):
        return "consonant"
    return "dissonant"


class CompanionAnalyzer(BaseAnalyzer[CompanionAnalysis]):
    """
    Per-session companion analyzer.

    Construct one per session and pass it to the engine; the chord
    history lives on the instance.
    """

    def __init__(self, history_length: int = CHORD_HISTORY_LENGTH):
        super().__init__("companion", "1.0.0")
        self._chord_history: Deque[str] = deque(maxlen=history_length)

    @property
    def chord_history(self) -> List[str]:
        return list(self._chord_history)

    def reset(self) -> None:
        self._chord_history.clear()

    def _analyze_impl(
        self,
        features: FeatureVector,
        classification: Optional[ContentClassification] = None,
        pitch: Optional[PitchReading] = None,
        **context: Any,
    ) -> CompanionAnalysis:
        if classification is None:
            raise ValueError("companion analysis requires a content classification")

        voice = self._analyze_voice(features, classification, pitch)
        instruments = self._analyze_instruments(classification)
        overall = OverallAnalysis(
            music_type=self._music_type(voice, instruments),
            quality=self._assess_quality(voice, instruments),
            suggestions=tuple(self._suggestions(voice, instruments)),
        )
        return CompanionAnalysis(
            voice=voice,
            instruments=instruments,
            overall=overall,
            timestamp=features.timestamp,
        )

    def _analyze_voice(
        self,
        features: FeatureVector,
        classification: ContentClassification,
        pitch: Optional[PitchReading],
    ) -> VoiceAnalysis:
        if not classification.is_voice:
            return NO_VOICE

        frequency = pitch.pitch if pitch is not None else 0.0
        return VoiceAnalysis(
            is_voice_detected=True,
            is_singing=classification.is_singing,
            confidence=classification.voice_confidence,
            pitch=frequency,
            pitch_stability=pitch.stability if pitch is not None else 0.0,
            vocal_range=pitch.vocal_range if pitch is not None else (0.0, 0.0),
            in_key=is_in_key(frequency, features.chroma),
            harmony=analyze_harmony(frequency, features.chroma),
        )

    def _analyze_instruments(self, classification: ContentClassification) -> InstrumentAnalysis:
        chords = classification.chords
        if chords:
            self._chord_history.append(chords[0])

        if len(self._chord_history) >= PROGRESSION_LENGTH:
            progression = tuple(self._chord_history)[-PROGRESSION_LENGTH:]
        else:
            progression = ()

        return InstrumentAnalysis(
            instruments=classification.instruments or (UNKNOWN_INSTRUMENT,),
            confidence=classification.music_confidence,
            chords=chords,
            chord_progression=progression,
            key=classification.key,
            tempo=classification.tempo,
        )

    @staticmethod
    def _music_type(voice: VoiceAnalysis, instruments: InstrumentAnalysis) -> str:
        has_instruments = any(i != UNKNOWN_INSTRUMENT for i in instruments.instruments)
        if voice.is_voice_detected and has_instruments:
            return "mixed"
        if voice.is_voice_detected:
            return "vocal"
        return "instrumental"

    @staticmethod
    def _assess_quality(voice: VoiceAnalysis, instruments: InstrumentAnalysis) -> str:
        score = 0
        if voice.is_voice_detected:
            if voice.in_key:
                score += 2
            if voice.harmony == "consonant":
                score += 2
            if voice.pitch_stability > STABLE_PITCH_THRESHOLD:
                score += 1
        if instruments.chords:
            score += 1
        if instruments.key != DEFAULT_KEY:
            score += 1

        if score >= 5:
            return "excellent"
        if score >= 3:
            return "good"
        return "needs_work"

    @staticmethod
    def _suggestions(voice: VoiceAnalysis, instruments: InstrumentAnalysis) -> List[str]:
        suggestions: List[str] = []

        if voice.is_voice_detected:
            if not voice.in_key:
                suggestions.append(SUGGEST_KEY.format(key=instruments.key))
            if voice.harmony == "dissonant":
                suggestions.append(SUGGEST_DISSONANCE)
            if voice.pitch_stability < UNSTABLE_PITCH_THRESHOLD:
                suggestions.append(SUGGEST_STABILITY)

        progression = instruments.chord_progression
        if len(progression) > 2 and instruments.key not in progression[-1]:
            suggestions.append(SUGGEST_RESOLVE.format(key=instruments.key))

        return suggestions or [SUGGEST_DEFAULT]


def format_for_ai(analysis: CompanionAnalysis) -> str:
    """Plain-text summary of a companion analysis for the chat prompt."""
    voice = analysis.voice
    instruments = analysis.instruments
    overall = analysis.overall

    lines = ["Musical Analysis:", f"Type: {overall.music_type}"]

    if voice.is_voice_detected:
        lines.append(
            f"Voice: {'Singing' if voice.is_singing else 'Speaking'} "
            f"(pitch: {voice.pitch:.1f}Hz, "
            f"stability: {voice.pitch_stability * 100:.0f}%, "
            f"{'in key' if voice.in_key else 'off key'}, "
            f"harmony: {voice.harmony})"
        )

    lines.append(f"Instruments: {', '.join(instruments.instruments)}")
    lines.append(f"Key: {instruments.key}, Tempo: {instruments.tempo} BPM")
    if instruments.chords:
        lines.append(f"Current chords: {', '.join(instruments.chords)}")
    if instruments.chord_progression:
        lines.append(f"Chord progression: {' - '.join(instruments.chord_progression)}")

    lines.append(f"Quality: {overall.quality}")
    lines.append(f"Suggestions: {'; '.join(overall.suggestions)}")
    return "\n".join(lines) + "\n"
