"""
Speech-to-text for finished utterance segments.
"""

from wexly.analyzers.speech.whisper_speech import (
    Transcriber,
    WhisperTranscriber,
    create_whisper_transcriber,
)

__all__ = ["Transcriber", "WhisperTranscriber", "create_whisper_transcriber"]
