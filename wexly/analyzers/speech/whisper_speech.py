"""
Whisper-based transcription of finished utterance segments.

Uses OpenAI Whisper locally; the model is loaded lazily on first use.
"""

import logging
import threading
from typing import Optional, Protocol

import librosa
import numpy as np

from wexly.core.models import TranscriptionResult
from wexly.utils.errors import ModelLoadError, TranscriptionError


WHISPER_SAMPLE_RATE: int = 16000

# Phrases Whisper tends to hallucinate on near-silent input
FALSE_POSITIVES = {
    "",
    "thank you for watching!",
    "thanks for watching!",
    "you",
    "thank you",
    "thank you.",
    "thanks.",
}


class Transcriber(Protocol):
    """Speech-to-text collaborator used by the conversation session."""

    def transcribe(self, segment: bytes, sample_rate: int) -> TranscriptionResult:
        """
        Raises:
            TranscriptionError: If transcription fails
        """
        ...


class WhisperTranscriber:
    """Transcriber running a local Whisper model."""

    def __init__(
        self,
        model_size: str = "base",
        language: Optional[str] = None,
        device: Optional[str] = None,
    ):
        """
        Args:
            model_size: Whisper model size ('tiny', 'base', 'small', 'medium', 'large')
            language: Language code (e.g., 'en'). None = auto-detect.
            device: Device to use ('cpu', 'cuda'). None = auto-detect.
        """
        self.model_size = model_size
        self.language = language
        self.device = device
        self._model = None
        self._lock = threading.Lock()
        self.logger = logging.getLogger("analyzer.whisper_speech")

    @property
    def model(self):
        """Lazy-load Whisper model."""
        if self._model is None:
            with self._lock:
                if self._model is None:
                    self._model = self._load_model()
        return self._model

    def _load_model(self):
        try:
            import whisper
        except ImportError:
            raise ModelLoadError(
                "whisper package required for transcription. "
                "Install with: pip install openai-whisper",
                model_name="whisper"
            )

        try:
            self.logger.info(f"Loading Whisper model: {self.model_size}")
            model = whisper.load_model(self.model_size, device=self.device)
            self.logger.info("Whisper model loaded successfully")
            return model
        except Exception as e:
            raise ModelLoadError(
                f"Failed to load Whisper model: {e}",
                model_name=f"whisper-{self.model_size}"
            )

    def transcribe(self, segment: bytes, sample_rate: int) -> TranscriptionResult:
        """
        Transcribe a float32 PCM segment.

        Raises:
            TranscriptionError: If the model cannot be loaded or fails
        """
        audio = self._prepare_audio(segment, sample_rate)
        if audio.size == 0:
            return TranscriptionResult(transcript="", confidence=0.0)

        try:
            result = self.model.transcribe(
                audio,
                language=self.language,
                task="transcribe",
                verbose=False,
                fp16=False,
            )
        except ModelLoadError as e:
            raise TranscriptionError(str(e), backend="whisper", original_error=e) from e
        except Exception as e:
            self.logger.error(f"Whisper transcription failed: {e}")
            raise TranscriptionError(
                f"Whisper transcription failed: {e}",
                backend="whisper",
                original_error=e,
            ) from e

        text = (result.get("text") or "").strip()
        if text.lower() in FALSE_POSITIVES or len(text) <= 1:
            self.logger.debug(f"Discarding transcript '{text}'")
            return TranscriptionResult(transcript="", confidence=0.0)

        segments = result.get("segments") or []
        if segments:
            no_speech = [s.get("no_speech_prob", 0.0) for s in segments]
            confidence = 1.0 - sum(no_speech) / len(no_speech)
        else:
            confidence = 0.7

        self.logger.debug(f"Transcribed {len(text)} chars (confidence {confidence:.2f})")
        return TranscriptionResult(
            transcript=text,
            confidence=float(min(1.0, max(0.0, confidence))),
        )

    @staticmethod
    def _prepare_audio(segment: bytes, sample_rate: int) -> np.ndarray:
        """Decode, resample to 16 kHz mono float32 and normalise to [-1, 1]."""
        audio = np.frombuffer(segment, dtype="<f4").astype(np.float32)
        if audio.size == 0:
            return audio

        if sample_rate != WHISPER_SAMPLE_RATE:
            audio = librosa.resample(
                audio, orig_sr=sample_rate, target_sr=WHISPER_SAMPLE_RATE
            ).astype(np.float32)

        peak = float(np.max(np.abs(audio)))
        if peak > 1.0:
            audio = audio / peak
        return audio


def create_whisper_transcriber(config: dict) -> Optional[WhisperTranscriber]:
    """
    Factory function to create the Whisper transcriber.

    Args:
        config: The 'speech' section from config.yaml

    Returns:
        WhisperTranscriber, or None if disabled
    """
    if not config.get("enabled", True):
        return None

    return WhisperTranscriber(
        model_size=config.get("model_size", "base"),
        language=config.get("language"),
        device=config.get("device"),
    )
