"""
Audio file loader for replaying recordings through the analysis engine.

Live capture is outside this package; recorded files are decoded here
and fed to a FrameSource in real-time sized chunks.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterator, Set, Tuple

import librosa
import numpy as np
import soundfile as sf

from wexly.utils.errors import AudioLoadError


SUPPORTED_FORMATS: Set[str] = {'.wav', '.aif', '.aiff', '.flac', '.ogg', '.mp3'}
DEFAULT_SAMPLE_RATE: int = 44100

logger = logging.getLogger(__name__)


class AudioLoader:
    """
    Loads audio files as mono float32 at the capture sample rate.

    Stateless - can be used concurrently.
    """

    def __init__(self, target_sr: int = DEFAULT_SAMPLE_RATE):
        self.target_sr = target_sr

    def load(self, file_path: Path) -> Tuple[np.ndarray, int]:
        """
        Load an audio file.

        Returns:
            (samples, sample_rate) with samples mono float32 in [-1, 1]

        Raises:
            AudioLoadError: File missing, unsupported or undecodable
        """
        file_path = Path(file_path)
        self._validate_file(file_path)
        self._log_metadata(file_path)

        try:
            samples, sample_rate = librosa.load(
                str(file_path), sr=self.target_sr, mono=True, dtype=np.float32
            )
        except Exception as e:
            raise AudioLoadError(
                f"Failed to load audio data from {file_path}: {e}",
                file_path=str(file_path),
            ) from e

        if samples.size == 0:
            raise AudioLoadError(f"Audio file is empty: {file_path}", file_path=str(file_path))

        peak = float(np.max(np.abs(samples)))
        if peak > 1.0:
            logger.warning(f"Audio contains clipping (max: {peak:.2f}), normalizing: {file_path}")
            samples = samples / peak

        return samples, int(sample_rate)

    def _validate_file(self, file_path: Path) -> None:
        if not file_path.exists():
            raise AudioLoadError(f"Audio file not found: {file_path}", file_path=str(file_path))

        suffix = file_path.suffix.lower()
        if suffix not in SUPPORTED_FORMATS:
            raise AudioLoadError(
                f"Format {suffix} not supported. "
                f"Supported formats: {', '.join(sorted(SUPPORTED_FORMATS))}",
                file_path=str(file_path),
            )

    def _log_metadata(self, file_path: Path) -> Dict[str, Any]:
        """Log original metadata; soundfile cannot read every format."""
        try:
            with sf.SoundFile(str(file_path)) as f:
                metadata = {
                    'sample_rate': f.samplerate,
                    'channels': f.channels,
                    'subtype': f.subtype,
                    'duration': f.frames / f.samplerate,
                }
        except Exception as e:
            logger.warning(f"Could not read metadata with soundfile: {e}")
            return {}

        logger.info(
            f"Loading audio: {metadata['sample_rate']} Hz, "
            f"{metadata['channels']} ch, {metadata['subtype']}, "
            f"{metadata['duration']:.1f}s"
        )
        return metadata


def iter_chunks(
    samples: np.ndarray, sample_rate: int, interval: float
) -> Iterator[np.ndarray]:
    """Split samples into consecutive chunks of `interval` seconds."""
    step = max(1, int(round(sample_rate * interval)))
    for start in range(0, len(samples), step):
        yield samples[start:start + step]


def create_audio_loader(config: Dict[str, Any]) -> AudioLoader:
    """
    Factory function to create an AudioLoader.

    Args:
        config: The 'audio' section from config.yaml
    """
    return AudioLoader(target_sr=config.get('sample_rate', DEFAULT_SAMPLE_RATE))
