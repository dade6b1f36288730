"""
Per-frame feature extraction for the real-time analysis loop.

Extracts spectral and temporal features from a single AudioFrame using
librosa on one Hann-windowed magnitude spectrum.
"""

import logging
from typing import Optional

import librosa
from librosa.util.exceptions import ParameterError
import numpy as np

from wexly.core.models import AudioFrame, FeatureVector
from wexly.utils.errors import FeatureExtractionError


ROLLOFF_PERCENT: float = 0.99
N_MFCC: int = 13
N_MELS: int = 26

logger = logging.getLogger(__name__)


class FeatureExtractor:
    """
    Stateless feature extraction using librosa.

    All methods are static - no instance state needed.
    """

    @staticmethod
    def extract(frame: AudioFrame) -> Optional[FeatureVector]:
        """
        Extract the feature vector of one frame.

        Args:
            frame: AudioFrame to analyse

        Returns:
            FeatureVector, or None when extraction fails. Callers skip the
            tick on None; it never stands for silence.
        """
        try:
            return FeatureExtractor._extract(frame)
        except FeatureExtractionError as e:
            logger.debug(f"Skipping frame: {e}")
            return None

    @staticmethod
    def _extract(frame: AudioFrame) -> FeatureVector:
        y = np.asarray(frame.samples, dtype=np.float32)
        n = y.shape[0]
        sr = float(frame.sample_rate)

        if n < 2 or sr <= 0:
            raise FeatureExtractionError(
                f"Frame too short or invalid rate (size={n}, sr={sr})",
                feature_name="frame",
            )
        if not np.all(np.isfinite(y)):
            raise FeatureExtractionError(
                "Frame contains non-finite samples", feature_name="frame"
            )

        try:
            rms = float(np.sqrt(np.mean(np.square(y, dtype=np.float64))))

            # One full-length, Hann-windowed frame
            S = np.abs(
                librosa.stft(y, n_fft=n, hop_length=n, window="hann", center=False)
            )
            power = S ** 2

            centroid = _first(librosa.feature.spectral_centroid(S=S, sr=sr, n_fft=n))
            rolloff = _first(
                librosa.feature.spectral_rolloff(
                    S=S, sr=sr, n_fft=n, roll_percent=ROLLOFF_PERCENT
                )
            )
            zcr = _first(
                librosa.feature.zero_crossing_rate(
                    y, frame_length=n, hop_length=n, center=False
                )
            )
            bandwidth = FeatureExtractor.spectral_bandwidth(S[:, 0], sr, n, centroid)

            chroma = librosa.feature.chroma_stft(
                S=power, sr=sr, n_fft=n, norm=np.inf, tuning=0.0
            )[:, 0]
            mel = librosa.feature.melspectrogram(S=power, sr=sr, n_mels=N_MELS)
            mfcc = librosa.feature.mfcc(S=np.log1p(mel), n_mfcc=N_MFCC)[:, 0]

        except (ParameterError, ValueError) as e:
            raise FeatureExtractionError(
                f"librosa feature extraction failed: {e}", feature_name="spectrum"
            ) from e

        chroma = np.clip(np.nan_to_num(chroma), 0.0, 1.0)
        mfcc = np.nan_to_num(mfcc)

        return FeatureVector(
            rms=_finite(rms),
            zcr=float(np.clip(_finite(zcr), 0.0, 1.0)),
            spectral_centroid=_finite(centroid),
            spectral_rolloff=_finite(rolloff),
            spectral_bandwidth=_finite(bandwidth),
            chroma=tuple(float(v) for v in chroma) if chroma.shape[0] == 12 else (),
            mfcc=tuple(float(v) for v in mfcc),
            timestamp=frame.timestamp,
        )

    @staticmethod
    def spectral_bandwidth(
        magnitudes: np.ndarray, sample_rate: float, n_fft: int, centroid: float
    ) -> float:
        """
        Magnitude-weighted spread around the centroid over the first N/2 bins.

        Returns 0 when the spectrum carries no magnitude.
        """
        half = n_fft // 2
        mags = np.asarray(magnitudes[:half], dtype=np.float64)
        total = mags.sum()
        if total <= 0:
            return 0.0
        freqs = librosa.fft_frequencies(sr=sample_rate, n_fft=n_fft)[:half]
        return float(np.sqrt(np.sum(mags * (freqs - centroid) ** 2) / total))


def _first(feature: np.ndarray) -> float:
    return float(np.asarray(feature).reshape(-1)[0])


def _finite(value: float) -> float:
    return float(value) if np.isfinite(value) else 0.0
