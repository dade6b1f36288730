"""Tests for AudioLoader and replay chunking."""

import numpy as np
import pytest
import soundfile as sf

from wexly.core.loader import AudioLoader, create_audio_loader, iter_chunks
from wexly.utils.errors import AudioLoadError


@pytest.fixture
def wav_file(tmp_path, make_sine):
    path = tmp_path / "take.wav"
    stereo = np.stack([make_sine(440.0, 44100), make_sine(440.0, 44100)], axis=1)
    sf.write(str(path), stereo, 44100)
    return path


class TestAudioLoader:
    def test_loads_mono(self, wav_file):
        samples, sample_rate = AudioLoader().load(wav_file)
        assert sample_rate == 44100
        assert samples.ndim == 1
        assert samples.shape[0] == 44100
        assert samples.dtype == np.float32

    def test_resamples(self, wav_file):
        samples, sample_rate = AudioLoader(target_sr=22050).load(wav_file)
        assert sample_rate == 22050
        assert samples.shape[0] == pytest.approx(22050, abs=2)

    def test_missing_file(self, tmp_path):
        with pytest.raises(AudioLoadError, match="not found"):
            AudioLoader().load(tmp_path / "missing.wav")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("not audio")
        with pytest.raises(AudioLoadError, match="not supported"):
            AudioLoader().load(path)

    def test_factory(self):
        assert create_audio_loader({"sample_rate": 48000}).target_sr == 48000


class TestIterChunks:
    def test_chunk_sizes(self):
        chunks = list(iter_chunks(np.zeros(25), 100, 0.1))
        assert [len(c) for c in chunks] == [10, 10, 5]
