"""
Tests for media decoding.
"""

import numpy as np
import pytest
import soundfile as sf
from subtitler.audio_extractor import AudioExtractor


@pytest.fixture
def extractor():
    return AudioExtractor(sample_rate=16000)


class TestDecode:
    """Test decoding paths that need no FFmpeg."""

    def test_missing_file(self, extractor, tmp_path):
        with pytest.raises(FileNotFoundError):
            extractor.decode(tmp_path / "missing.mp4")

    def test_wav_at_target_rate_read_directly(self, extractor, tmp_path, monkeypatch):
        path = tmp_path / "tone.wav"
        samples = (0.5 * np.sin(np.linspace(0, 100, 16000))).astype(np.float32)
        sf.write(str(path), samples, 16000, subtype="FLOAT")

        def no_ffmpeg(media_path):
            raise AssertionError("FFmpeg should not be used")

        monkeypatch.setattr(extractor, "_decode_ffmpeg", no_ffmpeg)
        waveform = extractor.decode(path)
        assert waveform.dtype == np.float32
        assert len(waveform) == 16000
        assert np.allclose(waveform, samples, atol=1e-6)

    def test_stereo_downmixed(self, extractor, tmp_path):
        path = tmp_path / "stereo.wav"
        stereo = np.stack([np.full(800, 0.2), np.full(800, 0.4)], axis=1).astype(np.float32)
        sf.write(str(path), stereo, 16000, subtype="FLOAT")
        waveform = extractor.decode(path)
        assert waveform.shape == (800,)
        assert np.allclose(waveform, 0.3, atol=1e-6)

    def test_other_rate_goes_through_ffmpeg(self, extractor, tmp_path, monkeypatch):
        path = tmp_path / "hi.wav"
        sf.write(str(path), np.zeros(4410, dtype=np.float32), 44100)
        monkeypatch.setattr(extractor, "_decode_ffmpeg", lambda p: np.ones(1600, dtype=np.float32))
        assert len(extractor.decode(path)) == 1600
