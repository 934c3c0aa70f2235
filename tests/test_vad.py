"""
Tests for SpeechDetector that need no Silero model.
"""

import pytest
from config import VADConfig
from subtitler.spans import TimeWindow
from subtitler.vad import SpeechDetector


class TestSampleRate:
    """Test sample rate handling."""

    def test_frame_size_follows_rate(self):
        assert SpeechDetector(VADConfig(), sample_rate=16000).frame_samples == 512
        assert SpeechDetector(VADConfig(), sample_rate=8000).frame_samples == 256

    def test_unsupported_rate_rejected(self):
        with pytest.raises(ValueError):
            SpeechDetector(VADConfig(), sample_rate=44100)


class TestMakeWindow:
    """Test clamping and minimum-duration filtering of speech regions."""

    @pytest.fixture
    def detector(self):
        return SpeechDetector(VADConfig(min_speech_sec=0.25))

    def test_clamped_to_waveform(self, detector):
        assert detector._make_window(-0.1, 5.0, 3.0) == TimeWindow(0.0, 3.0)

    def test_short_region_dropped(self, detector):
        assert detector._make_window(1.0, 1.1, 3.0) is None
