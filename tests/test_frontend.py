"""
Tests for the Paraformer feature frontend.
"""

import numpy as np
import pytest
from subtitler.frontend import (
    Cmvn,
    FrontendOptions,
    WavFrontend,
    apply_cmvn,
    apply_lfr,
    parse_cmvn,
)

AM_MVN = """
<Nnet>
<Splice> 4 4
[ 0 ]
<AddShift> 4 4
<LearnRateCoef> 0 [ -1.0 -2.0 -3.0 -4.0 ]
<Rescale> 4 4
<LearnRateCoef> 0 [ 0.5 0.25 2.0 1.0 ]
</Nnet>
"""


class TestLfr:
    """Test low-frame-rate stacking."""

    def test_output_shape(self):
        feats = np.arange(20, dtype=np.float32).reshape(10, 2)
        out = apply_lfr(feats, 7, 6)
        assert out.shape == (2, 14)

    def test_first_frame_repeats_leading_row(self):
        feats = np.arange(10, dtype=np.float32).reshape(10, 1)
        out = apply_lfr(feats, 7, 6)
        assert out[0].tolist() == [0, 0, 0, 0, 1, 2, 3]

    def test_last_frame_padded_with_final_row(self):
        feats = np.arange(8, dtype=np.float32).reshape(8, 1)
        out = apply_lfr(feats, 7, 6)
        assert out.shape == (2, 7)
        assert out[1].tolist() == [3, 4, 5, 6, 7, 7, 7]

    def test_empty_input(self):
        out = apply_lfr(np.zeros((0, 80), dtype=np.float32), 7, 6)
        assert out.shape == (0, 560)


class TestCmvn:
    """Test Kaldi CMVN parsing and application."""

    def test_parse(self):
        cmvn = parse_cmvn(AM_MVN.splitlines())
        assert cmvn.means.tolist() == [-1.0, -2.0, -3.0, -4.0]
        assert cmvn.scales.tolist() == [0.5, 0.25, 2.0, 1.0]

    def test_parse_missing_rescale(self):
        with pytest.raises(ValueError):
            parse_cmvn(["<AddShift> 2 2", "<LearnRateCoef> 0 [ 1 2 ]"])

    def test_apply(self):
        cmvn = Cmvn(np.array([-1.0, -2.0], dtype=np.float32), np.array([2.0, 0.5], dtype=np.float32))
        out = apply_cmvn(np.array([[3.0, 4.0]], dtype=np.float32), cmvn)
        assert out.tolist() == [[4.0, 1.0]]

    def test_apply_without_cmvn(self):
        feats = np.ones((2, 3), dtype=np.float32)
        assert apply_cmvn(feats, None) is feats


class TestWavFrontend:
    """Test batching and padding of extracted features."""

    @pytest.fixture
    def frontend(self, monkeypatch):
        options = FrontendOptions(n_mels=2, lfr_m=1, lfr_n=1)
        fe = WavFrontend(options)
        # One 2-dim frame per 100 samples
        monkeypatch.setattr(
            fe, "fbank", lambda samples: np.ones((len(samples) // 100, 2), dtype=np.float32)
        )
        return fe

    def test_padded_to_longest(self, frontend):
        feats, lengths = frontend.extract_features([np.zeros(300), np.zeros(500)])
        assert feats.shape == (2, 5, 2)
        assert feats.dtype == np.float32
        assert lengths.tolist() == [3, 5]
        assert feats[0, 3:].sum() == 0
        assert feats[1].sum() == 10

    def test_feature_dim(self):
        assert WavFrontend(FrontendOptions()).feature_dim == 560

    def test_too_short_for_a_window(self):
        fe = WavFrontend(FrontendOptions())
        assert fe.fbank(np.zeros(100, dtype=np.float32)).shape == (0, 80)

    def test_options_ignore_unknown_keys(self):
        options = FrontendOptions.from_dict({"n_mels": 40, "upsacle": 3})
        assert options.n_mels == 40
        assert options.lfr_m == 7
