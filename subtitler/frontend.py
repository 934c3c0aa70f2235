"""
Wav Frontend — Acoustic feature extraction for Paraformer.

Pipeline per segment:
  1. Kaldi-compatible log-mel filterbank (torchaudio)
  2. LFR: stack lfr_m consecutive frames, hop lfr_n frames
  3. CMVN: (x + shift) * scale, read from a Kaldi am.mvn file
Segments in a batch are zero-padded to the longest one.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
import torch
import torchaudio.compliance.kaldi as kaldi

logger = logging.getLogger(__name__)


@dataclass
class FrontendOptions:
    """Mirror of the model YAML's ``frontend_conf`` section."""
    fs: int = 16000
    window: str = "hamming"
    n_mels: int = 80
    frame_length: int = 25   # ms
    frame_shift: int = 10    # ms
    lfr_m: int = 7
    lfr_n: int = 6
    dither: float = 0.0

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "FrontendOptions":
        if not data:
            return cls()
        names = set(cls.__dataclass_fields__)
        return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class Cmvn:
    means: np.ndarray
    scales: np.ndarray


def parse_cmvn(lines: Sequence[str]) -> Cmvn:
    """
    Parse Kaldi nnet CMVN text: the ``<LearnRateCoef>`` row following
    ``<AddShift>`` holds the means, the one following ``<Rescale>`` the
    inverse standard deviations.
    """
    means: List[float] = []
    scales: List[float] = []
    section = None

    for line in lines:
        line = line.strip()
        if not line:
            continue
        if line.startswith("<AddShift>"):
            section = "shift"
            continue
        if line.startswith("<Rescale>"):
            section = "rescale"
            continue
        if line.startswith("<LearnRateCoef>") and section is not None:
            values = [float(x) for x in line[line.index("[") + 1:line.rindex("]")].split()]
            if section == "shift":
                means = values
            else:
                scales = values

    if not means or not scales:
        raise ValueError("CMVN data is missing <AddShift> or <Rescale> values")

    return Cmvn(np.asarray(means, dtype=np.float32), np.asarray(scales, dtype=np.float32))


def load_cmvn(path: Path) -> Cmvn:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"CMVN file not found: {path}")
    return parse_cmvn(path.read_text(encoding="utf-8").splitlines())


def apply_lfr(inputs: np.ndarray, lfr_m: int, lfr_n: int) -> np.ndarray:
    """Stack lfr_m frames every lfr_n frames, padding both edges by repetition."""
    t = inputs.shape[0]
    if t == 0:
        return np.zeros((0, inputs.shape[1] * lfr_m), dtype=np.float32)

    t_lfr = int(math.ceil(t / lfr_n))
    left_pad = (lfr_m - 1) // 2
    inputs = np.vstack([np.repeat(inputs[:1], left_pad, axis=0), inputs])
    t += left_pad

    frames = []
    for i in range(t_lfr):
        start = i * lfr_n
        if lfr_m <= t - start:
            frames.append(inputs[start:start + lfr_m].reshape(-1))
        else:
            # Last frame: repeat the final input frame to fill lfr_m
            num_padding = lfr_m - (t - start)
            tail = np.vstack([inputs[start:], np.repeat(inputs[-1:], num_padding, axis=0)])
            frames.append(tail.reshape(-1))

    return np.vstack(frames).astype(np.float32)


def apply_cmvn(inputs: np.ndarray, cmvn: Optional[Cmvn]) -> np.ndarray:
    if cmvn is None or inputs.size == 0:
        return inputs
    dim = inputs.shape[1]
    return ((inputs + cmvn.means[:dim]) * cmvn.scales[:dim]).astype(np.float32)


class WavFrontend:
    """Turns raw 16kHz float waveforms into padded Paraformer input features."""

    def __init__(self, options: FrontendOptions, cmvn: Optional[Cmvn] = None):
        self.options = options
        self.cmvn = cmvn

    @property
    def feature_dim(self) -> int:
        return self.options.n_mels * self.options.lfr_m

    def fbank(self, samples: np.ndarray) -> np.ndarray:
        """Log-mel filterbank of one segment, shape (frames, n_mels)."""
        opts = self.options
        window_samples = int(opts.fs * opts.frame_length / 1000)
        if len(samples) < window_samples:
            return np.zeros((0, opts.n_mels), dtype=np.float32)

        waveform = torch.from_numpy(np.asarray(samples, dtype=np.float32) * 32768.0)
        feats = kaldi.fbank(
            waveform.unsqueeze(0),
            num_mel_bins=opts.n_mels,
            frame_length=opts.frame_length,
            frame_shift=opts.frame_shift,
            dither=opts.dither,
            energy_floor=0.0,
            window_type=opts.window,
            sample_frequency=opts.fs,
            snip_edges=True,
        )
        return feats.numpy()

    def features(self, samples: np.ndarray) -> np.ndarray:
        feats = self.fbank(samples)
        if self.options.lfr_m != 1 or self.options.lfr_n != 1:
            feats = apply_lfr(feats, self.options.lfr_m, self.options.lfr_n)
        return apply_cmvn(feats, self.cmvn)

    def extract_features(self, batch: Sequence[np.ndarray]) -> Tuple[np.ndarray, np.ndarray]:
        """
        Extract features for a batch of segments.

        Returns:
            (feats, lengths): float32 array (batch, max_frames, feature_dim)
            zero-padded on the time axis, and int32 frame counts per segment.
        """
        per_segment = [self.features(samples) for samples in batch]
        lengths = np.asarray([f.shape[0] for f in per_segment], dtype=np.int32)
        max_len = int(lengths.max()) if len(lengths) else 0

        padded = np.zeros((len(per_segment), max_len, self.feature_dim), dtype=np.float32)
        for i, feat in enumerate(per_segment):
            padded[i, :feat.shape[0], :] = feat

        logger.debug(f"Extracted features: batch={len(per_segment)}, frames={lengths.tolist()}")
        return padded, lengths
