"""
Voice Activity Detection — Silero VAD-based speech window detector.

Streams the waveform through Silero's VADIterator in fixed-size frames
and yields a TimeWindow every time a speech region closes, so the
recognizer can start on early windows while detection continues.
"""

import logging
from typing import Iterator

import numpy as np
import torch

from .spans import TimeWindow

logger = logging.getLogger(__name__)

# Silero window size per supported sample rate
FRAME_SAMPLES = {8000: 256, 16000: 512}


class SpeechDetector:
    """
    Detects speech regions using Silero VAD.

    The model is lazily loaded on first use and released by close().
    """

    def __init__(self, config, sample_rate: int = 16000):
        if sample_rate not in FRAME_SAMPLES:
            raise ValueError(
                f"Silero VAD supports sample rates {sorted(FRAME_SAMPLES)}, got {sample_rate}"
            )
        self.threshold = getattr(config, "threshold", 0.5)
        self.min_speech_sec = getattr(config, "min_speech_sec", 0.25)
        self.min_silence_sec = getattr(config, "min_silence_sec", 0.3)
        self.padding_sec = getattr(config, "padding_sec", 0.2)
        self.sample_rate = sample_rate
        self.frame_samples = FRAME_SAMPLES[sample_rate]

        # Lazy-loaded
        self._model = None
        self._vad_iterator_cls = None

    def _load_model(self):
        """Load the Silero VAD model (ONNX) on first use."""
        if self._model is not None:
            return

        logger.info("Loading Silero VAD model...")
        model, utils = torch.hub.load(
            repo_or_dir="snakers4/silero-vad",
            model="silero_vad",
            onnx=True,
            trust_repo=True
        )
        self._model = model
        (_, _, _, self._vad_iterator_cls, _) = utils
        logger.info("Silero VAD loaded successfully.")

    def detect(self, waveform: np.ndarray) -> Iterator[TimeWindow]:
        """
        Lazily yield speech windows found in a mono waveform at sample_rate.

        Windows are yielded in discovery order; each is padded by
        padding_sec and clamped to the waveform bounds.
        """
        self._load_model()

        audio = np.asarray(waveform, dtype=np.float32)
        total_sec = len(audio) / self.sample_rate
        logger.info(f"Running VAD on {total_sec:.1f}s audio...")

        iterator = self._vad_iterator_cls(
            self._model,
            threshold=self.threshold,
            sampling_rate=self.sample_rate,
            min_silence_duration_ms=int(self.min_silence_sec * 1000),
            speech_pad_ms=int(self.padding_sec * 1000),
        )

        speech_start = None
        found = 0
        try:
            for offset in range(0, len(audio), self.frame_samples):
                frame = audio[offset:offset + self.frame_samples]
                if len(frame) < self.frame_samples:
                    frame = np.pad(frame, (0, self.frame_samples - len(frame)))

                event = iterator(torch.from_numpy(frame), return_seconds=True)
                if not event:
                    continue

                if "start" in event:
                    speech_start = float(event["start"])
                elif "end" in event and speech_start is not None:
                    window = self._make_window(speech_start, float(event["end"]), total_sec)
                    speech_start = None
                    if window is not None:
                        found += 1
                        yield window

            # Speech still open at the end of the waveform
            if speech_start is not None:
                window = self._make_window(speech_start, total_sec, total_sec)
                if window is not None:
                    found += 1
                    yield window
        finally:
            iterator.reset_states()

        logger.info(f"VAD complete: {found} speech windows")

    def _make_window(self, start_sec: float, end_sec: float, total_sec: float):
        start_sec = max(0.0, start_sec)
        end_sec = min(total_sec, end_sec)
        if end_sec - start_sec < self.min_speech_sec:
            logger.debug(f"Dropped short speech region {start_sec:.2f}–{end_sec:.2f}s")
            return None
        return TimeWindow(start_sec, end_sec)

    def close(self):
        self._model = None
        self._vad_iterator_cls = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
