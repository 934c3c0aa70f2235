"""
Recognizer — Batched speech recognition adapter contract.

Concrete recognizers implement ``recognize`` (segments in, tokens and
per-frame CIF peaks out); ``inference`` turns that raw output into
timestamped subtitle spans through the alignment engine.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Sequence

import numpy as np

from .alignment import align_segment
from .spans import TextSpan

logger = logging.getLogger(__name__)


@dataclass
class RecognitionOutput:
    """Raw model output for one batch, one entry per input segment."""
    tokens: List[List[str]] = field(default_factory=list)
    peaks: List[np.ndarray] = field(default_factory=list)
    valid_token_counts: List[int] = field(default_factory=list)

    def __len__(self):
        return len(self.tokens)


class Recognizer:
    """
    Base class for recognizers feeding the subtitle pipeline.

    Instances hold model resources and are meant for exclusive use by one
    pipeline run; use them as context managers so ``close`` always runs.
    """

    sample_rate: int = 16000
    batch_size: int = 1

    def recognize(self, batch: Sequence[np.ndarray]) -> RecognitionOutput:
        raise NotImplementedError

    def inference(self, segments: Sequence[np.ndarray]) -> Iterator[TextSpan]:
        """
        Recognize segments and yield subtitle spans with segment-relative
        timestamps, segment by segment, in input order.

        A failure inside ``recognize`` ends the iteration: spans from earlier
        batches are kept, nothing further is produced.
        """
        segments = list(segments)
        for start in range(0, len(segments), max(1, self.batch_size)):
            batch = segments[start:start + self.batch_size]
            try:
                output = self.recognize(batch)
            except Exception as e:
                logger.error(f"Recognition failed for batch at segment {start}: {e}")
                return

            for tokens, peaks in zip(output.tokens, output.peaks):
                yield from align_segment(tokens, peaks)

    def close(self):
        """Release model resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
