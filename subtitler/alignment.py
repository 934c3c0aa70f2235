"""
Alignment — Token timestamps from CIF peaks, and sentence segmentation.

The Paraformer predictor emits one "peak" per output token. Frames where
the peak score reaches ~1.0 mark token boundaries; after the encoder's
low-frame-rate reduction every frame covers TIME_RATE seconds. Tokens are
then grouped into subtitle-sized spans wherever the token-to-token pace
jumps well above the local average.
"""

import logging
from typing import List, NamedTuple, Sequence, Tuple

import numpy as np

from .spans import AccurateTextSpan, TextSpan

logger = logging.getLogger(__name__)

START_END_THRESHOLD = 5          # frames
MAX_TOKEN_DURATION = 30          # frames
TIME_RATE = 10.0 * 6 / 1000 / 3  # seconds per frame (10ms shift, LFR 6, /3 upsample)
FIRE_THRESHOLD = 1.0 - 1e-4
DEFAULT_TOTAL_OFFSET = -1.5      # encoder look-ahead, in frames
SIL_TOKEN = "<sil>"
CONTINUATION_MARK = "@@"


class TimeRange(NamedTuple):
    begin_sec: float
    end_sec: float


def find_fire_positions(peaks, total_offset: float = DEFAULT_TOTAL_OFFSET) -> List[int]:
    """Frame indices whose peak fires, shifted by the (truncated) offset."""
    peaks = np.asarray(peaks, dtype=np.float32).ravel()
    shift = int(total_offset)
    return [int(i) + shift for i in np.flatnonzero(peaks > FIRE_THRESHOLD)]


def timestamp_lfr6(
    peaks,
    tokens: Sequence[str],
    begin_ms: float = 0.0,
    total_offset: float = DEFAULT_TOTAL_OFFSET,
) -> List[TimeRange]:
    """
    Convert peak scores of one segment into one TimeRange per token.

    Long gaps between firings are capped at MAX_TOKEN_DURATION frames and
    the remainder becomes silence; silence longer than START_END_THRESHOLD
    frames at either end of the segment is kept out of the first and last
    token. Silence ranges are dropped from the result, and a firing pulled
    before frame 0 by the offset is clamped to the segment start.

    Args:
        peaks: Per-frame peak scores for the segment.
        tokens: Decoded tokens for the segment.
        begin_ms: Optional shift applied to every range, in milliseconds.
        total_offset: Frame shift compensating encoder look-ahead.

    Returns:
        TimeRanges in token order; may be shorter than ``tokens`` when the
        model fired fewer times than it emitted tokens.
    """
    fire = find_fire_positions(peaks, total_offset)
    labeled = label_frames(fire, tokens, len(peaks))

    shift_sec = begin_ms / 1000.0 if abs(begin_ms) > 1e-6 else 0.0
    return [
        TimeRange(max(b, 0) * TIME_RATE + shift_sec, max(e, 0) * TIME_RATE + shift_sec)
        for label, b, e in labeled
        if label != SIL_TOKEN
    ]


def label_frames(
    fire: Sequence[int],
    tokens: Sequence[str],
    num_frames: int,
) -> List[Tuple[str, float, float]]:
    """
    Assign frame ranges to tokens from firing positions, inserting
    SIL_TOKEN ranges for leading, trailing and over-long gaps.

    Returns:
        (label, begin_frame, end_frame) triples in time order.
    """
    if not tokens or len(fire) < 2:
        return []

    if len(fire) > len(tokens) + 1:
        logger.debug(
            f"{len(fire)} firings for {len(tokens)} tokens, ignoring the excess"
        )
        fire = fire[:len(tokens) + 1]

    labels: List[str] = []
    frames: List[List[float]] = []

    if fire[0] > START_END_THRESHOLD:
        frames.append([0, fire[0]])
        labels.append(SIL_TOKEN)

    last = len(fire) - 2
    for i in range(len(fire) - 1):
        labels.append(tokens[i])
        if i == last or fire[i + 1] - fire[i] < MAX_TOKEN_DURATION:
            frames.append([fire[i], fire[i + 1]])
        else:
            split = fire[i] + MAX_TOKEN_DURATION
            frames.append([fire[i], split])
            frames.append([split, fire[i + 1]])
            labels.append(SIL_TOKEN)

    if num_frames - fire[-1] > START_END_THRESHOLD:
        end = (num_frames + fire[-1]) / 2.0
        frames[-1][1] = end
        frames.append([end, num_frames])
        labels.append(SIL_TOKEN)
    else:
        frames[-1][1] = num_frames

    return [(label, b, e) for label, (b, e) in zip(labels, frames)]


def segment_sentences(
    tokens: Sequence[str],
    ranges: Sequence[TimeRange],
) -> List[AccurateTextSpan]:
    """
    Group timed tokens into sentence-like spans.

    Walking left to right, position j closes the current group when the
    gap to the next token's start exceeds twice the group's average gap.
    The last token always closes the final group.
    """
    count = min(len(tokens), len(ranges))
    spans: List[AccurateTextSpan] = []
    begin = 0

    def flush(end_index: int):
        spans.append(AccurateTextSpan.from_parts([
            TextSpan(
                tokens[k].replace(CONTINUATION_MARK, ""),
                ranges[k].begin_sec,
                ranges[k].end_sec,
            )
            for k in range(begin, end_index + 1)
        ]))

    for j in range(count):
        if j >= count - 1:
            flush(count - 1)
            break
        if j > begin:
            duration = ranges[j + 1].begin_sec - ranges[j].begin_sec
            gaps = [ranges[k + 1].begin_sec - ranges[k].begin_sec
                    for k in range(begin, j)]
            average = sum(gaps) / len(gaps)
            if duration > average * 2:
                flush(j)
                begin = j + 1

    return spans


def align_segment(
    tokens: Sequence[str],
    peaks,
    begin_ms: float = 0.0,
    total_offset: float = DEFAULT_TOTAL_OFFSET,
) -> List[AccurateTextSpan]:
    """Timestamp and segment the recognizer output of one audio segment."""
    tokens = list(tokens)
    if not tokens:
        return []

    ranges = timestamp_lfr6(peaks, tokens, begin_ms, total_offset)
    if not ranges:
        logger.debug(f"No firing positions for {len(tokens)} tokens, skipping")
        return []

    if len(ranges) < len(tokens):
        logger.warning(
            f"Only {len(ranges)} timestamps for {len(tokens)} tokens; "
            f"dropping {len(tokens) - len(ranges)} trailing tokens"
        )

    return segment_sentences(tokens, ranges)
