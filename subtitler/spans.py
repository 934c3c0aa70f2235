"""
Span types — Immutable time windows and timestamped text fragments.

All times are float seconds relative to the start of the waveform
(or of the segment, before re-basing by the owning window).
"""

from dataclasses import dataclass, replace
from typing import Sequence, Tuple, Union


@dataclass(frozen=True, order=True)
class TimeWindow:
    """A contiguous region of audio believed to contain speech."""
    begin_sec: float
    end_sec: float

    def __post_init__(self):
        if self.begin_sec > self.end_sec:
            raise ValueError(
                f"TimeWindow begin ({self.begin_sec}) is after end ({self.end_sec})"
            )

    @property
    def duration(self) -> float:
        return self.end_sec - self.begin_sec

    def contains(self, time_sec: float) -> bool:
        return self.begin_sec <= time_sec <= self.end_sec

    def __repr__(self):
        return f"TimeWindow({self.begin_sec:.2f}–{self.end_sec:.2f}s)"


@dataclass(frozen=True)
class TextSpan:
    """A single subtitle unit with absolute timestamps."""
    text: str
    begin_sec: float
    end_sec: float

    @property
    def duration(self) -> float:
        return self.end_sec - self.begin_sec

    def shifted(self, offset_sec: float) -> "TextSpan":
        """Return a copy moved by ``offset_sec`` seconds."""
        return replace(
            self,
            begin_sec=self.begin_sec + offset_sec,
            end_sec=self.end_sec + offset_sec,
        )

    def __str__(self):
        return f"{self.begin_sec:.3f} --> {self.end_sec:.3f}\n{self.text}"


@dataclass(frozen=True)
class AccurateTextSpan(TextSpan):
    """
    A subtitle whose text is made of finer-grained, individually timed parts
    (one per recognized token).

    Invariant: parts are non-empty, ascending and non-overlapping;
    begin/end equal the first part's begin and the last part's end.
    """
    parts: Tuple[TextSpan, ...]

    def __post_init__(self):
        if not self.parts:
            raise ValueError("AccurateTextSpan requires at least one part")
        if self.text != "".join(p.text for p in self.parts):
            raise ValueError("AccurateTextSpan text must equal joined part texts")
        if (self.begin_sec != self.parts[0].begin_sec
                or self.end_sec != self.parts[-1].end_sec):
            raise ValueError("AccurateTextSpan bounds must match its parts")
        for prev, cur in zip(self.parts, self.parts[1:]):
            if cur.begin_sec < prev.end_sec:
                raise ValueError(
                    f"Overlapping parts: {prev.end_sec:.3f}s > {cur.begin_sec:.3f}s"
                )

    @classmethod
    def from_parts(cls, parts: Sequence[TextSpan]) -> "AccurateTextSpan":
        parts = tuple(parts)
        if not parts:
            raise ValueError("AccurateTextSpan requires at least one part")
        return cls(
            text="".join(p.text for p in parts),
            begin_sec=parts[0].begin_sec,
            end_sec=parts[-1].end_sec,
            parts=parts,
        )

    def shifted(self, offset_sec: float) -> "AccurateTextSpan":
        return AccurateTextSpan.from_parts(
            [p.shifted(offset_sec) for p in self.parts]
        )

    def split(self, time_sec: float) -> Tuple[TextSpan, TextSpan]:
        """
        Cut the span at ``time_sec``.

        Parts wholly before the cut go left, wholly after go right, and a
        part straddling the cut is split in two, its text divided at the
        character nearest the cut. A side holding a single part is
        returned as a plain TextSpan.

        Raises:
            ValueError: If time_sec is not strictly inside (begin, end).
        """
        if time_sec <= self.begin_sec or time_sec >= self.end_sec:
            raise ValueError(
                f"Split time {time_sec:.3f}s is out of range "
                f"({self.begin_sec:.3f}s, {self.end_sec:.3f}s)"
            )

        left, right = [], []
        for part in self.parts:
            if part.end_sec <= time_sec:
                left.append(part)
            elif part.begin_sec >= time_sec:
                right.append(part)
            else:
                head, tail = _cut_text(part, time_sec)
                left.append(TextSpan(head, part.begin_sec, time_sec))
                right.append(TextSpan(tail, time_sec, part.end_sec))

        return _collapse(left), _collapse(right)


def _collapse(parts) -> Union[TextSpan, AccurateTextSpan]:
    if len(parts) == 1:
        return parts[0]
    return AccurateTextSpan.from_parts(parts)


def _cut_text(part: TextSpan, time_sec: float) -> Tuple[str, str]:
    # Character cut proportional to where time_sec falls inside the part
    ratio = (time_sec - part.begin_sec) / part.duration
    cut = int(round(len(part.text) * ratio))
    return part.text[:cut], part.text[cut:]
