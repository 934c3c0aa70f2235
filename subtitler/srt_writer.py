"""
SRT Writer — Standard SubRip subtitle file output and parsing.

Converts TextSpans into .srt files with sequential indices,
HH:MM:SS,mmm timestamps and UTF-8 encoding, and reads them back.
"""

import logging
import re
from pathlib import Path
from typing import List, Sequence

from .spans import TextSpan

logger = logging.getLogger(__name__)

_TIMESTAMP_RE = re.compile(r"^\s*(\d+):(\d{1,2}):(\d{1,2})[,.](\d{1,3})\s*$")


class SRTWriter:
    """
    Writes and reads subtitle spans in SRT (SubRip) format.

    SRT format:
        1
        00:00:01,200 --> 00:00:04,800
        Hello everyone, welcome to the show.

        2
        00:00:05,100 --> 00:00:06,300
        See you next time.
    """

    def write(self, entries: Sequence[TextSpan], output_path: Path):
        """
        Write subtitle spans to an SRT file, indexed from 1 in the given order.

        Args:
            entries: Spans to write.
            output_path: Path for the output .srt file.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            for i, entry in enumerate(entries):
                f.write(f"{i + 1}\n")
                f.write(
                    f"{self.format_timestamp(entry.begin_sec)} --> "
                    f"{self.format_timestamp(entry.end_sec)}\n"
                )
                f.write(f"{entry.text}\n")
                f.write("\n")

        logger.info(f"SRT written: {len(entries)} subtitles → {output_path}")

    def read(self, input_path: Path) -> List[TextSpan]:
        """
        Parse an SRT file into TextSpans.

        Blocks are separated by blank lines; a leading numeric index line is
        optional and ignored. Multi-line text is joined with newlines.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ValueError: If a block has a malformed timing line.
        """
        input_path = Path(input_path)
        if not input_path.exists():
            raise FileNotFoundError(f"Subtitle file not found: {input_path}")

        content = input_path.read_text(encoding="utf-8-sig")
        spans = self.parse(content)
        logger.info(f"SRT read: {len(spans)} subtitles ← {input_path}")
        return spans

    def parse(self, content: str) -> List[TextSpan]:
        spans: List[TextSpan] = []
        block: List[str] = []

        for line in content.splitlines() + [""]:
            if line.strip():
                block.append(line.rstrip("\r"))
                continue
            if block:
                spans.append(self._parse_block(block))
                block = []

        return spans

    def _parse_block(self, lines: List[str]) -> TextSpan:
        if lines[0].strip().isdigit() and len(lines) > 1:
            lines = lines[1:]

        if "-->" not in lines[0]:
            raise ValueError(f"Missing timing line in SRT block: {lines[0]!r}")

        begin_text, end_text = lines[0].split("-->", 1)
        return TextSpan(
            text="\n".join(lines[1:]).strip(),
            begin_sec=self.parse_timestamp(begin_text),
            end_sec=self.parse_timestamp(end_text),
        )

    @staticmethod
    def format_timestamp(seconds: float) -> str:
        """
        Convert seconds to SRT timestamp format: HH:MM:SS,mmm

        Args:
            seconds: Time in seconds (e.g., 125.340)

        Returns:
            Formatted timestamp string (e.g., "00:02:05,340")
        """
        total_ms = max(0, int(round(seconds * 1000)))
        hours, rem = divmod(total_ms, 3_600_000)
        minutes, rem = divmod(rem, 60_000)
        secs, millis = divmod(rem, 1000)
        return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"

    @staticmethod
    def parse_timestamp(text: str) -> float:
        """Parse "HH:MM:SS,mmm" (a '.' separator is accepted) into seconds."""
        match = _TIMESTAMP_RE.match(text)
        if not match:
            raise ValueError(f"Invalid SRT timestamp: {text!r}")
        hours, minutes, secs, millis = match.groups()
        return (int(hours) * 3600 + int(minutes) * 60 + int(secs)
                + int(millis.ljust(3, "0")) / 1000.0)

    def write_preview(self, entries: Sequence[TextSpan], max_entries: int = 10) -> str:
        """
        Generate a text preview of the subtitle spans.

        Args:
            entries: Spans to preview.
            max_entries: Maximum entries to include in preview.

        Returns:
            Formatted string preview.
        """
        lines = []
        shown = min(len(entries), max_entries)

        for entry in entries[:shown]:
            ts_start = self.format_timestamp(entry.begin_sec)
            ts_end = self.format_timestamp(entry.end_sec)
            text_preview = entry.text[:80]
            if len(entry.text) > 80:
                text_preview += "..."
            lines.append(f"  [{ts_start} → {ts_end}] {text_preview}")

        if len(entries) > shown:
            lines.append(f"  ... and {len(entries) - shown} more entries")

        return "\n".join(lines)
