"""
Audio Extractor — Media decoding to a mono float32 waveform.

WAV/FLAC files already at the target sample rate are read directly with
soundfile; every other format is decoded and resampled by an FFmpeg pipe
(no temp files).
"""

import logging
import shutil
import subprocess
from pathlib import Path

import numpy as np
import soundfile as sf

logger = logging.getLogger(__name__)


class AudioExtractor:
    """Decodes media files into mono float32 PCM at a fixed sample rate."""

    def __init__(self, sample_rate: int = 16000, timeout_sec: float = 600.0):
        self.sample_rate = sample_rate
        self.timeout_sec = timeout_sec

    def decode(self, media_path: Path) -> np.ndarray:
        """
        Decode a media file.

        Args:
            media_path: Path to any audio/video file FFmpeg can read.

        Returns:
            1-D float32 array in [-1, 1] at ``sample_rate``.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            RuntimeError: If FFmpeg is missing or decoding fails.
        """
        media_path = Path(media_path)
        if not media_path.exists():
            raise FileNotFoundError(f"Media file not found: {media_path}")

        waveform = self._read_direct(media_path)
        if waveform is None:
            waveform = self._decode_ffmpeg(media_path)

        logger.info(
            f"Decoded {media_path.name}: {len(waveform) / self.sample_rate:.1f}s "
            f"at {self.sample_rate}Hz"
        )
        return waveform

    def _read_direct(self, media_path: Path):
        """Read with soundfile when no resampling is needed, else None."""
        try:
            info = sf.info(str(media_path))
        except RuntimeError:
            return None
        if info.samplerate != self.sample_rate:
            return None

        audio, _ = sf.read(str(media_path), dtype="float32", always_2d=True)
        logger.debug(f"Read {media_path.name} with soundfile ({info.channels} ch)")
        return audio.mean(axis=1).astype(np.float32)

    def _decode_ffmpeg(self, media_path: Path) -> np.ndarray:
        if shutil.which("ffmpeg") is None:
            raise RuntimeError(
                "FFmpeg not found. Please install FFmpeg and add it to PATH.\n"
                "Download: https://ffmpeg.org/download.html"
            )

        cmd = [
            "ffmpeg",
            "-i", str(media_path),
            "-vn",                             # no video
            "-ac", "1",                        # mono
            "-ar", str(self.sample_rate),
            "-f", "f32le",                     # raw float32 to stdout
            "-loglevel", "error",
            "pipe:1"
        ]
        logger.debug(f"FFmpeg command: {' '.join(cmd)}")

        try:
            proc = subprocess.run(cmd, capture_output=True, timeout=self.timeout_sec)
        except subprocess.TimeoutExpired:
            raise RuntimeError(f"FFmpeg timed out decoding {media_path.name}")

        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            raise RuntimeError(f"FFmpeg audio decoding failed:\n{stderr}")

        return np.frombuffer(proc.stdout, dtype=np.float32).copy()
