"""
Offline Subtitle Generator — CLI Entry Point

Usage:
    python main.py talk.mp4
    python main.py talk.mp4 -o subtitles.srt
    python main.py talk.wav --no-vad --threads 4
    python main.py talk.mp4 --model-dir models/paraformer --max-cpu 80
"""

import sys
import argparse
import logging
import threading
from pathlib import Path

from config import load_config
from subtitler.generator import GeneratorState, SubtitleGenerator
from subtitler.srt_writer import SRTWriter


def setup_logging(level: str = "INFO", log_file: str = None):
    """Configure logging for the application."""
    log_format = (
        "%(asctime)s | %(levelname)-7s | %(name)-20s | %(message)s"
    )
    date_format = "%H:%M:%S"

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        datefmt=date_format,
        handlers=handlers
    )

    # Suppress noisy third-party loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("torch").setLevel(logging.WARNING)
    logging.getLogger("onnxruntime").setLevel(logging.WARNING)


def print_subtitle(span):
    """Echo each subtitle as soon as the recognizer appends it."""
    print(
        f"  [{SRTWriter.format_timestamp(span.begin_sec)} --> "
        f"{SRTWriter.format_timestamp(span.end_sec)}] {span.text}",
        flush=True
    )


def main():
    parser = argparse.ArgumentParser(
        description="Offline Subtitle Generator — Generate SRT subtitles with "
                    "Silero VAD and Paraformer speech recognition.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py talk.mp4                      # Basic usage
  python main.py talk.mp4 -o my_subs.srt       # Custom output path
  python main.py talk.wav --no-vad             # Recognize the whole file as one window
  python main.py talk.mp4 --max-cpu 0          # Disable CPU throttling
        """
    )

    parser.add_argument(
        "media",
        type=Path,
        help="Path to the input audio/video file"
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output SRT file path (default: same name as input with .srt extension)"
    )
    parser.add_argument(
        "--model-dir",
        type=Path,
        default=None,
        help="Directory holding the Paraformer model, config.yaml and am.mvn"
    )
    parser.add_argument(
        "--no-vad",
        action="store_true",
        help="Skip speech detection and recognize the whole input at once"
    )
    parser.add_argument(
        "--threads",
        type=int,
        default=None,
        help="ONNX Runtime intra-op threads for recognition"
    )
    parser.add_argument(
        "--max-cpu",
        type=int,
        default=None,
        help="Maximum CPU usage percent before throttling, 0 to disable (default: 70)"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to custom config.yaml file"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress everything except errors"
    )

    args = parser.parse_args()

    # ── Validate input ──
    if not args.media.exists():
        print(f"Error: Media file not found: {args.media}")
        sys.exit(1)

    output_path = args.output or args.media.with_suffix(".srt")

    # ── Load config ──
    config = load_config(args.config)
    config.update_from_args(args)

    # ── Setup logging ──
    log_level = "DEBUG" if args.verbose else ("WARNING" if args.quiet else config.logging.level)
    setup_logging(level=log_level, log_file=config.logging.file)

    generator = SubtitleGenerator(config)
    if not args.quiet:
        generator.subtitles.subscribe(print_subtitle)

    # ── Run pipeline (worker thread, so Ctrl+C can cancel cooperatively) ──
    cancel = threading.Event()
    runner = threading.Thread(
        target=generator.start,
        args=(args.media,),
        kwargs={"enable_vad": config.threading.enable_vad, "cancel_event": cancel},
        name="subgen-main",
    )
    runner.start()
    try:
        while runner.is_alive():
            runner.join(timeout=0.5)
    except KeyboardInterrupt:
        print("\n\n  [WARN] Interrupted, finishing current window...")
        cancel.set()
        runner.join()

    if generator.current_state == GeneratorState.FAILED:
        print(f"\n  [ERROR] Generation failed: {generator.last_error}")
        sys.exit(1)

    generator.save_srt(output_path)

    if not args.quiet:
        preview = generator.writer.write_preview(generator.subtitles.sorted_by_time(), max_entries=5)
        if preview:
            logging.getLogger(__name__).info(f"Preview:\n{preview}")
        print(f"\n  [OK] Subtitles saved to: {output_path}")
        print(f"  [INFO] Total entries: {len(generator.subtitles)}")

    if generator.cancelled:
        sys.exit(130)


if __name__ == "__main__":
    main()
