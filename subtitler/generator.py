"""
Subtitle Generator — Pipeline state machine coordinating VAD and ASR.

States:
  STANDBY → DETECTING → GENERATING → DONE   (VAD enabled)
  STANDBY → GENERATING → DONE               (VAD disabled)
  any non-terminal state → FAILED

With VAD enabled the detector and the recognizer run on two worker
threads connected by a TimeWindowQueue: detection enqueues speech windows
as it finds them, recognition dequeues the window most relevant to the
current playback time and appends the resulting spans to `subtitles`.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

import numpy as np

from .audio_extractor import AudioExtractor
from .collection import SubtitleCollection
from .cpu_throttle import CPUThrottle
from .paraformer import ParaformerRecognizer
from .recognizer import Recognizer
from .spans import TimeWindow
from .srt_writer import SRTWriter
from .vad import SpeechDetector
from .window_queue import TimeWindowQueue

logger = logging.getLogger(__name__)

StateListener = Callable[["GeneratorState", "GeneratorState"], None]
TimeGetter = Callable[[], float]


class GeneratorState(Enum):
    STANDBY = "standby"        # ready to generate
    DETECTING = "detecting"    # VAD scanning for speech windows
    GENERATING = "generating"  # recognizing the remaining windows
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS = {
    GeneratorState.STANDBY: {
        GeneratorState.DETECTING,
        GeneratorState.GENERATING,
        GeneratorState.DONE,
        GeneratorState.FAILED,
    },
    GeneratorState.DETECTING: {
        GeneratorState.GENERATING,
        GeneratorState.DONE,
        GeneratorState.FAILED,
    },
    GeneratorState.GENERATING: {GeneratorState.DONE, GeneratorState.FAILED},
    GeneratorState.DONE: {GeneratorState.STANDBY},
    GeneratorState.FAILED: {GeneratorState.STANDBY},
}


class InvalidStateError(RuntimeError):
    """Raised when an operation is not allowed in the current state."""


class SubtitleGenerator:
    """
    Generates subtitles for a waveform or media file.

    Usage:
        config = load_config()
        generator = SubtitleGenerator(config)
        generator.subtitles.subscribe(print)
        generator.start("talk.mp4", enable_vad=True)
        generator.save_srt("talk.srt")

    Detector and recognizer instances hold model resources; a fresh pair is
    created per run from the factories and closed when the run ends.
    """

    def __init__(
        self,
        config,
        detector_factory: Optional[Callable[[], SpeechDetector]] = None,
        recognizer_factory: Optional[Callable[[], Recognizer]] = None,
        extractor: Optional[AudioExtractor] = None,
    ):
        self.config = config
        self.sample_rate = getattr(config.audio, "sample_rate", 16000)
        self._detector_factory = detector_factory or (
            lambda: SpeechDetector(config.vad, sample_rate=self.sample_rate)
        )
        self._recognizer_factory = recognizer_factory or (lambda: ParaformerRecognizer(config.asr))
        self.extractor = extractor or AudioExtractor(sample_rate=self.sample_rate)
        self.throttle = CPUThrottle(
            max_percent=getattr(config.threading, "max_cpu_percent", 0),
            check_interval=getattr(config.threading, "throttle_check_interval", 2.0),
        )
        self.writer = SRTWriter()

        self.subtitles = SubtitleCollection()
        self.last_error: Optional[BaseException] = None

        self._state = GeneratorState.STANDBY
        self._state_lock = threading.RLock()
        self._busy = False
        self._cancelled = False
        self._changing: List[StateListener] = []
        self._changed: List[StateListener] = []

    # ── State machine ───────────────────────────────────────

    @property
    def current_state(self) -> GeneratorState:
        return self._state

    @property
    def cancelled(self) -> bool:
        """True if the last run stopped early because cancellation was requested."""
        return self._cancelled

    def on_state_changing(self, listener: StateListener):
        """Register a listener called with (old, new) before a transition commits."""
        self._changing.append(listener)

    def on_state_changed(self, listener: StateListener):
        """Register a listener called with (old, new) after a transition commits."""
        self._changed.append(listener)

    def _transition(self, new: GeneratorState):
        with self._state_lock:
            old = self._state
            if old == new:
                return
            if new not in _TRANSITIONS[old]:
                raise InvalidStateError(f"Illegal transition: {old.name} → {new.name}")

            for listener in list(self._changing):
                listener(old, new)
            self._state = new
            for listener in list(self._changed):
                listener(old, new)

        logger.info(f"State: {old.name} → {new.name}")

    def _claim(self, required: GeneratorState):
        with self._state_lock:
            if self._state != required or self._busy:
                raise InvalidStateError(f"Invalid state: {self._state.name}")
            self._busy = True

    def _release(self):
        with self._state_lock:
            self._busy = False

    def reset(self):
        """Return a finished generator to STANDBY, discarding its results."""
        with self._state_lock:
            if self._busy or self._state not in (GeneratorState.DONE, GeneratorState.FAILED):
                raise InvalidStateError(f"Cannot reset in state: {self._state.name}")
            self.subtitles.clear()
            self.last_error = None
            self._cancelled = False
            self._transition(GeneratorState.STANDBY)

    # ── Generation ──────────────────────────────────────────

    def start(
        self,
        source: Union[np.ndarray, str, Path],
        enable_vad: bool = True,
        current_time_getter: Optional[TimeGetter] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> GeneratorState:
        """
        Run the pipeline to completion.

        Args:
            source: Mono float32 waveform at the configured sample rate, or
                a path to a media file to decode.
            enable_vad: Detect speech windows concurrently with recognition.
                When False the whole input is recognized as one window.
            current_time_getter: Returns the playback position (seconds) used
                to pick the next window. Defaults to a constant 0.
            cancel_event: Set to stop both workers at their next loop boundary.

        Returns:
            The final state (DONE or FAILED).

        Raises:
            InvalidStateError: If the generator is not in STANDBY.
            ValueError: If an empty waveform is given.
        """
        self._claim(GeneratorState.STANDBY)

        waveform = None
        if not isinstance(source, (str, Path)):
            waveform = np.asarray(source, dtype=np.float32).reshape(-1)
            if waveform.size == 0:
                self._release()
                raise ValueError("Invalid waveform: empty")

        current_time_getter = current_time_getter or (lambda: 0.0)
        cancel_event = cancel_event or threading.Event()
        self._cancelled = False
        self.last_error = None
        started = time.monotonic()

        try:
            if waveform is None:
                waveform = self.extractor.decode(Path(source))
                if waveform.size == 0:
                    logger.warning(f"No audio decoded from {source}")
                    self._transition(GeneratorState.DONE)
                    return self._state

            self._run(waveform, enable_vad, current_time_getter, cancel_event)
            self._cancelled = cancel_event.is_set()
            self._transition(GeneratorState.DONE)

            logger.info(
                f"Generation {'cancelled' if self._cancelled else 'complete'} in "
                f"{time.monotonic() - started:.1f}s: {len(self.subtitles)} subtitles, "
                f"{self.throttle.total_throttles} CPU throttles"
            )
        except Exception as e:
            logger.error(f"Subtitle generation failed: {e}", exc_info=True)
            self._fail(e)
        finally:
            self._release()

        return self._state

    def _fail(self, error: Exception):
        """Move to FAILED unless the run already reached a terminal state."""
        with self._state_lock:
            if self._state in (GeneratorState.DONE, GeneratorState.FAILED):
                logger.warning(
                    f"Error after reaching {self._state.name} ignored: {error}"
                )
                return
            self.last_error = error
            self._transition(GeneratorState.FAILED)

    def _run(
        self,
        waveform: np.ndarray,
        enable_vad: bool,
        current_time_getter: TimeGetter,
        cancel_event: threading.Event,
    ):
        queue = TimeWindowQueue()
        abort = threading.Event()

        with self._recognizer_factory() as recognizer:
            if recognizer.sample_rate != self.sample_rate:
                raise ValueError(
                    f"Recognizer expects {recognizer.sample_rate}Hz audio, "
                    f"waveform is {self.sample_rate}Hz"
                )

            if not enable_vad:
                queue.enqueue(TimeWindow(0.0, len(waveform) / recognizer.sample_rate))
                queue.mark_producing_finished()
                self._transition(GeneratorState.GENERATING)
                self._recognize_work(
                    queue, waveform, recognizer, current_time_getter, cancel_event, abort
                )
                return

            self._transition(GeneratorState.DETECTING)
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="subgen") as executor:
                vad_future = executor.submit(
                    self._abort_on_error, abort,
                    self._detect_work, queue, waveform, cancel_event, abort
                )
                asr_future = executor.submit(
                    self._abort_on_error, abort,
                    self._recognize_work, queue, waveform, recognizer,
                    current_time_getter, cancel_event, abort
                )
                asr_future.result()
                vad_future.result()

    @staticmethod
    def _abort_on_error(abort: threading.Event, work, *args):
        try:
            return work(*args)
        except Exception:
            abort.set()
            raise

    @staticmethod
    def _should_stop(cancel_event: threading.Event, abort: threading.Event) -> bool:
        return cancel_event.is_set() or abort.is_set()

    def _detect_work(
        self,
        queue: TimeWindowQueue,
        waveform: np.ndarray,
        cancel_event: threading.Event,
        abort: threading.Event,
    ):
        """Producer: enqueue speech windows; always marks the queue finished."""
        found = 0
        try:
            with self._detector_factory() as detector:
                if self._should_stop(cancel_event, abort):
                    return

                for window in detector.detect(waveform):
                    if self._should_stop(cancel_event, abort):
                        logger.info(f"Detection stopped after {found} windows")
                        return
                    queue.enqueue(window)
                    found += 1

            logger.info(f"Detection finished: {found} speech windows")
            self._transition(GeneratorState.GENERATING)
        finally:
            queue.mark_producing_finished()

    def _recognize_work(
        self,
        queue: TimeWindowQueue,
        waveform: np.ndarray,
        recognizer: Recognizer,
        current_time_getter: TimeGetter,
        cancel_event: threading.Event,
        abort: threading.Event,
    ):
        """Consumer: recognize windows until the queue drains or we are stopped."""
        processed = 0
        while not self._should_stop(cancel_event, abort):
            window = queue.try_dequeue(current_time_getter())
            if window is None:
                break

            segment = self.slice_waveform(waveform, window, recognizer.sample_rate)
            if len(segment) == 0:
                logger.debug(f"{window} lies outside the waveform, skipping")
                continue

            spans = [s.shifted(window.begin_sec) for s in recognizer.inference([segment])]
            self.subtitles.extend(spans)
            processed += 1
            logger.debug(f"{window}: {len(spans)} subtitles")

            self.throttle.throttle_if_needed(cancel_event)

        logger.info(f"Recognition finished: {processed} windows, {len(self.subtitles)} subtitles")

    @staticmethod
    def slice_waveform(waveform: np.ndarray, window: TimeWindow, sample_rate: int) -> np.ndarray:
        """Copy the samples covered by a window, clamped to the waveform."""
        length = len(waveform)
        begin = int(min(max(window.begin_sec * sample_rate, 0), length))
        end = int(min(max(window.end_sec * sample_rate, 0), length))
        return waveform[begin:end].copy()

    # ── SRT persistence ─────────────────────────────────────

    def save_srt(self, output_path: Path, chronological: bool = True):
        """
        Write the generated subtitles to an SRT file.

        Raises:
            InvalidStateError: If generation has not finished successfully.
        """
        if self._state != GeneratorState.DONE:
            raise InvalidStateError(f"Cannot save subtitles in state: {self._state.name}")

        entries = self.subtitles.sorted_by_time() if chronological else self.subtitles.snapshot()
        self.writer.write(entries, output_path)

    def load_srt(self, input_path: Path) -> GeneratorState:
        """
        Load subtitles from an SRT file instead of generating them.

        Raises:
            InvalidStateError: If the generator is not in STANDBY.
        """
        self._claim(GeneratorState.STANDBY)
        try:
            self._transition(GeneratorState.GENERATING)
            self.subtitles.extend(self.writer.read(input_path))
            self._transition(GeneratorState.DONE)
        except Exception as e:
            logger.error(f"Failed to load subtitles from {input_path}: {e}")
            self._fail(e)
        finally:
            self._release()

        return self._state
