"""
Time Window Queue — Hand-off of speech windows from VAD to ASR.

The detector enqueues windows as it finds them; the recognizer blocks
until a window is available and picks the one most relevant to the
current playback position.
"""

import bisect
import logging
import threading
from typing import List, Optional

from .spans import TimeWindow

logger = logging.getLogger(__name__)


class TimeWindowQueue:
    """
    Thread-safe sorted container of TimeWindows with blocking,
    time-biased removal.

    Selection policy for try_dequeue(current_sec):
      1. A window containing current_sec
      2. The earliest window starting after current_sec
      3. The earliest window overall (everything is behind current_sec)
    """

    def __init__(self):
        self._windows: List[TimeWindow] = []
        self._finished = False
        self._cond = threading.Condition(threading.Lock())

    def enqueue(self, window: TimeWindow):
        """Insert a window in (begin, end) order and wake a waiting consumer."""
        with self._cond:
            bisect.insort(self._windows, window)
            self._cond.notify_all()
        logger.debug(f"Enqueued {window}")

    def mark_producing_finished(self):
        """Signal that no more windows will arrive; wakes blocked consumers."""
        with self._cond:
            self._finished = True
            self._cond.notify_all()

    def try_dequeue(self, current_sec: float) -> Optional[TimeWindow]:
        """
        Remove and return the window most relevant to ``current_sec``.

        Blocks while the queue is empty and producing is not finished.

        Returns:
            The selected TimeWindow, or None once the queue is empty and
            producing has finished.
        """
        with self._cond:
            while not self._windows and not self._finished:
                self._cond.wait()

            if not self._windows:
                return None

            index = self._select(current_sec)
            return self._windows.pop(index)

    def _select(self, current_sec: float) -> int:
        for i, w in enumerate(self._windows):
            if w.contains(current_sec):
                return i

        for i, w in enumerate(self._windows):
            if w.begin_sec > current_sec:
                return i

        return 0

    @property
    def producing_finished(self) -> bool:
        with self._cond:
            return self._finished

    def __len__(self):
        with self._cond:
            return len(self._windows)
