"""
CPU Throttle — Voluntary CPU usage limiter between recognition windows.

Samples system CPU usage via psutil and backs off when it exceeds the
configured budget, so long offline runs don't pin every core.
"""

import logging
import threading
import time
from typing import Optional

import psutil

logger = logging.getLogger(__name__)


class CPUThrottle:
    """
    Pauses the calling worker while system CPU usage is above max_percent.

    A max_percent of 0 or less disables throttling.
    """

    def __init__(self, max_percent: int = 70, check_interval: float = 2.0):
        self.max_percent = max_percent
        self.check_interval = check_interval
        self._last_check = 0.0
        self._throttle_count = 0
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.max_percent > 0

    def throttle_if_needed(self, stop_event: Optional[threading.Event] = None) -> float:
        """
        Check CPU usage (at most every check_interval seconds) and wait if
        it exceeds the budget. The wait ends early when stop_event is set.

        Returns:
            Seconds spent waiting.
        """
        if not self.enabled:
            return 0.0

        with self._lock:
            now = time.monotonic()
            if now - self._last_check < self.check_interval:
                return 0.0
            self._last_check = now

        usage = psutil.cpu_percent(interval=0.1)
        if usage <= self.max_percent:
            return 0.0

        with self._lock:
            self._throttle_count += 1
            count = self._throttle_count
        pause = min(2.0, (usage - self.max_percent) / 100.0 + 0.3)

        if count <= 3 or count % 10 == 0:
            logger.debug(
                f"CPU at {usage:.0f}% (limit: {self.max_percent}%), "
                f"pausing {pause:.1f}s (throttle #{count})"
            )

        if stop_event is not None:
            stop_event.wait(pause)
        else:
            time.sleep(pause)
        return pause

    @property
    def total_throttles(self) -> int:
        """Number of times throttling was triggered."""
        return self._throttle_count
