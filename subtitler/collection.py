"""
Subtitle Collection — Observable, append-only result sink.

The recognizer appends spans as it finishes each window; listeners on
any thread are notified after every append, in subscription order.
"""

import logging
import threading
from typing import Callable, Iterable, Iterator, List

from .spans import TextSpan

logger = logging.getLogger(__name__)

SpanListener = Callable[[TextSpan], None]


class SubtitleCollection:
    """Thread-safe insertion-ordered sequence of TextSpans."""

    def __init__(self):
        self._items: List[TextSpan] = []
        self._listeners: List[SpanListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: SpanListener) -> Callable[[], None]:
        """
        Register a listener called with each appended span.

        Returns:
            A function that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def append(self, span: TextSpan):
        with self._lock:
            self._items.append(span)
            listeners = list(self._listeners)

        for listener in listeners:
            listener(span)

    def extend(self, spans: Iterable[TextSpan]):
        for span in spans:
            self.append(span)

    def snapshot(self) -> List[TextSpan]:
        with self._lock:
            return list(self._items)

    def sorted_by_time(self) -> List[TextSpan]:
        return sorted(self.snapshot(), key=lambda s: (s.begin_sec, s.end_sec))

    def clear(self):
        with self._lock:
            self._items.clear()

    def __len__(self):
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[TextSpan]:
        return iter(self.snapshot())

    def __getitem__(self, index):
        with self._lock:
            return self._items[index]
