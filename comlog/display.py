"""DisplayBuffer: bounded most-recent-N view of rendered records."""

import logging
from collections import deque

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100


class DisplayBuffer:
    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self._check_capacity(capacity)
        self._capacity = capacity
        self._lines: deque[str] = deque()
        self._listeners = []

    @staticmethod
    def _check_capacity(capacity: int):
        if capacity < 1:
            raise ValueError(f"display capacity must be >= 1, got {capacity}")

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._lines)

    def push(self, line: str):
        """Append a line, evicting the oldest entries beyond capacity."""
        self._lines.append(line)
        while len(self._lines) > self._capacity:
            self._lines.popleft()
        self._notify(line)

    def set_capacity(self, capacity: int):
        """Resize. Shrinking keeps only the newest entries; growing never backfills."""
        self._check_capacity(capacity)
        self._capacity = capacity
        dropped = 0
        while len(self._lines) > capacity:
            self._lines.popleft()
            dropped += 1
        if dropped:
            logger.debug("Display shrunk to %d line(s), dropped %d", capacity, dropped)
        self._notify(None)

    def contents(self) -> list[str]:
        return list(self._lines)

    def clear(self):
        self._lines.clear()
        self._notify(None)

    def subscribe(self, callback):
        """Register ``callback(line)``; line is None after a resize or clear."""
        self._listeners.append(callback)

    def _notify(self, line):
        for callback in self._listeners:
            callback(line)
