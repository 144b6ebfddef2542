"""
Bounded gateway output buffer.

The supervisor's reader thread is the only writer; status displays read
concurrently. Once the buffer holds more than max_chars characters the
oldest text is dropped.
"""

import threading
from collections import deque
from typing import Deque


class LogBuffer:
    """Thread-safe, size-capped text buffer (FIFO eviction)."""

    def __init__(self, max_chars: int = 200_000):
        if max_chars <= 0:
            raise ValueError("max_chars must be positive")
        self.max_chars = max_chars
        self._chunks: Deque[str] = deque()
        self._size = 0
        self._lock = threading.Lock()

    def append(self, chunk: str) -> None:
        if not chunk:
            return

        with self._lock:
            # A single oversized chunk only keeps its tail
            if len(chunk) >= self.max_chars:
                self._chunks.clear()
                chunk = chunk[-self.max_chars:]
                self._size = 0

            self._chunks.append(chunk)
            self._size += len(chunk)

            overflow = self._size - self.max_chars
            while overflow > 0:
                head = self._chunks[0]
                if len(head) <= overflow:
                    self._chunks.popleft()
                    self._size -= len(head)
                    overflow -= len(head)
                else:
                    self._chunks[0] = head[overflow:]
                    self._size -= overflow
                    overflow = 0

    def text(self) -> str:
        with self._lock:
            return "".join(self._chunks)

    def tail(self, lines: int = 50) -> str:
        """Last `lines` lines of the buffer."""
        if lines <= 0:
            return ""
        return "\n".join(self.text().splitlines()[-lines:])

    def clear(self) -> None:
        with self._lock:
            self._chunks.clear()
            self._size = 0

    def __len__(self) -> int:
        with self._lock:
            return self._size

    def __bool__(self) -> bool:
        return len(self) > 0
