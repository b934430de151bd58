"""Duplicate scan suppression."""

from __future__ import annotations

import threading
from typing import NamedTuple, Optional

DUPLICATE_SCAN_WINDOW_MS = 2000


class LastAccepted(NamedTuple):
    payload: str
    accepted_at_ms: int


def is_duplicate(
    candidate: str,
    now_ms: int,
    last: Optional[LastAccepted],
    window_ms: int = DUPLICATE_SCAN_WINDOW_MS,
) -> bool:
    if last is None:
        return False
    return candidate == last.payload and now_ms - last.accepted_at_ms < window_ms


class DuplicateGuard:
    """Remembers the last accepted payload and rejects quick repeats of it."""

    def __init__(self, window_ms: int = DUPLICATE_SCAN_WINDOW_MS) -> None:
        self._window_ms = window_ms
        self._last: Optional[LastAccepted] = None
        self._lock = threading.Lock()

    @property
    def last(self) -> Optional[LastAccepted]:
        return self._last

    def accept(self, payload: str, now_ms: int) -> bool:
        with self._lock:
            if is_duplicate(payload, now_ms, self._last, self._window_ms):
                return False
            self._last = LastAccepted(payload, now_ms)
            return True

    def reset(self) -> None:
        with self._lock:
            self._last = None
