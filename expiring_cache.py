"""Expiring one-shot key set used to silence alerts for locally placed orders."""

from __future__ import annotations

import threading
from typing import Hashable, Optional

from interfaces import Clock
from scheduler import now_ms

DEFAULT_TTL_MS = 60_000


class ExpiringSet:
    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or now_ms
        self._expiry: dict[Hashable, int] = {}
        self._lock = threading.Lock()

    def mark_suppressed(self, key: Hashable, ttl_ms: int = DEFAULT_TTL_MS) -> None:
        with self._lock:
            self._purge_locked()
            self._expiry[key] = self._clock() + ttl_ms

    def should_suppress(self, key: Hashable) -> bool:
        """True at most once per mark; a matching entry is consumed."""
        with self._lock:
            expires_at = self._expiry.pop(key, None)
            if expires_at is None:
                return False
            return self._clock() < expires_at

    def purge(self) -> int:
        with self._lock:
            return self._purge_locked()

    def __len__(self) -> int:
        with self._lock:
            self._purge_locked()
            return len(self._expiry)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            expires_at = self._expiry.get(key)  # type: ignore[arg-type]
            return expires_at is not None and self._clock() < expires_at

    def _purge_locked(self) -> int:
        now = self._clock()
        expired = [key for key, expires_at in self._expiry.items() if expires_at <= now]
        for key in expired:
            del self._expiry[key]
        return len(expired)
