"""Keyboard-wedge scanner decoder.

Barcode and QR scanners that emulate a keyboard "type" the scanned value
much faster than a person can, then send Enter.  ``ScanDecoder`` watches the
key stream, keeps only characters that arrive at scanner speed and hands one
trimmed payload to the consumer per completed scan.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Optional

from interfaces import Clock, KeySource, Scheduler, TimerHandle
from models import KeyEvent
from scheduler import ThreadingScheduler, now_ms

logger = logging.getLogger(__name__)

TEXT_ENTRY_WIDGETS = frozenset(
    {"QLineEdit", "QTextEdit", "QPlainTextEdit", "QSpinBox", "QDoubleSpinBox"}
)


@dataclass(frozen=True)
class ScanDecoderConfig:
    inter_key_reset_ms: int = 120
    flush_timeout_ms: int = 500
    terminator_key: str = "Enter"
    ignore_targets: FrozenSet[str] = field(default_factory=lambda: TEXT_ENTRY_WIDGETS)


class ScanDecoder:
    def __init__(
        self,
        on_scan: Callable[[str], None],
        source: KeySource,
        config: Optional[ScanDecoderConfig] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._on_scan = on_scan
        self._source = source
        self._config = config or ScanDecoderConfig()
        self._scheduler = scheduler or ThreadingScheduler()
        self._clock = clock or now_ms

        self._lock = threading.Lock()
        self._enabled = False
        self._buffer = ""
        self._last_key_ms = 0
        self._flush_timer: Optional[TimerHandle] = None
        self._flush_generation = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def buffered(self) -> str:
        return self._buffer

    @property
    def config(self) -> ScanDecoderConfig:
        return self._config

    def enable(self) -> None:
        with self._lock:
            if self._enabled:
                return
            self._enabled = True
            self._last_key_ms = 0
        self._source.attach(self.feed)
        logger.debug("scan decoder enabled")

    def disable(self) -> None:
        with self._lock:
            if not self._enabled:
                return
            self._enabled = False
            self._reset_locked()
        self._source.detach()
        logger.debug("scan decoder disabled")

    def close(self) -> None:
        self.disable()

    def feed(self, event: KeyEvent) -> bool:
        """Process one key press; True means the host should swallow it."""
        with self._lock:
            payload = self._handle_locked(event)
        if payload is None:
            return False

        logger.info("Barcode scanned: %s", payload)
        try:
            self._on_scan(payload)
        except Exception:
            logger.exception("scan consumer failed for payload %r", payload)
        return True

    # ------------------------------------------------------------------
    # Internal (callers hold self._lock)
    # ------------------------------------------------------------------

    def _handle_locked(self, event: KeyEvent) -> Optional[str]:
        if not self._enabled:
            return None
        if event.target is not None and event.target in self._config.ignore_targets:
            return None
        if event.has_modifier:
            self._reset_locked()
            return None

        now = self._clock() if event.timestamp_ms is None else event.timestamp_ms
        delta = now - self._last_key_ms
        self._last_key_ms = now
        if delta > self._config.inter_key_reset_ms:
            self._reset_locked()

        if event.key == self._config.terminator_key:
            payload = self._buffer.strip()
            self._reset_locked()
            return payload or None

        if event.is_character:
            self._buffer += event.key
            self._schedule_flush_locked()
        return None

    def _reset_locked(self) -> None:
        self._buffer = ""
        self._cancel_flush_locked()

    def _schedule_flush_locked(self) -> None:
        self._cancel_flush_locked()
        generation = self._flush_generation
        self._flush_timer = self._scheduler.call_later(
            self._config.flush_timeout_ms,
            lambda: self._on_flush_timeout(generation),
        )

    def _cancel_flush_locked(self) -> None:
        self._flush_generation += 1
        timer = self._flush_timer
        self._flush_timer = None
        if timer is not None:
            timer.cancel()

    def _on_flush_timeout(self, generation: int) -> None:
        with self._lock:
            if generation != self._flush_generation:
                return
            self._flush_timer = None
            if self._buffer:
                logger.debug("discarding stalled partial scan (%d chars)", len(self._buffer))
            self._buffer = ""
