"""Scan-to-order workflow: decoded payload -> order lookup -> status change."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlsplit

from errors import ERROR_MESSAGES, INVALID_SCAN, ORDER_NOT_FOUND, SCANNER_BUSY, StoreError
from interfaces import Clock, OrderStore, Scheduler, SoundPlayer, TimerHandle
from models import OrderStatus
from scan_guard import DUPLICATE_SCAN_WINDOW_MS, DuplicateGuard
from scheduler import ThreadingScheduler, now_ms

logger = logging.getLogger(__name__)

OrderCallback = Callable[[Optional[dict[str, Any]]], None]
MessageCallback = Callable[[str], None]

_CODE_PARAMS = ("order_token", "token", "qr_code", "order_qr_code", "code")

MESSAGE_MS = 2000
BUSY_MESSAGE_MS = 1500
FAILURE_MESSAGE_MS = 3000
CLOSE_AFTER_UPDATE_MS = 1000

_SUCCESS_MESSAGES = {
    OrderStatus.DELIVERED: "Order marked as delivered",
    OrderStatus.CANCELLED: "Order cancelled",
}


def normalize_scanned_value(value: object) -> Optional[str]:
    """Return the order code carried by a scan, or None for an empty scan.

    Current receipts carry the bare token.  Legacy QR codes hold a URL whose
    query string names the code; the whole value is kept when none matches.
    """
    if value is None:
        return None
    cleaned = str(value).strip()
    if not cleaned:
        return None
    if "://" not in cleaned:
        return cleaned

    try:
        params = parse_qs(urlsplit(cleaned).query)
    except ValueError:
        return cleaned
    for name in _CODE_PARAMS:
        values = params.get(name)
        if values and values[0].strip():
            return values[0].strip()
    return cleaned


class OrderScanController:
    def __init__(
        self,
        store: OrderStore,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Clock] = None,
        sound: Optional[SoundPlayer] = None,
        on_order: Optional[OrderCallback] = None,
        on_message: Optional[MessageCallback] = None,
        duplicate_window_ms: int = DUPLICATE_SCAN_WINDOW_MS,
    ) -> None:
        self._store = store
        self._scheduler = scheduler or ThreadingScheduler()
        self._clock = clock or now_ms
        self._sound = sound
        self._on_order = on_order
        self._on_message = on_message
        self._guard = DuplicateGuard(window_ms=duplicate_window_ms)

        self._lock = threading.RLock()
        self._scanned_order: Optional[dict[str, Any]] = None
        self._processing = False
        self._updating = False
        self._last_scanned_code: Optional[str] = None
        self._message = ""
        self._message_timer: Optional[TimerHandle] = None
        self._message_generation = 0
        self._close_timer: Optional[TimerHandle] = None

    @property
    def scanned_order(self) -> Optional[dict[str, Any]]:
        return self._scanned_order

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def is_updating(self) -> bool:
        return self._updating

    @property
    def message(self) -> str:
        return self._message

    @property
    def last_scanned_code(self) -> Optional[str]:
        return self._last_scanned_code

    def process_scan(self, raw_value: object) -> Optional[dict[str, Any]]:
        normalized = normalize_scanned_value(raw_value)
        if not normalized:
            logger.debug("ignoring empty scan payload")
            self._show_message(ERROR_MESSAGES[INVALID_SCAN], MESSAGE_MS)
            return None

        with self._lock:
            if not self._guard.accept(normalized, self._clock()):
                logger.debug("duplicate scan ignored: %s", normalized)
                return None
            self._last_scanned_code = normalized
            busy = self._processing or self._scanned_order is not None
            if not busy:
                self._processing = True

        if busy:
            logger.debug("scanner busy, ignoring %s", normalized)
            self._show_message(ERROR_MESSAGES[SCANNER_BUSY], BUSY_MESSAGE_MS)
            return None

        try:
            order = self._store.find_order_by_code(normalized)
        except StoreError as exc:
            logger.error("order lookup failed for %s: %s", normalized, exc.message)
            self._finish_lookup(None)
            self._show_message(f"Lookup failed: {exc.message}", MESSAGE_MS)
            return None

        self._finish_lookup(order)
        if order:
            logger.info("matched order %s for scanned code %s", order.get("id"), normalized)
            self._show_message("Order located", MESSAGE_MS)
        else:
            logger.info("no order matched scanned code %s", normalized)
            self._show_message(ERROR_MESSAGES[ORDER_NOT_FOUND], MESSAGE_MS)
        return order

    def mark_delivered(self) -> bool:
        return self._update_status(OrderStatus.DELIVERED)

    def cancel_order(self) -> bool:
        return self._update_status(OrderStatus.CANCELLED)

    def close_order(self) -> None:
        with self._lock:
            if self._close_timer is not None:
                self._close_timer.cancel()
                self._close_timer = None
            self._scanned_order = None
        self._set_message("")
        if self._on_order:
            self._on_order(None)

    def close(self) -> None:
        with self._lock:
            self._cancel_message_timer_locked()
            if self._close_timer is not None:
                self._close_timer.cancel()
                self._close_timer = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _finish_lookup(self, order: Optional[dict[str, Any]]) -> None:
        with self._lock:
            self._scanned_order = order or None
            self._processing = False
        if self._on_order:
            self._on_order(self._scanned_order)

    def _update_status(self, status: OrderStatus) -> bool:
        with self._lock:
            order = self._scanned_order
            if order is None or self._updating:
                return False
            self._updating = True

        error: Optional[StoreError] = None
        try:
            self._store.update_order_status(order.get("id"), status.value)
        except StoreError as exc:
            logger.error("failed to update order %s: %s", order.get("id"), exc.message)
            error = exc
        finally:
            with self._lock:
                self._updating = False

        if error is not None:
            self._show_message(f"Failed: {error.message}", FAILURE_MESSAGE_MS)
            # the order is still open; hand it back so it can be retried or closed
            if self._on_order:
                self._on_order(order)
            return False

        if self._sound is not None:
            self._sound.play_notification()
        self._set_message(_SUCCESS_MESSAGES[status])
        with self._lock:
            self._close_timer = self._scheduler.call_later(CLOSE_AFTER_UPDATE_MS, self.close_order)
        return True

    def _show_message(self, text: str, clear_after_ms: int) -> None:
        with self._lock:
            self._cancel_message_timer_locked()
            generation = self._message_generation
            self._message_timer = self._scheduler.call_later(
                clear_after_ms,
                lambda: self._clear_message(generation),
            )
        self._emit_message(text)

    def _set_message(self, text: str) -> None:
        with self._lock:
            self._cancel_message_timer_locked()
        self._emit_message(text)

    def _clear_message(self, generation: int) -> None:
        with self._lock:
            if generation != self._message_generation:
                return
            self._message_timer = None
        self._emit_message("")

    def _emit_message(self, text: str) -> None:
        self._message = text
        if self._on_message:
            self._on_message(text)

    def _cancel_message_timer_locked(self) -> None:
        self._message_generation += 1
        timer = self._message_timer
        self._message_timer = None
        if timer is not None:
            timer.cancel()
