"""Cooldown-gated order alerts.

New-order alerts can arrive from the realtime feed, the backup poller and
the local orders panel, often describing the same insert.  ``OrderNotifier``
lets one of them through, remembers what it fired and drops the echoes.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Callable, Optional

from expiring_cache import DEFAULT_TTL_MS, ExpiringSet
from interfaces import Clock, Scheduler, SoundPlayer, TimerHandle
from models import Popup, PopupKind
from scheduler import ThreadingScheduler, now_ms

logger = logging.getLogger(__name__)

PopupCallback = Callable[[Optional[Popup]], None]

NOTIFICATION_COOLDOWN_MS = 3000
POPUP_DURATION_MS = 5000

_SUPPRESSION_KEYS = ("id", "order_id", "token_no", "order_token")
_IDENTITY_KEYS = ("id", "order_id", "token_no")


def order_identity(order_data: dict[str, Any]) -> Any:
    for key in _IDENTITY_KEYS:
        value = order_data.get(key)
        if value:
            return value
    return None


def is_cancellation(order_data: dict[str, Any]) -> bool:
    return bool(order_data.get("isCancellation")) or order_data.get("order_type") == "cancelled"


class OrderNotifier:
    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Clock] = None,
        sound: Optional[SoundPlayer] = None,
        on_popup: Optional[PopupCallback] = None,
        cooldown_ms: int = NOTIFICATION_COOLDOWN_MS,
        popup_duration_ms: int = POPUP_DURATION_MS,
        suppression_ttl_ms: int = DEFAULT_TTL_MS,
        enabled: bool = True,
    ) -> None:
        self._scheduler = scheduler or ThreadingScheduler()
        self._clock = clock or now_ms
        self._sound = sound
        self._on_popup = on_popup
        self._cooldown_ms = cooldown_ms
        self._popup_duration_ms = popup_duration_ms
        self._suppression_ttl_ms = suppression_ttl_ms
        self._enabled = enabled

        self._lock = threading.RLock()
        self._suppressed = ExpiringSet(clock=self._clock)
        self._last_fired_ms: Optional[int] = None
        self._last_identity: Any = None
        self._popup: Optional[Popup] = None
        self._popup_timer: Optional[TimerHandle] = None
        self._popup_generation = 0
        self._popup_ids = itertools.count(1)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def popup(self) -> Optional[Popup]:
        return self._popup

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    def toggle(self) -> bool:
        self._enabled = not self._enabled
        return self._enabled

    def suppress_order(self, order_id: Any) -> None:
        """Skip the next alert for an order this station placed itself."""
        if not order_id:
            return
        self._suppressed.mark_suppressed(order_id, self._suppression_ttl_ms)

    def notify_order(self, order_data: dict[str, Any]) -> bool:
        """Fire an alert for ``order_data`` unless the gate drops it."""
        with self._lock:
            if not self._enabled:
                logger.debug("notification dropped: notifications disabled")
                return False

            for key in _SUPPRESSION_KEYS:
                candidate = order_data.get(key)
                if candidate and self._suppressed.should_suppress(candidate):
                    logger.debug("notification suppressed for local order %s", candidate)
                    return False

            identity = order_identity(order_data)
            if identity is not None and identity == self._last_identity:
                logger.debug("notification dropped: duplicate order %s", identity)
                return False

            now = self._clock()
            if self._last_fired_ms is not None and now - self._last_fired_ms < self._cooldown_ms:
                logger.debug(
                    "notification dropped: cooldown active (%d ms < %d ms)",
                    now - self._last_fired_ms,
                    self._cooldown_ms,
                )
                return False

            self._last_fired_ms = now
            self._last_identity = identity

        logger.info("order notification fired for %s", identity)
        if is_cancellation(order_data):
            return True

        if self._sound is not None:
            self._sound.play_notification()

        if order_data.get("isError"):
            self.show_popup(PopupKind.ERROR, "Error!", order_data.get("item_name") or "An error occurred", order_data)
        elif order_data.get("isAvailabilityChange"):
            self.show_popup(
                PopupKind.AVAILABILITY_CHANGE,
                "Item Availability Updated!",
                order_data.get("item_name") or "Item availability has been changed",
                order_data,
            )
        else:
            token = order_data.get("order_token")
            message = order_data.get("item_name") or "New Order"
            if token:
                message = f"{message} (#{token})"
            self.show_popup(PopupKind.NEW_ORDER, "New Order!", message, order_data)
        return True

    def show_popup(
        self,
        kind: PopupKind,
        title: str,
        message: str,
        order: Optional[dict[str, Any]] = None,
    ) -> Popup:
        # popup changes are emitted under the lock so observers see them in order
        with self._lock:
            self._cancel_popup_timer_locked()
            popup = Popup(
                id=next(self._popup_ids),
                kind=kind,
                title=title,
                message=message,
                created_at_ms=self._clock(),
                order=dict(order or {}),
            )
            self._popup = popup
            generation = self._popup_generation
            self._popup_timer = self._scheduler.call_later(
                self._popup_duration_ms,
                lambda: self._auto_dismiss(generation),
            )
            self._emit(popup)
        return popup

    def dismiss_popup(self) -> None:
        with self._lock:
            self._cancel_popup_timer_locked()
            if self._popup is None:
                return
            self._popup = None
            self._emit(None)

    def close(self) -> None:
        with self._lock:
            self._cancel_popup_timer_locked()
            self._popup = None

    def _auto_dismiss(self, generation: int) -> None:
        with self._lock:
            if generation != self._popup_generation:
                return
            self._popup_timer = None
            self._popup = None
            self._emit(None)

    def _cancel_popup_timer_locked(self) -> None:
        self._popup_generation += 1
        timer = self._popup_timer
        self._popup_timer = None
        if timer is not None:
            timer.cancel()

    def _emit(self, popup: Optional[Popup]) -> None:
        if self._on_popup:
            self._on_popup(popup)
