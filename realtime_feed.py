"""New-order event sources: the Supabase realtime feed and a backup poller."""

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from errors import StoreError
from interfaces import Clock, Scheduler, TimerHandle
from scheduler import ThreadingScheduler, now_ms

try:
    from supabase import acreate_client
except Exception:  # pragma: no cover
    acreate_client = None  # type: ignore

logger = logging.getLogger(__name__)

RecordCallback = Callable[[dict[str, Any]], None]

PLACEHOLDER_ORDER = {"item_name": "New Order", "order_token": "N/A"}


def is_counter_order(record: dict[str, Any], app_user_id: str) -> bool:
    """Pending orders placed at the counter, not through the external app."""
    status = str(record.get("status") or "").lower()
    return status == "pending" and record.get("user_id") != app_user_id


def extract_record(payload: Any) -> Optional[dict[str, Any]]:
    """Pull the inserted row out of a postgres_changes payload."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("record"), dict):
        return data["record"]
    for key in ("new", "record"):
        value = payload.get(key)
        if isinstance(value, dict):
            return value
    return None


class OrderInsertFeed:
    """Subscribes to order inserts on a private asyncio loop thread."""

    def __init__(
        self,
        url: str,
        key: str,
        on_insert: RecordCallback,
        channel_name: str = "orders-notifications",
        stop_timeout_s: float = 2.0,
    ) -> None:
        self._url = url
        self._key = key
        self._on_insert = on_insert
        self._channel_name = channel_name
        self._stop_timeout_s = stop_timeout_s
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._client: Any = None
        self._channel: Any = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        if acreate_client is None:
            raise RuntimeError("supabase is not installed")
        if not (self._url and self._key):
            raise RuntimeError("Supabase URL and key are required for the realtime feed")

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, args=(self._loop,), daemon=True)
        self._thread.start()
        future = asyncio.run_coroutine_threadsafe(self._subscribe(), self._loop)
        future.add_done_callback(self._on_subscribed)

    def stop(self) -> None:
        loop = self._loop
        if loop is None:
            return
        if self._client is not None and self._channel is not None:
            future = asyncio.run_coroutine_threadsafe(self._client.remove_channel(self._channel), loop)
            try:
                future.result(timeout=self._stop_timeout_s)
            except Exception as exc:
                logger.warning("realtime unsubscribe failed: %s", exc)
        loop.call_soon_threadsafe(loop.stop)
        if self._thread is not None:
            self._thread.join(timeout=self._stop_timeout_s)
        self._loop = None
        self._thread = None
        self._client = None
        self._channel = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _run_loop(loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            loop.close()

    async def _subscribe(self) -> None:
        self._client = await acreate_client(self._url, self._key)
        channel = self._client.channel(self._channel_name)
        channel.on_postgres_changes("INSERT", schema="public", table="orders", callback=self._handle_change)
        await channel.subscribe()
        self._channel = channel

    def _on_subscribed(self, future: Any) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("realtime subscription failed: %s", exc)
        else:
            logger.info("subscribed to order inserts on %s", self._channel_name)

    def _handle_change(self, payload: Any) -> None:
        record = extract_record(payload)
        if record is None:
            logger.debug("ignoring realtime payload without a record")
            return
        logger.debug("order inserted via realtime: %s", record.get("id"))
        self._on_insert(record)


class PendingOrderPoller:
    """Backup detector that counts recent counter orders on an interval."""

    def __init__(
        self,
        store: Any,
        on_new_order: RecordCallback,
        app_user_id: str,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Clock] = None,
        interval_ms: int = 5000,
        lookback_ms: int = 60_000,
    ) -> None:
        self._store = store
        self._on_new_order = on_new_order
        self._app_user_id = app_user_id
        self._scheduler = scheduler or ThreadingScheduler()
        self._clock = clock or now_ms
        self._interval_ms = interval_ms
        self._lookback_ms = lookback_ms
        self._last_count = 0
        self._timer: Optional[TimerHandle] = None
        self._running = False
        self._lock = threading.Lock()

    @property
    def last_count(self) -> int:
        return self._last_count

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._schedule_locked()

    def stop(self) -> None:
        with self._lock:
            self._running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def poll_once(self) -> Optional[dict[str, Any]]:
        since = datetime.fromtimestamp((self._clock() - self._lookback_ms) / 1000, tz=timezone.utc)
        try:
            rows = self._store.fetch_pending_orders(self._app_user_id, since.isoformat())
        except StoreError as exc:
            logger.warning("failed to check for new orders: %s", exc.message)
            return None

        previous = self._last_count
        self._last_count = len(rows)
        if self._last_count <= previous or previous == 0:
            return None

        logger.info("new order detected via polling")
        try:
            order = self._store.fetch_latest_pending_order(self._app_user_id)
        except StoreError as exc:
            logger.warning("failed to get latest order details: %s", exc.message)
            order = None
        order = order or dict(PLACEHOLDER_ORDER)
        self._on_new_order(order)
        return order

    def _tick(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._timer = None
        try:
            self.poll_once()
        finally:
            with self._lock:
                if self._running:
                    self._schedule_locked()

    def _schedule_locked(self) -> None:
        self._timer = self._scheduler.call_later(self._interval_ms, self._tick)
