"""Canteen open/closed status with optimistic updates."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from errors import StoreError
from interfaces import Clock
from models import CanteenState
from scheduler import now_ms

logger = logging.getLogger(__name__)

REFETCH_GRACE_MS = 2000


class CanteenStatusService:
    def __init__(
        self,
        store: Any,
        clock: Optional[Clock] = None,
        on_change: Optional[Callable[[CanteenState], None]] = None,
        refetch_grace_ms: int = REFETCH_GRACE_MS,
    ) -> None:
        self._store = store
        self._clock = clock or now_ms
        self._on_change = on_change
        self._refetch_grace_ms = refetch_grace_ms

        self._lock = threading.RLock()
        self._state = CanteenState.CLOSED
        self._loading = True
        self._updating = False
        self._last_update_ms: Optional[int] = None

    @property
    def state(self) -> CanteenState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == CanteenState.OPEN

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def updating(self) -> bool:
        return self._updating

    def fetch(self, force: bool = False) -> CanteenState:
        """Read the status from the store; errors leave the canteen closed."""
        with self._lock:
            recent = (
                self._last_update_ms is not None
                and self._clock() - self._last_update_ms < self._refetch_grace_ms
            )
            if recent and not force:
                logger.debug("skipping canteen status fetch, local update is recent")
                return self._state

        try:
            state = CanteenState.OPEN if self._store.fetch_canteen_open() else CanteenState.CLOSED
        except StoreError as exc:
            logger.error("error fetching canteen status: %s", exc.message)
            state = CanteenState.CLOSED
        finally:
            self._loading = False

        self._set_state(state)
        return state

    def refresh(self) -> CanteenState:
        self._loading = True
        return self.fetch(force=True)

    def update(self, new_state: CanteenState) -> None:
        """Apply ``new_state`` immediately and persist it; revert on failure."""
        with self._lock:
            previous = self._state
            self._updating = True
            self._last_update_ms = self._clock()
        self._set_state(new_state)

        try:
            self._store.set_canteen_open(new_state == CanteenState.OPEN)
            logger.info("canteen is now %s", new_state.value)
        except StoreError:
            logger.error("reverting canteen status to %s", previous.value)
            self._set_state(previous)
            raise
        finally:
            self._updating = False

    def toggle(self) -> CanteenState:
        new_state = CanteenState.CLOSED if self.is_open else CanteenState.OPEN
        self.update(new_state)
        return new_state

    def _set_state(self, state: CanteenState) -> None:
        with self._lock:
            changed = state != self._state
            self._state = state
        if changed and self._on_change:
            self._on_change(state)
