"""Kitchen-side inventory: ready-item allocation and removed items."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from errors import StoreError
from models import FoodItem

logger = logging.getLogger(__name__)


def normalize_name(value: object) -> str:
    if not value or not isinstance(value, str):
        return ""
    return re.sub(r"\s+", " ", re.sub(r"[^a-z0-9]+", " ", value.lower())).strip()


def _parse_count(raw: object) -> Optional[int]:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return None


class InventoryService:
    def __init__(self, store: Any) -> None:
        self._store = store

    def load_items(self) -> list[FoodItem]:
        """Active items, most pending orders first, then by name."""
        items = [FoodItem.from_record(r) for r in self._store.list_food_items()]
        items.sort(key=lambda item: (-item.pending_count, normalize_name(item.name)))
        return items

    def validate_ready_count(self, item: FoodItem, raw: object) -> Optional[str]:
        count = _parse_count(raw)
        if count is None or count <= 0 or count > item.pending_count:
            return f"Must be between 1 and {item.pending_count}"
        return None

    def mark_ready(self, item: FoodItem, raw_count: object) -> str:
        error = self.validate_ready_count(item, raw_count)
        if error:
            raise ValueError(error)

        count = int(str(raw_count).strip())
        result = self._store.allocate_ready_items(item.id, count)
        fulfilled = result.get("fulfilled") or 0
        remaining = result.get("remaining") or 0
        logger.info("allocated %d ready %s (%d remaining)", fulfilled, item.name, remaining)
        return f"Marked {fulfilled} orders ready • {remaining} remaining"

    def removed_items(self) -> list[FoodItem]:
        return [FoodItem.from_record(r) for r in self._store.list_removed_items()]

    def remove_item(self, item: FoodItem) -> str:
        return self._set_active(item, False, f"{item.name} has been removed")

    def restore_item(self, item: FoodItem) -> str:
        return self._set_active(item, True, f"{item.name} has been restored successfully!")

    def delete_item(self, item: FoodItem) -> str:
        try:
            self._store.delete_item(item.id)
        except StoreError as exc:
            logger.error("error permanently deleting %s: %s", item.name, exc.message)
            raise
        return f"{item.name} has been permanently deleted"

    def _set_active(self, item: FoodItem, active: bool, success: str) -> str:
        try:
            self._store.set_item_active(item.id, active)
        except StoreError as exc:
            logger.error("error updating %s: %s", item.name, exc.message)
            raise
        return success
