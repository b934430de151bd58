from __future__ import annotations

from typing import Any

import pytest

from errors import STORE_ERROR, StoreError
from inventory import InventoryService, normalize_name
from models import FoodItem


class FakeStore:
    def __init__(self) -> None:
        self.items = [
            {"id": 1, "name": "Veg Biryani", "pending_deliver_count": 2, "ready_to_deliver_count": 0},
            {"id": 2, "name": "  masala dosa", "pending_deliver_count": 5},
            {"id": 3, "name": "Idli", "pending_deliver_count": 2},
        ]
        self.removed = [{"id": 9, "name": "Vada", "is_active": False}]
        self.allocations: list[tuple[Any, int]] = []
        self.active_changes: list[tuple[Any, bool]] = []
        self.deleted: list[Any] = []
        self.fail = False

    def list_food_items(self) -> list[dict[str, Any]]:
        return self.items

    def allocate_ready_items(self, food_item_id: Any, count: int) -> dict[str, Any]:
        self.allocations.append((food_item_id, count))
        return {"fulfilled": count, "remaining": 1}

    def list_removed_items(self) -> list[dict[str, Any]]:
        return self.removed

    def set_item_active(self, item_id: Any, active: bool) -> None:
        if self.fail:
            raise StoreError(STORE_ERROR, "denied")
        self.active_changes.append((item_id, active))

    def delete_item(self, item_id: Any) -> None:
        self.deleted.append(item_id)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def inventory(store) -> InventoryService:  # noqa: ANN001
    return InventoryService(store)


def test_normalize_name() -> None:
    assert normalize_name("  Masala-Dosa!! ") == "masala dosa"
    assert normalize_name(None) == ""
    assert normalize_name(42) == ""


def test_items_sorted_by_pending_then_name(inventory) -> None:  # noqa: ANN001
    names = [item.name for item in inventory.load_items()]
    assert names == ["  masala dosa", "Idli", "Veg Biryani"]


@pytest.mark.parametrize("raw", ["0", "-1", "6", "abc", "", None])
def test_validate_rejects_out_of_range(inventory, raw) -> None:  # noqa: ANN001
    item = FoodItem(id=2, name="Dosa", pending_count=5)
    assert inventory.validate_ready_count(item, raw) == "Must be between 1 and 5"


def test_mark_ready_allocates(inventory, store) -> None:  # noqa: ANN001
    item = FoodItem(id=2, name="Dosa", pending_count=5)

    assert inventory.mark_ready(item, " 4 ") == "Marked 4 orders ready • 1 remaining"
    assert store.allocations == [(2, 4)]


def test_mark_ready_invalid_count_raises(inventory, store) -> None:  # noqa: ANN001
    item = FoodItem(id=2, name="Dosa", pending_count=5)

    with pytest.raises(ValueError, match="Must be between 1 and 5"):
        inventory.mark_ready(item, "9")
    assert store.allocations == []


def test_removed_items_and_restore(inventory, store) -> None:  # noqa: ANN001
    removed = inventory.removed_items()
    assert [item.name for item in removed] == ["Vada"]
    assert removed[0].is_active is False

    assert inventory.restore_item(removed[0]) == "Vada has been restored successfully!"
    assert store.active_changes == [(9, True)]


def test_remove_and_delete(inventory, store) -> None:  # noqa: ANN001
    item = FoodItem(id=3, name="Idli")

    assert inventory.remove_item(item) == "Idli has been removed"
    assert inventory.delete_item(item) == "Idli has been permanently deleted"
    assert store.active_changes == [(3, False)]
    assert store.deleted == [3]


def test_store_errors_propagate(inventory, store) -> None:  # noqa: ANN001
    store.fail = True
    with pytest.raises(StoreError):
        inventory.restore_item(FoodItem(id=9, name="Vada"))
