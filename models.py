"""Core data models for the station."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class OrderStatus(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def normalise(cls, value: object) -> Optional["OrderStatus"]:
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return None


def display_status(value: object) -> str:
    status = OrderStatus.normalise(value)
    if status is not None:
        return status.value.upper()
    return str(value or "").upper()


class CanteenState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class PopupKind(str, Enum):
    NEW_ORDER = "new_order"
    ERROR = "error"
    AVAILABILITY_CHANGE = "availability_change"


@dataclass(frozen=True)
class KeyEvent:
    key: str
    timestamp_ms: Optional[int] = None
    alt: bool = False
    ctrl: bool = False
    meta: bool = False
    target: Optional[str] = None

    @property
    def has_modifier(self) -> bool:
        return self.alt or self.ctrl or self.meta

    @property
    def is_character(self) -> bool:
        return len(self.key) == 1


@dataclass
class Order:
    id: Any
    item_name: str = ""
    qr_code: Optional[str] = None
    order_token: Optional[str] = None
    status: str = OrderStatus.PENDING.value
    total_amount: Optional[float] = None
    user_id: Optional[str] = None
    order_type: Any = None
    created_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Order":
        return cls(
            id=record.get("id"),
            item_name=record.get("item_name") or "",
            qr_code=record.get("qr_code"),
            order_token=record.get("order_token"),
            status=str(record.get("status") or OrderStatus.PENDING.value),
            total_amount=record.get("total_amount"),
            user_id=record.get("user_id"),
            order_type=record.get("order_type"),
            created_at=record.get("created_at"),
        )


@dataclass
class FoodItem:
    id: Any
    name: str
    price: Optional[float] = None
    available_quantity: Optional[int] = None
    pending_count: int = 0
    ready_count: int = 0
    is_active: bool = True

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "FoodItem":
        return cls(
            id=record.get("id"),
            name=record.get("name") or "",
            price=record.get("price"),
            available_quantity=record.get("available_quantity"),
            pending_count=int(record.get("pending_deliver_count") or 0),
            ready_count=int(record.get("ready_to_deliver_count") or 0),
            is_active=bool(record.get("is_active", True)),
        )


@dataclass
class Popup:
    id: int
    kind: PopupKind
    title: str
    message: str
    created_at_ms: int = 0
    order: dict[str, Any] = field(default_factory=dict)


@dataclass
class PrintResult:
    success: bool
    error: str = ""
