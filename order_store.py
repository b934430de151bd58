"""Order, canteen and inventory access backed by Supabase tables and RPCs."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from errors import NETWORK_ERROR, STORE_ERROR, STORE_NOT_CONFIGURED, StoreError

try:
    from supabase import create_client
except Exception:  # pragma: no cover
    create_client = None  # type: ignore

logger = logging.getLogger(__name__)

ORDER_COLUMNS = "id,item_name,qr_code,order_token,created_at,status,total_amount,user_id,order_type"
FOOD_ITEM_COLUMNS = "id,name,price,available_quantity,pending_deliver_count,ready_to_deliver_count,is_active"
PENDING_STATUSES = ["pending", "PENDING"]
CANTEEN_ROW_ID = 1


def fallback_qr_value(code: str) -> Optional[str]:
    """QR codes are stored without the ``ORD-`` prefix printed on receipts."""
    cleaned = str(code or "").strip()
    if not cleaned:
        return None
    if cleaned.startswith("ORD-"):
        return cleaned[4:]
    return cleaned


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _response_data(response: Any) -> Any:
    # maybe_single() yields no response object at all on some client versions
    if response is None:
        return None
    return getattr(response, "data", None)


class SupabaseOrderStore:
    def __init__(self, url: str, key: str, client: Any = None) -> None:
        self._url = url
        self._key = key
        self._client = client
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self._url and self._key)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def find_order_by_code(self, code: str) -> Optional[dict[str, Any]]:
        """Look an order up by its token, falling back to the stored QR code."""
        if not code:
            return None

        token_error: Optional[StoreError] = None
        try:
            data = self._maybe_single(
                "order lookup by token",
                lambda c: c.table("orders").select(ORDER_COLUMNS).eq("order_token", code).limit(1),
            )
        except StoreError as exc:
            if exc.code == STORE_NOT_CONFIGURED:
                raise
            token_error = exc
            data = None
        if data:
            return data

        logger.debug("token lookup missed for %s, trying qr_code fallback", code)
        qr_value = fallback_qr_value(code)
        data = self._maybe_single(
            "order lookup by qr code",
            lambda c: c.table("orders").select(ORDER_COLUMNS).eq("qr_code", qr_value).limit(1),
        )
        if data:
            return data
        if token_error is not None:
            raise token_error
        return None

    def update_order_status(self, order_id: Any, new_status: str) -> None:
        self._execute(
            "order status update",
            lambda c: c.rpc(
                "update_order_status_flexible",
                {"p_order_id": order_id, "p_new_status": str(new_status).lower()},
            ),
        )
        logger.info("order %s moved to %s", order_id, str(new_status).lower())

    def fetch_recent_orders(self, limit: int = 5) -> list[dict[str, Any]]:
        return self._rows(
            "recent orders",
            lambda c: c.table("orders").select("*").order("created_at", desc=True).limit(limit),
        )

    def fetch_pending_orders(self, exclude_user_id: str, since_iso: str) -> list[dict[str, Any]]:
        return self._rows(
            "pending orders",
            lambda c: c.table("orders")
            .select("id,status,user_id")
            .in_("status", PENDING_STATUSES)
            .neq("user_id", exclude_user_id)
            .gte("created_at", since_iso),
        )

    def fetch_latest_pending_order(self, exclude_user_id: str) -> Optional[dict[str, Any]]:
        rows = self._rows(
            "latest pending order",
            lambda c: c.table("orders")
            .select("*")
            .in_("status", PENDING_STATUSES)
            .neq("user_id", exclude_user_id)
            .order("created_at", desc=True)
            .limit(1),
        )
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Canteen status
    # ------------------------------------------------------------------

    def fetch_canteen_open(self) -> bool:
        data = self._execute(
            "canteen status",
            lambda c: c.table("canteen_status").select("is_open,updated_at").eq("id", CANTEEN_ROW_ID).single(),
        )
        return bool((data or {}).get("is_open"))

    def set_canteen_open(self, is_open: bool) -> bool:
        rows = self._execute(
            "canteen status update",
            lambda c: c.table("canteen_status")
            .update({"is_open": is_open, "updated_at": utc_now_iso()})
            .eq("id", CANTEEN_ROW_ID),
        )
        if not rows:
            logger.warning("canteen status update returned no rows")
            return False
        return bool(rows[0].get("is_open")) == is_open

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def list_food_items(self) -> list[dict[str, Any]]:
        return self._rows(
            "food items",
            lambda c: c.table("food_items").select(FOOD_ITEM_COLUMNS).eq("is_active", True),
        )

    def allocate_ready_items(self, food_item_id: Any, count: int) -> dict[str, Any]:
        data = self._execute(
            "ready item allocation",
            lambda c: c.rpc("allocate_ready_items", {"p_food_item_id": food_item_id, "p_add_count": count}),
        )
        return data if isinstance(data, dict) else {}

    def list_removed_items(self) -> list[dict[str, Any]]:
        return self._rows(
            "removed items",
            lambda c: c.table("food_items").select("*").eq("is_active", False).order("name"),
        )

    def set_item_active(self, item_id: Any, active: bool) -> None:
        self._execute(
            "item activation",
            lambda c: c.table("food_items").update({"is_active": active}).eq("id", item_id),
        )

    def delete_item(self, item_id: Any) -> None:
        self._execute(
            "item deletion",
            lambda c: c.table("food_items").delete().eq("id", item_id),
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _get_client(self) -> Any:
        with self._lock:
            if self._client is not None:
                return self._client
            if not (self._url and self._key):
                raise StoreError(STORE_NOT_CONFIGURED)
            if create_client is None:
                raise StoreError(STORE_NOT_CONFIGURED, "supabase is not installed")
            self._client = create_client(self._url, self._key)
            return self._client

    def _execute(self, what: str, build: Callable[[Any], Any]) -> Any:
        client = self._get_client()
        try:
            response = build(client).execute()
        except Exception as exc:
            logger.error("%s failed: %s", what, exc)
            raise self._to_store_error(exc) from exc
        return _response_data(response)

    def _maybe_single(self, what: str, build: Callable[[Any], Any]) -> Optional[dict[str, Any]]:
        data = self._execute(what, lambda c: build(c).maybe_single())
        return data or None

    def _rows(self, what: str, build: Callable[[Any], Any]) -> list[dict[str, Any]]:
        return list(self._execute(what, build) or [])

    def _to_store_error(self, exc: Exception) -> StoreError:
        """Map an SDK/network exception to a store error."""
        message = str(getattr(exc, "message", "") or exc)
        low = message.lower()
        if "timeout" in low or "network" in low or "connection" in low:
            return StoreError(NETWORK_ERROR, message)
        return StoreError(STORE_ERROR, message)
