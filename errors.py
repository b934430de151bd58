"""Shared error codes and user-facing messages."""

from __future__ import annotations

STORE_NOT_CONFIGURED = "STORE_NOT_CONFIGURED"
NETWORK_ERROR = "NETWORK_ERROR"
STORE_ERROR = "STORE_ERROR"
ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
INVALID_SCAN = "INVALID_SCAN"
SCANNER_BUSY = "SCANNER_BUSY"
PRINTER_UNAVAILABLE = "PRINTER_UNAVAILABLE"

ERROR_MESSAGES = {
    STORE_NOT_CONFIGURED: "Supabase is not configured (URL or key missing).",
    NETWORK_ERROR: "Network failed, please retry.",
    STORE_ERROR: "The order service rejected the request.",
    ORDER_NOT_FOUND: "Order not found",
    INVALID_SCAN: "Invalid barcode",
    SCANNER_BUSY: "Finish current order first",
    PRINTER_UNAVAILABLE: "No printer available.",
}


class StoreError(Exception):
    """Raised by the order store when the remote service fails."""

    def __init__(self, code: str, message: str = "") -> None:
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, code)
        super().__init__(self.message)
