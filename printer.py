"""Receipt formatting and printing through Qt's print support."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from errors import ERROR_MESSAGES, PRINTER_UNAVAILABLE
from models import PrintResult

try:
    from PySide6.QtGui import QFont, QTextDocument
    from PySide6.QtPrintSupport import QPrinter, QPrinterInfo
except Exception:  # pragma: no cover
    QFont = None  # type: ignore
    QTextDocument = None  # type: ignore
    QPrinter = None  # type: ignore
    QPrinterInfo = None  # type: ignore

logger = logging.getLogger(__name__)

RECEIPT_WIDTH = 32

TEST_ORDER = {
    "qr_code": "ORD-1234567890123456",
    "item_name": "Veg Biryani",
    "total_amount": 180,
    "order_token": "5678",
    "order_type": False,
}


def order_type_label(order_type: Any) -> str:
    if order_type is True or str(order_type).lower() in ("takeaway", "take-away", "true"):
        return "Takeaway"
    return "Dine In"


def _format_date(value: Optional[str]) -> str:
    if not value:
        return datetime.now().strftime("%Y-%m-%d %H:%M")
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return str(value)


def format_receipt(order: dict[str, Any], title: str = "CANTEEN ORDER") -> str:
    rule = "=" * RECEIPT_WIDTH
    total = order.get("total_amount")
    lines = [
        rule,
        title.center(RECEIPT_WIDTH).rstrip(),
        rule,
        f"Token: #{order.get('order_token') or 'N/A'}",
        f"Item:  {order.get('item_name') or 'Order Items'}",
        f"Type:  {order_type_label(order.get('order_type'))}",
        f"Total: ₹{total if total is not None else '-'}",
        f"Date:  {_format_date(order.get('created_at'))}",
    ]
    if order.get("qr_code"):
        lines.append(f"Code:  {order['qr_code']}")
    lines += ["-" * RECEIPT_WIDTH, "Show this token at the counter".center(RECEIPT_WIDTH).rstrip(), rule]
    return "\n".join(lines)


class QtReceiptPrinter:
    def __init__(self, printer_name: Optional[str] = None) -> None:
        self._printer_name = printer_name or None

    def status(self) -> dict[str, Any]:
        if QPrinterInfo is None:
            return {"connected": False, "method": "qt", "ready": False, "printer": None}
        names = [info.printerName() for info in QPrinterInfo.availablePrinters()]
        name = self._printer_name or QPrinterInfo.defaultPrinterName() or None
        return {"connected": bool(names), "method": "qt", "ready": name in names, "printer": name}

    def print_order(self, order: dict[str, Any]) -> PrintResult:
        if QPrinter is None or QTextDocument is None:
            return PrintResult(success=False, error="PySide6 is not installed")

        printer = QPrinter()
        if self._printer_name:
            printer.setPrinterName(self._printer_name)
        if not printer.isValid():
            logger.warning("no valid printer for receipt %s", order.get("order_token"))
            return PrintResult(success=False, error=ERROR_MESSAGES[PRINTER_UNAVAILABLE])

        document = QTextDocument()
        document.setDefaultFont(QFont("Courier", 9))
        document.setPlainText(format_receipt(order))
        try:
            document.print_(printer)
        except Exception as exc:
            logger.error("receipt print failed: %s", exc)
            return PrintResult(success=False, error=str(exc))
        logger.info("printed receipt for token %s", order.get("order_token"))
        return PrintResult(success=True)

    def print_test(self) -> PrintResult:
        return self.print_order(dict(TEST_ORDER))
