"""Application entrypoint."""

from __future__ import annotations

import logging
import os
import sys
import threading
from typing import Any, Callable, Optional

from canteen_status import CanteenStatusService
from config import CAPTURE_GLOBAL, JsonConfigStore
from errors import StoreError
from inventory import InventoryService
from key_sources import GlobalKeySource, QtKeySource
from models import CanteenState, Popup, display_status
from notifier import OrderNotifier
from order_scanner import OrderScanController
from order_store import SupabaseOrderStore
from overlay import OverlayWindow
from printer import QtReceiptPrinter, order_type_label
from realtime_feed import OrderInsertFeed, PendingOrderPoller, is_counter_order
from scan_decoder import ScanDecoder
from sound import AlertSoundService

try:
    from PySide6.QtCore import QObject, Signal, QSize
    from PySide6.QtGui import QAction, QIcon, QPixmap, QPainter, QColor, QBrush
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the station app: {exc}")

logger = logging.getLogger(__name__)


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))  # transparent background
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_CLOSED = "#888888"  # grey
ICON_OPEN = "#22AA55"    # green
ICON_ERROR = "#FF8800"   # orange


def configure_logging() -> None:
    level = os.getenv("CANTEEN_POS_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class UIBridge(QObject):
    popup_signal = Signal(object)
    message_signal = Signal(str)
    order_signal = Signal(object)
    canteen_signal = Signal(str)
    error_signal = Signal(str)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        self.overlay = OverlayWindow()
        self.ui = UIBridge()
        self.ui.popup_signal.connect(self._on_popup_ui)
        self.ui.message_signal.connect(self.overlay.set_message)
        self.ui.order_signal.connect(self._on_order_ui)
        self.ui.canteen_signal.connect(self._on_canteen_ui)
        self.ui.error_signal.connect(self._on_error_ui)

        url = self.config_store.get_supabase_url()
        key = self.config_store.get_supabase_key()
        self.app_user_id = self.config_store.get_app_user_id()

        self.sound = AlertSoundService()
        self.store = SupabaseOrderStore(url, key)
        self.notifier = OrderNotifier(
            sound=self.sound,
            on_popup=self.ui.popup_signal.emit,
            enabled=self.config_store.get_notifications_enabled(),
        )
        self.overlay.dismissed.connect(self.notifier.dismiss_popup)
        self.scanner = OrderScanController(
            store=self.store,
            sound=self.sound,
            on_order=self.ui.order_signal.emit,
            on_message=self.ui.message_signal.emit,
        )
        self.canteen = CanteenStatusService(
            self.store,
            on_change=lambda state: self.ui.canteen_signal.emit(state.value),
        )
        self.inventory = InventoryService(self.store)
        self.printer = QtReceiptPrinter(self.config_store.get_printer_name())

        if self.config_store.get_capture_mode() == CAPTURE_GLOBAL:
            source: Any = GlobalKeySource()
        else:
            source = QtKeySource()
        self.decoder = ScanDecoder(
            on_scan=self._on_scan,
            source=source,
            config=self.config_store.get_scanner_config(),
        )
        self.feed = OrderInsertFeed(url, key, on_insert=self._on_order_inserted)
        self.poller = PendingOrderPoller(
            self.store,
            on_new_order=self.notifier.notify_order,
            app_user_id=self.app_user_id,
        )

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_CLOSED))
        self.tray.setToolTip("Canteen POS — Closed")
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        self.canteen_action = QAction("Canteen Open", menu)
        self.canteen_action.setCheckable(True)
        self.canteen_action.triggered.connect(self._toggle_canteen)
        menu.addAction(self.canteen_action)

        self.notify_action = QAction("Order Notifications", menu)
        self.notify_action.setCheckable(True)
        self.notify_action.setChecked(self.notifier.enabled)
        self.notify_action.triggered.connect(self._toggle_notifications)
        menu.addAction(self.notify_action)

        self.scanner_action = QAction("Barcode Scanner", menu)
        self.scanner_action.setCheckable(True)
        self.scanner_action.triggered.connect(self._toggle_scanner)
        menu.addAction(self.scanner_action)

        menu.addSeparator()
        ready_action = QAction("Mark Items Ready…", menu)
        ready_action.triggered.connect(self._mark_items_ready)
        menu.addAction(ready_action)

        restore_action = QAction("Restore Removed Item…", menu)
        restore_action.triggered.connect(self._restore_item)
        menu.addAction(restore_action)

        remove_action = QAction("Remove Item…", menu)
        remove_action.triggered.connect(self._remove_item)
        menu.addAction(remove_action)

        delete_action = QAction("Delete Removed Item…", menu)
        delete_action.triggered.connect(self._delete_item)
        menu.addAction(delete_action)

        menu.addSeparator()
        sound_menu = menu.addMenu("Test Sound")
        sound_menu.addAction("Chime").triggered.connect(lambda: self.sound.play_notification())
        sound_menu.addAction("Beep").triggered.connect(lambda: self.sound.play_beep())
        sound_menu.addAction("Double Beep").triggered.connect(lambda: self.sound.play_double_beep())

        print_action = QAction("Print Test Receipt", menu)
        print_action.triggered.connect(self._print_test)
        menu.addAction(print_action)

        recent_action = QAction("Print Recent Order…", menu)
        recent_action.triggered.connect(self._print_recent_order)
        menu.addAction(recent_action)

        printer_action = QAction("Printer Status", menu)
        printer_action.triggered.connect(self._show_printer_status)
        menu.addAction(printer_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    # ------------------------------------------------------------------
    # Callbacks (called from worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_scan(self, payload: str) -> None:
        self._in_background(self.scanner.process_scan, payload)

    def _on_order_inserted(self, record: dict[str, Any]) -> None:
        if is_counter_order(record, self.app_user_id):
            self.notifier.notify_order(record)
        else:
            logger.debug("realtime insert filtered out: %s", record.get("id"))

    def _in_background(self, target: Callable[..., Any], *args: Any) -> None:
        def run() -> None:
            try:
                target(*args)
            except StoreError as exc:
                self.ui.error_signal.emit(exc.message)

        threading.Thread(target=run, daemon=True).start()

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_popup_ui(self, popup: Optional[Popup]) -> None:
        self.overlay.show_popup(popup)

    def _on_error_ui(self, msg: str) -> None:
        self.tray.setIcon(_create_icon(ICON_ERROR))
        self.overlay.show_error(msg)

    def _on_canteen_ui(self, state: str) -> None:
        is_open = state == CanteenState.OPEN.value
        self.canteen_action.setChecked(is_open)
        self.tray.setIcon(_create_icon(ICON_OPEN if is_open else ICON_CLOSED))
        self.tray.setToolTip(f"Canteen POS — {'Open' if is_open else 'Closed'}")

    def _on_order_ui(self, order: Optional[dict[str, Any]]) -> None:
        if not order:
            return
        total = order.get("total_amount")
        box = QMessageBox()
        box.setWindowTitle("Order Ready")
        box.setText(
            f"<h2>#{order.get('order_token') or 'N/A'}</h2>"
            f"<p>{order.get('item_name') or 'Order Items'}</p>"
            f"<p>Total: ₹{total if total is not None else '-'} · "
            f"{order_type_label(order.get('order_type'))} · {display_status(order.get('status'))}</p>"
        )
        deliver = box.addButton("Mark Delivered", QMessageBox.AcceptRole)
        cancel = box.addButton("Cancel Order", QMessageBox.DestructiveRole)
        print_button = box.addButton("Print Receipt", QMessageBox.ActionRole)
        box.addButton("Close", QMessageBox.RejectRole)
        box.exec()

        clicked = box.clickedButton()
        if clicked is deliver:
            self._in_background(self.scanner.mark_delivered)
        elif clicked is cancel:
            answer = QMessageBox.question(None, "Cancel Order", "Are you sure you want to cancel this order?")
            if answer == QMessageBox.Yes:
                self._in_background(self.scanner.cancel_order)
            else:
                self._on_order_ui(order)
        elif clicked is print_button:
            result = self.printer.print_order(order)
            if not result.success:
                self.overlay.show_error(f"Print failed: {result.error}")
            self._on_order_ui(order)
        else:
            self.scanner.close_order()

    # ------------------------------------------------------------------
    # Menu handlers
    # ------------------------------------------------------------------

    def _toggle_canteen(self) -> None:
        self._in_background(self.canteen.toggle)

    def _toggle_notifications(self) -> None:
        enabled = self.notifier.toggle()
        self.config_store.set_notifications_enabled(enabled)
        self.notify_action.setChecked(enabled)

    def _toggle_scanner(self, checked: bool) -> None:
        if not checked:
            self.decoder.disable()
            return
        try:
            self.decoder.enable()
        except RuntimeError as exc:
            self.scanner_action.setChecked(False)
            self.overlay.show_error(f"Scanner disabled: {exc}")

    def _mark_items_ready(self) -> None:
        try:
            items = [item for item in self.inventory.load_items() if item.pending_count > 0]
        except StoreError as exc:
            self.overlay.show_error(exc.message)
            return
        if not items:
            self.overlay.set_message("No pending items")
            return

        labels = [f"{item.name} ({item.pending_count} pending)" for item in items]
        label, ok = QInputDialog.getItem(None, "Mark Ready", "Item", labels, 0, False)
        if not ok:
            return
        item = items[labels.index(label)]
        count, ok = QInputDialog.getInt(None, "Mark Ready", f"How many {item.name}?", 1, 1, item.pending_count)
        if not ok:
            return
        try:
            self.overlay.set_message(self.inventory.mark_ready(item, count))
        except (StoreError, ValueError) as exc:
            self.overlay.show_error(str(exc))

    def _restore_item(self) -> None:
        try:
            removed = self.inventory.removed_items()
        except StoreError as exc:
            self.overlay.show_error(exc.message)
            return
        if not removed:
            self.overlay.set_message("No removed items found")
            return

        labels = [item.name for item in removed]
        label, ok = QInputDialog.getItem(None, "Restore Item", "Item", labels, 0, False)
        if not ok:
            return
        try:
            self.overlay.set_message(self.inventory.restore_item(removed[labels.index(label)]))
        except StoreError as exc:
            self.overlay.show_error(exc.message)

    def _remove_item(self) -> None:
        try:
            items = self.inventory.load_items()
        except StoreError as exc:
            self.overlay.show_error(exc.message)
            return
        if not items:
            self.overlay.set_message("No active items")
            return

        labels = [item.name for item in items]
        label, ok = QInputDialog.getItem(None, "Remove Item", "Item", labels, 0, False)
        if not ok:
            return
        try:
            self.overlay.set_message(self.inventory.remove_item(items[labels.index(label)]))
        except StoreError as exc:
            self.overlay.show_error(exc.message)

    def _delete_item(self) -> None:
        try:
            removed = self.inventory.removed_items()
        except StoreError as exc:
            self.overlay.show_error(exc.message)
            return
        if not removed:
            self.overlay.set_message("No removed items found")
            return

        labels = [item.name for item in removed]
        label, ok = QInputDialog.getItem(None, "Delete Item", "Item", labels, 0, False)
        if not ok:
            return
        item = removed[labels.index(label)]
        answer = QMessageBox.question(
            None,
            "Delete Item",
            f"Permanently delete {item.name}? This cannot be undone.",
        )
        if answer != QMessageBox.Yes:
            return
        try:
            self.overlay.set_message(self.inventory.delete_item(item))
        except StoreError as exc:
            self.overlay.show_error(exc.message)

    def _print_test(self) -> None:
        result = self.printer.print_test()
        if result.success:
            QMessageBox.information(None, "Printer", "Test print sent.")
        else:
            QMessageBox.warning(None, "Printer", f"Test print failed: {result.error}")

    def _print_recent_order(self) -> None:
        try:
            orders = self.store.fetch_recent_orders()
        except StoreError as exc:
            self.overlay.show_error(exc.message)
            return
        if not orders:
            QMessageBox.information(None, "Printer", "No recent orders to print.")
            return

        labels = [f"#{o.get('order_token') or 'N/A'} {o.get('item_name') or 'Order Items'}" for o in orders]
        label, ok = QInputDialog.getItem(None, "Print Recent Order", "Order", labels, 0, False)
        if not ok:
            return
        result = self.printer.print_order(orders[labels.index(label)])
        if not result.success:
            QMessageBox.warning(None, "Printer", f"Print failed: {result.error}")

    def _show_printer_status(self) -> None:
        status = self.printer.status()
        if status["ready"]:
            text = f"Ready: {status['printer']}"
        elif status["connected"]:
            text = f"Printer {status['printer'] or '(none selected)'} is not available."
        else:
            text = "No printers found."
        QMessageBox.information(None, "Printer Status", text)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.scanner_action.setChecked(True)
        self._toggle_scanner(True)
        self._in_background(self.canteen.fetch)
        try:
            self.feed.start()
        except RuntimeError as exc:
            logger.warning("realtime feed disabled: %s", exc)
        self.poller.start()
        return self.app.exec()

    def quit(self) -> None:
        self.decoder.close()
        self.poller.stop()
        self.feed.stop()
        self.notifier.close()
        self.scanner.close()
        self.sound.close()
        self.app.quit()


def main() -> int:
    configure_logging()
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
