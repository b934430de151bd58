"""Overlay window for order popups and inline scan messages."""

from __future__ import annotations

from typing import Optional

from models import Popup, PopupKind

try:
    from PySide6.QtCore import Qt, QTimer, Signal
    from PySide6.QtWidgets import QApplication, QLabel, QWidget, QVBoxLayout
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    Signal = lambda *args: None  # type: ignore  # noqa: E731
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

_BASE_STYLE = "font-size: 18px; padding: 16px; border-radius: 12px;"
_POPUP_STYLES = {
    PopupKind.NEW_ORDER: "color: white; background: rgba(22,101,52,215);",
    PopupKind.ERROR: "color: #FF6B6B; background: rgba(0,0,0,210);",
    PopupKind.AVAILABILITY_CHANGE: "color: white; background: rgba(30,64,175,215);",
}
_MESSAGE_STYLE = "color: white; background: rgba(0,0,0,190);"
_ERROR_STYLE = _POPUP_STYLES[PopupKind.ERROR]


class OverlayWindow(QWidget):
    dismissed = Signal()

    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setAttribute(Qt.WA_ShowWithoutActivating, True)
        self.setFixedWidth(420)

        self._popup_label = QLabel("")
        self._popup_label.setWordWrap(True)
        self._popup_label.hide()
        self._message_label = QLabel("")
        self._message_label.setWordWrap(True)
        self._message_label.setStyleSheet(_BASE_STYLE + _MESSAGE_STYLE)
        self._message_label.hide()

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._popup_label)
        layout.addWidget(self._message_label)
        self.setLayout(layout)

        self._hide_timer: Optional[QTimer] = None

    def _top_right(self) -> None:
        """Position the window at the top right of the primary screen."""
        if QApplication is None:
            return
        screen = QApplication.primaryScreen()
        if screen is None:
            return
        geom = screen.availableGeometry()
        self.adjustSize()
        self.move(geom.x() + geom.width() - self.width() - 16, geom.y() + 16)

    def show_popup(self, popup: Optional[Popup]) -> None:
        """Show ``popup``; None hides the popup card."""
        if popup is None:
            self._popup_label.hide()
        else:
            style = _POPUP_STYLES.get(popup.kind, _MESSAGE_STYLE)
            self._popup_label.setStyleSheet(_BASE_STYLE + style)
            self._popup_label.setText(f"<b>{popup.title}</b><br>{popup.message}")
            self._popup_label.show()
        self._refresh()

    def set_message(self, text: str) -> None:
        """Show an inline scan message; an empty string clears it."""
        self._cancel_hide_timer()
        self._message_label.setStyleSheet(_BASE_STYLE + _MESSAGE_STYLE)
        self._show_message(text)

    def show_error(self, text: str, hide_after_ms: int = 3000) -> None:
        self._cancel_hide_timer()
        self._message_label.setStyleSheet(_BASE_STYLE + _ERROR_STYLE)
        self._show_message(f"⚠️ {text}")
        self._schedule_message_reset(hide_after_ms)

    @property
    def showing_error(self) -> bool:
        return not self._message_label.isHidden() and self._message_label.styleSheet().endswith(_ERROR_STYLE)

    def mousePressEvent(self, event) -> None:  # noqa: ANN001, N802
        if not self._popup_label.isHidden():
            self.dismissed.emit()
        super().mousePressEvent(event)

    def _show_message(self, text: str) -> None:
        self._message_label.setText(text)
        self._message_label.setVisible(bool(text))
        self._refresh()

    def _refresh(self) -> None:
        if not (self._popup_label.isHidden() and self._message_label.isHidden()):
            self._top_right()
            self.show()
        else:
            self.hide()

    def _schedule_message_reset(self, delay_ms: int) -> None:
        if QTimer is not None:
            self._hide_timer = QTimer()
            self._hide_timer.setSingleShot(True)
            self._hide_timer.timeout.connect(self._reset_message)
            self._hide_timer.start(delay_ms)

    def _reset_message(self) -> None:
        self._hide_timer = None
        self.set_message("")

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
