"""Key press sources that feed the scan decoder.

``QtKeySource`` listens inside the station window and knows which widget has
focus.  ``GlobalKeySource`` hooks the whole desktop through pynput for
stations where the scanner must work while another window is in front.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional

from interfaces import Clock, KeyCallback
from models import KeyEvent
from scan_decoder import TEXT_ENTRY_WIDGETS
from scheduler import now_ms

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

try:
    from PySide6.QtCore import QEvent, QObject, Qt
    from PySide6.QtGui import QWindow
    from PySide6.QtWidgets import QApplication
except Exception:  # pragma: no cover
    QEvent = None  # type: ignore
    QObject = object  # type: ignore
    Qt = None  # type: ignore
    QWindow = None  # type: ignore
    QApplication = None  # type: ignore

_NAMED_KEYS = {
    "enter": "Enter",
    "tab": "Tab",
    "esc": "Escape",
    "space": " ",
    "backspace": "Backspace",
}
_MODIFIERS = ("alt", "ctrl", "cmd")


def _modifier_of(name: str) -> Optional[str]:
    for modifier in _MODIFIERS:
        if name == modifier or name.startswith(modifier + "_"):
            return modifier
    return None


def pynput_key_name(key: object) -> str:
    """Name a pynput key the way the decoder expects (char or named key)."""
    char = getattr(key, "char", None)
    if char:
        return char
    name = getattr(key, "name", None)
    if not name:
        return "Unidentified"
    return _NAMED_KEYS.get(name, name.split("_")[0].capitalize())


class GlobalKeySource:
    """System-wide capture through a pynput listener.

    The callback's "consumed" verdict is not acted on: pynput cannot swallow
    a single key portably, so the terminator also reaches the foreground
    window.  A False return from a pynput handler stops the listener, hence
    ``_on_press`` never returns the callback's result.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or now_ms
        self._listener: Optional[Any] = None
        self._callback: Optional[KeyCallback] = None
        self._held: set[str] = set()
        self._lock = threading.Lock()

    def attach(self, callback: KeyCallback) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        self.detach()
        self._callback = callback
        self._listener = keyboard.Listener(on_press=self._on_press, on_release=self._on_release)
        self._listener.start()

    def detach(self) -> None:
        listener = self._listener
        self._listener = None
        self._callback = None
        with self._lock:
            self._held.clear()
        if listener is not None:
            listener.stop()

    def _on_press(self, key: object) -> None:
        modifier = _modifier_of(getattr(key, "name", "") or "")
        with self._lock:
            if modifier:
                self._held.add(modifier)
            held = set(self._held)
        callback = self._callback
        if callback is None:
            return
        callback(
            KeyEvent(
                key=pynput_key_name(key),
                timestamp_ms=self._clock(),
                alt="alt" in held,
                ctrl="ctrl" in held,
                meta="cmd" in held,
            )
        )

    def _on_release(self, key: object) -> None:
        modifier = _modifier_of(getattr(key, "name", "") or "")
        if modifier:
            with self._lock:
                self._held.discard(modifier)


def widget_class_name(widget: Any) -> Optional[str]:
    """Nearest text-entry Qt class of ``widget``, else its own class name."""
    if widget is None:
        return None
    meta = widget.metaObject()
    own = meta.className()
    while meta is not None:
        name = meta.className()
        if name in TEXT_ENTRY_WIDGETS:
            return name
        meta = meta.superClass()
    return own


class QtKeySource(QObject):
    """Application-wide event filter; a consumed key never reaches a widget."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self._clock = clock or now_ms
        self._callback: Optional[KeyCallback] = None

    def attach(self, callback: KeyCallback) -> None:
        self._callback = callback
        QApplication.instance().installEventFilter(self)

    def detach(self) -> None:
        self._callback = None
        app = QApplication.instance()
        if app is not None:
            app.removeEventFilter(self)

    def eventFilter(self, watched: Any, event: Any) -> bool:  # noqa: N802
        # Key presses reach the top-level QWindow once before the focus widget.
        if event.type() != QEvent.Type.KeyPress or not isinstance(watched, QWindow):
            return False
        callback: Optional[Callable[[KeyEvent], bool]] = self._callback
        if callback is None:
            return False

        if event.key() in (Qt.Key.Key_Return, Qt.Key.Key_Enter):
            name = "Enter"
        elif len(event.text()) == 1 and event.text().isprintable():
            name = event.text()
        else:
            name = "Unidentified"

        mods = event.modifiers()
        key_event = KeyEvent(
            key=name,
            timestamp_ms=self._clock(),
            alt=bool(mods & Qt.KeyboardModifier.AltModifier),
            ctrl=bool(mods & Qt.KeyboardModifier.ControlModifier),
            meta=bool(mods & Qt.KeyboardModifier.MetaModifier),
            target=widget_class_name(QApplication.focusWidget()),
        )
        return bool(callback(key_event))
