"""Protocol interfaces used by the scanning and notification services."""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

from models import KeyEvent, PrintResult

Clock = Callable[[], int]
KeyCallback = Callable[[KeyEvent], bool]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...


class KeySource(Protocol):
    def attach(self, callback: KeyCallback) -> None: ...

    def detach(self) -> None: ...


class SoundPlayer(Protocol):
    def play_notification(self) -> None: ...


class OrderStore(Protocol):
    def find_order_by_code(self, code: str) -> Optional[dict[str, Any]]: ...

    def update_order_status(self, order_id: Any, new_status: str) -> None: ...


class ReceiptPrinter(Protocol):
    def print_order(self, order: dict[str, Any]) -> PrintResult: ...


class ConfigStore(Protocol):
    def get_supabase_url(self) -> str: ...

    def get_supabase_key(self) -> str: ...

    def get_capture_mode(self) -> str: ...

    def set_capture_mode(self, mode: str) -> None: ...
