"""Simple JSON-based config store with environment fallbacks."""

from __future__ import annotations

import json
import os
from pathlib import Path

from scan_decoder import ScanDecoderConfig

CAPTURE_APP = "app"
CAPTURE_GLOBAL = "global"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "canteen_pos" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_supabase_url(self) -> str:
        data = self._read_all()
        return str(data.get("supabase_url") or os.getenv("SUPABASE_URL", ""))

    def get_supabase_key(self) -> str:
        data = self._read_all()
        return str(data.get("supabase_key") or os.getenv("SUPABASE_ANON_KEY", ""))

    def set_supabase(self, url: str, key: str) -> None:
        data = self._read_all()
        data["supabase_url"] = url
        data["supabase_key"] = key
        self._write_all(data)

    def get_app_user_id(self) -> str:
        data = self._read_all()
        return str(data.get("app_user_id") or os.getenv("CANTEEN_APP_USER_ID", ""))

    def get_capture_mode(self) -> str:
        data = self._read_all()
        mode = str(data.get("capture_mode", CAPTURE_APP))
        return mode if mode in (CAPTURE_APP, CAPTURE_GLOBAL) else CAPTURE_APP

    def set_capture_mode(self, mode: str) -> None:
        if mode not in (CAPTURE_APP, CAPTURE_GLOBAL):
            raise ValueError(f"unknown capture mode: {mode}")
        data = self._read_all()
        data["capture_mode"] = mode
        self._write_all(data)

    def get_scanner_config(self) -> ScanDecoderConfig:
        data = self._read_all()
        defaults = ScanDecoderConfig()
        try:
            return ScanDecoderConfig(
                inter_key_reset_ms=int(data.get("inter_key_reset_ms", defaults.inter_key_reset_ms)),
                flush_timeout_ms=int(data.get("flush_timeout_ms", defaults.flush_timeout_ms)),
                terminator_key=str(data.get("terminator_key", defaults.terminator_key)),
            )
        except (TypeError, ValueError):
            return defaults

    def get_notifications_enabled(self) -> bool:
        data = self._read_all()
        return bool(data.get("notifications_enabled", True))

    def set_notifications_enabled(self, enabled: bool) -> None:
        data = self._read_all()
        data["notifications_enabled"] = enabled
        self._write_all(data)

    def get_printer_name(self) -> str:
        data = self._read_all()
        return str(data.get("printer_name", ""))

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            return json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
