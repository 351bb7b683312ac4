"""Simple JSON-based config store with environment fallbacks for API keys."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "talk2text"

DEFAULTS: dict[str, Any] = {
    "backend": "openai",
    "polisher": "openai",
    "hotkey": "Key.f9",
    "language": None,
    "active_preset": None,
}


def env_key_name(backend: str) -> str:
    return backend.upper().replace("-", "_") + "_API_KEY"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or DEFAULT_CONFIG_DIR / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def config_dir(self) -> Path:
        return self._path.parent

    def get_backend(self) -> str:
        return str(self._get("backend"))

    def set_backend(self, name: str) -> None:
        self._set("backend", name)

    def get_api_key(self, backend: str) -> str:
        keys = self._read_all().get("api_keys") or {}
        key = keys.get(backend, "") if isinstance(keys, dict) else ""
        return str(key or os.getenv(env_key_name(backend), ""))

    def set_api_key(self, backend: str, key: str) -> None:
        data = self._read_all()
        keys = data.get("api_keys")
        if not isinstance(keys, dict):
            keys = {}
        keys[backend] = key
        data["api_keys"] = keys
        self._write_all(data)

    def get_language(self) -> Optional[str]:
        return self._get("language") or None

    def set_language(self, language: Optional[str]) -> None:
        self._set("language", language or None)

    def get_active_preset(self) -> Optional[str]:
        return self._get("active_preset") or None

    def set_active_preset(self, name: Optional[str]) -> None:
        self._set("active_preset", name or None)

    def get_polisher(self) -> str:
        return str(self._get("polisher"))

    def set_polisher(self, name: str) -> None:
        self._set("polisher", name)

    def get_hotkey(self) -> str:
        return str(self._get("hotkey"))

    def set_hotkey(self, hotkey: str) -> None:
        self._set("hotkey", hotkey)

    def as_dict(self, redact: bool = True) -> dict[str, Any]:
        data = dict(DEFAULTS)
        data.update(self._read_all())
        if redact and isinstance(data.get("api_keys"), dict):
            data["api_keys"] = {name: "***" if key else "" for name, key in data["api_keys"].items()}
        return data

    def _get(self, name: str) -> Any:
        return self._read_all().get(name, DEFAULTS.get(name))

    def _set(self, name: str, value: Any) -> None:
        data = self._read_all()
        data[name] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
