"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

from loguru import logger

DEFAULT_SETTINGS: dict[str, Any] = {
    "storage": {"path": str(Path.home() / ".pix" / "store.json")},
    "logging": {"dir": str(Path.home() / ".pix" / "logs"), "level": "INFO"},
    "server": {
        "upload_path": "api/v1/upload-file",
        "delete_path": "api/v1/delete-file",
        "timeout_secs": 60,
    },
}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class JsonSettings:
    """JSON settings reader with dotted-key access over built-in defaults."""

    def __init__(self, settings_path: str | Path | None = None) -> None:
        """Load settings from `settings_path`, falling back to defaults.

        Raises:
            ValueError: If the file exists but is not a JSON object.
        """
        self._path = Path(settings_path) if settings_path else None
        overrides: dict[str, Any] = {}
        if self._path is not None:
            if self._path.exists():
                with self._path.open("r", encoding="utf-8") as f:
                    try:
                        overrides = json.load(f)
                    except ValueError as ex:
                        raise ValueError(f"Invalid settings file {self._path}: {ex}") from ex
                if not isinstance(overrides, dict):
                    raise ValueError(f"Settings file {self._path} is not a JSON object")
            else:
                logger.warning("settings.json not found, using defaults: {}", self._path)
        self._data = _deep_merge(DEFAULT_SETTINGS, overrides)

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        node: Any = self._data
        for part in key.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def path(self, key: str) -> Path:
        """Return dotted `key` as a user-expanded path."""
        return Path(str(self.get(key, ""))).expanduser()
