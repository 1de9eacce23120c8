"""JSON-file key-value store for scalar strings and serialized blobs.

All records live in one JSON object on disk. Writes go to a temporary file
next to the target and are moved into place, so a crash mid-write leaves the
previous contents intact.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
import tempfile

from loguru import logger

from core.errors import PersistenceFailure


class JsonKeyValueStore:
    """Durable string records keyed by name."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as ex:
            raise PersistenceFailure(f"Cannot read store {self._path}: {ex}") from ex
        if not isinstance(data, dict):
            raise PersistenceFailure(f"Store {self._path} does not contain a JSON object")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=".store_", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False, indent=2)
                os.replace(tmp, self._path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as ex:
            raise PersistenceFailure(f"Cannot write store {self._path}: {ex}") from ex

    def _move_aside(self, reason: PersistenceFailure) -> None:
        backup = self._path.with_name(self._path.name + ".bak")
        try:
            os.replace(self._path, backup)
        except OSError as ex:
            raise PersistenceFailure(
                f"Cannot move unreadable store {self._path} aside: {ex}"
            ) from ex
        logger.warning("Unreadable store moved to {}: {}", backup, reason)

    def get(self, key: str) -> str | None:
        """Return the record stored under `key`, or None.

        Raises:
            PersistenceFailure: If the store file exists but cannot be read.
        """
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        """Store `value` under `key`.

        An unreadable store file is moved aside to `<name>.bak` and a fresh
        store is started.

        Raises:
            PersistenceFailure: If the store cannot be written.
        """
        try:
            data = self._read_all()
        except PersistenceFailure as ex:
            self._move_aside(ex)
            data = {}
        data[key] = value
        self._write_all(data)

    def remove(self, key: str) -> None:
        """Delete the record stored under `key`, if any."""
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._write_all(data)
