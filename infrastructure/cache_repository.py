"""JSON persistence for the date-partitioned media cache.

The cache is stored as one record of the key-value store, using the layout
`{"YYYY-MM-DD": [{"uri": ..., "type": "image" | "video"}, ...]}`. Loading is
lenient: a missing or unreadable record yields an empty cache and malformed
entries are skipped, so a damaged store never blocks startup.
"""

from __future__ import annotations

from collections.abc import Mapping
import json
from typing import Any

from loguru import logger

from core.errors import PersistenceFailure
from core.models import DateKey, MediaEntry, MediaKind

UPLOADED_FILES_KEY = "uploaded_files"


def _parse_entry(raw: Any) -> MediaEntry:
    """Build a `MediaEntry` from a stored row.

    The stored `type` is trusted; the kind is only derived from the locator
    when a row has none.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"entry is not an object: {raw!r}")
    uri = raw["uri"]
    if not isinstance(uri, str) or not uri:
        raise ValueError(f"invalid uri: {uri!r}")
    kind_value = raw.get("type")
    kind = MediaKind(kind_value) if kind_value is not None else MediaKind.from_locator(uri)
    return MediaEntry(uri=uri, kind=kind)


def _entry_row(entry: MediaEntry) -> dict[str, str]:
    return {"uri": entry.uri, "type": entry.kind.value}


class JsonCacheRepository:
    """Load and save the media cache through a key-value store."""

    def __init__(self, store, key: str = UPLOADED_FILES_KEY) -> None:
        """Create a repository.

        Args:
            store: Key-value store with `get(key)` and `set(key, value)`.
            key: Record name holding the serialized cache.
        """
        self._store = store
        self._key = key

    def load(self) -> dict[DateKey, tuple[MediaEntry, ...]]:
        """Return the persisted cache, or an empty cache if absent or malformed."""
        try:
            raw = self._store.get(self._key)
        except PersistenceFailure as ex:
            logger.warning("Reading cache failed, starting empty: {}", ex)
            return {}
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError as ex:
            logger.warning("Stored cache is not valid JSON, starting empty: {}", ex)
            return {}
        if not isinstance(data, dict):
            logger.warning("Stored cache is not an object, starting empty")
            return {}

        cache: dict[DateKey, tuple[MediaEntry, ...]] = {}
        for date_key, rows in data.items():
            if not isinstance(rows, list):
                logger.error("Cache rows for {} are not a list: {}", date_key, rows)
                continue
            entries: list[MediaEntry] = []
            for row in rows:
                try:
                    entries.append(_parse_entry(row))
                except (ValueError, KeyError, TypeError) as ex:
                    logger.error("Cache row error: {} | date={} row={}", ex, date_key, row)
            if entries:
                cache[str(date_key)] = tuple(entries)
        logger.info("Loaded cache: {} dates", len(cache))
        return cache

    def save(self, cache: Mapping[DateKey, tuple[MediaEntry, ...]]) -> None:
        """Serialize and write `cache`.

        Raises:
            PersistenceFailure: If the store cannot be written.
        """
        payload = {
            date_key: [_entry_row(entry) for entry in entries]
            for date_key, entries in cache.items()
            if entries
        }
        self._store.set(self._key, json.dumps(payload, ensure_ascii=False))
        logger.debug("Saved cache: {} dates", len(payload))
