"""Pure operations on the date-partitioned media cache.

The cache maps a DateKey to the tuple of entries uploaded on that date, in
upload order. A DateKey is present only while its tuple is non-empty. None of
the functions here mutate their inputs; each returns a new mapping.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from core.models import DateKey, MediaEntry

Cache = dict[DateKey, tuple[MediaEntry, ...]]
DeletionMask = dict[DateKey, tuple[bool, ...]]


class CacheService:
    """Append and filter operations for the media cache."""

    def merge(
        self,
        cache: Mapping[DateKey, tuple[MediaEntry, ...]],
        date_key: DateKey,
        new_entries: Iterable[MediaEntry],
    ) -> Cache:
        """Append `new_entries` under `date_key`.

        Existing entries keep their order and nothing is deduplicated.

        Args:
            cache: Current cache.
            date_key: Partition to append to (created if absent).
            new_entries: Entries in upload order.

        Returns:
            The updated cache.
        """
        added = tuple(new_entries)
        updated: Cache = dict(cache)
        if added:
            updated[date_key] = tuple(cache.get(date_key, ())) + added
        return updated

    def remove(
        self, cache: Mapping[DateKey, tuple[MediaEntry, ...]], keys_to_delete: Iterable[str]
    ) -> tuple[Cache, DeletionMask]:
        """Drop every entry whose server key is in `keys_to_delete`.

        Args:
            cache: Current cache.
            keys_to_delete: Server keys (see `MediaEntry.key`).

        Returns:
            Tuple of (updated cache, keep-mask per input DateKey). Empty
            partitions are dropped from the cache but still appear in the mask.
        """
        doomed = set(keys_to_delete)
        updated: Cache = {}
        mask: DeletionMask = {}
        for date_key, entries in cache.items():
            keep = tuple(entry.key not in doomed for entry in entries)
            mask[date_key] = keep
            survivors = tuple(entry for entry, kept in zip(entries, keep) if kept)
            if survivors:
                updated[date_key] = survivors
        return updated, mask
