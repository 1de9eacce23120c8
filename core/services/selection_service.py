"""Selection tracking decoupled from any UI toolkit.

Selection is a mapping from DateKey to a tuple of booleans aligned by
position with the cache tuple for the same DateKey. The service never mutates
its inputs; every operation returns a new mapping.
"""

from __future__ import annotations

from collections.abc import Mapping

from loguru import logger

from core.errors import InvariantViolation
from core.models import DateKey, MediaEntry
from core.services.cache_service import DeletionMask

SelectionState = dict[DateKey, tuple[bool, ...]]


class SelectionService:
    """Toggle, count, join and realign selection rows."""

    def toggle_entry(
        self, selection: Mapping[DateKey, tuple[bool, ...]], date_key: DateKey, index: int
    ) -> SelectionState:
        """Flip the selection flag of one entry.

        Raises:
            InvariantViolation: If `date_key` or `index` does not exist.
        """
        row = selection.get(date_key)
        if row is None or not 0 <= index < len(row):
            raise InvariantViolation(f"No entry at {date_key}[{index}]")
        updated = dict(selection)
        updated[date_key] = row[:index] + (not row[index],) + row[index + 1 :]
        return updated

    def toggle_date(
        self, selection: Mapping[DateKey, tuple[bool, ...]], date_key: DateKey
    ) -> SelectionState:
        """Select every entry under `date_key`, or clear them if all are selected.

        A partially selected date always becomes fully selected.
        """
        row = selection.get(date_key)
        if row is None:
            raise InvariantViolation(f"Unknown date: {date_key}")
        target = not all(row)
        updated = dict(selection)
        updated[date_key] = (target,) * len(row)
        return updated

    def is_date_selected(
        self, selection: Mapping[DateKey, tuple[bool, ...]], date_key: DateKey
    ) -> bool:
        """True if `date_key` has entries and all of them are selected."""
        row = selection.get(date_key, ())
        return bool(row) and all(row)

    def count_selected(self, selection: Mapping[DateKey, tuple[bool, ...]]) -> int:
        """Number of selected entries across all dates."""
        return sum(sum(1 for flag in row if flag) for row in selection.values())

    def clear(self, selection: Mapping[DateKey, tuple[bool, ...]]) -> SelectionState:
        """Return the same rows with every flag cleared."""
        return {date_key: (False,) * len(row) for date_key, row in selection.items()}

    def reconcile(
        self,
        cache: Mapping[DateKey, tuple[MediaEntry, ...]],
        selection: Mapping[DateKey, tuple[bool, ...]],
        mask: DeletionMask | None = None,
    ) -> SelectionState:
        """Realign selection rows with the cache after a mutation.

        The deletion mask (if any) is applied first, using the same per-date
        filter the cache removal used. Rows for dates no longer cached are
        dropped and rows shorter than their cache tuple are padded with
        unselected flags, so new dates start all-false. A row longer than its
        cache tuple cannot be repaired positionally and is reset from the
        cache length.

        Args:
            cache: Cache after the mutation.
            selection: Selection before the mutation.
            mask: Keep-mask returned by `CacheService.remove`, if a removal ran.

        Returns:
            A selection with exactly one row per cached date, of equal length.
        """
        result: SelectionState = {}
        for date_key, entries in cache.items():
            row = tuple(selection.get(date_key, ()))
            if mask is not None and date_key in mask:
                keep = mask[date_key]
                if len(keep) == len(row):
                    row = tuple(flag for flag, kept in zip(row, keep) if kept)
            size = len(entries)
            if len(row) > size:
                logger.error(
                    "Selection row for {} has {} flags but {} entries; resetting",
                    date_key,
                    len(row),
                    size,
                )
                row = ()
            result[date_key] = row + (False,) * (size - len(row))
        return result

    def selected_entries(
        self,
        cache: Mapping[DateKey, tuple[MediaEntry, ...]],
        selection: Mapping[DateKey, tuple[bool, ...]],
    ) -> list[MediaEntry]:
        """Join cache and selection into the currently selected entries.

        Iterates dates in selection order and keeps `cache[date][i]` wherever
        `selection[date][i]` is set. Recomputed on every call.
        """
        picked: list[MediaEntry] = []
        for date_key, row in selection.items():
            entries = cache.get(date_key, ())
            if len(entries) != len(row):
                raise InvariantViolation(
                    f"Selection for {date_key} has {len(row)} flags, cache has {len(entries)}"
                )
            picked.extend(entry for entry, flag in zip(entries, row) if flag)
        return picked
