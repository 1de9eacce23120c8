"""Immutable media library: cached entries paired with their selection flag.

`MediaLibrary` keeps one tuple of `LibraryItem` per date, so an entry and its
selection flag can never drift apart. The cache and selection views required by
persistence and by the selection service are projections built on demand.
Every operation returns a new library.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field

from core.models import DateKey, LibraryItem, MediaEntry
from core.services.cache_service import Cache, CacheService, DeletionMask
from core.services.selection_service import SelectionService, SelectionState

_cache_service = CacheService()
_selection_service = SelectionService()


@dataclass(frozen=True)
class MediaLibrary:
    """Date-partitioned entries with per-entry selection.

    Build instances with `empty()` or `from_state()`; both route through
    selection reconciliation.
    """

    groups: Mapping[DateKey, tuple[LibraryItem, ...]] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> MediaLibrary:
        return cls()

    @classmethod
    def from_state(
        cls,
        cache: Mapping[DateKey, tuple[MediaEntry, ...]],
        selection: Mapping[DateKey, tuple[bool, ...]] | None = None,
        mask: DeletionMask | None = None,
    ) -> MediaLibrary:
        """Pair a cache with a selection, realigning the selection first."""
        aligned = _selection_service.reconcile(cache, selection or {}, mask)
        groups = {
            date_key: tuple(
                LibraryItem(entry=entry, selected=flag)
                for entry, flag in zip(entries, aligned[date_key])
            )
            for date_key, entries in cache.items()
            if entries
        }
        return cls(groups=groups)

    @property
    def cache(self) -> Cache:
        """Projection of the cached entries per date."""
        return {d: tuple(item.entry for item in items) for d, items in self.groups.items()}

    @property
    def selection(self) -> SelectionState:
        """Projection of the selection flags per date."""
        return {d: tuple(item.selected for item in items) for d, items in self.groups.items()}

    @property
    def date_keys(self) -> list[DateKey]:
        return list(self.groups)

    @property
    def selected_count(self) -> int:
        return _selection_service.count_selected(self.selection)

    def __len__(self) -> int:
        return sum(len(items) for items in self.groups.values())

    def __iter__(self) -> Iterator[tuple[DateKey, tuple[LibraryItem, ...]]]:
        return iter(self.groups.items())

    def merge(self, date_key: DateKey, entries: Iterable[MediaEntry]) -> MediaLibrary:
        """Append entries under `date_key`; new entries start unselected."""
        cache = _cache_service.merge(self.cache, date_key, entries)
        return MediaLibrary.from_state(cache, self.selection)

    def remove(self, keys: Iterable[str]) -> tuple[MediaLibrary, DeletionMask]:
        """Remove entries by server key, keeping survivors' selection flags."""
        cache, mask = _cache_service.remove(self.cache, keys)
        return MediaLibrary.from_state(cache, self.selection, mask), mask

    def toggle_entry(self, date_key: DateKey, index: int) -> MediaLibrary:
        selection = _selection_service.toggle_entry(self.selection, date_key, index)
        return MediaLibrary.from_state(self.cache, selection)

    def toggle_date(self, date_key: DateKey) -> MediaLibrary:
        selection = _selection_service.toggle_date(self.selection, date_key)
        return MediaLibrary.from_state(self.cache, selection)

    def clear_selection(self) -> MediaLibrary:
        return MediaLibrary.from_state(self.cache, _selection_service.clear(self.selection))

    def is_date_selected(self, date_key: DateKey) -> bool:
        return _selection_service.is_date_selected(self.selection, date_key)

    def selected_entries(self) -> list[MediaEntry]:
        """Entries currently selected, in date then position order."""
        return _selection_service.selected_entries(self.cache, self.selection)
