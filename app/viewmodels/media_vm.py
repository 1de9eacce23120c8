"""Lightweight view model wrapper around `LibraryItem`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import unquote, urlsplit

from core.models import LibraryItem


@dataclass
class MediaItemVM:
    """Expose convenient properties for bindings/templates."""

    date_key: str
    index: int
    item: LibraryItem

    @property
    def uri(self) -> str:
        """Locator the thumbnail or player loads from."""
        return self.item.entry.uri

    @property
    def file_name(self) -> str:
        """Decoded last path segment of the locator."""
        return unquote(PurePosixPath(urlsplit(self.uri).path).name) or self.uri

    @property
    def is_video(self) -> bool:
        """True if the entry renders as a video."""
        return self.item.entry.is_video

    @property
    def selected(self) -> bool:
        """True if the checkmark is shown."""
        return self.item.selected
