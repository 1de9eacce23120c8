from __future__ import annotations

from dataclasses import dataclass, field

from app.viewmodels.media_vm import MediaItemVM


@dataclass
class DateGroupVM:
    date_key: str
    items: list[MediaItemVM] = field(default_factory=list)
    all_selected: bool = False
