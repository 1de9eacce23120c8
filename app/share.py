"""Share surface that emits the selected locators as a text message."""

from __future__ import annotations

from collections.abc import Callable

SHARE_PREFIX = "Check out these files: "


def format_share_message(locators: list[str]) -> str:
    return SHARE_PREFIX + ", ".join(locators)


class MessageShareTarget:
    """Pass the share message to a writer such as `print` or a clipboard setter."""

    def __init__(self, writer: Callable[[str], object] = print) -> None:
        self._writer = writer

    def share(self, locators: list[str]) -> None:
        self._writer(format_share_message(locators))
