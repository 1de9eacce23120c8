"""Core domain models for uploaded media, selection and batch outcomes."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
import json
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import unquote, urlsplit

from core.errors import MalformedCredentialPayload, PartialServerRejection

VIDEO_EXTENSIONS = {".mp4", ".mov", ".webm", ".avi", ".mkv"}

# Calendar date string, YYYY-MM-DD
DateKey = str


class MediaKind(Enum):
    """Kind of a media entry, fixed when the entry is created."""

    IMAGE = "image"
    VIDEO = "video"

    @classmethod
    def from_locator(cls, locator: str) -> MediaKind:
        """Derive the kind from the extension of a locator or file name."""
        path = urlsplit(locator).path or locator
        suffix = PurePosixPath(path).suffix.lower()
        return cls.VIDEO if suffix in VIDEO_EXTENSIONS else cls.IMAGE


@dataclass(frozen=True)
class MediaEntry:
    """A single media item stored on the remote service.

    Attributes:
        uri: Locator assigned by the remote service.
        kind: Image or video.
    """

    uri: str
    kind: MediaKind

    @classmethod
    def from_locator(cls, locator: str) -> MediaEntry:
        """Build an entry from a server-returned locator."""
        return cls(uri=locator, kind=MediaKind.from_locator(locator))

    @property
    def key(self) -> str:
        """Server-side deletion key: the decoded last path segment of `uri`."""
        return unquote(self.uri.rstrip("/").rsplit("/", 1)[-1])

    @property
    def is_video(self) -> bool:
        """True if the entry is a video."""
        return self.kind is MediaKind.VIDEO


@dataclass(frozen=True)
class LibraryItem:
    """A cached entry paired with its selection flag."""

    entry: MediaEntry
    selected: bool = False


@dataclass(frozen=True)
class PendingFile:
    """An asset picked by the user but not uploaded yet.

    Attributes:
        path: Local file path.
        name: File name sent to the server.
        mime_type: Content type sent to the server.
    """

    path: str
    name: str
    mime_type: str


@dataclass(frozen=True)
class Credential:
    """Bearer token and server URL captured from a scanned payload."""

    token: str
    server_url: str

    @classmethod
    def from_payload(cls, payload: str | Mapping[str, Any]) -> Credential:
        """Parse a scanned `{"token": ..., "serverUrl": ...}` payload.

        Args:
            payload: Raw QR text or an already decoded mapping.

        Raises:
            MalformedCredentialPayload: If the payload is not JSON or lacks a
                non-empty token or server URL.
        """
        data: Any = payload
        if isinstance(payload, (str, bytes)):
            try:
                data = json.loads(payload)
            except ValueError as ex:
                raise MalformedCredentialPayload(f"Payload is not valid JSON: {ex}") from ex
        if not isinstance(data, Mapping):
            raise MalformedCredentialPayload("Payload is not a JSON object")
        token = data.get("token")
        server_url = data.get("serverUrl")
        if not isinstance(token, str) or not token.strip():
            raise MalformedCredentialPayload("Payload has no token")
        if not isinstance(server_url, str) or not server_url.strip():
            raise MalformedCredentialPayload("Payload has no serverUrl")
        return cls(token=token.strip(), server_url=server_url.strip())


class OperationPhase(Enum):
    """Lifecycle of a batch operation."""

    IDLE = "idle"
    IN_FLIGHT = "in_flight"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class UploadOutcome:
    """Result of an upload batch as reported to the UI.

    Attributes:
        phase: COMMITTED or FAILED.
        date_key: Partition the new entries were merged into.
        entries: Entries built from the server's accepted file list.
        message: User-visible message.
        persisted: False if the local cache could not be written.
    """

    phase: OperationPhase
    date_key: DateKey | None = None
    entries: list[MediaEntry] = field(default_factory=list)
    message: str = ""
    persisted: bool = True

    @property
    def ok(self) -> bool:
        return self.phase is OperationPhase.COMMITTED


@dataclass
class DeleteOutcome:
    """Result of a delete batch as reported to the UI.

    Attributes:
        phase: COMMITTED or FAILED.
        deleted_keys: Keys acknowledged by the server and removed locally.
        rejected_keys: Keys the server refused; entries remain selected.
        message: User-visible message.
        persisted: False if the local cache could not be written.
        error: Set when the server rejected any requested key.
    """

    phase: OperationPhase
    deleted_keys: list[str] = field(default_factory=list)
    rejected_keys: list[str] = field(default_factory=list)
    message: str = ""
    persisted: bool = True
    error: PartialServerRejection | None = None

    @property
    def ok(self) -> bool:
        return self.phase is OperationPhase.COMMITTED and self.error is None


def today_key() -> DateKey:
    """Return today's local calendar date as a DateKey."""
    return date.today().isoformat()
