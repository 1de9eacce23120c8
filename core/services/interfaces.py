"""Core service interfaces and shared data structures.

This module defines the responses returned by the remote media service and
the protocols the sync engine expects from its collaborators, so that the
infrastructure layer and tests can supply their own implementations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from core.models import Credential, DateKey, MediaEntry, PendingFile


@dataclass
class UploadResponse:
    """Accepted files of an upload batch.

    Attributes:
        locations: Server-assigned locators, in the order the server listed them.
    """

    locations: list[str]


@dataclass
class DeleteResponse:
    """Outcome of a delete batch.

    Attributes:
        deleted_keys: Keys the server acknowledged as deleted.
        failed: Tuples of (key, reason) the server refused.
    """

    deleted_keys: list[str]
    failed: list[tuple[str, str]] = field(default_factory=list)


class MediaService(Protocol):
    """Remote media storage calls. Implementations raise `TransportFailure`."""

    def upload(self, files: list[PendingFile], credential: Credential) -> UploadResponse:
        """Send all `files` as one batch."""
        ...

    def delete(self, keys: list[str], credential: Credential) -> DeleteResponse:
        """Delete all `keys` as one batch."""
        ...


class CacheRepository(Protocol):
    """Durable storage of the date-partitioned cache."""

    def load(self) -> dict[DateKey, tuple[MediaEntry, ...]]:
        """Return the stored cache, or an empty one. Never raises."""
        ...

    def save(self, cache: dict[DateKey, tuple[MediaEntry, ...]]) -> None:
        """Write the cache. Raises `PersistenceFailure`."""
        ...


class CredentialStore(Protocol):
    """Durable storage of the scanned credential."""

    def load(self) -> Credential | None:
        """Return the stored credential, if both fields are present."""
        ...

    def save(self, credential: Credential) -> None:
        """Write both credential fields. Raises `PersistenceFailure`."""
        ...


class ShareTarget(Protocol):
    """Platform share surface."""

    def share(self, locators: list[str]) -> None:
        """Hand the locators over verbatim."""
        ...
