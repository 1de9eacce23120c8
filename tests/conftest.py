"""Shared fixtures and fakes for the media library tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.errors import PersistenceFailure
from core.models import Credential, PendingFile
from core.services.interfaces import DeleteResponse, UploadResponse
from core.services.sync_engine import LibraryContext, SyncEngine
from infrastructure.cache_repository import JsonCacheRepository
from infrastructure.credential_repository import CredentialRepository
from infrastructure.kv_store import JsonKeyValueStore

SERVER = "https://pix.example.com/"
TODAY = "2024-06-01"


class FakeMediaService:
    """Scriptable stand-in for the remote media service."""

    def __init__(self) -> None:
        self.upload_locations: list[str] = []
        self.upload_error: Exception | None = None
        self.delete_ack: list[str] | None = None
        self.delete_error: Exception | None = None
        self.uploads: list[list[PendingFile]] = []
        self.deletes: list[list[str]] = []
        self.closed = False

    def close(self) -> None:
        self.closed = True

    def upload(self, files: list[PendingFile], credential: Credential) -> UploadResponse:
        self.uploads.append(list(files))
        if self.upload_error is not None:
            raise self.upload_error
        return UploadResponse(locations=list(self.upload_locations))

    def delete(self, keys: list[str], credential: Credential) -> DeleteResponse:
        self.deletes.append(list(keys))
        if self.delete_error is not None:
            raise self.delete_error
        acked = list(keys) if self.delete_ack is None else list(self.delete_ack)
        return DeleteResponse(
            deleted_keys=acked,
            failed=[(k, "rejected") for k in keys if k not in acked],
        )


class RecordingShareTarget:
    def __init__(self) -> None:
        self.shared: list[list[str]] = []

    def share(self, locators: list[str]) -> None:
        self.shared.append(list(locators))


class ReadOnlyStore(JsonKeyValueStore):
    """Store whose writes always fail."""

    def set(self, key: str, value: str) -> None:
        raise PersistenceFailure("disk full")


@pytest.fixture
def store(tmp_path: Path) -> JsonKeyValueStore:
    return JsonKeyValueStore(tmp_path / "store.json")


@pytest.fixture
def service() -> FakeMediaService:
    return FakeMediaService()


@pytest.fixture
def share_target() -> RecordingShareTarget:
    return RecordingShareTarget()


def make_engine(store, service, share_target=None, clock=lambda: TODAY) -> SyncEngine:
    """Return a hydrated engine over `store` with a stored credential."""
    CredentialRepository(store).save(Credential(token="secret", server_url=SERVER))
    context = LibraryContext(
        cache_repository=JsonCacheRepository(store),
        credential_store=CredentialRepository(store),
        media_service=service,
        share_target=share_target,
        clock=clock,
    )
    engine = SyncEngine(context)
    engine.hydrate()
    return engine


@pytest.fixture
def engine(store, service, share_target) -> SyncEngine:
    return make_engine(store, service, share_target)


def pending(*names: str) -> list[PendingFile]:
    return [
        PendingFile(
            path=f"/tmp/{n}",
            name=n,
            mime_type="video/mp4" if n.endswith(".mp4") else "image/jpeg",
        )
        for n in names
    ]
