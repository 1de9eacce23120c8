"""Upload/delete orchestration and cache reconciliation.

The engine owns the current `MediaLibrary` snapshot and the pending upload
set. Every batch operation moves IDLE -> IN_FLIGHT -> COMMITTED or FAILED.
Remote results are merged into a new library, persisted, and only then
published to subscribers. Failures leave the library and pending files as
they were.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
import threading
from typing import Any

from loguru import logger

from core.errors import (
    OperationInProgress,
    PartialServerRejection,
    PersistenceFailure,
    TransportFailure,
)
from core.library import MediaLibrary
from core.models import (
    Credential,
    DateKey,
    DeleteOutcome,
    MediaEntry,
    OperationPhase,
    PendingFile,
    UploadOutcome,
    today_key,
)
from core.services.interfaces import CacheRepository, CredentialStore, MediaService, ShareTarget

Listener = Callable[[MediaLibrary], None]


@dataclass
class LibraryContext:
    """Collaborators handed to the engine at construction.

    Attributes:
        cache_repository: Persistent cache storage.
        credential_store: Persistent credential storage.
        media_service: Remote media service client.
        share_target: Platform share surface.
        clock: Returns the DateKey used for an upload committed now.
    """

    cache_repository: CacheRepository
    credential_store: CredentialStore
    media_service: MediaService
    share_target: ShareTarget | None = None
    clock: Callable[[], DateKey] = field(default=today_key)


class SyncEngine:
    """Coordinates the media library with the remote service and local store."""

    def __init__(self, context: LibraryContext) -> None:
        self._ctx = context
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []
        self.library = MediaLibrary.empty()
        self.pending: tuple[PendingFile, ...] = ()
        self.credential: Credential | None = None
        self.phase = OperationPhase.IDLE
        self.ready = False

    # --- lifecycle and observation ---

    def hydrate(self) -> None:
        """Load the persisted cache and credential. Selection starts cleared."""
        cache = self._ctx.cache_repository.load()
        self.credential = self._ctx.credential_store.load()
        self.library = MediaLibrary.from_state(cache)
        self.ready = True
        logger.info(
            "Library hydrated: dates={} entries={} credential={}",
            len(self.library.groups),
            len(self.library),
            self.credential is not None,
        )
        self._publish()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register `listener` for library changes. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self) -> None:
        for listener in list(self._listeners):
            listener(self.library)

    @property
    def is_busy(self) -> bool:
        return self.phase is OperationPhase.IN_FLIGHT

    @property
    def selected_count(self) -> int:
        return self.library.selected_count

    # --- credential ---

    def set_credential(self, payload: str | Mapping[str, Any]) -> Credential:
        """Parse and persist a scanned credential payload.

        Raises:
            MalformedCredentialPayload: If the payload lacks a token or URL.
            PersistenceFailure: If the credential could not be stored.
        """
        credential = Credential.from_payload(payload)
        self._ctx.credential_store.save(credential)
        self.credential = credential
        logger.info("Credential stored for server {}", credential.server_url)
        return credential

    # --- selection ---

    def pick(self, files: Iterable[PendingFile]) -> None:
        """Replace the pending upload set."""
        self.pending = tuple(files)
        logger.info("Picked {} file(s) for upload", len(self.pending))
        self._publish()

    def toggle_entry(self, date_key: DateKey, index: int) -> MediaLibrary:
        self.library = self.library.toggle_entry(date_key, index)
        self._publish()
        return self.library

    def toggle_date(self, date_key: DateKey) -> MediaLibrary:
        self.library = self.library.toggle_date(date_key)
        self._publish()
        return self.library

    def clear_selection(self) -> MediaLibrary:
        self.library = self.library.clear_selection()
        self._publish()
        return self.library

    # --- batch operations ---

    def _begin(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise OperationInProgress("Another operation is in progress")
        self.phase = OperationPhase.IN_FLIGHT
        try:
            self._publish()
        except Exception:
            self.phase = OperationPhase.FAILED
            self._lock.release()
            raise

    def _finish(self, phase: OperationPhase) -> None:
        self.phase = phase
        self._lock.release()
        self._publish()

    def _persist(self, library: MediaLibrary) -> bool:
        try:
            self._ctx.cache_repository.save(library.cache)
            return True
        except PersistenceFailure as ex:
            logger.error("Persisting cache failed: {}", ex)
            return False

    def upload(self) -> UploadOutcome:
        """Upload every pending file as one batch and merge the accepted files.

        Raises:
            OperationInProgress: If another batch operation is in flight.
        """
        if not self.pending:
            return UploadOutcome(OperationPhase.FAILED, message="No files selected for upload.")
        if self.credential is None:
            return UploadOutcome(
                OperationPhase.FAILED, message="Scan a server QR code before uploading."
            )

        self._begin()
        batch = self.pending
        phase = OperationPhase.FAILED
        try:
            logger.info("Uploading {} file(s)", len(batch))
            try:
                response = self._ctx.media_service.upload(list(batch), self.credential)
            except TransportFailure as ex:
                logger.error("Upload failed: {}", ex)
                return UploadOutcome(
                    OperationPhase.FAILED, message=f"Failed to upload files: {ex}"
                )

            date_key = self._ctx.clock()
            entries = [MediaEntry.from_locator(loc) for loc in response.locations]
            library = self.library.merge(date_key, entries)
            persisted = self._persist(library)
            self.library = library
            if self.pending == batch:
                self.pending = ()
            phase = OperationPhase.COMMITTED
            logger.info("Upload committed: {} entries under {}", len(entries), date_key)
            message = "Files have been uploaded successfully!"
            if not persisted:
                message += " The local library could not be saved."
            return UploadOutcome(
                phase, date_key=date_key, entries=entries, message=message, persisted=persisted
            )
        finally:
            self._finish(phase)

    def delete_selected(self) -> DeleteOutcome:
        """Delete the selected entries remotely and drop the acknowledged ones.

        Entries the server rejected stay in the library and stay selected, and
        the outcome carries a `PartialServerRejection`. If the server rejected
        every key the outcome is FAILED.

        Raises:
            OperationInProgress: If another batch operation is in flight.
        """
        if self.credential is None:
            return DeleteOutcome(OperationPhase.FAILED, message="Scan a server QR code first.")
        selected = self.library.selected_entries()
        if not selected:
            return DeleteOutcome(OperationPhase.FAILED, message="No items selected.")
        keys = [entry.key for entry in selected]

        self._begin()
        phase = OperationPhase.FAILED
        try:
            logger.info("Deleting {} file(s)", len(keys))
            try:
                response = self._ctx.media_service.delete(keys, self.credential)
            except TransportFailure as ex:
                logger.error("Delete failed: {}", ex)
                return DeleteOutcome(
                    OperationPhase.FAILED,
                    message="Failed to delete files. Please try again.",
                )

            requested = set(keys)
            deleted = [k for k in dict.fromkeys(response.deleted_keys) if k in requested]
            acknowledged = set(deleted)
            rejected = [k for k in keys if k not in acknowledged]
            rejection = PartialServerRejection(rejected) if rejected else None
            if not deleted:
                logger.warning("{}: {}", rejection, rejected)
                return DeleteOutcome(
                    OperationPhase.FAILED,
                    rejected_keys=rejected,
                    message=f"{rejection}. Nothing was deleted; please try again.",
                    error=rejection,
                )

            library, _ = self.library.remove(deleted)
            persisted = self._persist(library)
            self.library = library
            phase = OperationPhase.COMMITTED

            message = "Files deleted successfully"
            if rejection is not None:
                logger.warning("{}: {}", rejection, rejected)
                message = f"{rejection}. Deleted {len(deleted)}; retry the rest."
            if not persisted:
                message += " The local library could not be saved."
            logger.info(
                "Delete committed: {} deleted, {} rejected", len(deleted), len(rejected)
            )
            return DeleteOutcome(
                phase,
                deleted_keys=deleted,
                rejected_keys=rejected,
                message=message,
                persisted=persisted,
                error=rejection,
            )
        finally:
            self._finish(phase)

    def share_selected(self) -> list[str]:
        """Hand the locators of the selected entries to the share target."""
        locators = [entry.uri for entry in self.library.selected_entries()]
        if self._ctx.share_target is not None and locators:
            self._ctx.share_target.share(locators)
            logger.info("Shared {} locator(s)", len(locators))
        return locators
