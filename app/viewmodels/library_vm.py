"""ViewModel exposing render-ready library state and user actions."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from loguru import logger

from app.viewmodels.group_vm import DateGroupVM
from app.viewmodels.media_vm import MediaItemVM
from core.errors import MalformedCredentialPayload, OperationInProgress, PersistenceFailure
from core.library import MediaLibrary
from core.models import DeleteOutcome, PendingFile, UploadOutcome
from core.services.sync_engine import SyncEngine


class LibraryVM:
    """Main screen view-model.

    Subscribes to the engine and rebuilds the grouped rows whenever the
    library changes. User-visible messages of the last action are kept in
    `message`; the UI decides how to show them.
    """

    def __init__(self, engine: SyncEngine) -> None:
        """Create a LibraryVM.

        Args:
            engine: Hydrated or not-yet-hydrated sync engine.
        """
        self._engine = engine
        self._listeners: list[Callable[[LibraryVM], None]] = []
        self.groups: list[DateGroupVM] = []
        self.selected_count = 0
        self.is_uploading = False
        self.is_deleting = False
        self.message = ""
        self._unsubscribe = engine.subscribe(self._on_library_changed)
        self._on_library_changed(engine.library)

    def close(self) -> None:
        self._unsubscribe()

    def on_change(self, listener: Callable[[LibraryVM], None]) -> None:
        """Register a re-render callback."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _on_library_changed(self, library: MediaLibrary) -> None:
        self.groups = [
            DateGroupVM(
                date_key=date_key,
                items=[MediaItemVM(date_key, i, item) for i, item in enumerate(items)],
                all_selected=library.is_date_selected(date_key),
            )
            for date_key, items in library
        ]
        self.selected_count = library.selected_count
        self._notify()

    @property
    def show_action_bar(self) -> bool:
        """Share/delete affordance is visible while anything is selected."""
        return self.selected_count > 0

    @property
    def show_upload_button(self) -> bool:
        """Upload button is visible while picked files await upload."""
        return bool(self._engine.pending)

    @property
    def status_message(self) -> str:
        return f"{self.selected_count} item selected"

    @property
    def has_credential(self) -> bool:
        return self._engine.credential is not None

    def scan(self, payload: str | Mapping[str, Any]) -> bool:
        """Store a scanned credential; malformed payloads become a warning."""
        try:
            self._engine.set_credential(payload)
        except MalformedCredentialPayload as ex:
            logger.warning("Credential payload rejected: {}", ex)
            self.message = "QR Code does not contain the necessary information."
            self._notify()
            return False
        except PersistenceFailure as ex:
            logger.error("Saving credential failed: {}", ex)
            self.message = f"Could not save the server settings: {ex}"
            self._notify()
            return False
        self.message = "API Token and Server URL have been saved successfully!"
        self._notify()
        return True

    def pick(self, files: Iterable[PendingFile]) -> None:
        self._engine.pick(files)

    def toggle_entry(self, date_key: str, index: int) -> None:
        self._engine.toggle_entry(date_key, index)

    def toggle_date(self, date_key: str) -> None:
        self._engine.toggle_date(date_key)

    def upload(self) -> UploadOutcome | None:
        """Upload picked files. Returns None if another operation is running."""
        self.is_uploading = True
        self._notify()
        try:
            outcome = self._engine.upload()
        except OperationInProgress as ex:
            self.message = str(ex)
            return None
        finally:
            self.is_uploading = False
            self._notify()
        self.message = outcome.message
        self._notify()
        return outcome

    def delete(self) -> DeleteOutcome | None:
        """Delete selected files. The caller confirms with the user first."""
        self.is_deleting = True
        self._notify()
        try:
            outcome = self._engine.delete_selected()
        except OperationInProgress as ex:
            self.message = str(ex)
            return None
        finally:
            self.is_deleting = False
            self._notify()
        self.message = outcome.message
        self._notify()
        return outcome

    def share(self) -> list[str]:
        """Share selected locators; share surface errors are only reported."""
        try:
            locators = self._engine.share_selected()
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.error("Share failed: {}", ex)
            self.message = str(ex)
            self._notify()
            return []
        return locators
