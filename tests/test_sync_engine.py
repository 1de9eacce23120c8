"""Sync engine tests: upload, delete, share and serialization."""

from __future__ import annotations

import pytest

from conftest import TODAY, FakeMediaService, ReadOnlyStore, make_engine, pending
from core.errors import OperationInProgress, PersistenceFailure, TransportFailure
from core.library import MediaLibrary
from core.models import MediaEntry, MediaKind, OperationPhase
from core.services.sync_engine import SyncEngine
from infrastructure.cache_repository import JsonCacheRepository
from infrastructure.kv_store import JsonKeyValueStore

A = "https://cdn.example.com/media/a.jpg"
B = "https://cdn.example.com/media/b.mp4"


def _uploaded(engine: SyncEngine, service: FakeMediaService, *locations: str) -> None:
    service.upload_locations = list(locations)
    engine.pick(pending(*(loc.rsplit("/", 1)[-1] for loc in locations)))
    assert engine.upload().ok


def test_upload_scenario_builds_entries_from_server_locations(engine, service, store) -> None:
    service.upload_locations = [A, B]
    engine.pick(pending("IMG_0001.HEIC", "clip.mov"))

    outcome = engine.upload()

    assert outcome.phase is OperationPhase.COMMITTED
    assert outcome.date_key == TODAY
    assert engine.library.cache == {
        TODAY: (MediaEntry(A, MediaKind.IMAGE), MediaEntry(B, MediaKind.VIDEO))
    }
    assert engine.library.selection == {TODAY: (False, False)}
    assert engine.pending == ()
    assert engine.phase is OperationPhase.COMMITTED
    assert JsonCacheRepository(store).load() == engine.library.cache


def test_upload_sends_every_pending_file_in_one_batch(engine, service) -> None:
    service.upload_locations = [A]
    engine.pick(pending("a.jpg", "b.mp4", "c.jpg"))

    engine.upload()

    assert len(service.uploads) == 1
    assert [f.name for f in service.uploads[0]] == ["a.jpg", "b.mp4", "c.jpg"]


def test_upload_appends_to_existing_date_and_keeps_selection(engine, service) -> None:
    _uploaded(engine, service, A)
    engine.toggle_entry(TODAY, 0)

    _uploaded(engine, service, B)

    assert [e.uri for e in engine.library.cache[TODAY]] == [A, B]
    assert engine.library.selection[TODAY] == (True, False)


def test_failed_upload_changes_nothing(engine, service, store) -> None:
    _uploaded(engine, service, A)
    engine.toggle_entry(TODAY, 0)
    engine.pick(pending("b.mp4"))
    before = (engine.library, engine.pending, store.get("uploaded_files"))
    service.upload_error = TransportFailure("connection reset")

    outcome = engine.upload()

    assert outcome.phase is OperationPhase.FAILED
    assert "connection reset" in outcome.message
    assert (engine.library, engine.pending, store.get("uploaded_files")) == before
    assert engine.phase is OperationPhase.FAILED


def test_upload_without_credential_or_files_sends_nothing(store, service) -> None:
    engine = make_engine(store, service)
    assert engine.upload().phase is OperationPhase.FAILED

    engine.credential = None
    engine.pick(pending("a.jpg"))
    outcome = engine.upload()

    assert outcome.phase is OperationPhase.FAILED
    assert service.uploads == []


def test_delete_scenario_removes_only_acknowledged_entries(engine, service, store) -> None:
    _uploaded(engine, service, A, B)
    engine.toggle_entry(TODAY, 0)
    service.delete_ack = ["a.jpg"]

    outcome = engine.delete_selected()

    assert outcome.ok
    assert service.deletes == [["a.jpg"]]
    assert engine.library.cache == {TODAY: (MediaEntry(B, MediaKind.VIDEO),)}
    assert engine.library.selection == {TODAY: (False,)}
    assert JsonCacheRepository(store).load() == engine.library.cache


def test_partial_rejection_keeps_rejected_entries_selected(engine, service) -> None:
    _uploaded(engine, service, A, B)
    engine.toggle_date(TODAY)
    service.delete_ack = ["b.mp4"]

    outcome = engine.delete_selected()

    assert outcome.deleted_keys == ["b.mp4"]
    assert outcome.phase is OperationPhase.COMMITTED
    assert not outcome.ok
    assert outcome.error.rejected == ["a.jpg"]
    assert outcome.rejected_keys == ["a.jpg"]
    assert "rejected 1 item(s)" in outcome.message
    assert engine.library.cache == {TODAY: (MediaEntry(A, MediaKind.IMAGE),)}
    assert engine.library.selection == {TODAY: (True,)}


def test_deleting_last_entry_drops_the_date(store, service) -> None:
    days = iter(["2024-01-01", "2024-01-02"])
    engine = make_engine(store, service, clock=lambda: next(days))
    _uploaded(engine, service, A)
    _uploaded(engine, service, B)
    engine.toggle_date("2024-01-01")

    engine.delete_selected()

    assert list(engine.library.cache) == ["2024-01-02"]
    assert list(engine.library.selection) == ["2024-01-02"]


def test_failed_delete_changes_nothing(engine, service) -> None:
    _uploaded(engine, service, A)
    engine.toggle_entry(TODAY, 0)
    before = engine.library
    service.delete_error = TransportFailure("HTTP 500")

    outcome = engine.delete_selected()

    assert outcome.phase is OperationPhase.FAILED
    assert engine.library == before


def test_delete_without_selection_sends_nothing(engine, service) -> None:
    _uploaded(engine, service, A)

    outcome = engine.delete_selected()

    assert outcome.phase is OperationPhase.FAILED
    assert service.deletes == []


def test_persistence_failure_after_upload_is_surfaced(tmp_path, service) -> None:
    engine = make_engine(JsonKeyValueStore(tmp_path / "s.json"), service)
    engine._ctx.cache_repository = JsonCacheRepository(ReadOnlyStore(tmp_path / "s.json"))
    service.upload_locations = [A]
    engine.pick(pending("a.jpg"))

    outcome = engine.upload()

    assert outcome.ok
    assert not outcome.persisted
    assert "could not be saved" in outcome.message
    assert engine.library.cache[TODAY][0].uri == A


def test_second_operation_while_in_flight_is_rejected(engine, service) -> None:
    _uploaded(engine, service, A)
    engine.toggle_entry(TODAY, 0)
    seen: list[OperationInProgress] = []
    phases: list[OperationPhase] = []

    class ReentrantService(FakeMediaService):
        def upload(self, files, credential):
            phases.append(engine.phase)
            for attempt in (engine.upload, engine.delete_selected):
                try:
                    attempt()
                except OperationInProgress as ex:
                    seen.append(ex)
            return super().upload(files, credential)

    reentrant = ReentrantService()
    reentrant.upload_locations = [B]
    engine._ctx.media_service = reentrant
    engine.pick(pending("b.mp4"))

    assert engine.upload().ok
    assert phases == [OperationPhase.IN_FLIGHT]
    assert len(seen) == 2
    assert reentrant.deletes == []
    assert engine.phase is OperationPhase.COMMITTED
    assert not engine.is_busy


def test_share_hands_over_selected_locators(engine, service, share_target) -> None:
    _uploaded(engine, service, A, B)
    engine.toggle_entry(TODAY, 1)
    before = engine.library

    locators = engine.share_selected()

    assert locators == [B]
    assert share_target.shared == [[B]]
    assert engine.library == before


def test_subscribers_receive_every_new_library(engine, service) -> None:
    seen: list[MediaLibrary] = []
    unsubscribe = engine.subscribe(seen.append)

    _uploaded(engine, service, A)
    engine.toggle_date(TODAY)
    unsubscribe()
    engine.toggle_date(TODAY)

    assert seen[-1].selection == {TODAY: (True,)}


def test_hydrate_restores_cache_with_cleared_selection(engine, service, store) -> None:
    _uploaded(engine, service, A, B)
    engine.toggle_date(TODAY)

    restarted = make_engine(store, FakeMediaService())

    assert restarted.library.cache == engine.library.cache
    assert restarted.library.selection == {TODAY: (False, False)}
    assert restarted.pending == ()
    assert restarted.credential is not None


def test_set_credential_persists_fields(engine, store) -> None:
    engine.set_credential({"token": "new", "serverUrl": "https://other/"})

    assert store.get("api_token") == "new"
    assert store.get("server_url") == "https://other/"


def test_set_credential_write_failure_propagates(tmp_path, service) -> None:
    engine = make_engine(JsonKeyValueStore(tmp_path / "s.json"), service)
    engine._ctx.credential_store._store = ReadOnlyStore(tmp_path / "s.json")

    with pytest.raises(PersistenceFailure):
        engine.set_credential('{"token": "t", "serverUrl": "https://x/"}')


def test_files_picked_during_upload_stay_pending(engine, service) -> None:
    class PickingService(FakeMediaService):
        def upload(self, files, credential):
            engine.pick(pending("late.jpg"))
            return super().upload(files, credential)

    picking = PickingService()
    picking.upload_locations = [A]
    engine._ctx.media_service = picking
    engine.pick(pending("a.jpg"))

    assert engine.upload().ok
    assert [f.name for f in engine.pending] == ["late.jpg"]


def test_delete_rejected_by_server_for_every_key_fails(engine, service, store) -> None:
    _uploaded(engine, service, A, B)
    engine.toggle_entry(TODAY, 0)
    service.delete_ack = []
    before = (engine.library, store.get("uploaded_files"))

    outcome = engine.delete_selected()

    assert outcome.phase is OperationPhase.FAILED
    assert outcome.deleted_keys == []
    assert outcome.rejected_keys == ["a.jpg"]
    assert outcome.error.count == 1
    assert "Nothing was deleted" in outcome.message
    assert (engine.library, store.get("uploaded_files")) == before
    assert engine.phase is OperationPhase.FAILED
    assert not engine.is_busy


def test_failing_subscriber_does_not_leave_operation_in_flight(engine, service) -> None:
    def render(library: MediaLibrary) -> None:
        if engine.phase is OperationPhase.IN_FLIGHT:
            raise RuntimeError("render failed")

    unsubscribe = engine.subscribe(render)
    service.upload_locations = [A]
    engine.pick(pending("a.jpg"))

    with pytest.raises(RuntimeError):
        engine.upload()

    assert engine.phase is OperationPhase.FAILED
    assert not engine.is_busy
    assert service.uploads == []
    assert [f.name for f in engine.pending] == ["a.jpg"]

    unsubscribe()
    assert engine.upload().ok
    assert engine.library.cache[TODAY][0].uri == A
