from __future__ import annotations

from pathlib import Path

import pytest

from attendance_tracker.data import SYNC_QUEUE, Database, LocalStore, SchoolRepository
from attendance_tracker.models import AttendanceRecord
from attendance_tracker.remote import RemoteClient, RemoteNotConfiguredError
from attendance_tracker.services.sync_coordinator import (
    ACTION_BATCH,
    ACTION_SNAPSHOT,
    PushState,
    SyncCoordinator,
    SyncQueuedError,
)

from fakes import FakeRemote, FakeSession


def _setup(tmp_path: Path, remote) -> tuple[SyncCoordinator, SchoolRepository]:
    store = LocalStore(Database(tmp_path / "attendance.db"))
    store.initialize()
    repository = SchoolRepository(store, academic_year=2026)
    return SyncCoordinator(remote, store, repository.snapshot), repository


def _records(day="2026-03-10", statuses="PF"):
    return [
        AttendanceRecord(student_id=str(index), date=day, lesson_index=0, status=status)
        for index, status in enumerate(statuses, start=1)
    ]


def test_online_push_sends_without_queueing(tmp_path: Path) -> None:
    remote = FakeRemote()
    coordinator, _ = _setup(tmp_path, remote)

    assert coordinator.push_attendance(_records()) is PushState.SENT
    assert remote.calls == ["saveBatchAttendance"]
    assert coordinator.pending_count() == 0


def test_empty_batch_is_a_no_op(tmp_path: Path) -> None:
    remote = FakeRemote(online=False)
    coordinator, _ = _setup(tmp_path, remote)

    assert coordinator.push_attendance([]) is PushState.SENT
    assert remote.calls == []


def test_offline_batch_is_queued_and_reported(tmp_path: Path) -> None:
    remote = FakeRemote(online=False)
    coordinator, _ = _setup(tmp_path, remote)

    with pytest.raises(SyncQueuedError) as excinfo:
        coordinator.push_attendance(_records())

    assert excinfo.value.action == ACTION_BATCH
    assert excinfo.value.pending == 1
    entries = coordinator.pending_entries()
    assert len(entries) == 1
    assert entries[0].action == ACTION_BATCH
    assert [record["status"] for record in entries[0].records] == ["P", "F"]


def test_every_write_kind_is_queued(tmp_path: Path) -> None:
    remote = FakeRemote(online=False)
    coordinator, _ = _setup(tmp_path, remote)

    with pytest.raises(SyncQueuedError):
        coordinator.push_record(_records()[0])
    with pytest.raises(SyncQueuedError):
        coordinator.push_snapshot()

    assert [entry.action for entry in coordinator.pending_entries()] == ["saveAttendance", ACTION_SNAPSHOT]


def test_drain_sends_merged_batch_and_empties_queue(tmp_path: Path) -> None:
    remote = FakeRemote(online=False)
    coordinator, _ = _setup(tmp_path, remote)
    for day in ("2026-03-10", "2026-03-11"):
        with pytest.raises(SyncQueuedError):
            coordinator.push_attendance(_records(day))

    remote.online = True
    remote.calls.clear()
    result = coordinator.drain()

    assert result.ok
    assert result.state is PushState.DRAINED
    assert result.drained == 2
    assert result.remaining == 0
    assert remote.calls == ["saveBatchAttendance"]
    assert len(remote.attendance) == 4
    assert coordinator.pending_count() == 0


def test_failed_drain_keeps_queue(tmp_path: Path) -> None:
    remote = FakeRemote(online=False)
    coordinator, _ = _setup(tmp_path, remote)
    with pytest.raises(SyncQueuedError):
        coordinator.push_attendance(_records())

    result = coordinator.drain()

    assert not result.ok
    assert result.state is PushState.QUEUED
    assert result.remaining == 1
    assert coordinator.pending_count() == 1


def test_replaying_a_drain_is_idempotent_on_the_remote(tmp_path: Path) -> None:
    remote = FakeRemote(online=False)
    coordinator, _ = _setup(tmp_path, remote)
    with pytest.raises(SyncQueuedError):
        coordinator.push_attendance(_records())
    entries = coordinator.pending_entries()

    remote.online = True
    coordinator.drain()
    first = dict(remote.attendance)

    # Simulate a crash between the send and the queue removal.
    coordinator._store.write_collection(SYNC_QUEUE, [entry.to_dict() for entry in entries])
    coordinator.drain()

    assert remote.attendance == first
    assert coordinator.pending_count() == 0


def test_queued_snapshot_drains_as_one_save_all(tmp_path: Path) -> None:
    remote = FakeRemote(online=False)
    coordinator, repository = _setup(tmp_path, remote)
    repository.save_attendance_batch(_records())
    with pytest.raises(SyncQueuedError):
        coordinator.push_attendance(_records("2026-03-11"))
    with pytest.raises(SyncQueuedError):
        coordinator.push_snapshot()

    remote.online = True
    remote.calls.clear()
    result = coordinator.drain()

    assert result.drained == 2
    assert remote.calls == ["saveAll"]
    assert coordinator.pending_count() == 0


def test_empty_queue_drain(tmp_path: Path) -> None:
    remote = FakeRemote()
    coordinator, _ = _setup(tmp_path, remote)

    result = coordinator.drain()

    assert result.state is PushState.DRAINED
    assert result.drained == 0
    assert remote.calls == []


def test_unconfigured_remote_is_not_queued(tmp_path: Path) -> None:
    coordinator, _ = _setup(tmp_path, RemoteClient(None, session=FakeSession()))

    with pytest.raises(RemoteNotConfiguredError):
        coordinator.push_attendance(_records())
    assert coordinator.pending_count() == 0


def test_background_submit_runs_in_order(tmp_path: Path) -> None:
    remote = FakeRemote(online=False)
    coordinator, _ = _setup(tmp_path, remote)

    first = coordinator.submit(coordinator.push_attendance, _records())
    remote_online = coordinator.submit(setattr, remote, "online", True)
    drained = coordinator.submit(coordinator.drain)
    coordinator.shutdown()

    assert isinstance(first.exception(), SyncQueuedError)
    assert remote_online.result() is None
    assert drained.result().drained == 1
    assert coordinator.pending_count() == 0


def test_clear_queue(tmp_path: Path) -> None:
    coordinator, _ = _setup(tmp_path, FakeRemote(online=False))
    with pytest.raises(SyncQueuedError):
        coordinator.push_snapshot()

    coordinator.clear_queue()

    assert coordinator.pending_entries() == []


def test_failed_push_and_drain_call_on_queued(tmp_path: Path) -> None:
    store = LocalStore(Database(tmp_path / "attendance.db"))
    store.initialize()
    repository = SchoolRepository(store, academic_year=2026)
    lost = []
    coordinator = SyncCoordinator(FakeRemote(online=False), store, repository.snapshot, on_queued=lambda: lost.append(1))

    with pytest.raises(SyncQueuedError):
        coordinator.push_snapshot()
    coordinator.drain()

    assert len(lost) == 2
