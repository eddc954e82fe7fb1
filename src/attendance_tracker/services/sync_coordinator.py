from __future__ import annotations

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from attendance_tracker.data.local_store import SYNC_QUEUE, LocalStore
from attendance_tracker.models import AttendanceRecord
from attendance_tracker.remote import RemoteClient, RemoteError, RemoteNotConfiguredError
from attendance_tracker.remote.client import dedupe_records, record_payload
from attendance_tracker.utils.dates import utc_timestamp

_LOGGER = logging.getLogger(__name__)

ACTION_BATCH = "saveBatchAttendance"
ACTION_RECORD = "saveAttendance"
ACTION_SNAPSHOT = "saveAll"

SnapshotProvider = Callable[[], Mapping[str, Any]]


class PushState(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    QUEUED = "queued"
    DRAINING = "draining"
    DRAINED = "drained"


class SyncQueuedError(RemoteError):
    """A push failed and its payload now waits in the sync queue."""

    def __init__(self, action: str, pending: int) -> None:
        self.action = action
        self.pending = pending
        super().__init__(f"{action} could not reach the remote store; {pending} batch(es) queued for retry")


class SyncPendingError(RemoteError):
    """Queued local changes could not be sent, so remote data must not replace them yet."""

    def __init__(self, pending: int) -> None:
        self.pending = pending
        super().__init__(f"{pending} queued batch(es) must reach the remote store before pulling")


@dataclass(slots=True)
class QueueEntry:
    action: str
    records: list[dict] = field(default_factory=list)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    queued_at: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "records": list(self.records),
            "queuedAt": self.queued_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QueueEntry":
        return cls(
            action=str(data.get("action") or ACTION_BATCH),
            records=[item for item in data.get("records") or [] if isinstance(item, dict)],
            id=str(data.get("id") or uuid.uuid4().hex),
            queued_at=str(data.get("queuedAt") or utc_timestamp()),
        )


@dataclass(frozen=True, slots=True)
class DrainResult:
    state: PushState
    drained: int = 0
    remaining: int = 0
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SyncCoordinator:
    """Push local mutations to the remote store, queueing what fails.

    Every failed write (attendance batch, single record or full snapshot) is
    appended to the persistent queue and :class:`SyncQueuedError` is raised
    so the caller can tell the user the change will sync later. ``drain``
    retries the whole queue as one call; there is no backoff and no retry
    limit, entries stay queued until a drain succeeds. ``on_queued`` is
    called after every failed push or drain, typically to mark the
    connection as lost.
    """

    def __init__(
        self,
        remote: RemoteClient,
        store: LocalStore,
        snapshot_provider: SnapshotProvider,
        *,
        on_queued: Callable[[], None] | None = None,
    ) -> None:
        self._remote = remote
        self._store = store
        self._snapshot_provider = snapshot_provider
        self._on_queued = on_queued
        self._queue_lock = threading.Lock()
        self._drain_lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None

    # ------------------------------------------------------------------
    # Pushes
    # ------------------------------------------------------------------
    def push_attendance(self, records: Iterable[AttendanceRecord | Mapping[str, Any]]) -> PushState:
        payloads = dedupe_records(records)
        if not payloads:
            return PushState.SENT
        return self._push(ACTION_BATCH, payloads, lambda: self._remote.save_batch(payloads))

    def push_record(self, record: AttendanceRecord | Mapping[str, Any]) -> PushState:
        payload = record_payload(record)
        return self._push(ACTION_RECORD, [payload], lambda: self._remote.save_one(payload))

    def push_snapshot(self) -> PushState:
        return self._push(ACTION_SNAPSHOT, [], lambda: self._remote.save_all(self._snapshot_provider()))

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------
    def pending_entries(self) -> list[QueueEntry]:
        return [QueueEntry.from_dict(item) for item in self._store.read_collection(SYNC_QUEUE)]

    def pending_count(self) -> int:
        return len(self._store.read_collection(SYNC_QUEUE))

    def drain(self) -> DrainResult:
        """Retry everything queued as a single remote call."""
        if not self._drain_lock.acquire(blocking=False):
            _LOGGER.debug("Drain already in progress, skipping")
            return DrainResult(state=PushState.DRAINING, remaining=self.pending_count())

        try:
            entries = self.pending_entries()
            if not entries:
                return DrainResult(state=PushState.DRAINED)

            _LOGGER.info("Draining %d queued sync batch(es)", len(entries))
            try:
                if any(entry.action == ACTION_SNAPSHOT for entry in entries):
                    # A full snapshot already carries every local attendance record.
                    self._remote.save_all(self._snapshot_provider())
                else:
                    self._remote.save_batch(
                        record for entry in entries for record in entry.records
                    )
            except RemoteError as exc:
                _LOGGER.warning("Drain failed, %d batch(es) stay queued: %s", len(entries), exc)
                self._notify_queued()
                return DrainResult(state=PushState.QUEUED, remaining=len(entries), error=exc)

            remaining = self._remove_entries({entry.id for entry in entries})
            _LOGGER.info("Drained %d queued sync batch(es)", len(entries))
            return DrainResult(state=PushState.DRAINED, drained=len(entries), remaining=remaining)
        finally:
            self._drain_lock.release()

    def clear_queue(self) -> None:
        with self._queue_lock:
            self._store.clear(SYNC_QUEUE)

    # ------------------------------------------------------------------
    # Background execution
    # ------------------------------------------------------------------
    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Run ``fn`` on the single sync worker so pushes stay ordered."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="attendance-sync")
        future = self._executor.submit(fn, *args, **kwargs)
        future.add_done_callback(self._log_background_failure)
        return future

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _push(self, action: str, records: list[dict], send: Callable[[], None]) -> PushState:
        try:
            send()
        except RemoteNotConfiguredError:
            raise
        except RemoteError as exc:
            pending = self._enqueue(QueueEntry(action=action, records=records))
            _LOGGER.warning("%s failed, queued for later sync: %s", action, exc)
            self._notify_queued()
            raise SyncQueuedError(action, pending) from exc
        return PushState.SENT

    def _enqueue(self, entry: QueueEntry) -> int:
        with self._queue_lock:
            items = self._store.read_collection(SYNC_QUEUE)
            items.append(entry.to_dict())
            result = self._store.write_collection(SYNC_QUEUE, items)
        if not result.ok:
            _LOGGER.error("Could not persist sync queue entry %s: %s", entry.id, result.error)
        return len(items)

    def _remove_entries(self, entry_ids: set[str]) -> int:
        with self._queue_lock:
            items = self._store.read_collection(SYNC_QUEUE)
            kept = [item for item in items if str(item.get("id")) not in entry_ids]
            self._store.write_collection(SYNC_QUEUE, kept)
        return len(kept)

    def _notify_queued(self) -> None:
        if self._on_queued is not None:
            self._on_queued()

    @staticmethod
    def _log_background_failure(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is None:
            return
        if isinstance(exc, SyncQueuedError):
            _LOGGER.info("Background sync deferred: %s", exc)
        else:
            _LOGGER.error("Background sync failed: %s", exc)
