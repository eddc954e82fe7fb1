from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from attendance_tracker.data import Database, LocalStore, SchoolRepository
from attendance_tracker.remote import RemoteClient, RemoteError, RemoteNotConfiguredError
from attendance_tracker.services.connectivity import ConnectivityMonitor
from attendance_tracker.services.data_context import DataContext
from attendance_tracker.services.school_service import SchoolService
from attendance_tracker.services.sync_coordinator import (
    DrainResult,
    PushState,
    SyncCoordinator,
    SyncPendingError,
)

if TYPE_CHECKING:
    from attendance_tracker.config.settings import Settings

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class StartupReport:
    seeded: bool = False
    drained: DrainResult | None = None
    hydrated: dict[str, int] | None = None
    remote_error: Exception | None = None
    warnings: list[str] = field(default_factory=list)


class TrackerApp:
    """Wire storage, sync and the data cache together from settings."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        remote: RemoteClient | None = None,
        background: bool = False,
    ) -> None:
        if config is None:
            from attendance_tracker.config.settings import settings as config

        self._config = config
        self.database = Database(config.database_path)
        self.store = LocalStore(self.database)
        self.repository = SchoolRepository(self.store, academic_year=config.academic_year)
        self.remote = remote or RemoteClient(config.remote_api_url, timeout=config.request_timeout)

        self.coordinator: SyncCoordinator | None = None
        self.connectivity: ConnectivityMonitor | None = None
        if self.remote.is_configured:
            self.connectivity = ConnectivityMonitor(self.remote.ping)
            self.coordinator = SyncCoordinator(
                self.remote,
                self.store,
                self.repository.snapshot,
                on_queued=self.connectivity.mark_offline,
            )
            self.connectivity.on_reconnect(self._drain_in_background)

        self.context = DataContext(self.repository)
        self.service = SchoolService(
            self.repository,
            self.coordinator if config.auto_sync else None,
            background=background,
        )

    @property
    def config(self) -> Settings:
        return self._config

    def __enter__(self) -> "TrackerApp":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def startup(self, *, seed_sample: bool = False, watch_connectivity: bool = False) -> StartupReport:
        """Prepare local data, flush the queue and pull the remote snapshot.

        Remote failures never abort startup: the app keeps running on the
        local copy and the error is returned in the report.
        """
        report = StartupReport()
        self.store.initialize()
        self.repository.ensure_default_bimesters()
        if seed_sample:
            report.seeded = self.repository.seed_sample_data()

        if self.coordinator is not None:
            report.drained = self.coordinator.drain()
            if report.drained.error is not None:
                report.warnings.append(f"Queued changes could not be sent: {report.drained.error}")

            try:
                report.hydrated = self.pull()
            except RemoteError as exc:
                _LOGGER.warning("Could not load remote data, using local copy: %s", exc)
                report.remote_error = exc
                report.warnings.append(f"Remote store unavailable: {exc}")
                if self.connectivity is not None:
                    self.connectivity.mark_offline()

            if watch_connectivity and self.connectivity is not None:
                self.connectivity.start(self._config.connectivity_interval)

        self.context.refresh()
        return report

    def shutdown(self) -> None:
        if self.connectivity is not None:
            self.connectivity.stop()
        if self.coordinator is not None:
            self.coordinator.shutdown()
        self.remote.close()

    # ------------------------------------------------------------------
    # Sync operations
    # ------------------------------------------------------------------
    def pull(self) -> dict[str, int] | None:
        """Hydrate from the remote store; an empty remote leaves local data alone.

        Queued changes are drained first. Hydrating over them would drop
        them locally, and a later snapshot drain would then drop them
        remotely too, so :class:`SyncPendingError` is raised while any
        remain queued.
        """
        if self.coordinator is not None:
            result = self.coordinator.drain()
            if result.error is not None or result.remaining:
                raise SyncPendingError(result.remaining) from result.error
        snapshot = self.remote.fetch_all()
        if not snapshot.has_classes:
            _LOGGER.info("Remote store has no classes, keeping local data")
            return None
        return self.context.hydrate_from_cloud(snapshot)

    def push(self) -> PushState:
        """Send the full local snapshot, queueing it on failure."""
        return self._require_coordinator().push_snapshot()

    def drain(self) -> DrainResult:
        return self._require_coordinator().drain()

    def pending_count(self) -> int:
        return self.coordinator.pending_count() if self.coordinator is not None else 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _require_coordinator(self) -> SyncCoordinator:
        if self.coordinator is None:
            raise RemoteNotConfiguredError("Remote store URL is not configured")
        return self.coordinator

    def _drain_in_background(self) -> None:
        if self.coordinator is not None:
            self.coordinator.submit(self.coordinator.drain)
