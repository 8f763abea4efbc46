"""Background reconciliation of local snapshots with the remote artifact store.

Per-artifact status machine:

    offline -> pending -> syncing -> synced | error
    error -> pending (next sweep), any -> offline (connectivity lost)

A sweep visits every artifact that has local snapshots, one at a time. Only
the newest pending snapshot is pushed: the remote row is updated when it
exists and created with the local id otherwise. A single flag drops
overlapping sweeps, and an in-flight set keeps a forced sync from racing a
sweep on the same artifact.

A write held back by the per-artifact throttle is not a failure, but the
artifact stays pending: its newest snapshot has not reached the remote store
yet and goes out on a later sweep.
"""

import asyncio
import time
from collections.abc import Callable
from typing import Any, Protocol

from app.core.exceptions import SyncError
from app.core.logging import get_logger
from app.core.rate_limiter import MinIntervalThrottle
from app.core.schemas_documents import ContentSnapshot, SyncState, SyncStatus
from app.services.snapshot_store import LocalSnapshotStore

logger = get_logger(__name__)

StatusListener = Callable[[SyncStatus], None]


class RemoteArtifactStore(Protocol):
    async def exists(self, artifact_id: str) -> bool: ...

    async def create(
        self, artifact_id: str, owner_id: str, title: str, content: list[dict[str, Any]]
    ) -> None: ...

    async def update(
        self, artifact_id: str, owner_id: str, title: str, content: list[dict[str, Any]]
    ) -> None: ...


class SyncEngine:
    """Pushes pending local snapshots to the remote store."""

    def __init__(
        self,
        store: LocalSnapshotStore,
        remote: RemoteArtifactStore,
        interval: float = 30.0,
        throttle: MinIntervalThrottle | None = None,
        online: bool = True,
    ):
        self.store = store
        self.remote = remote
        self.interval = interval
        self.throttle = throttle or MinIntervalThrottle()
        self.online = online

        self._states: dict[str, SyncState] = {}
        self._listeners: dict[str, set[StatusListener]] = {}
        self._is_syncing = False
        self._in_flight: set[str] = set()
        self._task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_state(self, artifact_id: str) -> SyncState:
        return self._states.get(artifact_id, SyncState())

    def get_status(self, artifact_id: str) -> SyncStatus:
        return self.get_state(artifact_id).status

    def _set_status(self, artifact_id: str, status: SyncStatus, error: str | None = None) -> None:
        previous = self._states.get(artifact_id)
        last_sync_time = previous.last_sync_time if previous else None
        if status == SyncStatus.SYNCED:
            last_sync_time = time.time()

        self._states[artifact_id] = SyncState(status=status, last_sync_time=last_sync_time, error=error)

        if previous is None or previous.status != status:
            logger.debug(f"Sync status -> {status.value}", extra={"artifact_id": artifact_id, "status": status.value})

        for listener in list(self._listeners.get(artifact_id, ())):
            try:
                listener(status)
            except Exception:
                logger.exception("Sync status listener failed", extra={"artifact_id": artifact_id})

    def subscribe(self, artifact_id: str, listener: StatusListener) -> Callable[[], None]:
        """
        Register a status listener for one artifact.

        Returns:
            Callable that removes the listener
        """
        self._listeners.setdefault(artifact_id, set()).add(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(artifact_id)
            if listeners is None:
                return
            listeners.discard(listener)
            if not listeners:
                del self._listeners[artifact_id]

        return unsubscribe

    def rebuild_states(self) -> None:
        """Start-up: artifacts with pending snapshots are pending, the rest synced."""
        for artifact_id in self.store.artifact_ids():
            if not self.online:
                status = SyncStatus.OFFLINE
            elif self.store.pending(artifact_id):
                status = SyncStatus.PENDING
            else:
                status = SyncStatus.SYNCED
            self._set_status(artifact_id, status)
        logger.info(f"Rebuilt sync state for {len(self._states)} artifacts")

    # ------------------------------------------------------------------
    # Local mutations
    # ------------------------------------------------------------------

    def record_local_change(
        self,
        artifact_id: str,
        content: list[dict[str, Any]],
        title: str,
        owner_id: str,
    ) -> ContentSnapshot:
        """Save a new snapshot and flag the artifact for the next sweep."""
        snapshot = self.store.save(artifact_id, content, title, owner_id)
        self._set_status(artifact_id, SyncStatus.PENDING if self.online else SyncStatus.OFFLINE)
        return snapshot

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def sync_all(self) -> None:
        """One sweep over every artifact with local snapshots. Overlapping calls are dropped."""
        if self._is_syncing or not self.online:
            return

        self._is_syncing = True
        try:
            artifact_ids = self.store.artifact_ids()
            for artifact_id in artifact_ids:
                await self.sync_artifact(artifact_id)
        finally:
            self._is_syncing = False

    async def sync_artifact(self, artifact_id: str) -> SyncStatus:
        """Reconcile one artifact unless it is already in flight."""
        if not self.online:
            self._set_status(artifact_id, SyncStatus.OFFLINE)
            return SyncStatus.OFFLINE

        if artifact_id in self._in_flight:
            logger.debug("Sync already in flight, skipping", extra={"artifact_id": artifact_id})
            return self.get_status(artifact_id)

        self._in_flight.add(artifact_id)
        try:
            await self._reconcile(artifact_id)
        finally:
            self._in_flight.discard(artifact_id)
        return self.get_status(artifact_id)

    async def _settle_without_pending(self, artifact_id: str) -> None:
        if self.get_status(artifact_id) in (SyncStatus.SYNCED, SyncStatus.OFFLINE):
            return
        try:
            exists = await self.remote.exists(artifact_id)
        except Exception as e:
            self._set_status(artifact_id, SyncStatus.ERROR, error=str(SyncError(artifact_id, str(e))))
            return
        self._set_status(artifact_id, SyncStatus.SYNCED if exists else SyncStatus.PENDING)

    async def _reconcile(self, artifact_id: str) -> None:
        pending = self.store.pending(artifact_id)
        if not pending:
            await self._settle_without_pending(artifact_id)
            return

        if self.get_status(artifact_id) == SyncStatus.ERROR:
            self._set_status(artifact_id, SyncStatus.PENDING)

        if not self.throttle.allow(artifact_id):
            logger.debug(
                f"Remote write throttled ({self.throttle.remaining(artifact_id):.1f}s left)",
                extra={"artifact_id": artifact_id},
            )
            self._set_status(artifact_id, SyncStatus.PENDING)
            return

        latest = pending[0]
        self._set_status(artifact_id, SyncStatus.SYNCING)
        self.throttle.record(artifact_id)

        try:
            if await self.remote.exists(artifact_id):
                await self.remote.update(artifact_id, latest.owner_id, latest.title, latest.content)
                action = "updated"
            else:
                await self.remote.create(artifact_id, latest.owner_id, latest.title, latest.content)
                action = "created"
        except Exception as e:
            error = SyncError(artifact_id, str(e))
            logger.warning(str(error), extra={"artifact_id": artifact_id, "version": latest.version})
            self._set_status(artifact_id, SyncStatus.ERROR, error=str(error))
            return

        self.store.mark_synced(artifact_id, latest.version)
        logger.info(
            f"Remote artifact {action}",
            extra={"artifact_id": artifact_id, "version": latest.version},
        )
        # Snapshots saved while the write was in flight stay pending
        still_pending = bool(self.store.pending(artifact_id))
        self._set_status(artifact_id, SyncStatus.PENDING if still_pending else SyncStatus.SYNCED)

    async def force_sync(self, artifact_id: str) -> SyncState:
        """Reconcile one artifact now and return its state."""
        await self.sync_artifact(artifact_id)
        return self.get_state(artifact_id)

    # ------------------------------------------------------------------
    # Connectivity and scheduling
    # ------------------------------------------------------------------

    def set_online(self, online: bool) -> None:
        """
        Connectivity change. Going offline stops the sweep and marks every
        known artifact offline; coming back marks them pending and restarts it.
        """
        self.online = online
        status = SyncStatus.PENDING if online else SyncStatus.OFFLINE
        for artifact_id in list(self._states):
            self._set_status(artifact_id, status)

        if online:
            self.start()
        else:
            self.stop()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the periodic sweep (runs one sweep immediately)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Sync engine started (interval={self.interval}s)")

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def shutdown(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        task = self._task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("Sync engine stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self.sync_all()
            except Exception as e:
                logger.exception(f"Error in sync sweep: {e}")
            await asyncio.sleep(self.interval)
