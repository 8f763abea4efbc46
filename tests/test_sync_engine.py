"""Tests for background snapshot reconciliation."""

import asyncio

import pytest

from app.core.rate_limiter import MinIntervalThrottle
from app.core.schemas_documents import SyncStatus
from app.services.snapshot_store import InMemoryKeyValueStore, LocalSnapshotStore
from app.services.sync_engine import SyncEngine
from tests.fakes.fake_remote_store import FakeRemoteStore

BLOCKS = [{"id": "b1", "type": "paragraph", "content": []}]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _engine(min_interval: float = 0.0, clock: FakeClock | None = None, online: bool = True):
    store = LocalSnapshotStore(InMemoryKeyValueStore())
    remote = FakeRemoteStore()
    throttle = MinIntervalThrottle(min_interval, clock=clock or FakeClock())
    engine = SyncEngine(store, remote, interval=0.01, throttle=throttle, online=online)
    return engine, store, remote


@pytest.mark.asyncio
async def test_first_sync_creates_then_updates():
    engine, store, remote = _engine()

    engine.record_local_change("a1", BLOCKS, "Draft", "user-1")
    assert engine.get_status("a1") == SyncStatus.PENDING
    assert await engine.sync_artifact("a1") == SyncStatus.SYNCED

    engine.record_local_change("a1", BLOCKS, "Draft v2", "user-1")
    await engine.sync_artifact("a1")

    assert remote.count("create") == 1
    assert remote.count("update") == 1
    assert remote.rows["a1"]["title"] == "Draft v2"
    assert store.pending("a1") == []
    assert engine.get_state("a1").last_sync_time is not None


@pytest.mark.asyncio
async def test_only_newest_pending_snapshot_is_pushed():
    engine, store, remote = _engine()
    for title in ("one", "two", "three"):
        engine.record_local_change("a1", BLOCKS, title, "user-1")

    await engine.sync_all()

    assert remote.count("create") == 1
    assert remote.rows["a1"]["title"] == "three"
    assert store.pending("a1") == []


@pytest.mark.asyncio
async def test_repeated_sweeps_never_duplicate_create():
    engine, _, remote = _engine()
    engine.record_local_change("a1", BLOCKS, "Draft", "user-1")

    await engine.sync_all()
    await engine.sync_all()
    await engine.sync_all()

    assert remote.count("create") == 1
    assert remote.count("update") == 0
    assert engine.get_status("a1") == SyncStatus.SYNCED


@pytest.mark.asyncio
async def test_writes_within_min_interval_stay_pending():
    clock = FakeClock()
    engine, store, remote = _engine(min_interval=2.0, clock=clock)

    engine.record_local_change("a1", BLOCKS, "v1", "u")
    await engine.sync_artifact("a1")
    engine.record_local_change("a1", BLOCKS, "v2", "u")

    clock.now += 1.0
    assert await engine.sync_artifact("a1") == SyncStatus.PENDING
    assert remote.count("update") == 0
    assert len(store.pending("a1")) == 1

    clock.now += 1.5
    assert await engine.sync_artifact("a1") == SyncStatus.SYNCED
    assert remote.rows["a1"]["title"] == "v2"


@pytest.mark.asyncio
async def test_failed_write_sets_error_and_retries():
    engine, store, remote = _engine()
    engine.record_local_change("a1", BLOCKS, "Draft", "u")
    remote.fail_with = ConnectionError("network down")

    assert await engine.sync_artifact("a1") == SyncStatus.ERROR
    state = engine.get_state("a1")
    assert "Failed to sync artifact a1" in state.error
    assert len(store.pending("a1")) == 1

    remote.fail_with = None
    seen = []
    engine.subscribe("a1", seen.append)
    assert await engine.sync_artifact("a1") == SyncStatus.SYNCED
    assert seen[:2] == [SyncStatus.PENDING, SyncStatus.SYNCING]
    assert engine.get_state("a1").error is None


@pytest.mark.asyncio
async def test_change_during_write_stays_pending():
    engine, store, remote = _engine()

    class RacingRemote(FakeRemoteStore):
        async def create(self, artifact_id, owner_id, title, content):
            await super().create(artifact_id, owner_id, title, content)
            engine.record_local_change(artifact_id, BLOCKS, "typed meanwhile", owner_id)

    engine.remote = RacingRemote()
    engine.record_local_change("a1", BLOCKS, "first", "u")

    assert await engine.sync_artifact("a1") == SyncStatus.PENDING
    assert [s.title for s in store.pending("a1")] == ["typed meanwhile"]


@pytest.mark.asyncio
async def test_overlapping_sweep_is_dropped():
    engine, _, remote = _engine()
    engine.record_local_change("a1", BLOCKS, "Draft", "u")
    engine._is_syncing = True

    await engine.sync_all()

    assert remote.calls == []


@pytest.mark.asyncio
async def test_artifact_in_flight_is_skipped():
    engine, _, remote = _engine()
    engine.record_local_change("a1", BLOCKS, "Draft", "u")
    engine._in_flight.add("a1")

    assert await engine.sync_artifact("a1") == SyncStatus.PENDING
    assert remote.calls == []


@pytest.mark.asyncio
async def test_offline_marks_offline_and_skips_remote():
    engine, store, remote = _engine(online=False)

    engine.record_local_change("a1", BLOCKS, "Draft", "u")
    assert engine.get_status("a1") == SyncStatus.OFFLINE

    await engine.sync_all()
    assert await engine.sync_artifact("a1") == SyncStatus.OFFLINE
    assert remote.calls == []
    assert len(store.pending("a1")) == 1


@pytest.mark.asyncio
async def test_no_pending_snapshots_checks_remote_existence():
    engine, store, remote = _engine()
    store.save("a1", BLOCKS, "T", "u")
    store.mark_synced("a1", 1)

    assert await engine.sync_artifact("a1") == SyncStatus.PENDING
    assert remote.calls == [("exists", "a1")]

    remote.rows["a1"] = {}
    assert await engine.sync_artifact("a1") == SyncStatus.SYNCED

    # Already synced: no further remote traffic
    await engine.sync_artifact("a1")
    assert remote.count("exists") == 2


@pytest.mark.asyncio
async def test_existence_check_failure_sets_error():
    engine, store, remote = _engine()
    store.save("a1", BLOCKS, "T", "u")
    store.mark_synced("a1", 1)
    remote.fail_exists_with = TimeoutError("slow")

    assert await engine.sync_artifact("a1") == SyncStatus.ERROR
    assert "slow" in engine.get_state("a1").error


@pytest.mark.asyncio
async def test_force_sync_returns_state():
    engine, _, _ = _engine()
    engine.record_local_change("a1", BLOCKS, "Draft", "u")

    state = await engine.force_sync("a1")

    assert state.status == SyncStatus.SYNCED


def test_rebuild_states_from_stored_snapshots():
    engine, store, _ = _engine()
    store.save("a1", BLOCKS, "T", "u")
    store.save("b2", BLOCKS, "T", "u")
    store.mark_synced("b2", 1)

    engine.rebuild_states()

    assert engine.get_status("a1") == SyncStatus.PENDING
    assert engine.get_status("b2") == SyncStatus.SYNCED


def test_rebuild_states_offline():
    engine, store, _ = _engine(online=False)
    store.save("a1", BLOCKS, "T", "u")

    engine.rebuild_states()

    assert engine.get_status("a1") == SyncStatus.OFFLINE


def test_unknown_artifact_defaults_to_pending():
    engine, _, _ = _engine()
    assert engine.get_status("nope") == SyncStatus.PENDING


def test_listeners_notified_until_unsubscribed():
    engine, _, _ = _engine()
    seen = []
    unsubscribe = engine.subscribe("a1", seen.append)

    engine.record_local_change("a1", BLOCKS, "T", "u")
    unsubscribe()
    engine.record_local_change("a1", BLOCKS, "T", "u")

    assert seen == [SyncStatus.PENDING]


def test_failing_listener_does_not_block_others():
    engine, _, _ = _engine()
    seen = []

    def broken(status):
        raise RuntimeError("listener bug")

    engine.subscribe("a1", broken)
    engine.subscribe("a1", seen.append)

    engine.record_local_change("a1", BLOCKS, "T", "u")

    assert seen == [SyncStatus.PENDING]


def test_going_offline_marks_known_artifacts():
    engine, _, _ = _engine()
    engine.record_local_change("a1", BLOCKS, "T", "u")
    engine.record_local_change("b2", BLOCKS, "T", "u")

    engine.set_online(False)

    assert engine.get_status("a1") == SyncStatus.OFFLINE
    assert engine.get_status("b2") == SyncStatus.OFFLINE
    assert engine.running is False


@pytest.mark.asyncio
async def test_coming_online_restarts_sweep():
    engine, _, remote = _engine(online=False)
    engine.record_local_change("a1", BLOCKS, "T", "u")

    engine.set_online(True)
    assert engine.running is True
    for _ in range(5):
        await asyncio.sleep(0)

    await engine.shutdown()
    assert engine.running is False
    assert remote.count("create") == 1
    assert engine.get_status("a1") == SyncStatus.SYNCED


@pytest.mark.asyncio
async def test_start_is_idempotent():
    engine, _, _ = _engine()
    engine.start()
    task = engine._task
    engine.start()

    assert engine._task is task
    await engine.shutdown()
