"""Tests for artifact snapshot and sync endpoints."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_services
from app.core.config import get_settings
from app.core.rate_limiter import MinIntervalThrottle
from app.main import app
from app.services.container import Services
from app.services.snapshot_store import InMemoryKeyValueStore, LocalSnapshotStore
from app.services.sync_engine import SyncEngine
from tests.fakes.fake_remote_store import FakeRemoteStore

client = TestClient(app)


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def services(remote):
    store = LocalSnapshotStore(InMemoryKeyValueStore())
    services = Services(
        settings=get_settings(),
        classifier=MagicMock(),
        adapter=MagicMock(),
        orchestrator=MagicMock(),
        search=MagicMock(),
        snapshot_store=store,
        sync_engine=SyncEngine(store, remote, throttle=MinIntervalThrottle(0.0)),
    )
    app.dependency_overrides[get_services] = lambda: services
    yield services
    app.dependency_overrides.clear()


BLOCKS = [{"id": "b1", "type": "heading", "props": {"level": 1}, "content": [{"type": "text", "text": "Plan"}]}]


def test_save_snapshot_marks_pending(services):
    response = client.post("/v1/artifacts/a1/snapshots", json={"owner_id": "user-1", "title": "Plan", "content": BLOCKS})

    assert response.status_code == 200
    data = response.json()
    assert data["version"] == 1
    assert data["pending_sync"] is True

    state = client.get("/v1/artifacts/a1/sync").json()
    assert state == {
        "artifact_id": "a1",
        "state": {"status": "pending", "last_sync_time": None, "error": None},
    }


def test_force_sync_pushes_latest(services, remote):
    client.post("/v1/artifacts/a1/snapshots", json={"owner_id": "user-1", "title": "v1", "content": BLOCKS})
    client.post("/v1/artifacts/a1/snapshots", json={"owner_id": "user-1", "title": "v2", "content": BLOCKS})

    response = client.post("/v1/artifacts/a1/sync")

    assert response.status_code == 200
    assert response.json()["state"]["status"] == "synced"
    assert remote.rows["a1"]["title"] == "v2"
    assert remote.count("create") == 1

    latest = client.get("/v1/artifacts/a1/snapshots/latest").json()
    assert latest["version"] == 2
    assert latest["pending_sync"] is False


def test_force_sync_error_state(services, remote):
    remote.fail_with = ConnectionError("offline")
    client.post("/v1/artifacts/a1/snapshots", json={"owner_id": "user-1", "content": BLOCKS})

    state = client.post("/v1/artifacts/a1/sync").json()["state"]

    assert state["status"] == "error"
    assert "offline" in state["error"]


def test_latest_snapshot_missing_is_404(services):
    response = client.get("/v1/artifacts/nope/snapshots/latest")
    assert response.status_code == 404
