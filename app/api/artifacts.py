"""Artifact API: local snapshots and sync status."""

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_services
from app.core.logging import get_logger
from app.core.schemas_assistant import SnapshotRequest, SyncStateResponse
from app.core.schemas_documents import ContentSnapshot
from app.services.container import Services

logger = get_logger(__name__)

router = APIRouter(prefix="/artifacts")


@router.post("/{artifact_id}/snapshots", response_model=ContentSnapshot)
async def save_snapshot(
    artifact_id: str,
    request: SnapshotRequest,
    services: Services = Depends(get_services),
) -> ContentSnapshot:
    """Record a local content change; the sync engine pushes it later."""
    try:
        return services.sync_engine.record_local_change(
            artifact_id, request.content, request.title, request.owner_id
        )
    except Exception as e:
        logger.error(f"Error saving snapshot: {e}", exc_info=True, extra={"artifact_id": artifact_id})
        raise HTTPException(status_code=500, detail="Failed to save snapshot") from e


@router.get("/{artifact_id}/snapshots/latest", response_model=ContentSnapshot)
async def latest_snapshot(
    artifact_id: str,
    services: Services = Depends(get_services),
) -> ContentSnapshot:
    snapshot = services.snapshot_store.latest(artifact_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No local snapshots for artifact")
    return snapshot


@router.get("/{artifact_id}/sync", response_model=SyncStateResponse)
async def get_sync_state(
    artifact_id: str,
    services: Services = Depends(get_services),
) -> SyncStateResponse:
    """Current in-memory sync state."""
    return SyncStateResponse(artifact_id=artifact_id, state=services.sync_engine.get_state(artifact_id))


@router.post("/{artifact_id}/sync", response_model=SyncStateResponse)
async def force_sync(
    artifact_id: str,
    services: Services = Depends(get_services),
) -> SyncStateResponse:
    """Reconcile one artifact now."""
    state = await services.sync_engine.force_sync(artifact_id)
    return SyncStateResponse(artifact_id=artifact_id, state=state)
