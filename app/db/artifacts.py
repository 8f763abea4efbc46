"""Database operations for the artifacts table."""

import asyncio
from datetime import datetime, timezone
from typing import Any

from app.core.logging import get_logger
from app.core.schemas_documents import Artifact
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_artifact(row: dict[str, Any]) -> Artifact:
    return Artifact(
        id=row["artifact_id"],
        title=row.get("title") or "Untitled",
        content=row.get("content") or [],
        folder_id=row.get("folder_id"),
        owner_id=row["user_id"],
        updated_at=row.get("updated_at"),
    )


def get_artifact(artifact_id: str) -> Artifact | None:
    """
    Get an artifact by ID.

    Returns:
        Artifact or None if not found
    """
    supabase = get_supabase()
    try:
        response = (
            supabase.table("artifacts")
            .select("*")
            .eq("artifact_id", artifact_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _row_to_artifact(response.data[0])
    except Exception as e:
        logger.error(f"Failed to get artifact {artifact_id}: {e}", extra={"artifact_id": artifact_id})
        raise


def artifact_exists(artifact_id: str) -> bool:
    """Check whether an artifact row exists."""
    supabase = get_supabase()
    response = (
        supabase.table("artifacts")
        .select("artifact_id")
        .eq("artifact_id", artifact_id)
        .limit(1)
        .execute()
    )
    return bool(response.data)


def create_artifact_with_id(
    artifact_id: str,
    owner_id: str,
    title: str,
    content: list[dict[str, Any]],
    folder_id: str | None = None,
) -> Artifact:
    """
    Insert an artifact using a client-generated id.

    Raises:
        ValueError: If the insert returns no row
    """
    supabase = get_supabase()
    row: dict[str, Any] = {
        "artifact_id": artifact_id,
        "user_id": owner_id,
        "title": title or "Untitled",
        "content": content,
        "folder_id": folder_id,
    }
    try:
        response = supabase.table("artifacts").insert(row).execute()
        if not response.data:
            raise ValueError("No data returned from artifact insert")
        logger.info(f"Created artifact {artifact_id}", extra={"artifact_id": artifact_id})
        return _row_to_artifact(response.data[0])
    except Exception as e:
        logger.error(f"Failed to create artifact {artifact_id}: {e}", extra={"artifact_id": artifact_id})
        raise


def update_artifact_content(
    artifact_id: str,
    content: list[dict[str, Any]],
    owner_id: str,
    title: str | None = None,
) -> Artifact:
    """
    Overwrite an artifact's content (and title when given).

    Scoped to the owner so one user can never write another user's row.

    Raises:
        ValueError: If no row matched
    """
    supabase = get_supabase()
    update_data: dict[str, Any] = {"content": content, "updated_at": _now_iso()}
    if title:
        update_data["title"] = title

    try:
        response = (
            supabase.table("artifacts")
            .update(update_data)
            .eq("artifact_id", artifact_id)
            .eq("user_id", owner_id)
            .execute()
        )
        if not response.data:
            raise ValueError(f"Artifact not found or not owned by user: {artifact_id}")
        logger.info(f"Updated artifact {artifact_id} ({len(content)} blocks)", extra={"artifact_id": artifact_id})
        return _row_to_artifact(response.data[0])
    except Exception as e:
        logger.error(f"Failed to update artifact {artifact_id}: {e}", extra={"artifact_id": artifact_id})
        raise


class SupabaseArtifactStore:
    """Remote store used by the sync engine, backed by the artifacts table."""

    async def exists(self, artifact_id: str) -> bool:
        return await asyncio.to_thread(artifact_exists, artifact_id)

    async def create(
        self,
        artifact_id: str,
        owner_id: str,
        title: str,
        content: list[dict[str, Any]],
    ) -> None:
        await asyncio.to_thread(create_artifact_with_id, artifact_id, owner_id, title, content)

    async def update(
        self,
        artifact_id: str,
        owner_id: str,
        title: str,
        content: list[dict[str, Any]],
    ) -> None:
        await asyncio.to_thread(update_artifact_content, artifact_id, content, owner_id, title=title)
