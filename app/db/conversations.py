"""Database operations for conversations and messages tables.

Messages are append-only: there is no update or delete for a single message.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from app.core.logging import get_logger
from app.core.schemas_documents import Conversation, Message
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_message(row: dict[str, Any]) -> Message:
    return Message(
        role=row["role"],
        content=row.get("content") or "",
        content_type=row.get("content_type") or "text",
        image_ref=row.get("image_url"),
        model=row.get("model"),
        metadata=row.get("metadata") or None,
    )


def _row_to_conversation(row: dict[str, Any], messages: list[Message] | None = None) -> Conversation:
    return Conversation(
        id=row["conversation_id"],
        title=row.get("title") or "New Conversation",
        messages=messages,
        model=row.get("model"),
        document_id=row.get("artifact_id"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def create_conversation(
    owner_id: str,
    title: str = "New Conversation",
    document_id: str | None = None,
    conversation_id: str | None = None,
    model: str | None = None,
) -> Conversation:
    """
    Create a conversation, generating an id when none is given.

    Raises:
        ValueError: If the insert returns no row
    """
    supabase = get_supabase()
    row: dict[str, Any] = {
        "conversation_id": conversation_id or str(uuid.uuid4()),
        "user_id": owner_id,
        "title": title,
        "artifact_id": document_id,
    }
    if model:
        row["model"] = model

    try:
        response = supabase.table("conversations").insert(row).execute()
        if not response.data:
            raise ValueError("No data returned from conversation insert")
        conversation = _row_to_conversation(response.data[0], messages=[])
        logger.info(f"Created conversation {conversation.id}", extra={"conversation_id": conversation.id})
        return conversation
    except Exception as e:
        logger.error(f"Failed to create conversation: {e}")
        raise


def get_conversation(conversation_id: str, include_messages: bool = False) -> Conversation | None:
    """
    Get a conversation, optionally with its message log.

    Returns:
        Conversation (messages None unless loaded) or None if not found
    """
    supabase = get_supabase()
    try:
        response = (
            supabase.table("conversations")
            .select("*")
            .eq("conversation_id", conversation_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        messages = list_messages(conversation_id) if include_messages else None
        return _row_to_conversation(response.data[0], messages=messages)
    except Exception as e:
        logger.error(
            f"Failed to get conversation {conversation_id}: {e}",
            extra={"conversation_id": conversation_id},
        )
        raise


def list_messages(conversation_id: str, limit: int | None = None) -> list[Message]:
    """List messages oldest first. With ``limit``, only the most recent ones."""
    supabase = get_supabase()
    query = (
        supabase.table("messages")
        .select("*")
        .eq("conversation_id", conversation_id)
        .order("created_at", desc=limit is not None)
    )
    if limit is not None:
        query = query.limit(limit)
    rows = query.execute().data or []
    if limit is not None:
        rows = list(reversed(rows))
    return [_row_to_message(row) for row in rows]


def append_message(conversation_id: str, message: Message) -> str:
    """
    Append a message to a conversation.

    Returns:
        The new message id

    Raises:
        ValueError: If the insert returns no row
    """
    supabase = get_supabase()
    row: dict[str, Any] = {
        "conversation_id": conversation_id,
        "role": message.role.value,
        "content": message.content,
        "content_type": message.content_type.value,
        "image_url": message.image_ref,
        "model": message.model,
        "metadata": message.metadata or {},
    }
    if message.metadata:
        row["metadata_version"] = message.metadata.get("metadata_version", "1.0")

    try:
        response = supabase.table("messages").insert(row).execute()
        if not response.data:
            raise ValueError("No data returned from message insert")
        return response.data[0].get("message_id", "")
    except Exception as e:
        logger.error(
            f"Failed to append {message.role.value} message: {e}",
            extra={"conversation_id": conversation_id},
        )
        raise


def update_conversation_title(conversation_id: str, title: str) -> None:
    supabase = get_supabase()
    supabase.table("conversations").update(
        {"title": title, "updated_at": _now_iso()}
    ).eq("conversation_id", conversation_id).execute()


def link_document(conversation_id: str, document_id: str) -> None:
    """Attach an artifact to a conversation (at most one per conversation)."""
    supabase = get_supabase()
    supabase.table("conversations").update(
        {"artifact_id": document_id, "updated_at": _now_iso()}
    ).eq("conversation_id", conversation_id).execute()


def touch_conversation(conversation_id: str) -> None:
    supabase = get_supabase()
    supabase.table("conversations").update(
        {"updated_at": _now_iso()}
    ).eq("conversation_id", conversation_id).execute()
