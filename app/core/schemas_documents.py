"""Pydantic models for conversations, artifacts and local snapshots."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Conversations
# =============================================================================


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ContentType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    TEXT_WITH_IMAGE = "text-with-image"


class Message(BaseModel):
    """A single conversation message. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str
    content_type: ContentType = ContentType.TEXT
    image_ref: str | None = None  # "bucket/path" storage reference
    model: str | None = None  # provider model id that produced an assistant message
    metadata: dict[str, Any] | None = None


class Conversation(BaseModel):
    """Conversation with a lazily loaded message log."""

    id: str
    title: str = "New Conversation"
    messages: list[Message] | None = None  # None = not loaded yet
    model: str | None = None
    document_id: str | None = None  # linked artifact
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_loaded(self) -> bool:
        return self.messages is not None


# =============================================================================
# Artifacts
# =============================================================================


class Artifact(BaseModel):
    """A structured document: title plus an ordered block tree."""

    id: str
    title: str = "Untitled"
    content: list[dict[str, Any]] = Field(default_factory=list)
    folder_id: str | None = None
    owner_id: str
    updated_at: datetime | None = None


# =============================================================================
# Local snapshots and sync state
# =============================================================================


class ContentSnapshot(BaseModel):
    """Versioned local copy of an artifact's content."""

    artifact_id: str
    title: str
    content: list[dict[str, Any]] = Field(default_factory=list)
    version: int
    timestamp: float  # epoch seconds
    pending_sync: bool = True
    owner_id: str


class SyncStatus(str, Enum):
    SYNCED = "synced"
    SYNCING = "syncing"
    PENDING = "pending"
    ERROR = "error"
    OFFLINE = "offline"


class SyncState(BaseModel):
    """In-memory per-artifact sync status. Never persisted."""

    status: SyncStatus = SyncStatus.PENDING
    last_sync_time: float | None = None
    error: str | None = None
