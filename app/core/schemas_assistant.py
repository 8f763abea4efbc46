"""Request/response models for the assistant and artifact endpoints."""

from typing import Any

from pydantic import BaseModel, Field

from app.context.models import EditorContext, IntentAnalysisResult
from app.core.schemas_documents import SyncState
from app.core.schemas_generation import GenerationResult


class ClassifyRequest(BaseModel):
    utterance: str = Field(..., min_length=1)
    editor_context: EditorContext | None = None


class TurnRequest(BaseModel):
    """One user turn plus what the editor currently shows."""

    owner_id: str
    message: str = Field(..., min_length=1)
    conversation_id: str | None = None
    artifact_id: str | None = None
    model_id: str | None = None
    image_ref: str | None = Field(default=None, description="Storage reference 'bucket/path'")
    search_mode: bool | None = Field(default=None, description="Force web search on or off")
    document_markdown: str = ""
    selected_block_ids: list[str] = Field(default_factory=list)
    editor_context: EditorContext | None = None


class TurnOutcome(BaseModel):
    conversation_id: str
    intent: IntentAnalysisResult
    result: GenerationResult
    chat_message: str
    applied: bool
    title: str | None = None


class TurnResponse(TurnOutcome):
    editor_events: list[dict[str, Any]] = Field(default_factory=list)


class ModifyRequest(BaseModel):
    instruction: str = Field(..., min_length=1)
    target_block_ids: list[str]
    full_document_markdown: str
    selected_markdown: str | None = None
    model_id: str | None = None


class SnapshotRequest(BaseModel):
    owner_id: str
    title: str = "Untitled"
    content: list[dict[str, Any]] = Field(default_factory=list)


class SyncStateResponse(BaseModel):
    artifact_id: str
    state: SyncState
