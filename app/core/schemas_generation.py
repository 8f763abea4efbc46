"""Pydantic models exchanged between model backends, generation and the editor.

GenerationResult is a closed tagged union discriminated on ``type``. It is
built immediately after a model reply is parsed so nothing downstream ever
branches on raw provider shapes.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


# =============================================================================
# Model adapter I/O
# =============================================================================


class Turn(BaseModel):
    """One turn handed to a model backend."""

    role: Literal["user", "assistant", "system"]
    text: str
    image_ref: str | None = None


class ResponseMetadata(BaseModel):
    """Provider-neutral performance metadata for one model call."""

    response_time_ms: int
    status: Literal["success", "error"] = "success"
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None
    model_version: str | None = None
    cost: float | None = None
    error: dict[str, str] | None = None
    metadata_version: str = "1.0"
    provider_specific: dict[str, Any] = Field(default_factory=dict)


class ModelReply(BaseModel):
    """Normalized reply from any backend family."""

    text: str
    raw: Any = None
    metadata: ResponseMetadata


# =============================================================================
# Generation results
# =============================================================================

EDITOR_CONFIRMATION = "Okay, I've added the content to the editor."


class FullReplace(BaseModel):
    """Replace the whole document with ``markdown``."""

    type: Literal["full_replace"] = "full_replace"
    markdown: str
    chat_message: str = EDITOR_CONFIRMATION


class Modification(BaseModel):
    """Replace exactly ``target_block_ids`` with ``new_markdown``."""

    type: Literal["modification"] = "modification"
    target_block_ids: list[str]
    new_markdown: str


class ChatOnly(BaseModel):
    """Reply that only goes to the chat pane."""

    type: Literal["chat_only"] = "chat_only"
    text: str


GenerationResult = Annotated[
    Union[FullReplace, Modification, ChatOnly],
    Field(discriminator="type"),
]

generation_result_adapter: TypeAdapter[GenerationResult] = TypeAdapter(GenerationResult)


def chat_text(result: FullReplace | Modification | ChatOnly) -> str:
    """Text to show in the chat pane for a result."""
    if isinstance(result, ChatOnly):
        return result.text
    if isinstance(result, FullReplace):
        return result.chat_message
    return "Okay, I've updated the selected section."


# =============================================================================
# Search
# =============================================================================


class SearchResultItem(BaseModel):
    title: str = "No title"
    url: str
    text: str = "No content available"
    score: float | None = None


class Citation(BaseModel):
    id: str | None = None
    url: str
    title: str | None = None
    author: str | None = None
    published_date: str | None = None
    text: str | None = None


class SearchAnswer(BaseModel):
    answer: str
    citations: list[Citation] = Field(default_factory=list)
