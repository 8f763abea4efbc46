"""Pydantic models for intent classification and editor context."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Destination(str, Enum):
    """Where an assistant response should go."""

    EDITOR = "EDITOR"
    CONVERSATION = "CONVERSATION"


class EditorAction(str, Enum):
    """Operation the user wants applied to the document."""

    ADD = "ADD"
    MODIFY = "MODIFY"
    EXPAND = "EXPAND"
    REPLACE = "REPLACE"
    REFORMAT = "REFORMAT"
    DELETE = "DELETE"

    @property
    def is_scoped(self) -> bool:
        """Actions that naturally target an existing span of the document."""
        return self in (EditorAction.MODIFY, EditorAction.EXPAND, EditorAction.REFORMAT, EditorAction.DELETE)


class IntentAnalysisResult(BaseModel):
    """Advisory routing decision for one user turn. Never persisted."""

    destination: Destination = Field(..., description="EDITOR or CONVERSATION")
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: str = ""
    needs_web_search: bool = False
    search_query: str | None = None
    editor_action: EditorAction | None = None


class EditorContext(BaseModel):
    """What the editor tells the classifier about the open document."""

    current_file: str | None = None
    current_selection: str | None = None
    document_outline: list[str] | None = None
    blocks: list[dict[str, Any]] | None = None  # top-level block tree, used to derive an outline
