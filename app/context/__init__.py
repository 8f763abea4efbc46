"""Intent classification and editor context for assistant turns.

This module provides:
- Destination routing (EDITOR vs CONVERSATION) via a single LLM call
- Document outline extraction from the editor's block tree
- Web search need detection with a heuristic fallback
"""

from app.context.models import (
    Destination,
    EditorAction,
    EditorContext,
    IntentAnalysisResult,
)

__all__ = [
    "Destination",
    "EditorAction",
    "EditorContext",
    "IntentAnalysisResult",
]
