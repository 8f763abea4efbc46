"""Deterministic post-processing of creator agent output.

Turns raw model text into a GenerationResult:
- EDITOR intent: whole cleaned text replaces the document
- CONVERSATION intent: whole text is chat
- No intent (mixed): explicit start/end markers split document from chat;
  without markers everything is chat, the split is never guessed
"""

import re

from app.context.models import Destination, IntentAnalysisResult
from app.core.llm import strip_outer_fence
from app.core.logging import get_logger
from app.core.schemas_generation import (
    EDITOR_CONFIRMATION,
    ChatOnly,
    FullReplace,
)

logger = get_logger(__name__)

EDITOR_START_MARKER = "--- EDITOR CONTENT START ---"
EDITOR_END_MARKER = "--- EDITOR CONTENT END ---"

EMPTY_EDITOR_NOTICE = "The assistant returned no content for the editor, so the document was left unchanged."

_FENCED_BLOCK_RE = re.compile(r"```[\s\S]*?```")


def clean_chat_text(text: str) -> str:
    """Collapse fenced code blocks to a placeholder and drop inline backticks."""
    cleaned = _FENCED_BLOCK_RE.sub("[Code Block]", text).replace("`", "")
    return cleaned or " "


def split_on_markers(text: str) -> tuple[str, str | None]:
    """Split text into (chat, document) using the editor content markers.

    Returns (text, None) when the markers are absent or out of order.
    """
    start = text.find(EDITOR_START_MARKER)
    end = text.find(EDITOR_END_MARKER)
    if start == -1 or end == -1 or start >= end:
        return text, None

    before = text[:start].strip()
    document = text[start + len(EDITOR_START_MARKER):end].strip()
    after = text[end + len(EDITOR_END_MARKER):].strip()

    chat = before
    if after:
        chat = f"{chat}\n{after}" if chat else after
    return chat, document


def parse_response(
    raw_text: str,
    intent: IntentAnalysisResult | None,
) -> FullReplace | ChatOnly:
    """
    Classify raw model output into a tagged generation result.

    Args:
        raw_text: Raw model reply
        intent: Intent for this turn, or None when the request is mixed/unclassified

    Returns:
        FullReplace or ChatOnly
    """
    text = strip_outer_fence(raw_text)

    if intent is not None and intent.destination == Destination.EDITOR:
        if not text:
            logger.warning("EDITOR response was empty after cleanup; returning chat notice")
            return ChatOnly(text=EMPTY_EDITOR_NOTICE)
        return FullReplace(markdown=text, chat_message=EDITOR_CONFIRMATION)

    if intent is not None and intent.destination == Destination.CONVERSATION:
        return ChatOnly(text=clean_chat_text(text))

    chat, document = split_on_markers(text)
    if document:
        logger.debug(f"Mixed response split: chat={len(chat)} chars, document={len(document)} chars")
        return FullReplace(markdown=document, chat_message=clean_chat_text(chat))

    return ChatOnly(text=clean_chat_text(chat))
