"""Intent classification for assistant turns.

Decides whether a user's message should change the document (EDITOR) or be
answered in chat (CONVERSATION), whether a web search would help, and which
editor operation is meant. One low-temperature Claude call per turn; every
failure degrades to a CONVERSATION default so routing never blocks a turn.
"""

import math
import time
from typing import Any

from app.context.models import Destination, EditorAction, EditorContext, IntentAnalysisResult
from app.core.exceptions import ClassificationError
from app.core.llm import parse_llm_json_dict
from app.core.llm_usage import anthropic_metadata, error_metadata, log_llm_usage
from app.core.logging import get_logger
from app.core.search_heuristics import extract_search_query, looks_like_search_request

logger = get_logger(__name__)

MAX_TOKENS = 400
FALLBACK_CONFIDENCE = 0.5
FALLBACK_REASONING = "Intent analysis failed; defaulted to conversation."


# =============================================================================
# Document outline
# =============================================================================


def _block_text(block: dict[str, Any]) -> str:
    content = block.get("content")
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    return "".join(
        item.get("text", "")
        for item in content
        if isinstance(item, dict) and item.get("type") == "text"
    )


def build_document_outline(blocks: list[dict[str, Any]]) -> list[str]:
    """Collect top-level headings as ``## Heading`` lines."""
    outline = []
    for block in blocks:
        if not isinstance(block, dict) or block.get("type") != "heading":
            continue
        props = block.get("props") or {}
        level = props.get("level") if isinstance(props.get("level"), int) else 1
        text = _block_text(block).strip()
        if text:
            outline.append(f"{'#' * level} {text}")
    return outline


# =============================================================================
# Prompt
# =============================================================================


def _context_section(editor_context: EditorContext | None) -> tuple[str, str]:
    if editor_context is None:
        return "No specific editor context available.", ""

    lines = []
    if editor_context.current_file:
        lines.append(f"Current file open in editor: {editor_context.current_file}")
    if editor_context.current_selection:
        lines.append(f"Current selection in editor: {editor_context.current_selection}")

    outline = editor_context.document_outline
    if outline is None and editor_context.blocks is not None:
        lines.append(f"Editor has existing content: {len(editor_context.blocks)} blocks")
        outline = build_document_outline(editor_context.blocks)

    structure = ""
    if outline:
        structure = "Document Outline:\n" + "\n".join(outline)
    elif outline is not None:
        structure = "Document does not contain any headings structure."

    return "\n".join(lines) or "No specific editor context available.", structure


def build_intent_prompt(utterance: str, editor_context: EditorContext | None = None) -> str:
    """Build the single classification prompt."""
    context_info, structure = _context_section(editor_context)
    structure_block = f"### Document Structure:\n{structure}\n" if structure else ""

    return f"""You are the intent classifier for a document editor with a built-in assistant. Decide whether the user's message asks for content to be created or changed inside the editor (EDITOR) or for an answer, explanation or discussion in the chat pane (CONVERSATION).

### Editor Context:
{context_info}

{structure_block}
### User Input:
{utterance}

### EDITOR requests
The user wants the document itself to change:
- generate new content (sections, lists, code, summaries, plans, full documents)
- insert, modify, rewrite, replace or delete existing content
- reformat content (headings, markdown, ordering, indentation)
- structured output on command ("list the pros and cons", "summarize this section", "expand on this point")
Typical verbs: write, research, create, add, insert, change, update, modify, delete, remove, replace, rewrite, format, summarize, expand, list, brainstorm, generate, put, make.

### CONVERSATION requests
The user wants an answer, not an edit:
- explanations and definitions ("What is Python?")
- how-to questions about the editor or anything else ("How do I add a table?")
- general knowledge questions, opinions, small talk, questions about the assistant
Typical openers: explain, tell me about, what is, how do I, can you, why, describe, compare.

### Web search
Set "needsWebSearch" to true when the request depends on facts that may be recent or outside your knowledge: current events, news, trends, statistics, specific people, companies or products, comparisons backed by data, or explicit phrases like "search for", "find information about", "look up".
If the user asks about an image they uploaded and did not explicitly ask for a web search, "needsWebSearch" must be false.

### Editor operation (EDITOR only)
- ADD: new content added without replacing what is there
- MODIFY: change or enhance existing content, keeping its structure
- EXPAND: elaborate on a specific existing section
- REPLACE: replace the existing content entirely
- REFORMAT: change formatting or organization only
- DELETE: remove specific content

### Ambiguity
- Asking how to do something leans CONVERSATION; commanding it leans EDITOR.
- When unsure, prefer CONVERSATION and lower the confidence.

### Output
Respond with a single JSON object and nothing else:
{{
  "destination": "EDITOR",
  "confidence": 0.9,
  "reasoning": "The user asks for a new section in the document.",
  "needsWebSearch": false,
  "searchQuery": "",
  "editorAction": "ADD"
}}

Rules:
- "destination" is "EDITOR" or "CONVERSATION"
- "confidence" is a number between 0 and 1
- "reasoning" is one short sentence
- "searchQuery" holds the core query only when "needsWebSearch" is true
- "editorAction" is required for EDITOR and omitted for CONVERSATION
"""


# =============================================================================
# Response parsing
# =============================================================================


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return FALLBACK_CONFIDENCE
    if not math.isfinite(value):
        return FALLBACK_CONFIDENCE
    if value < 0 or value > 1:
        return FALLBACK_CONFIDENCE
    return float(value)


def _coerce_action(value: Any) -> EditorAction | None:
    if not isinstance(value, str):
        return None
    try:
        return EditorAction(value.strip().upper())
    except ValueError:
        return None


def parse_intent_response(raw_text: str, utterance: str) -> IntentAnalysisResult:
    """
    Turn the classifier's raw reply into an IntentAnalysisResult.

    Raises:
        ClassificationError: If no usable JSON object is present
    """
    try:
        parsed = parse_llm_json_dict(raw_text)
    except (ValueError, TypeError) as e:
        raise ClassificationError(f"Unparseable intent response: {e}") from e

    if "destination" not in parsed or not parsed.get("reasoning"):
        raise ClassificationError("Intent response is missing required fields")

    try:
        destination = Destination(str(parsed["destination"]).strip().upper())
    except ValueError:
        logger.warning(f"Invalid destination {parsed['destination']!r}, using CONVERSATION")
        destination = Destination.CONVERSATION

    needs_web_search = parsed.get("needsWebSearch") is True
    search_query = None
    if needs_web_search:
        query = parsed.get("searchQuery")
        search_query = query.strip() if isinstance(query, str) and query.strip() else extract_search_query(utterance)

    editor_action = None
    if destination == Destination.EDITOR:
        metadata = parsed.get("metadata") if isinstance(parsed.get("metadata"), dict) else {}
        editor_action = _coerce_action(parsed.get("editorAction") or metadata.get("editorAction"))

    return IntentAnalysisResult(
        destination=destination,
        confidence=_coerce_confidence(parsed.get("confidence")),
        reasoning=str(parsed["reasoning"]),
        needs_web_search=needs_web_search,
        search_query=search_query,
        editor_action=editor_action,
    )


def fallback_intent(utterance: str) -> IntentAnalysisResult:
    """CONVERSATION default with search need re-derived from the text."""
    needs_web_search = looks_like_search_request(utterance)
    return IntentAnalysisResult(
        destination=Destination.CONVERSATION,
        confidence=FALLBACK_CONFIDENCE,
        reasoning=FALLBACK_REASONING,
        needs_web_search=needs_web_search,
        search_query=extract_search_query(utterance) if needs_web_search else None,
    )


# =============================================================================
# Classifier
# =============================================================================


class IntentClassifier:
    """Routes a user utterance to EDITOR or CONVERSATION."""

    def __init__(self, client: Any, model: str, temperature: float = 0.2):
        self.client = client
        self.model = model
        self.temperature = temperature

    async def _call_model(self, prompt: str) -> str:
        if self.client is None:
            raise ClassificationError("No intent model client configured")

        start = time.monotonic()
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=MAX_TOKENS,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            log_llm_usage("classify_intent", "anthropic", self.model, error_metadata(e, start))
            raise ClassificationError(f"Intent model call failed: {e}") from e

        log_llm_usage("classify_intent", "anthropic", self.model, anthropic_metadata(response, start, self.model))
        return response.content[0].text if response.content else ""

    async def classify(
        self,
        utterance: str,
        editor_context: EditorContext | None = None,
    ) -> IntentAnalysisResult:
        """
        Classify one utterance. Never raises.

        Args:
            utterance: The user's message
            editor_context: Optional selection/outline/blocks of the open document

        Returns:
            IntentAnalysisResult (CONVERSATION default on any failure)
        """
        try:
            text = await self._call_model(build_intent_prompt(utterance, editor_context))
            result = parse_intent_response(text, utterance)
        except Exception as e:
            logger.warning(f"Intent classification failed, defaulting to CONVERSATION: {e}")
            return fallback_intent(utterance)

        logger.info(
            f"Intent: {result.destination.value} (confidence={result.confidence:.2f}, "
            f"search={result.needs_web_search}, action={result.editor_action.value if result.editor_action else None})",
            extra={"destination": result.destination.value},
        )
        return result
