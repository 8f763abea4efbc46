"""Creator agent: one generation turn from intent to GenerationResult.

Steps:
1. Decide whether to search (explicit mode > intent flag > heuristic) and
   inject results as a system turn
2. Build the system instruction with document/history priority
3. Dispatch through the ModelAdapter
4. Parse the reply into a tagged GenerationResult

generate() never raises. Search failures degrade to a note in history and
everything else becomes a ChatOnly apology.
"""

from collections.abc import Awaitable, Callable

from app.context.models import Destination, IntentAnalysisResult
from app.core.exa_service import format_search_turn
from app.core.exceptions import SearchError
from app.core.logging import get_logger
from app.core.model_adapter import ModelAdapter
from app.core.response_parser import (
    EDITOR_END_MARKER,
    EDITOR_START_MARKER,
    parse_response,
)
from app.core.schemas_generation import ChatOnly, FullReplace, SearchResultItem, Turn
from app.core.search_heuristics import extract_search_query, should_search

logger = get_logger(__name__)

SEARCH_TURN_PREFIX = "Search results for"
SECONDARY_CONTEXT_MARKER = "**Secondary Context: Conversation History**"
APOLOGY_TEXT = "Sorry, I ran into a problem generating a response. Please try again."

SearchRecorder = Callable[[str, list[SearchResultItem]], Awaitable[None]]


# =============================================================================
# Prompt construction
# =============================================================================


def document_is_primary(
    document_markdown: str | None,
    intent: IntentAnalysisResult | None,
    history: list[Turn],
) -> bool:
    """Document leads the context for editor turns and for fresh conversations."""
    if not document_markdown:
        return False
    is_editor = intent is not None and intent.destination == Destination.EDITOR
    return is_editor or len(history) < 2


def build_system_instruction(
    intent: IntentAnalysisResult | None,
    document_markdown: str | None,
    document_primary: bool,
) -> str:
    """System prompt for the creator agent."""
    if intent is None:
        parts = ["You are a helpful AI assistant helping a user write and edit a document."]
    else:
        parts = [
            "You are a helpful AI assistant helping a user write and edit a document. "
            f"The user's intent is likely '{intent.destination.value}' "
            f"(confidence {intent.confidence:.2f}). Reason: {intent.reasoning}"
        ]

    if document_primary:
        parts.append(
            "**Primary Context: Current Editor Content**\n"
            f"```markdown\n{document_markdown}\n```\n\n"
            "Your main goal is to understand, analyze, or modify the Primary Context "
            "(Editor Content) based on the user's request. Conversation history is secondary context."
        )
    elif document_markdown:
        parts.append(
            "The conversation history is your primary context. The current editor content "
            f"is available for reference:\n```markdown\n{document_markdown}\n```"
        )

    if intent is None:
        parts.append(
            "Respond conversationally in the chat. If the request also calls for document "
            "content (a list, a section, code), put that content in standard Markdown between "
            f"'{EDITOR_START_MARKER}' and '{EDITOR_END_MARKER}'. If no document content is "
            "needed, give only the chat response."
        )
    elif intent.destination == Destination.EDITOR:
        parts.append(
            "Respond only with the updated markdown content for the editor. Use standard "
            "Markdown (headings, lists, emphasis, code blocks). Do not include conversational "
            'filler such as "Okay, here is the content:".'
        )
    else:
        parts.append(
            "Provide a helpful chat response based on the conversation and the user's current "
            "request. Do not produce content for the editor."
        )

    return "\n\n".join(parts)


def _has_search_results(history: list[Turn]) -> bool:
    return any(t.role == "system" and SEARCH_TURN_PREFIX in t.text for t in history)


def decide_search(
    user_input: str,
    intent: IntentAnalysisResult | None,
    search_mode: bool | None,
    history: list[Turn],
) -> str | None:
    """
    Return the query to search for, or None to skip searching.

    Precedence: explicit search_mode, then the intent flag, then the regex
    heuristic. Skipped when history already carries search results.
    """
    if _has_search_results(history):
        return None

    if search_mode is not None:
        wanted = search_mode
    elif intent is not None and intent.needs_web_search:
        wanted = True
    else:
        wanted = should_search(user_input)

    if not wanted:
        return None

    query = intent.search_query if intent is not None and intent.search_query else None
    query = query or extract_search_query(user_input)
    return query or None


# =============================================================================
# Orchestrator
# =============================================================================


class GenerationOrchestrator:
    """Runs the creator agent for one turn."""

    def __init__(
        self,
        adapter: ModelAdapter,
        search_service=None,
        default_model: str = "gemini-2.0-flash",
        search_limit: int = 5,
    ):
        self.adapter = adapter
        self.search_service = search_service
        self.default_model = default_model
        self.search_limit = search_limit

    async def _search_turn(self, query: str, on_search: SearchRecorder | None) -> Turn:
        try:
            if self.search_service is None:
                raise SearchError("No search capability configured")
            results = await self.search_service.search(query, self.search_limit)
        except Exception as e:
            logger.warning(f"Web search failed for '{query[:50]}': {e}")
            return Turn(
                role="system",
                text=f'Web search for "{query}" failed; answering without search results.',
            )

        if on_search is not None:
            try:
                await on_search(query, results)
            except Exception as e:
                logger.warning(f"Failed to record web search: {e}")

        return Turn(role="system", text=format_search_turn(query, results))

    async def generate(
        self,
        user_input: str,
        intent: IntentAnalysisResult | None,
        history: list[Turn],
        current_image_ref: str | None = None,
        document_markdown: str | None = None,
        model_id: str | None = None,
        search_mode: bool | None = None,
        on_search: SearchRecorder | None = None,
    ) -> FullReplace | ChatOnly:
        """
        Produce a GenerationResult for one user turn.

        Args:
            user_input: The user's message
            intent: Classifier result, or None when the request is mixed
            history: Prior turns, oldest first
            current_image_ref: Storage ref of an image attached to this turn
            document_markdown: Current document as markdown
            model_id: Model to use (settings default when omitted)
            search_mode: Force search on/off; None defers to intent/heuristics
            on_search: Called with (query, results) after a successful search

        Returns:
            FullReplace or ChatOnly
        """
        model = model_id or self.default_model
        history = list(history)

        try:
            primary = document_is_primary(document_markdown, intent, history)

            query = decide_search(user_input, intent, search_mode, history)
            if query:
                history.append(await self._search_turn(query, on_search))

            system_instruction = build_system_instruction(intent, document_markdown, primary)
            if primary and history:
                history.insert(0, Turn(role="system", text=SECONDARY_CONTEXT_MARKER))

            reply = await self.adapter.send(
                history,
                Turn(role="user", text=user_input, image_ref=current_image_ref),
                model,
                system_instruction=system_instruction,
            )
            result = parse_response(reply.text, intent)

        except Exception as e:
            logger.error(
                f"Creator agent failed: {e}",
                extra={"model_id": model},
                exc_info=True,
            )
            return ChatOnly(text=APOLOGY_TEXT)

        logger.info(
            f"Creator agent produced {result.type}",
            extra={
                "model_id": model,
                "destination": intent.destination.value if intent else "MIXED",
            },
        )
        return result
