"""Typed channel between the assistant core and the document editor.

The core never touches editor internals. It publishes typed events
(apply a full replacement, apply a scoped patch, show a notification) and
asks for the current document through a request/response pair that
resolves to an empty response when the editor does not answer in time.
"""

import asyncio
import inspect
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, Field, ValidationError

from app.core.exceptions import ProtocolValidationError
from app.core.logging import get_logger
from app.core.schemas_generation import (
    ChatOnly,
    FullReplace,
    Modification,
    generation_result_adapter,
)

logger = get_logger(__name__)


# =============================================================================
# Events
# =============================================================================


class EditorEvent(BaseModel):
    """Base class for everything sent over the bridge."""


class DocumentContentRequest(EditorEvent):
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


class DocumentContentResponse(EditorEvent):
    request_id: str = ""
    markdown: str = ""
    selected_block_ids: list[str] = Field(default_factory=list)


class ApplyFullReplace(EditorEvent):
    markdown: str
    artifact_id: str | None = None


class ApplyModification(EditorEvent):
    target_block_ids: list[str]
    new_markdown: str


class Notify(EditorEvent):
    message: str
    level: Literal["info", "error", "success"] = "info"
    duration_ms: int | None = None


E = TypeVar("E", bound=EditorEvent)
Handler = Callable[[Any], Awaitable[None] | None]


# =============================================================================
# Bridge
# =============================================================================


class EditorBridge:
    """In-process typed pub/sub keyed by event class."""

    def __init__(self, request_timeout: float = 2.0):
        self.request_timeout = request_timeout
        self._handlers: dict[type[EditorEvent], list[Handler]] = {}

    def subscribe(self, event_type: type[E], handler: Callable[[E], Awaitable[None] | None]) -> Callable[[], None]:
        """
        Register a handler for one event type.

        Returns:
            Callable that removes the handler
        """
        self._handlers.setdefault(event_type, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    async def publish(self, event: EditorEvent) -> None:
        """Deliver an event to every handler of its exact type."""
        for handler in list(self._handlers.get(type(event), ())):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Editor handler failed for {type(event).__name__}")

    async def request_document_content(self) -> DocumentContentResponse:
        """
        Ask the editor for its current markdown and selection.

        Returns:
            The editor's response, or an empty response on timeout
        """
        request = DocumentContentRequest()
        future: asyncio.Future[DocumentContentResponse] = asyncio.get_running_loop().create_future()

        def on_response(response: DocumentContentResponse) -> None:
            if response.request_id == request.request_id and not future.done():
                future.set_result(response)

        unsubscribe = self.subscribe(DocumentContentResponse, on_response)
        try:
            await self.publish(request)
            return await asyncio.wait_for(future, timeout=self.request_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Editor did not answer content request within {self.request_timeout}s")
            return DocumentContentResponse(request_id=request.request_id)
        finally:
            unsubscribe()


# =============================================================================
# Applying generation results
# =============================================================================


def validate_generation_result(result: Any) -> FullReplace | Modification | ChatOnly:
    """
    Check a generation result has the shape the editor can apply.

    Raises:
        ProtocolValidationError: If the result is malformed
    """
    if isinstance(result, dict):
        try:
            result = generation_result_adapter.validate_python(result)
        except ValidationError as e:
            raise ProtocolValidationError(f"Malformed generation result: {e.error_count()} errors") from e

    if isinstance(result, Modification):
        if not result.target_block_ids:
            raise ProtocolValidationError("Modification has no target block ids")
        if not result.new_markdown.strip():
            raise ProtocolValidationError("Modification has no replacement markdown")
    elif isinstance(result, FullReplace):
        if not result.markdown.strip():
            raise ProtocolValidationError("Full replacement has no markdown")
    elif not isinstance(result, ChatOnly):
        raise ProtocolValidationError(f"Unknown generation result type: {type(result).__name__}")

    return result


async def dispatch_generation_result(
    bridge: EditorBridge,
    result: Any,
    artifact_id: str | None = None,
) -> bool:
    """
    Apply a generation result to the editor, all or nothing.

    Returns:
        True if an edit event was published, False for chat-only or rejected results
    """
    try:
        result = validate_generation_result(result)
    except ProtocolValidationError as e:
        logger.warning(f"Rejected generation result: {e}", extra={"artifact_id": artifact_id})
        await bridge.publish(Notify(message=f"Could not apply the assistant's edit: {e}", level="error"))
        return False

    if isinstance(result, FullReplace):
        await bridge.publish(ApplyFullReplace(markdown=result.markdown, artifact_id=artifact_id))
        return True
    if isinstance(result, Modification):
        await bridge.publish(
            ApplyModification(target_block_ids=result.target_block_ids, new_markdown=result.new_markdown)
        )
        return True
    return False
