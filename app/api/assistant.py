"""Assistant API: intent classification, full turns and scoped edits."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_services
from app.chains.generate_scoped_modification import apply_modification
from app.context.models import IntentAnalysisResult
from app.core.editor_bridge import (
    ApplyFullReplace,
    ApplyModification,
    DocumentContentRequest,
    DocumentContentResponse,
    EditorBridge,
    Notify,
)
from app.core.exceptions import ProtocolValidationError
from app.core.logging import get_logger
from app.core.rate_limiter import check_chat_rate_limit
from app.core.schemas_assistant import (
    ClassifyRequest,
    ModifyRequest,
    TurnRequest,
    TurnResponse,
)
from app.core.schemas_generation import Modification
from app.services.assistant_turn import run_assistant_turn
from app.services.container import Services

logger = get_logger(__name__)

router = APIRouter(prefix="/assistant")


def _request_bridge(request: TurnRequest, timeout: float) -> tuple[EditorBridge, list[dict[str, Any]]]:
    """Bridge that answers content requests from the request body and records edits."""
    bridge = EditorBridge(request_timeout=timeout)
    events: list[dict[str, Any]] = []

    async def answer(content_request: DocumentContentRequest) -> None:
        await bridge.publish(
            DocumentContentResponse(
                request_id=content_request.request_id,
                markdown=request.document_markdown,
                selected_block_ids=request.selected_block_ids,
            )
        )

    def record(event_type: str):
        def handler(event) -> None:
            events.append({"type": event_type, **event.model_dump()})

        return handler

    bridge.subscribe(DocumentContentRequest, answer)
    bridge.subscribe(ApplyFullReplace, record("apply_full_replace"))
    bridge.subscribe(ApplyModification, record("apply_modification"))
    bridge.subscribe(Notify, record("notify"))
    return bridge, events


@router.post("/classify", response_model=IntentAnalysisResult)
async def classify_intent(
    request: ClassifyRequest,
    services: Services = Depends(get_services),
) -> IntentAnalysisResult:
    """Classify an utterance as EDITOR or CONVERSATION."""
    return await services.classifier.classify(request.utterance, request.editor_context)


@router.post("/turn", response_model=TurnResponse)
async def assistant_turn(
    request: TurnRequest,
    services: Services = Depends(get_services),
) -> TurnResponse:
    """Run one assistant turn and return the result plus editor events."""
    check_chat_rate_limit(request.conversation_id or f"owner:{request.owner_id}")

    bridge, events = _request_bridge(request, services.settings.EDITOR_REQUEST_TIMEOUT_SECONDS)
    try:
        outcome = await run_assistant_turn(
            services,
            bridge,
            owner_id=request.owner_id,
            user_input=request.message,
            conversation_id=request.conversation_id,
            artifact_id=request.artifact_id,
            model_id=request.model_id,
            image_ref=request.image_ref,
            search_mode=request.search_mode,
            editor_context=request.editor_context,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error in assistant turn: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Assistant turn failed") from e

    return TurnResponse(**outcome.model_dump(), editor_events=events)


@router.post("/modify", response_model=Modification)
async def modify_selection(
    request: ModifyRequest,
    services: Services = Depends(get_services),
) -> Modification:
    """Generate a scoped patch for the selected blocks."""
    try:
        return await apply_modification(
            services.adapter,
            request.instruction,
            request.target_block_ids,
            request.full_document_markdown,
            request.model_id or services.settings.DEFAULT_CHAT_MODEL,
            selected_markdown=request.selected_markdown,
        )
    except ProtocolValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
