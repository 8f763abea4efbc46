"""One assistant turn, end to end.

conversation -> history -> editor content -> intent -> scoped patch or
creator agent -> editor dispatch -> persistence -> title.

The conversation row is created (and awaited) before anything is sent, so
messages always have a parent to attach to.
"""

import asyncio
import logging

from app.chains.generate_creator_response import SearchRecorder
from app.chains.generate_scoped_modification import (
    MODIFICATION_ERROR_PREFIX,
    EditPath,
    apply_modification,
    select_edit_path,
)
from app.chains.infer_title import infer_title, should_infer_title
from app.context.models import EditorContext, IntentAnalysisResult
from app.core.editor_bridge import EditorBridge, Notify, dispatch_generation_result
from app.core.logging import get_logger, log_with_context
from app.core.schemas_assistant import TurnOutcome
from app.core.schemas_documents import ContentType, Conversation, Message, MessageRole
from app.core.schemas_generation import (
    ChatOnly,
    FullReplace,
    Modification,
    SearchResultItem,
    Turn,
    chat_text,
)
from app.db.conversations import (
    append_message,
    create_conversation,
    get_conversation,
    list_messages,
    touch_conversation,
    update_conversation_title,
)
from app.db.web_searches import record_web_search
from app.services.container import Services

logger = get_logger(__name__)

DEFAULT_CONVERSATION_TITLE = "New Conversation"
REJECTED_EDIT_MESSAGE = "I couldn't apply that change to the document."


async def _ensure_conversation(
    conversation_id: str | None,
    owner_id: str,
    artifact_id: str | None,
    model_id: str,
) -> Conversation:
    if conversation_id:
        existing = await asyncio.to_thread(get_conversation, conversation_id)
        if existing is not None:
            return existing
    return await asyncio.to_thread(
        create_conversation,
        owner_id,
        title=DEFAULT_CONVERSATION_TITLE,
        document_id=artifact_id,
        conversation_id=conversation_id,
        model=model_id,
    )


def messages_to_turns(messages: list[Message]) -> list[Turn]:
    return [
        Turn(role=m.role.value, text=m.content, image_ref=m.image_ref)
        for m in messages
    ]


def _search_recorder(owner_id: str) -> SearchRecorder:
    async def record(query: str, results: list[SearchResultItem]) -> None:
        await asyncio.to_thread(record_web_search, owner_id, query, results)

    return record


async def _maybe_set_title(services: Services, conversation: Conversation, user_input: str) -> str | None:
    if conversation.title != DEFAULT_CONVERSATION_TITLE or not should_infer_title(user_input):
        return None
    title = await infer_title(services.title_client, user_input, services.settings.TITLE_MODEL)
    if title == "Untitled":
        return None
    try:
        await asyncio.to_thread(update_conversation_title, conversation.id, title)
    except Exception as e:
        logger.warning(f"Failed to save conversation title: {e}", extra={"conversation_id": conversation.id})
        return None
    return title


async def run_assistant_turn(
    services: Services,
    bridge: EditorBridge,
    owner_id: str,
    user_input: str,
    conversation_id: str | None = None,
    artifact_id: str | None = None,
    model_id: str | None = None,
    image_ref: str | None = None,
    search_mode: bool | None = None,
    editor_context: EditorContext | None = None,
) -> TurnOutcome:
    """
    Run a full assistant turn.

    Args:
        services: Wired components
        bridge: Channel to the editor that owns the document
        owner_id: User id
        user_input: The user's message
        conversation_id: Existing conversation (created when missing)
        artifact_id: Document linked to the conversation
        model_id: Chat model (settings default when omitted)
        image_ref: Storage ref of an attached image
        search_mode: Force web search on/off
        editor_context: Selection/outline hints for the classifier

    Returns:
        TurnOutcome
    """
    model = model_id or services.settings.DEFAULT_CHAT_MODEL
    conversation = await _ensure_conversation(conversation_id, owner_id, artifact_id, model)
    log_extra = {"conversation_id": conversation.id, "model_id": model}

    messages = await asyncio.to_thread(list_messages, conversation.id, limit=services.settings.HISTORY_WINDOW)
    history = messages_to_turns(messages)
    await asyncio.to_thread(
        append_message,
        conversation.id,
        Message(
            role=MessageRole.USER,
            content=user_input,
            content_type=ContentType.TEXT_WITH_IMAGE if image_ref else ContentType.TEXT,
            image_ref=image_ref,
        ),
    )

    document = await bridge.request_document_content()
    intent: IntentAnalysisResult = await services.classifier.classify(user_input, editor_context)
    path = select_edit_path(intent, document.selected_block_ids)
    logger.info(f"Turn routed to {path.value} path", extra={**log_extra, "destination": intent.destination.value})

    result: FullReplace | Modification | ChatOnly
    if path == EditPath.SCOPED:
        result = await apply_modification(
            services.adapter,
            user_input,
            document.selected_block_ids,
            document.markdown,
            model,
        )
    else:
        result = await services.orchestrator.generate(
            user_input,
            intent,
            history,
            current_image_ref=image_ref,
            document_markdown=document.markdown or None,
            model_id=model,
            search_mode=search_mode,
            on_search=_search_recorder(owner_id),
        )

    if isinstance(result, Modification) and result.new_markdown.startswith(MODIFICATION_ERROR_PREFIX):
        await bridge.publish(Notify(message=result.new_markdown, level="error"))
        applied = False
        message = result.new_markdown
    else:
        applied = await dispatch_generation_result(bridge, result, artifact_id=artifact_id)
        if applied or isinstance(result, ChatOnly):
            message = chat_text(result)
        else:
            message = REJECTED_EDIT_MESSAGE

    await asyncio.to_thread(
        append_message,
        conversation.id,
        Message(
            role=MessageRole.ASSISTANT,
            content=message,
            model=model,
            metadata={
                "result_type": result.type,
                "applied": applied,
                "intent": intent.model_dump(mode="json"),
                "metadata_version": "1.0",
            },
        ),
    )

    title = await _maybe_set_title(services, conversation, user_input)
    try:
        await asyncio.to_thread(touch_conversation, conversation.id)
    except Exception as e:
        logger.warning(f"Failed to touch conversation: {e}", extra=log_extra)

    log_with_context(
        logger,
        logging.INFO,
        "Assistant turn complete",
        **log_extra,
        artifact_id=artifact_id,
        result_type=result.type,
        applied=applied,
        path=path.value,
    )
    return TurnOutcome(
        conversation_id=conversation.id,
        intent=intent,
        result=result,
        chat_message=message,
        applied=applied,
        title=title,
    )
