"""Tests for the end-to-end assistant turn with mocked persistence and models."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.context.models import Destination, EditorAction, IntentAnalysisResult
from app.core.config import get_settings
from app.core.editor_bridge import (
    ApplyFullReplace,
    ApplyModification,
    DocumentContentRequest,
    DocumentContentResponse,
    EditorBridge,
    Notify,
)
from app.core.exceptions import ModelCallError
from app.core.schemas_documents import Conversation, Message, MessageRole
from app.core.schemas_generation import (
    ChatOnly,
    FullReplace,
    ModelReply,
    ResponseMetadata,
    SearchResultItem,
    Turn,
)
from app.services.assistant_turn import REJECTED_EDIT_MESSAGE, run_assistant_turn
from app.services.container import Services


def _intent(destination=Destination.CONVERSATION, action=None):
    return IntentAnalysisResult(destination=destination, confidence=0.9, reasoning="r", editor_action=action)


def _services(intent=None, generated=None, adapter_text="Tighter sentence."):
    classifier = MagicMock()
    classifier.classify = AsyncMock(return_value=intent or _intent())
    adapter = MagicMock()
    adapter.send = AsyncMock(
        return_value=ModelReply(text=adapter_text, metadata=ResponseMetadata(response_time_ms=1))
    )
    orchestrator = MagicMock()
    orchestrator.generate = AsyncMock(return_value=generated or ChatOnly(text="Hello!"))
    return Services(
        settings=get_settings(),
        classifier=classifier,
        adapter=adapter,
        orchestrator=orchestrator,
        search=MagicMock(),
        snapshot_store=MagicMock(),
        sync_engine=MagicMock(),
        title_client=None,
    )


def _bridge(markdown="", selected=None):
    bridge = EditorBridge(request_timeout=0.5)
    events = []

    async def editor(request: DocumentContentRequest):
        await bridge.publish(
            DocumentContentResponse(
                request_id=request.request_id,
                markdown=markdown,
                selected_block_ids=selected or [],
            )
        )

    bridge.subscribe(DocumentContentRequest, editor)
    for event_type in (ApplyFullReplace, ApplyModification, Notify):
        bridge.subscribe(event_type, events.append)
    return bridge, events


@pytest.mark.asyncio
async def test_new_conversation_chat_turn(mock_db):
    services = _services()
    bridge, events = _bridge()

    outcome = await run_assistant_turn(services, bridge, "user-1", "hi", artifact_id="a1")

    mock_db.create_conversation.assert_called_once_with(
        "user-1",
        title="New Conversation",
        document_id="a1",
        conversation_id=None,
        model="gemini-2.0-flash",
    )
    assert outcome.conversation_id == "c1"
    assert outcome.result == ChatOnly(text="Hello!")
    assert outcome.applied is False
    assert outcome.chat_message == "Hello!"
    assert events == []

    user_call, assistant_call = mock_db.append_message.call_args_list
    assert user_call.args[1].role == MessageRole.USER
    assistant_message = assistant_call.args[1]
    assert assistant_message.role == MessageRole.ASSISTANT
    assert assistant_message.model == "gemini-2.0-flash"
    assert assistant_message.metadata["result_type"] == "chat_only"
    assert assistant_message.metadata["intent"]["destination"] == "CONVERSATION"
    mock_db.touch.assert_called_once_with("c1")


@pytest.mark.asyncio
async def test_existing_conversation_history_passed_to_generation(mock_db):
    mock_db.get_conversation.return_value = Conversation(id="c9", title="Trip ideas")
    mock_db.list_messages.return_value = [
        Message(role=MessageRole.USER, content="plan a trip", image_ref="images/u/map.png"),
        Message(role=MessageRole.ASSISTANT, content="Where to?"),
    ]
    services = _services()
    bridge, _ = _bridge()

    await run_assistant_turn(services, bridge, "user-1", "Lisbon", conversation_id="c9", model_id="gpt-4o")

    mock_db.create_conversation.assert_not_called()
    mock_db.list_messages.assert_called_once_with("c9", limit=10)
    args = services.orchestrator.generate.call_args
    assert args.args[2] == [
        Turn(role="user", text="plan a trip", image_ref="images/u/map.png"),
        Turn(role="assistant", text="Where to?"),
    ]
    assert args.kwargs["model_id"] == "gpt-4o"
    assert args.kwargs["document_markdown"] is None


@pytest.mark.asyncio
async def test_editor_turn_replaces_document(mock_db):
    services = _services(
        intent=_intent(Destination.EDITOR, EditorAction.ADD),
        generated=FullReplace(markdown="# Summary\n\n- point"),
    )
    bridge, events = _bridge(markdown="# Notes\n\nlong text")

    outcome = await run_assistant_turn(services, bridge, "user-1", "Summarize this in the doc", artifact_id="a1")

    assert outcome.applied is True
    assert outcome.chat_message == "Okay, I've added the content to the editor."
    assert events == [ApplyFullReplace(markdown="# Summary\n\n- point", artifact_id="a1")]
    assert services.orchestrator.generate.call_args.kwargs["document_markdown"] == "# Notes\n\nlong text"
    services.adapter.send.assert_not_called()


@pytest.mark.asyncio
async def test_selection_with_modify_intent_uses_scoped_patch(mock_db):
    services = _services(intent=_intent(Destination.EDITOR, EditorAction.MODIFY))
    bridge, events = _bridge(markdown="# Doc\n\nVery long sentence.", selected=["b2"])

    outcome = await run_assistant_turn(services, bridge, "user-1", "make it concise")

    services.orchestrator.generate.assert_not_called()
    assert events == [ApplyModification(target_block_ids=["b2"], new_markdown="Tighter sentence.")]
    assert outcome.result.type == "modification"
    assert outcome.applied is True
    assert outcome.chat_message == "Okay, I've updated the selected section."


@pytest.mark.asyncio
async def test_failed_scoped_patch_is_not_applied(mock_db):
    services = _services(intent=_intent(Destination.EDITOR, EditorAction.MODIFY))
    services.adapter.send.side_effect = ModelCallError("openai", "gpt-4o", "quota")
    bridge, events = _bridge(markdown="# Doc", selected=["b2"])

    outcome = await run_assistant_turn(services, bridge, "user-1", "make it concise")

    assert outcome.applied is False
    assert [type(e) for e in events] == [Notify]
    assert events[0].level == "error"
    assert outcome.chat_message.startswith("[Error: could not generate modification:")


@pytest.mark.asyncio
async def test_rejected_edit_reports_in_chat(mock_db):
    services = _services(
        intent=_intent(Destination.EDITOR, EditorAction.ADD),
        generated=FullReplace(markdown="   "),
    )
    bridge, events = _bridge()

    outcome = await run_assistant_turn(services, bridge, "user-1", "write it")

    assert outcome.applied is False
    assert outcome.chat_message == REJECTED_EDIT_MESSAGE
    assert [type(e) for e in events] == [Notify]
    assistant_message = mock_db.append_message.call_args_list[-1].args[1]
    assert assistant_message.metadata["applied"] is False


@pytest.mark.asyncio
async def test_search_recorder_logs_for_owner(mock_db):
    services = _services()
    bridge, _ = _bridge()

    await run_assistant_turn(services, bridge, "user-7", "tell me about tides", search_mode=True)

    kwargs = services.orchestrator.generate.call_args.kwargs
    assert kwargs["search_mode"] is True
    results = [SearchResultItem(title="T", url="https://t.test")]
    await kwargs["on_search"]("tides", results)
    mock_db.record_web_search.assert_called_once_with("user-7", "tides", results)


@pytest.mark.asyncio
async def test_title_set_for_new_conversation(mock_db):
    services = _services()
    bridge, _ = _bridge()

    with patch("app.services.assistant_turn.infer_title", new=AsyncMock(return_value="Lisbon Trip Plan")):
        outcome = await run_assistant_turn(services, bridge, "user-1", "Help me plan a weekend trip to Lisbon")

    assert outcome.title == "Lisbon Trip Plan"
    mock_db.update_title.assert_called_once_with("c1", "Lisbon Trip Plan")


@pytest.mark.asyncio
async def test_title_not_inferred_for_short_input(mock_db):
    services = _services()
    bridge, _ = _bridge()

    with patch("app.services.assistant_turn.infer_title", new=AsyncMock()) as infer:
        outcome = await run_assistant_turn(services, bridge, "user-1", "hi")

    infer.assert_not_called()
    assert outcome.title is None


@pytest.mark.asyncio
async def test_editor_silence_falls_back_to_empty_document(mock_db):
    services = _services()
    bridge = EditorBridge(request_timeout=0.01)

    await run_assistant_turn(services, bridge, "user-1", "hello there")

    assert services.orchestrator.generate.call_args.kwargs["document_markdown"] is None
