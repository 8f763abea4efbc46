"""Tests for conversations/messages database operations with mocked Supabase."""

from unittest.mock import MagicMock

import pytest

from app.core.schemas_documents import ContentType, Message, MessageRole


def test_create_conversation_generates_id(monkeypatch: pytest.MonkeyPatch) -> None:
    mock_supabase = MagicMock()

    def echo_insert(row):
        insert = MagicMock()
        insert.execute.return_value = MagicMock(data=[row])
        return insert

    mock_supabase.table.return_value.insert.side_effect = echo_insert
    monkeypatch.setattr("app.db.conversations.get_supabase", lambda: mock_supabase)

    from app.db.conversations import create_conversation

    conversation = create_conversation("user-1", document_id="a1", model="gemini-2.0-flash")

    assert conversation.id
    assert conversation.document_id == "a1"
    assert conversation.model == "gemini-2.0-flash"
    assert conversation.messages == []
    mock_supabase.table.assert_called_once_with("conversations")


def test_create_conversation_keeps_given_id(monkeypatch: pytest.MonkeyPatch) -> None:
    mock_supabase = MagicMock()
    mock_supabase.table.return_value.insert.return_value.execute.return_value = MagicMock(
        data=[{"conversation_id": "c1", "user_id": "user-1", "title": "New Conversation"}]
    )
    monkeypatch.setattr("app.db.conversations.get_supabase", lambda: mock_supabase)

    from app.db.conversations import create_conversation

    conversation = create_conversation("user-1", conversation_id="c1")

    insert_call = mock_supabase.table.return_value.insert.call_args[0][0]
    assert insert_call["conversation_id"] == "c1"
    assert "model" not in insert_call
    assert conversation.id == "c1"


def test_get_conversation_without_messages_is_unloaded(monkeypatch: pytest.MonkeyPatch) -> None:
    mock_supabase = MagicMock()
    select_chain = mock_supabase.table.return_value.select.return_value
    select_chain.eq.return_value.limit.return_value.execute.return_value = MagicMock(
        data=[{"conversation_id": "c1", "title": "Trip", "artifact_id": "a1"}]
    )
    monkeypatch.setattr("app.db.conversations.get_supabase", lambda: mock_supabase)

    from app.db.conversations import get_conversation

    conversation = get_conversation("c1")

    assert conversation.title == "Trip"
    assert conversation.is_loaded is False


def test_list_messages_with_limit_returns_oldest_first(monkeypatch: pytest.MonkeyPatch) -> None:
    mock_supabase = MagicMock()
    order_chain = mock_supabase.table.return_value.select.return_value.eq.return_value.order
    order_chain.return_value.limit.return_value.execute.return_value = MagicMock(data=[
        {"role": "assistant", "content": "newest"},
        {"role": "user", "content": "older", "image_url": "images/u/cat.png", "content_type": "text-with-image"},
    ])
    monkeypatch.setattr("app.db.conversations.get_supabase", lambda: mock_supabase)

    from app.db.conversations import list_messages

    messages = list_messages("c1", limit=2)

    order_chain.assert_called_once_with("created_at", desc=True)
    assert [m.content for m in messages] == ["older", "newest"]
    assert messages[0].image_ref == "images/u/cat.png"
    assert messages[0].content_type == ContentType.TEXT_WITH_IMAGE


def test_append_message_payload(monkeypatch: pytest.MonkeyPatch) -> None:
    mock_supabase = MagicMock()
    mock_supabase.table.return_value.insert.return_value.execute.return_value = MagicMock(
        data=[{"message_id": "m1"}]
    )
    monkeypatch.setattr("app.db.conversations.get_supabase", lambda: mock_supabase)

    from app.db.conversations import append_message

    message_id = append_message(
        "c1",
        Message(
            role=MessageRole.ASSISTANT,
            content="Done.",
            model="gpt-4o",
            metadata={"result_type": "chat_only", "metadata_version": "1.0"},
        ),
    )

    assert message_id == "m1"
    mock_supabase.table.assert_called_once_with("messages")
    insert_call = mock_supabase.table.return_value.insert.call_args[0][0]
    assert insert_call["role"] == "assistant"
    assert insert_call["content_type"] == "text"
    assert insert_call["model"] == "gpt-4o"
    assert insert_call["metadata_version"] == "1.0"


def test_append_message_failure_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    mock_supabase = MagicMock()
    mock_supabase.table.return_value.insert.return_value.execute.return_value = MagicMock(data=[])
    monkeypatch.setattr("app.db.conversations.get_supabase", lambda: mock_supabase)

    from app.db.conversations import append_message

    with pytest.raises(ValueError):
        append_message("c1", Message(role=MessageRole.USER, content="hi"))


def test_link_document(monkeypatch: pytest.MonkeyPatch) -> None:
    mock_supabase = MagicMock()
    monkeypatch.setattr("app.db.conversations.get_supabase", lambda: mock_supabase)

    from app.db.conversations import link_document

    link_document("c1", "a9")

    update_data = mock_supabase.table.return_value.update.call_args[0][0]
    assert update_data["artifact_id"] == "a9"
    mock_supabase.table.return_value.update.return_value.eq.assert_called_once_with("conversation_id", "c1")
