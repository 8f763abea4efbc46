"""Pytest configuration and fixtures."""

import os
from unittest.mock import MagicMock, patch

import pytest

# Set before app modules read settings at import time
os.environ["SUPABASE_URL"] = "https://test.supabase.co"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
os.environ["OPENAI_API_KEY"] = "test-openai-key"
os.environ["ANTHROPIC_API_KEY"] = "test-anthropic-key"
os.environ["GEMINI_API_KEY"] = "test-gemini-key"
os.environ["EXA_API_KEY"] = "test-exa-key"
os.environ["TUON_ENV"] = "test"

from app.core.schemas_documents import Conversation  # noqa: E402


@pytest.fixture(autouse=True)
def reset_chat_rate_limiter():
    """Each test starts with full rate limit buckets."""
    import app.core.rate_limiter as rate_limiter

    rate_limiter._chat_rate_limiter = None
    yield
    rate_limiter._chat_rate_limiter = None


@pytest.fixture
def mock_db():
    """Patch every persistence call an assistant turn makes."""
    with (
        patch("app.services.assistant_turn.get_conversation") as get_conversation,
        patch("app.services.assistant_turn.create_conversation") as create_conversation,
        patch("app.services.assistant_turn.list_messages") as list_messages,
        patch("app.services.assistant_turn.append_message") as append_message,
        patch("app.services.assistant_turn.update_conversation_title") as update_title,
        patch("app.services.assistant_turn.touch_conversation") as touch,
        patch("app.services.assistant_turn.record_web_search") as record_web_search,
    ):
        get_conversation.return_value = None
        create_conversation.return_value = Conversation(id="c1", title="New Conversation", messages=[])
        list_messages.return_value = []
        append_message.return_value = "m1"
        yield MagicMock(
            get_conversation=get_conversation,
            create_conversation=create_conversation,
            list_messages=list_messages,
            append_message=append_message,
            update_title=update_title,
            touch=touch,
            record_web_search=record_web_search,
        )
