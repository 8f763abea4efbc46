"""Infer a short title for a conversation or artifact from its content."""

import time
from typing import Any

from app.core.llm_usage import error_metadata, log_llm_usage, openai_metadata
from app.core.logging import get_logger

logger = get_logger(__name__)

UNTITLED = "Untitled"
MIN_CONTENT_LENGTH = 20
MAX_INPUT_LENGTH = 1000
MAX_TITLE_LENGTH = 60

SYSTEM_PROMPT = (
    "Generate a short, concise title (max 5 words) for the following text. "
    "The title should be descriptive of the content but brief. "
    "Respond only with the title itself, no extra text."
)


def clean_title(raw: str | None) -> str:
    """Trim quotes and whitespace and cap the length."""
    title = (raw or "").strip().strip('"').strip("'").strip()
    if not title:
        return UNTITLED
    return title[:MAX_TITLE_LENGTH].rstrip()


async def infer_title(client: Any, content: str, model: str) -> str:
    """
    Ask a small model for a title. Returns "Untitled" on any failure.

    Args:
        client: AsyncOpenAI client (None when no key is configured)
        content: Text to title
        model: Title model id

    Returns:
        Title of at most 60 characters
    """
    if not content or not content.strip():
        return UNTITLED
    if client is None:
        logger.warning("No OpenAI client configured for title inference")
        return UNTITLED

    truncated = content if len(content) <= MAX_INPUT_LENGTH else content[:MAX_INPUT_LENGTH] + "..."
    start = time.monotonic()

    try:
        response = await client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f'Text: "{truncated}"\n\nTitle:'},
            ],
            max_tokens=15,
            temperature=0.2,
        )
    except Exception as e:
        log_llm_usage("infer_title", "openai", model, error_metadata(e, start))
        logger.warning(f"Title inference failed: {e}")
        return UNTITLED

    log_llm_usage("infer_title", "openai", model, openai_metadata(response, start, model))
    raw = response.choices[0].message.content if response.choices else None
    title = clean_title(raw if isinstance(raw, str) else None)
    logger.debug(f"Inferred title: {title}")
    return title


def should_infer_title(content: str | None) -> bool:
    """Titles are only inferred once there is enough text to describe."""
    return bool(content) and len(content.strip()) >= MIN_CONTENT_LENGTH
