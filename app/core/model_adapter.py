"""Uniform send() over heterogeneous chat model backends.

Two backend families are supported:

- OpenAI chat completions: the whole conversation goes out as one flat
  message array. Image turns become text + image_url parts pointing at a
  short-lived signed URL.
- Gemini chat sessions: history is replayed into a session and only the
  current turn is sent. Sessions accept user/model roles only, so system
  turns are folded into the next user text and a leading non-user turn is
  dropped. Images travel inline as bytes.
"""

import re
import time
from enum import Enum
from typing import Any

from google.genai import types as genai_types

from app.core.exceptions import ImageResolutionError, ModelCallError, UnsupportedModelError
from app.core.image_resolver import ImageResolver
from app.core.llm_usage import (
    error_metadata,
    gemini_metadata,
    log_llm_usage,
    openai_metadata,
)
from app.core.logging import get_logger
from app.core.schemas_generation import ModelReply, ResponseMetadata, Turn

logger = get_logger(__name__)

IMAGE_ERROR_NOTE = " [System note: Error processing image for AI]"


class ModelFamily(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"


def model_family(model_id: str) -> ModelFamily:
    """
    Map a model id to its backend family by prefix.

    Raises:
        UnsupportedModelError: If no family handles the id
    """
    normalized = model_id.strip().lower()
    if normalized.startswith("gpt") or re.match(r"o\d", normalized):
        return ModelFamily.OPENAI
    if normalized.startswith("gemini"):
        return ModelFamily.GEMINI
    raise UnsupportedModelError(model_id)


def _takes_temperature(model_id: str) -> bool:
    # o-series reasoning models reject a temperature override
    return model_id.lower().startswith("gpt")


def fold_system_turns(history: list[Turn], current_turn: Turn) -> tuple[list[Turn], Turn]:
    """
    Rewrite history for a session backend that only knows user/model roles.

    System turns are prepended to the text of the next user turn (or the
    current turn when none follows). Leading non-user turns are dropped.
    """
    pending: list[str] = []
    folded: list[Turn] = []

    for turn in history:
        if turn.role == "system":
            pending.append(turn.text)
            continue
        if turn.role == "user" and pending:
            turn = turn.model_copy(update={"text": "\n\n".join([*pending, turn.text])})
            pending = []
        folded.append(turn)

    if pending:
        current_turn = current_turn.model_copy(
            update={"text": "\n\n".join([*pending, current_turn.text])}
        )

    while folded and folded[0].role != "user":
        dropped = folded.pop(0)
        logger.debug(f"Dropped leading {dropped.role} turn from session history")

    return folded, current_turn


class ModelAdapter:
    """Routes turns to the right backend and normalizes the reply."""

    def __init__(
        self,
        openai_client: Any,
        gemini_client: Any,
        image_resolver: ImageResolver,
        temperature: float = 0.7,
    ):
        self.openai_client = openai_client
        self.gemini_client = gemini_client
        self.image_resolver = image_resolver
        self.temperature = temperature

    async def send(
        self,
        history: list[Turn],
        current_turn: Turn,
        model_id: str,
        system_instruction: str | None = None,
        temperature: float | None = None,
    ) -> ModelReply:
        """
        Send one turn with its history to the backend serving ``model_id``.

        Args:
            history: Prior turns, oldest first
            current_turn: The turn being answered
            model_id: Model identifier (picks the backend family)
            system_instruction: Optional system prompt
            temperature: Override for the adapter default

        Returns:
            ModelReply with normalized metadata

        Raises:
            UnsupportedModelError: If no family serves model_id
            ModelCallError: If the backend fails or returns no text
        """
        family = model_family(model_id)
        temp = self.temperature if temperature is None else temperature
        start = time.monotonic()

        try:
            if family == ModelFamily.OPENAI:
                text, raw, metadata = await self._send_openai(
                    history, current_turn, model_id, system_instruction, temp, start
                )
            else:
                text, raw, metadata = await self._send_gemini(
                    history, current_turn, model_id, system_instruction, temp, start
                )
        except ModelCallError as e:
            log_llm_usage("model_adapter", family.value, model_id, error_metadata(e, start))
            raise
        except Exception as e:
            log_llm_usage("model_adapter", family.value, model_id, error_metadata(e, start))
            logger.error(
                f"{family.value} call failed: {e}",
                extra={"provider": family.value, "model_id": model_id},
            )
            raise ModelCallError(family.value, model_id, str(e)) from e

        log_llm_usage("model_adapter", family.value, model_id, metadata)
        return ModelReply(text=text, raw=raw, metadata=metadata)

    # ------------------------------------------------------------------
    # OpenAI chat completions
    # ------------------------------------------------------------------

    async def _openai_message(self, turn: Turn) -> dict[str, Any]:
        if not turn.image_ref:
            return {"role": turn.role, "content": turn.text}

        try:
            url = await self.image_resolver.signed_url(turn.image_ref)
        except ImageResolutionError as e:
            logger.warning(f"Image dropped from OpenAI turn: {e}")
            return {"role": turn.role, "content": turn.text + IMAGE_ERROR_NOTE}

        return {
            "role": turn.role,
            "content": [
                {"type": "text", "text": turn.text},
                {"type": "image_url", "image_url": {"url": url}},
            ],
        }

    async def _send_openai(
        self,
        history: list[Turn],
        current_turn: Turn,
        model_id: str,
        system_instruction: str | None,
        temperature: float,
        start: float,
    ) -> tuple[str, Any, ResponseMetadata]:
        if self.openai_client is None:
            raise ModelCallError(ModelFamily.OPENAI.value, model_id, "client not configured")

        messages: list[dict[str, Any]] = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        for turn in [*history, current_turn]:
            messages.append(await self._openai_message(turn))

        kwargs: dict[str, Any] = {"model": model_id, "messages": messages}
        if _takes_temperature(model_id):
            kwargs["temperature"] = temperature

        response = await self.openai_client.chat.completions.create(**kwargs)

        text = response.choices[0].message.content if response.choices else None
        if not isinstance(text, str) or not text.strip():
            raise ModelCallError(ModelFamily.OPENAI.value, model_id, "empty reply")

        return text, response, openai_metadata(response, start, model_id)

    # ------------------------------------------------------------------
    # Gemini chat sessions
    # ------------------------------------------------------------------

    async def _gemini_parts(self, turn: Turn) -> list[genai_types.Part]:
        if not turn.image_ref:
            return [genai_types.Part(text=turn.text)]

        try:
            image = await self.image_resolver.fetch_inline(turn.image_ref)
        except ImageResolutionError as e:
            logger.warning(f"Image dropped from Gemini turn: {e}")
            return [genai_types.Part(text=turn.text + IMAGE_ERROR_NOTE)]

        return [
            genai_types.Part(text=turn.text),
            genai_types.Part.from_bytes(data=image.data, mime_type=image.mime_type),
        ]

    async def _send_gemini(
        self,
        history: list[Turn],
        current_turn: Turn,
        model_id: str,
        system_instruction: str | None,
        temperature: float,
        start: float,
    ) -> tuple[str, Any, ResponseMetadata]:
        if self.gemini_client is None:
            raise ModelCallError(ModelFamily.GEMINI.value, model_id, "client not configured")

        folded, current = fold_system_turns(history, current_turn)

        contents = []
        for turn in folded:
            contents.append(
                genai_types.Content(
                    role="user" if turn.role == "user" else "model",
                    parts=await self._gemini_parts(turn),
                )
            )
        current_parts = await self._gemini_parts(current)

        config = genai_types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
        )

        if contents:
            chat = self.gemini_client.aio.chats.create(
                model=model_id, history=contents, config=config
            )
            response = await chat.send_message(current_parts)
        else:
            response = await self.gemini_client.aio.models.generate_content(
                model=model_id,
                contents=[genai_types.Content(role="user", parts=current_parts)],
                config=config,
            )

        text = response.text
        if not isinstance(text, str) or not text.strip():
            raise ModelCallError(ModelFamily.GEMINI.value, model_id, "empty reply")

        return text, response, gemini_metadata(response, start, model_id)
