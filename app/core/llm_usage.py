"""Provider-neutral usage metadata for model calls (tokens, latency, cost)."""

import time
from enum import Enum
from typing import Any

from app.core.logging import get_logger
from app.core.schemas_generation import ResponseMetadata

logger = get_logger(__name__)

# Pricing per 1M tokens: (input, output)
MODEL_PRICING: dict[str, tuple[float, float]] = {
    # OpenAI
    "gpt-4o": (2.50, 10.0),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4.1-mini": (0.40, 1.60),
    "o3-mini": (1.10, 4.40),
    # Gemini
    "gemini-2.0-flash": (0.10, 0.40),
    "gemini-2.5-pro": (1.25, 10.0),
    "gemini-1.5-pro": (1.25, 5.0),
    # Anthropic
    "claude-haiku-4-5-20251001": (0.80, 4.0),
    "claude-3-5-haiku-20241022": (0.80, 4.0),
}


def estimate_cost(model: str, tokens_input: int, tokens_output: int) -> float:
    """Estimate cost in USD based on model pricing."""
    pricing = MODEL_PRICING.get(model)
    if not pricing:
        # Longest prefix wins so dated variants map to their family
        for key in sorted(MODEL_PRICING, key=len, reverse=True):
            if model.startswith(key):
                pricing = MODEL_PRICING[key]
                break
    if not pricing:
        logger.warning(f"No pricing found for model '{model}', using $0")
        return 0.0

    input_rate, output_rate = pricing
    cost = (tokens_input * input_rate / 1_000_000) + (tokens_output * output_rate / 1_000_000)
    return round(cost, 6)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _int(obj: Any, attr: str) -> int | None:
    value = getattr(obj, attr, None) if obj is not None else None
    return value if isinstance(value, int) else None


def _str(obj: Any, attr: str) -> str | None:
    value = getattr(obj, attr, None) if obj is not None else None
    if isinstance(value, Enum):
        return str(value.value)
    return value if isinstance(value, str) else None


def _total(prompt: int | None, completion: int | None) -> int | None:
    if prompt is None and completion is None:
        return None
    return (prompt or 0) + (completion or 0)


def openai_metadata(response: Any, start: float, model: str) -> ResponseMetadata:
    """Build metadata from a chat.completions response."""
    usage = getattr(response, "usage", None)
    prompt = _int(usage, "prompt_tokens")
    completion = _int(usage, "completion_tokens")
    choices = getattr(response, "choices", None) or []

    return ResponseMetadata(
        response_time_ms=_elapsed_ms(start),
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=_int(usage, "total_tokens") or _total(prompt, completion),
        model_version=_str(response, "model") or model,
        cost=estimate_cost(model, prompt or 0, completion or 0),
        provider_specific={
            "system_fingerprint": _str(response, "system_fingerprint"),
            "finish_reason": _str(choices[0], "finish_reason") if choices else None,
        },
    )


def gemini_metadata(response: Any, start: float, model: str) -> ResponseMetadata:
    """Build metadata from a google-genai GenerateContentResponse."""
    usage = getattr(response, "usage_metadata", None)
    prompt = _int(usage, "prompt_token_count")
    completion = _int(usage, "candidates_token_count")
    candidates = getattr(response, "candidates", None) or []
    feedback = getattr(response, "prompt_feedback", None)

    return ResponseMetadata(
        response_time_ms=_elapsed_ms(start),
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=_total(prompt, completion),
        model_version=_str(response, "model_version") or model,
        cost=estimate_cost(model, prompt or 0, completion or 0),
        provider_specific={
            "finish_reason": _str(candidates[0], "finish_reason") if candidates else None,
            "block_reason": _str(feedback, "block_reason"),
        },
    )


def anthropic_metadata(response: Any, start: float, model: str) -> ResponseMetadata:
    """Build metadata from an Anthropic messages.create response."""
    usage = getattr(response, "usage", None)
    prompt = _int(usage, "input_tokens")
    completion = _int(usage, "output_tokens")

    return ResponseMetadata(
        response_time_ms=_elapsed_ms(start),
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=_total(prompt, completion),
        model_version=model,
        cost=estimate_cost(model, prompt or 0, completion or 0),
        provider_specific={"stop_reason": _str(response, "stop_reason")},
    )


def error_metadata(error: Exception, start: float) -> ResponseMetadata:
    """Metadata for a failed call."""
    code = getattr(error, "code", None)
    return ResponseMetadata(
        response_time_ms=_elapsed_ms(start),
        status="error",
        error={
            "code": code if isinstance(code, str) else type(error).__name__,
            "message": str(error) or "An unknown error occurred",
        },
    )


def log_llm_usage(workflow: str, provider: str, model: str, metadata: ResponseMetadata) -> None:
    """Emit a structured usage line for one model call."""
    logger.info(
        f"LLM usage: {workflow} model={model} "
        f"tokens={metadata.prompt_tokens or 0}+{metadata.completion_tokens or 0} "
        f"cost=${metadata.cost or 0:.4f} duration_ms={metadata.response_time_ms}",
        extra={"provider": provider, "model_id": model, "status": metadata.status},
    )
