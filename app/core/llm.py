"""Helpers for cleaning and decoding raw LLM text."""

import json
import re
from typing import Any

# A fence that wraps the whole response: ```lang\n ... \n```
_OUTER_FENCE_RE = re.compile(r"^```(?:[\w+-]*[ \t]*\n)?(.*?)\n?```$", re.DOTALL)
_FENCE_OPENER_RE = re.compile(r"^```[\w+-]*[ \t]*$")
_FIRST_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def _fences_balanced(lines: list[str]) -> bool:
    # Inner blocks must open (``` or ```lang) and close (bare ```) in pairs
    is_open = False
    for line in lines:
        stripped = line.strip()
        if not stripped.startswith("```"):
            continue
        if not is_open:
            is_open = True
        elif stripped == "```":
            is_open = False
        else:
            return False
    return not is_open


def strip_outer_fence(raw_output: str) -> str:
    """Remove a single fenced code block when it wraps the entire response.

    Handles ```markdown ... ```, ```json ... ``` and bare ``` ... ```, including
    wrapped responses that contain their own code blocks.
    Text that is not wholly wrapped is returned trimmed but otherwise unchanged.
    """
    cleaned = raw_output.strip()
    lines = cleaned.split("\n")
    if len(lines) >= 2 and _FENCE_OPENER_RE.match(lines[0].strip()) and lines[-1].strip() == "```":
        if _fences_balanced(lines[1:-1]):
            return "\n".join(lines[1:-1]).strip()
        return cleaned

    match = _OUTER_FENCE_RE.match(cleaned)
    if not match:
        return cleaned
    inner = match.group(1)
    # A second fence inside means the outer ``` pair belongs to separate blocks
    if "```" in inner:
        return cleaned
    return inner.strip()


def parse_llm_json_dict(raw_output: str) -> dict[str, Any]:
    """
    Parse LLM output as a JSON object.

    Tries the whole (fence-stripped) text first, then the first ``{...}`` span.

    Args:
        raw_output: Raw string from LLM response

    Returns:
        Parsed dict

    Raises:
        ValueError: If no JSON object can be recovered
    """
    cleaned = strip_outer_fence(raw_output)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _FIRST_OBJECT_RE.search(cleaned)
        if not match:
            raise ValueError("No JSON object found in LLM output")
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ValueError(f"Unparseable JSON object in LLM output: {e}") from e

    if isinstance(parsed, str):
        # Some models double-encode the object
        parsed = json.loads(parsed)
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
