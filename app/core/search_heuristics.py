"""Regex heuristics for web search detection.

Used when the intent model is unavailable and as the last step of the
orchestrator's search decision.
"""

import re

SEARCH_COMMAND = "/search"

# Interrogative prefixes that usually mean "look this up"
_FALLBACK_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"what is",
        r"who is",
        r"where is",
        r"when is",
        r"why is",
        r"how to",
        r"tell me about",
        r"search for",
        r"find information",
        r"look up",
    )
]

# Stricter indicators used by the orchestrator (need a subject after the prefix)
_SEARCH_INDICATORS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"what (is|are|do you know about) .+\??",
        r"tell me about .+",
        r"how (to|do|does|can) .+\??",
        r"who (is|was|are) .+\??",
        r"where (is|can|are) .+\??",
        r"when (is|was|did) .+\??",
        r"why (is|are|does) .+\??",
        r"search for .+",
        r"find .+ (information|details|about)",
        r"look up .+",
        r"can you find .+\??",
        r"give me information (about|on) .+",
    )
]

_PREFIXES_TO_REMOVE = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^what do you know about ",
        r"^what (is|are) ",
        r"^tell me about ",
        r"^how (to|do|does|can) ",
        r"^who (is|was|are) ",
        r"^where (is|can|are) ",
        r"^when (is|was|did) ",
        r"^why (is|are|does) ",
        r"^search for ",
        r"^can you find ",
        r"^find ",
        r"^look up ",
        r"^give me information (about|on) ",
    )
]

_TRAILING_PUNCTUATION = re.compile(r"[?!.]+$")


def looks_like_search_request(text: str) -> bool:
    """Loose check used when intent classification failed."""
    return any(p.search(text) for p in _FALLBACK_PATTERNS)


def should_search(text: str) -> bool:
    """Heuristic search decision: explicit /search command or a question pattern."""
    if text.strip().startswith(SEARCH_COMMAND):
        return True
    return any(p.search(text) for p in _SEARCH_INDICATORS)


def extract_search_query(text: str) -> str:
    """Strip command/interrogative prefixes and trailing punctuation."""
    stripped = text.strip()
    if stripped.startswith(SEARCH_COMMAND):
        return stripped[len(SEARCH_COMMAND):].strip()

    query = stripped
    for prefix in _PREFIXES_TO_REMOVE:
        replaced = prefix.sub("", query, count=1)
        if replaced != query:
            query = replaced
            break

    return _TRAILING_PUNCTUATION.sub("", query).strip()
