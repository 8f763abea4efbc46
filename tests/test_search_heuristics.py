"""Tests for regex search detection and query extraction."""

from app.core.search_heuristics import (
    extract_search_query,
    looks_like_search_request,
    should_search,
)


def test_search_command_always_searches():
    assert should_search("/search latest rust release") is True
    assert extract_search_query("/search latest rust release") == "latest rust release"


def test_question_patterns_trigger_search():
    assert should_search("What is the population of Canada?") is True
    assert should_search("tell me about quantum computing") is True
    assert should_search("who was Ada Lovelace") is True


def test_plain_commands_do_not_search():
    assert should_search("Summarize this in the doc") is False
    assert should_search("make the intro shorter") is False


def test_extract_strips_prefix_and_punctuation():
    assert extract_search_query("What is the population of Canada?") == "the population of Canada"
    assert extract_search_query("Tell me about quantum computing!") == "quantum computing"
    assert extract_search_query("what do you know about Rust?") == "Rust"


def test_extract_removes_only_first_prefix():
    assert extract_search_query("look up how to bake bread") == "how to bake bread"


def test_fallback_detection_is_loose():
    assert looks_like_search_request("so, what is a monad") is True
    assert looks_like_search_request("write a poem") is False
