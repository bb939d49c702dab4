"""Unit tests for the fallback keyword pattern."""

import re

from backend.app.docs.retriever import build_keyword_pattern


def test_keywords_are_or_ed() -> None:
    """Every keyword of three or more characters is kept."""
    assert build_keyword_pattern("the cat sat") == "the|cat|sat"


def test_short_keywords_dropped() -> None:
    """One- and two-letter words are ignored."""
    assert build_keyword_pattern("a whale of an ocean") == "whale|ocean"


def test_no_surviving_keyword_returns_none() -> None:
    """Queries made only of short words produce no pattern."""
    assert build_keyword_pattern("to be or") is None
    assert build_keyword_pattern("") is None
    assert build_keyword_pattern("   ") is None


def test_regex_metacharacters_are_literal() -> None:
    """Keywords match literally, never as regex syntax."""
    pattern = build_keyword_pattern("c++ (draft) a.b*")

    assert pattern is not None
    compiled = re.compile(pattern)
    assert compiled.search("learning c++ today")
    assert compiled.search("the (draft) copy")
    assert compiled.search("a.b* literal")
    assert not compiled.search("cc draft axbbb")
