"""Tests for glob pattern compilation and URL matching."""

from __future__ import annotations

import pytest

from watchtower.matching import compile_pattern, matches_any, suggest_pattern


def test_trailing_slash_star_matches_bare_prefix_and_subpaths() -> None:
    """host/* matches host and host/anything but not host2."""
    matcher = compile_pattern("example.com/*")
    assert matcher.matches("example.com")
    assert matcher.matches("example.com/")
    assert matcher.matches("example.com/a/b")
    assert not matcher.matches("example.com2")
    assert not matcher.matches("example.com2/a")


def test_single_star_does_not_cross_slash() -> None:
    """A non-trailing * stays within one path segment."""
    matcher = compile_pattern("reddit.com/r/*/comments")
    assert matcher.matches("reddit.com/r/python/comments")
    assert not matcher.matches("reddit.com/r/python/x/comments")


def test_trailing_slash_star_after_path() -> None:
    """reddit.com/r/* matches subreddits but not other paths containing /r/."""
    matcher = compile_pattern("reddit.com/r/*")
    assert matcher.matches("reddit.com/r/programming")
    assert not matcher.matches("reddit.com/x/r/programming")


def test_leading_wildcard_subdomains() -> None:
    """*.example.com/* covers one or more subdomain labels."""
    matcher = compile_pattern("*.example.com/*")
    assert matcher.matches("a.example.com/x")
    assert matcher.matches("a.b.example.com/x")
    assert not matcher.matches("example.com/x")


def test_double_star_crosses_slash() -> None:
    """** matches across path separators."""
    matcher = compile_pattern("docs.site/**/index.html")
    assert matcher.matches("docs.site/a/b/c/index.html")
    assert not compile_pattern("docs.site/*/index.html").matches("docs.site/a/b/index.html")


def test_trailing_star_without_slash_is_greedy() -> None:
    """A trailing * not preceded by / matches anything, including /."""
    matcher = compile_pattern("news.example/sport*")
    assert matcher.matches("news.example/sports/football/today")
    assert not matcher.matches("news.example/weather")


def test_metacharacters_are_literal() -> None:
    """Dots, question marks and plus signs match themselves."""
    matcher = compile_pattern("a.b/c?d=1+2")
    assert matcher.matches("a.b/c?d=1+2")
    assert not matcher.matches("axb/c?d=1+2")
    assert not matcher.matches("a.b/cd=1+2")


def test_case_insensitive() -> None:
    """Matching ignores case on the whole candidate."""
    assert compile_pattern("Example.COM/*").matches("example.com/PATH")


def test_fully_anchored() -> None:
    """Patterns without wildcards match the whole candidate only."""
    matcher = compile_pattern("example.com/a")
    assert matcher.matches("example.com/a")
    assert not matcher.matches("example.com/ab")
    assert not matcher.matches("www.example.com/a")


def test_compiled_matchers_are_cached() -> None:
    """Compiling the same text twice returns the same matcher."""
    assert compile_pattern("cache.me/*") is compile_pattern("cache.me/*")


def test_matches_any_uses_host_path_and_query() -> None:
    """The candidate is host + path + query; scheme and port are ignored."""
    assert matches_any("https://example.com:8443/a?b=1", ["example.com/a?b=1"])
    assert matches_any("http://example.com", ["example.com/"])


def test_matches_any_tries_bare_hostname() -> None:
    """Domain-only patterns match any URL on that host."""
    assert matches_any("https://example.com/deep/path", ["example.com"])
    assert not matches_any("https://other.com/example.com", ["example.com"])


@pytest.mark.parametrize("url", ["not a url", "", "http://", "/relative/path"])
def test_matches_any_unparseable_matches_nothing(url: str) -> None:
    """URLs without a scheme and host never match."""
    assert not matches_any(url, ["*", "**"])


def test_matches_any_empty_list() -> None:
    """An empty pattern list matches nothing."""
    assert not matches_any("https://example.com", [])


def test_suggest_pattern() -> None:
    """Suggested patterns cover the whole host."""
    assert suggest_pattern("https://news.example/path?q=1") == "news.example/*"
    assert suggest_pattern("garbage") == "garbage"
