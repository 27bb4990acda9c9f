"""Compile URL glob patterns into anchored, case-insensitive regexes.

Patterns are matched against ``host + path + query`` of a URL:

- ``**`` matches any run of characters, including ``/``.
- A trailing ``/*`` matches the prefix alone or the prefix followed by
  ``/`` and anything (``example.com/*`` matches ``example.com``).
- A trailing ``*`` (not ``**``, not ``/*``) matches the prefix followed
  by anything.
- Any other ``*`` matches a run of characters excluding ``/``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache
from urllib.parse import urlsplit

_DOUBLE_STAR = "\x00DOUBLE_STAR\x00"


class PatternMatcher:
    """A compiled glob pattern."""

    __slots__ = ("pattern", "regex")

    def __init__(self, pattern: str, regex: re.Pattern[str]) -> None:
        self.pattern = pattern
        self.regex = regex

    def matches(self, candidate: str) -> bool:
        """Full-string, case-insensitive match."""
        return self.regex.fullmatch(candidate) is not None

    def __repr__(self) -> str:
        return f"PatternMatcher({self.pattern!r}, {self.regex.pattern!r})"


def _translate(pattern: str) -> str:
    """Translate a glob into a regex body (anchoring is done by fullmatch)."""
    # Escape everything except ``*``, then shield ``**`` from single-star expansion.
    body = "".join("*" if char == "*" else re.escape(char) for char in pattern)
    body = body.replace("**", _DOUBLE_STAR)

    tail = ""
    if body.endswith("/*"):
        body, tail = body[:-2], "(?:/.*)?"
    elif body.endswith("*"):
        body, tail = body[:-1], ".*"

    body = body.replace("*", "[^/]*") + tail
    return body.replace(_DOUBLE_STAR, ".*")


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> PatternMatcher:
    """Compile a glob pattern. Compiled matchers are cached by pattern text."""
    regex = re.compile(_translate(pattern), re.IGNORECASE | re.DOTALL)
    return PatternMatcher(pattern, regex)


def _candidates(url: str) -> tuple[str, str] | None:
    """Return (host + path + query, host) for an absolute URL, or None."""
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return None
    if not parts.scheme or not hostname:
        return None
    path = parts.path or "/"
    query = f"?{parts.query}" if parts.query else ""
    return f"{hostname}{path}{query}", hostname


def matches_any(url: str, patterns: Iterable[str]) -> bool:
    """True if any pattern matches the URL or its bare hostname.

    Unparseable URLs match nothing; an empty pattern list matches nothing.
    """
    candidates = _candidates(url)
    if candidates is None:
        return False
    full, hostname = candidates
    for pattern in patterns:
        matcher = compile_pattern(pattern)
        if matcher.matches(full) or matcher.matches(hostname):
            return True
    return False


def suggest_pattern(url: str) -> str:
    """Suggested pattern for an access request: ``<host>/*``.

    Falls back to the raw input when no host can be parsed.
    """
    candidates = _candidates(url)
    if candidates is None:
        return url
    return f"{candidates[1]}/*"
