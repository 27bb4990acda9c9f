"""Allow/deny policy evaluation over a device's pattern lists."""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum

from watchtower.matching.pattern import matches_any

_POLICY_SCHEMES = ("http://", "https://")


class Decision(str, Enum):
    """Outcome of evaluating a navigation."""

    ALLOW = "allow"
    BLOCK = "block"


def evaluate(
    url: str,
    *,
    allow: Sequence[str],
    deny: Sequence[str],
    configured: bool = True,
) -> Decision:
    """Decide whether a navigation to ``url`` is permitted.

    Order matters: non-http(s) URLs are out of scope; an unconfigured
    device fails open; a deny match blocks unconditionally; a non-empty
    allow list must be matched; otherwise the URL is allowed.
    """
    if not url.lower().startswith(_POLICY_SCHEMES):
        return Decision.ALLOW
    if not configured:
        return Decision.ALLOW
    if deny and matches_any(url, deny):
        return Decision.BLOCK
    if allow and not matches_any(url, allow):
        return Decision.BLOCK
    return Decision.ALLOW
