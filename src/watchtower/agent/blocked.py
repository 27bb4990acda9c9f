"""The local page a blocked navigation is redirected to."""

from __future__ import annotations

from urllib.parse import parse_qs, quote, urlsplit

from watchtower.matching import suggest_pattern
from watchtower.templates import render as render_template


class BlockedPage:
    """Builds redirect URLs to the blocked surface and renders it.

    The page carries the original URL and offers a request-access form
    with the suggested pattern prefilled.
    """

    def __init__(self, blocked_page_url: str, request_action: str = "/request") -> None:
        self._base = blocked_page_url
        self._request_action = request_action

    def redirect_url(self, url: str) -> str:
        """Where to send a blocked navigation."""
        separator = "&" if "?" in self._base else "?"
        return f"{self._base}{separator}url={quote(url, safe='')}"

    @staticmethod
    def original_url(blocked_url: str) -> str:
        """Recover the original URL from a blocked-page URL, or ""."""
        values = parse_qs(urlsplit(blocked_url).query).get("url")
        return values[0] if values else ""

    def render(self, url: str) -> str:
        """HTML for the blocked page."""
        return render_template(
            "blocked.html",
            url=url,
            suggested_pattern=suggest_pattern(url),
            request_action=self._request_action,
        )
