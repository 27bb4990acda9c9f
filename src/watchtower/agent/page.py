"""Local web surface for blocked navigations: the blocked page and its request form."""

from __future__ import annotations

from typing import Annotated
from urllib.parse import urlsplit

from litestar import Litestar, Response, get, post
from litestar.enums import RequestEncodingType
from litestar.params import Body

from watchtower.agent.blocked import BlockedPage
from watchtower.agent.sync import SyncEngine
from watchtower.templates import render

REQUEST_PATH = "/request"

FormData = Annotated[dict[str, str], Body(media_type=RequestEncodingType.URL_ENCODED)]


def page_address(blocked_page_url: str) -> tuple[str, int, str]:
    """(host, port, path) the local page listens on, from its public URL."""
    parts = urlsplit(blocked_page_url)
    return parts.hostname or "127.0.0.1", parts.port or 8765, parts.path or "/blocked"


def create_page_app(engine: SyncEngine, blocked_page_url: str) -> Litestar:
    """Serve ``GET <blocked path>?url=...`` and ``POST /request``.

    The form posts back here and the agent files the access request with
    its own device token, so the browser never sees the token.
    """
    _, _, blocked_path = page_address(blocked_page_url)
    page = BlockedPage(blocked_page_url, request_action=REQUEST_PATH)

    @get(blocked_path, media_type="text/html")
    async def show_blocked(url: str = "") -> str:
        return page.render(url)

    @post(REQUEST_PATH, media_type="text/html")
    async def request_access(data: FormData) -> Response[str]:
        url = (data.get("url") or "").strip()
        if not url:
            return _result("Request not sent", "No URL was given.", url, 400)
        pattern = (data.get("suggested_pattern") or "").strip() or None
        if not await engine.submit_request(url, pattern):
            return _result(
                "Request not sent", "The server could not be reached. Try again later.", url, 502,
            )
        return _result("Request sent", "An administrator will review your request.", url, 200)

    return Litestar(route_handlers=[show_blocked, request_access])


def _result(heading: str, message: str, url: str, status_code: int) -> Response[str]:
    return Response(
        content=render("request_result.html", heading=heading, message=message, url=url),
        status_code=status_code,
        media_type="text/html",
    )
