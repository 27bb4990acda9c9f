"""Agent sync engine: persistent channel, polling fallback, heartbeats, evaluation.

Connection state machine::

    disconnected -> connecting -> connected -> disconnected

Reconnects happen only on the reconnect timer. While connected, the
channel's own ping/pong keeps the device alive, so HTTP heartbeats and
polls are skipped.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import httpx
import websockets

from watchtower.agent.cache import CachedPattern, PatternCache
from watchtower.agent.settings import AgentSettings, ws_url
from watchtower.matching import Decision, evaluate, suggest_pattern

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]


class ConnectionState(str, Enum):
    """Persistent channel state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def split_snapshot(
    patterns: list[dict[str, Any]],
) -> tuple[list[CachedPattern], list[CachedPattern]]:
    """Split a snapshot into (allow, deny) entries, keeping each expiry."""
    allow: list[CachedPattern] = []
    deny: list[CachedPattern] = []
    for pattern in patterns:
        if pattern.get("type") == "allow":
            allow.append(CachedPattern.from_value(pattern))
        elif pattern.get("type") == "deny":
            deny.append(CachedPattern.from_value(pattern))
    return allow, deny


def _default_connector(url: str) -> Awaitable[Any]:
    return websockets.connect(url)


class SyncEngine:
    """Keeps the local cache converged with the server.

    Sync and heartbeat faults are logged and retried on the next tick.
    ``evaluate()`` only reads the cache and never waits on the network.
    """

    def __init__(
        self,
        settings: AgentSettings,
        cache: PatternCache,
        *,
        http: httpx.AsyncClient | None = None,
        connector: Connector | None = None,
    ) -> None:
        self._settings = settings
        self._cache = cache
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=10.0)
        self._connector = connector or _default_connector
        self._state = ConnectionState.DISCONNECTED
        self._connection: Any = None
        self._listener: asyncio.Task[None] | None = None
        self._loops: list[asyncio.Task[None]] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def cache(self) -> PatternCache:
        return self._cache

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._settings.token}"}

    def _url(self, path: str) -> str:
        return f"{self._settings.server_url}{path}"

    # --- Persistent channel ---

    async def connect(self) -> bool:
        """Open the persistent channel, tearing down any existing one first.

        Returns:
            True once connected. Failures leave the engine disconnected.
        """
        if not self._settings.configured:
            return False
        if self._state is not ConnectionState.DISCONNECTED:
            await self.disconnect()
        self._state = ConnectionState.CONNECTING
        try:
            connection = await self._connector(ws_url(self._settings))
        except Exception as error:
            logger.warning("Channel connect failed: %s", error)
            self._state = ConnectionState.DISCONNECTED
            return False
        self._connection = connection
        self._state = ConnectionState.CONNECTED
        self._listener = asyncio.get_running_loop().create_task(self._listen(connection))
        logger.info("Channel connected")
        return True

    async def disconnect(self) -> None:
        """Close the channel if open."""
        listener, self._listener = self._listener, None
        connection, self._connection = self._connection, None
        self._state = ConnectionState.DISCONNECTED
        if listener is not None and listener is not asyncio.current_task():
            listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await listener
        if connection is not None:
            with contextlib.suppress(Exception):
                await connection.close()

    async def ensure_connected(self) -> bool:
        """Reconnect-timer body: connect only when disconnected."""
        if self._settings.configured and self._state is ConnectionState.DISCONNECTED:
            return await self.connect()
        return self.connected

    async def _listen(self, connection: Any) -> None:
        try:
            async for raw in connection:
                await self._handle_frame(connection, raw)
        except asyncio.CancelledError:
            raise
        except Exception as error:
            logger.info("Channel closed: %s", error)
        finally:
            if self._connection is connection:
                self._connection = None
                self._listener = None
                self._state = ConnectionState.DISCONNECTED

    async def _handle_frame(self, connection: Any, raw: str | bytes) -> None:
        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed channel frame")
            return
        if not isinstance(message, dict):
            return
        kind = message.get("type")
        if kind == "ping":
            await connection.send(json.dumps({"type": "pong"}))
        elif kind == "patterns_updated":
            data = message.get("data") or {}
            await self.on_push(data.get("patterns") or [])

    async def on_push(self, patterns: list[dict[str, Any]]) -> None:
        """Replace the cache with a pushed snapshot."""
        allow, deny = split_snapshot(patterns)
        await self._cache.replace(allow, deny)
        logger.info("Patterns updated via channel (%d allow, %d deny)", len(allow), len(deny))

    # --- Stateless fallbacks ---

    async def sync(self) -> bool:
        """Pull the full snapshot over HTTP and replace the cache."""
        if not self._settings.configured:
            return False
        try:
            response = await self._http.get(self._url("/api/patterns"), headers=self._headers())
            response.raise_for_status()
            patterns = response.json().get("patterns") or []
        except (httpx.HTTPError, ValueError) as error:
            logger.warning("Pattern sync failed: %s", error)
            return False
        allow, deny = split_snapshot(patterns)
        await self._cache.replace(allow, deny)
        logger.info("Patterns synced (%d allow, %d deny)", len(allow), len(deny))
        return True

    async def poll_fallback(self) -> bool:
        """Sync-timer body: pull only while the channel is down."""
        if self.connected:
            return False
        return await self.sync()

    async def heartbeat(self) -> bool:
        """Heartbeat-timer body: signal liveness only while the channel is down."""
        if not self._settings.configured or self.connected:
            return False
        try:
            response = await self._http.post(self._url("/api/heartbeat"), headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPError as error:
            logger.warning("Heartbeat failed: %s", error)
            return False
        await self._cache.mark_heartbeat()
        return True

    async def submit_request(self, url: str, suggested_pattern: str | None = None) -> bool:
        """File an access request.

        The pattern defaults to the host-based suggestion when none is given.
        """
        if not self._settings.configured:
            return False
        body = {"url": url, "suggested_pattern": suggested_pattern or suggest_pattern(url)}
        try:
            response = await self._http.post(
                self._url("/api/requests"), headers=self._headers(), json=body,
            )
            response.raise_for_status()
        except httpx.HTTPError as error:
            logger.warning("Access request failed: %s", error)
            return False
        logger.info("Access request submitted for %s", url)
        return True

    # --- Evaluation ---

    async def evaluate(self, url: str) -> Decision:
        """Decide a navigation from the cached lists only."""
        allow, deny = await self._cache.lists()
        return evaluate(url, allow=allow, deny=deny, configured=self._settings.configured)

    # --- Lifecycle ---

    async def _every(self, interval: float, tick: Callable[[], Awaitable[object]]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await tick()
            except Exception:
                logger.exception("Agent timer tick failed")

    async def start(self) -> None:
        """Connect, do an initial sync, and start the three timers."""
        await self.connect()
        await self.sync()
        loop = asyncio.get_running_loop()
        self._loops = [
            loop.create_task(self._every(self._settings.sync_interval, self.poll_fallback)),
            loop.create_task(self._every(self._settings.heartbeat_interval, self.heartbeat)),
            loop.create_task(
                self._every(self._settings.reconnect_interval, self.ensure_connected),
            ),
        ]

    async def stop(self) -> None:
        """Cancel the timers, close the channel, and release the HTTP client."""
        loops, self._loops = self._loops, []
        for task in loops:
            task.cancel()
        await asyncio.gather(*loops, return_exceptions=True)
        await self.disconnect()
        if self._owns_http:
            await self._http.aclose()
