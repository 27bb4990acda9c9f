"""In-memory registry of live sessions with per-device fan-out."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

from watchtower.realtime.session import LiveSession

logger = logging.getLogger(__name__)

_REGISTER = "register"
_UNREGISTER = "unregister"
_DISCONNECT = "disconnect"


class ConnectionHub:
    """Single-instance actor owning the device -> sessions map.

    Register, unregister and device disconnects are serialized through one
    command queue processed by the hub task. ``send_to_device`` runs
    without awaiting, so it never observes the map mid-update.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, set[LiveSession]] = {}
        self._commands: asyncio.Queue[tuple[str, Any, asyncio.Future[Any]]] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start processing hub commands."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Connection hub started")

    async def stop(self) -> None:
        """Stop the actor and close every session."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        while not self._commands.empty():
            _, _, future = self._commands.get_nowait()
            if not future.done():
                future.set_exception(RuntimeError("Connection hub stopped"))
        for sessions in self._sessions.values():
            for session in sessions:
                session.close()
        self._sessions.clear()
        logger.info("Connection hub stopped")

    async def register(self, session: LiveSession) -> None:
        """Add a session to its device's session set.

        Raises:
            RuntimeError: If the hub is not running.
        """
        await self._submit(_REGISTER, session)

    async def unregister(self, session: LiveSession) -> None:
        """Remove a session and close its queue. Unknown sessions are ignored."""
        if not self.running:
            session.close()
            return
        await self._submit(_UNREGISTER, session)

    async def disconnect_device(self, device_id: str) -> int:
        """Close every session of a device whose token was revoked.

        Returns:
            Number of sessions closed. A stopped hub holds none.
        """
        if not self.running:
            return 0
        closed: int = await self._submit(_DISCONNECT, device_id)
        return closed

    async def _submit(self, action: str, target: Any) -> Any:
        if not self.running:
            raise RuntimeError("Connection hub is not running")
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        await self._commands.put((action, target, future))
        return await future

    async def _run(self) -> None:
        while True:
            action, target, future = await self._commands.get()
            result: Any = None
            try:
                if action == _REGISTER:
                    self._add(target)
                elif action == _UNREGISTER:
                    self._remove(target)
                else:
                    result = self._drop_device(target)
            except Exception as error:
                logger.exception("Hub failed to %s %r", action, target)
                if not future.done():
                    future.set_exception(error)
                continue
            if not future.done():
                future.set_result(result)

    def _add(self, session: LiveSession) -> None:
        self._sessions.setdefault(session.device_id, set()).add(session)
        logger.info(
            "Session registered for device %s (%d open)",
            session.device_id, len(self._sessions[session.device_id]),
        )

    def _remove(self, session: LiveSession) -> None:
        sessions = self._sessions.get(session.device_id)
        if sessions is None or session not in sessions:
            session.close()
            return
        sessions.discard(session)
        session.close()
        if not sessions:
            del self._sessions[session.device_id]
        logger.info("Session unregistered for device %s", session.device_id)

    def _drop_device(self, device_id: str) -> int:
        sessions = self._sessions.pop(device_id, set())
        for session in sessions:
            session.close()
        if sessions:
            logger.info("Closed %d session(s) for device %s", len(sessions), device_id)
        return len(sessions)

    def send_to_device(self, device_id: str, message: dict[str, Any]) -> int:
        """Serialize once and offer to every session of the device.

        A session with a full queue misses this message; others are unaffected.

        Returns:
            Number of sessions the message was queued to.
        """
        sessions = self._sessions.get(device_id)
        if not sessions:
            return 0
        payload = json.dumps(message)
        delivered = 0
        for session in list(sessions):
            if session.offer(payload):
                delivered += 1
            else:
                logger.warning("Dropped message for slow %r", session)
        return delivered

    def is_device_connected(self, device_id: str) -> bool:
        return bool(self._sessions.get(device_id))

    def connected_device_count(self) -> int:
        return len(self._sessions)

    def session_count(self) -> int:
        return sum(len(sessions) for sessions in self._sessions.values())

    def stats(self) -> dict[str, int]:
        """Counts for the admin status endpoint."""
        return {
            "connected_devices": self.connected_device_count(),
            "sessions": self.session_count(),
        }
