"""WebSocket transport: the persistent channel that carries pattern pushes."""

from __future__ import annotations

import contextlib
import logging

from litestar import WebSocket, websocket
from litestar.datastructures import State

from watchtower.resources.device import DeviceResource

logger = logging.getLogger(__name__)

AUTH_FAILED = 4001


class DeviceSocketHandler:
    """Stateful per-connection handler. Authenticates from the query string, then pumps."""

    def __init__(
        self, socket: WebSocket[object, object, State], device_resource: DeviceResource,
    ) -> None:
        self._socket = socket
        self._devices = device_resource

    async def run(self) -> None:
        """Accept, authenticate, then serve the session until it closes."""
        await self._socket.accept()
        token = self._socket.query_params.get("token", "")
        try:
            device = await self._devices.resolve_token(token)
        except ValueError:
            await self._socket.close(code=AUTH_FAILED, reason="Authentication failed")
            return

        session = self._devices.open_session(device, self._socket)
        try:
            await self._devices.serve_session(session)
        finally:
            with contextlib.suppress(Exception):
                await self._socket.close()


@websocket("/api/ws")
async def device_socket(socket: WebSocket[object, object, State]) -> None:
    """Persistent channel for a device; ``?token=`` authenticates."""
    handler = DeviceSocketHandler(socket, socket.app.state.device)
    await handler.run()
