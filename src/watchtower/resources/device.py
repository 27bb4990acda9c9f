"""Device resource: the bearer-token API used by browser agents."""

from __future__ import annotations

import logging

from watchtower.config import Settings
from watchtower.models.device import DEVICE_ACTIVE, DEVICE_UNINSTALLED, Device
from watchtower.realtime.hub import ConnectionHub
from watchtower.realtime.publisher import SnapshotPublisher
from watchtower.realtime.session import LiveSession, Transport
from watchtower.resources.auth import InvalidInputError
from watchtower.services.device_service import DeviceService
from watchtower.services.liveness_service import LivenessService
from watchtower.services.notification_dispatcher import NotificationDispatcher
from watchtower.services.pattern_service import PatternService
from watchtower.services.request_service import RequestService

logger = logging.getLogger(__name__)


class DeviceResource:
    """Operations a device performs with its own token.

    Built once at startup with all dependencies pre-wired.
    """

    def __init__(
        self,
        *,
        device_service: DeviceService,
        pattern_service: PatternService,
        request_service: RequestService,
        liveness: LivenessService,
        dispatcher: NotificationDispatcher,
        hub: ConnectionHub,
        publisher: SnapshotPublisher,
        settings: Settings,
    ) -> None:
        self._devices = device_service
        self._patterns = pattern_service
        self._requests = request_service
        self._liveness = liveness
        self._dispatcher = dispatcher
        self._hub = hub
        self._publisher = publisher
        self._settings = settings

    async def resolve_token(self, token: str) -> Device:
        """Resolve a device bearer token.

        Raises:
            ValueError: If the token is missing or unknown.
        """
        return await self._devices.resolve_token(token)

    async def patterns(self, device: Device) -> dict[str, list[dict[str, object]]]:
        """The device's current snapshot."""
        return {"patterns": await self._patterns.snapshot(device.id)}

    async def check(self, device: Device, url: str) -> dict[str, str]:
        """Evaluate a URL against the device's snapshot.

        Raises:
            InvalidInputError: If the URL is empty.
        """
        if not url:
            raise InvalidInputError("url is required")
        decision = await self._patterns.check(device.id, url)
        return {"decision": decision.value}

    async def submit_request(
        self, device: Device, url: str, suggested_pattern: str | None = None,
    ) -> dict[str, object]:
        """File an access request and notify admins in the background.

        Raises:
            InvalidInputError: If the URL is empty.
        """
        try:
            request = await self._requests.create_request(device, url, suggested_pattern)
        except ValueError as error:
            raise InvalidInputError(str(error)) from error
        self._dispatcher.new_request(device.name, str(request["url"]))
        return request

    async def heartbeat(self, device: Device) -> dict[str, object]:
        """Record an explicit heartbeat."""
        await self._liveness.record_heartbeat(device.id)
        status = DEVICE_UNINSTALLED if device.status == DEVICE_UNINSTALLED else DEVICE_ACTIVE
        return {"success": True, "status": status}

    async def uninstall(self, token: str) -> dict[str, bool]:
        """Apply an uninstall signal. Always reports success."""
        name = await self._liveness.mark_uninstalled(token)
        if name is not None:
            self._dispatcher.device_status(name, DEVICE_UNINSTALLED)
        return {"success": True}

    # --- Persistent channel ---

    def open_session(self, device: Device, transport: Transport) -> LiveSession:
        """Build a live session for an accepted connection."""
        return LiveSession(
            device.id,
            transport,
            queue_size=self._settings.ws_queue_size,
            write_wait=self._settings.ws_write_wait_seconds,
            pong_wait=self._settings.ws_pong_wait_seconds,
            ping_period=self._settings.ws_ping_period_seconds,
            max_message_size=self._settings.ws_max_message_size,
            on_pong=self._on_pong,
        )

    async def _on_pong(self, session: LiveSession) -> None:
        await self._liveness.record_heartbeat(session.device_id)

    async def serve_session(self, session: LiveSession) -> str:
        """Register, record a heartbeat, queue the snapshot, and pump until closed.

        The session is always unregistered on exit.

        Returns:
            Why the session ended.
        """
        await self._hub.register(session)
        try:
            try:
                await self._liveness.record_heartbeat(session.device_id)
            except Exception:
                logger.exception("Failed to record connect heartbeat for %r", session)
            try:
                await self._publisher.send_initial(session)
            except Exception:
                logger.exception("Failed to queue initial snapshot for %r", session)
            reason = await session.serve()
        finally:
            await self._hub.unregister(session)
        logger.info("%r ended: %s", session, reason)
        return reason
