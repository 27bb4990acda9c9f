"""Device API controller: bearer-token endpoints called by browser agents."""

from __future__ import annotations

from typing import Any

from litestar import Controller, Request, get, post
from litestar.datastructures import State
from litestar.di import Provide
from litestar.exceptions import HTTPException, NotAuthorizedException
from litestar.response import Response
from litestar.types import Dependencies

from watchtower.models.device import Device
from watchtower.resources.auth import InvalidInputError
from watchtower.resources.device import DeviceResource
from watchtower.templates import render


def bearer_token(request: Request[object, object, State]) -> str:
    """Return the bearer token from the Authorization header, or ""."""
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return ""
    return header[len("Bearer "):].strip()


async def _provide_device_from_token(
    request: Request[object, object, State],
    device_resource: DeviceResource,
) -> Device:
    """Resolve the Bearer token to a Device.

    Raises:
        NotAuthorizedException: If the header is missing, malformed,
            or the token does not map to a device.
    """
    token = bearer_token(request)
    if not token:
        raise NotAuthorizedException(
            detail="Missing or invalid Authorization header",
        )
    try:
        return await device_resource.resolve_token(token)
    except ValueError as error:
        raise NotAuthorizedException(detail=str(error)) from error


class DeviceApiController(Controller):
    """Token-authed endpoints called by browser agents."""

    path = "/api"
    # Litestar reads this as a plain class attribute, not a ClassVar.
    dependencies: Dependencies = {  # noqa: RUF012
        "device": Provide(_provide_device_from_token),
    }

    @get("/patterns")
    async def patterns(
        self, device: Device, device_resource: DeviceResource,
    ) -> dict[str, list[dict[str, object]]]:
        """Current enabled, unexpired patterns for the calling device."""
        return await device_resource.patterns(device)

    @post("/requests", status_code=201)
    async def submit_request(
        self, data: dict[str, Any], device: Device, device_resource: DeviceResource,
    ) -> dict[str, object]:
        """Body: {"url": "...", "suggested_pattern"?: "..."}"""
        suggested = data.get("suggested_pattern")
        try:
            return await device_resource.submit_request(
                device,
                str(data.get("url") or ""),
                str(suggested) if suggested else None,
            )
        except InvalidInputError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error

    @post("/heartbeat", status_code=200)
    async def heartbeat(
        self, device: Device, device_resource: DeviceResource,
    ) -> dict[str, object]:
        """Explicit liveness signal, used while the live channel is down."""
        return await device_resource.heartbeat(device)

    @post("/check", status_code=200)
    async def check(
        self, data: dict[str, Any], device: Device, device_resource: DeviceResource,
    ) -> dict[str, str]:
        """Body: {"url": "..."}. Returns {"decision": "allow"|"block"}."""
        try:
            return await device_resource.check(device, str(data.get("url") or ""))
        except InvalidInputError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error

    @get("/uninstall", media_type="text/html")
    async def uninstall_page(
        self,
        request: Request[object, object, State],
        device_resource: DeviceResource,
        token: str = "",
    ) -> Response[str]:
        """Opened by the browser when the extension is removed. Always succeeds."""
        await device_resource.uninstall(token or bearer_token(request))
        return Response(
            content=render("uninstalled.html"),
            status_code=200,
            media_type="text/html",
        )

    @post("/uninstall", status_code=200)
    async def uninstall(
        self,
        request: Request[object, object, State],
        device_resource: DeviceResource,
        token: str = "",
    ) -> dict[str, bool]:
        """Programmatic uninstall signal. Always succeeds."""
        return await device_resource.uninstall(token or bearer_token(request))
