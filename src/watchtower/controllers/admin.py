"""Admin controller: thin HTTP adapter for AdminResource. Session cookie required."""

from __future__ import annotations

from typing import Any

from litestar import Controller, delete, get, post, put
from litestar.exceptions import HTTPException

from watchtower.models.user import User
from watchtower.resources.admin import (
    AdminResource,
    DeviceNotFoundError,
    InvalidPatternError,
    PatternNotFoundError,
    RequestAlreadyResolvedError,
    RequestNotFoundError,
    UsernameTakenError,
)
from watchtower.resources.auth import InvalidInputError
from watchtower.utils.duration import InvalidDurationError


def _not_found(error: Exception) -> HTTPException:
    return HTTPException(status_code=404, detail=str(error))


def _bad_request(error: Exception) -> HTTPException:
    return HTTPException(status_code=400, detail=str(error))


class AdminController(Controller):
    """HTTP adapter for device, pattern, request and account management."""

    path = "/api/admin"

    # --- Devices ---

    @get("/devices")
    async def list_devices(
        self, admin: User, admin_resource: AdminResource,
    ) -> list[dict[str, object]]:
        """All devices with status and connection flag."""
        return await admin_resource.list_devices()

    @post("/devices", status_code=201)
    async def create_device(
        self, data: dict[str, Any], admin: User, admin_resource: AdminResource,
    ) -> dict[str, object]:
        """Body: {"name": "..."}. The response includes the device token."""
        try:
            return await admin_resource.create_device(str(data.get("name") or ""))
        except InvalidInputError as error:
            raise _bad_request(error) from error

    @delete("/devices/{device_id:str}", status_code=200)
    async def delete_device(
        self, device_id: str, admin: User, admin_resource: AdminResource,
    ) -> dict[str, bool]:
        """Delete a device with its patterns and requests."""
        try:
            return await admin_resource.delete_device(device_id)
        except DeviceNotFoundError as error:
            raise _not_found(error) from error

    @post("/devices/{device_id:str}/regenerate-token", status_code=200)
    async def regenerate_token(
        self, device_id: str, admin: User, admin_resource: AdminResource,
    ) -> dict[str, object]:
        """Issue a new token. The old one stops working immediately."""
        try:
            return await admin_resource.regenerate_token(device_id)
        except DeviceNotFoundError as error:
            raise _not_found(error) from error

    @post("/devices/{device_id:str}/check", status_code=200)
    async def check_url(
        self,
        device_id: str,
        data: dict[str, Any],
        admin: User,
        admin_resource: AdminResource,
    ) -> dict[str, str]:
        """Body: {"url": "..."}. Evaluates the URL for that device."""
        try:
            return await admin_resource.check_url(device_id, str(data.get("url") or ""))
        except DeviceNotFoundError as error:
            raise _not_found(error) from error
        except InvalidInputError as error:
            raise _bad_request(error) from error

    @get("/status")
    async def status(self, admin: User, admin_resource: AdminResource) -> dict[str, int]:
        """Live connection statistics."""
        return admin_resource.status()

    # --- Patterns ---

    @get("/patterns")
    async def list_patterns(
        self, admin: User, admin_resource: AdminResource,
    ) -> list[dict[str, object]]:
        """Every pattern, deny first, newest first."""
        return await admin_resource.list_patterns()

    @post("/patterns", status_code=201)
    async def create_pattern(
        self, data: dict[str, Any], admin: User, admin_resource: AdminResource,
    ) -> dict[str, object]:
        """Body: {"device_id", "pattern", "type", "duration"?, "custom_minutes"?}"""
        try:
            return await admin_resource.create_pattern(data)
        except (InvalidDurationError, InvalidPatternError) as error:
            raise _bad_request(error) from error
        except DeviceNotFoundError as error:
            raise _not_found(error) from error

    @put("/patterns/{pattern_id:str}", status_code=200)
    async def update_pattern(
        self,
        pattern_id: str,
        data: dict[str, Any],
        admin: User,
        admin_resource: AdminResource,
    ) -> dict[str, object]:
        """Body: {"pattern", "type", "duration"?, "custom_minutes"?}"""
        try:
            return await admin_resource.update_pattern(pattern_id, data)
        except (InvalidDurationError, InvalidPatternError) as error:
            raise _bad_request(error) from error
        except PatternNotFoundError as error:
            raise _not_found(error) from error

    @post("/patterns/{pattern_id:str}/toggle", status_code=200)
    async def toggle_pattern(
        self,
        pattern_id: str,
        data: dict[str, Any],
        admin: User,
        admin_resource: AdminResource,
    ) -> dict[str, object]:
        """Body: {"enabled": true|false}"""
        enabled = data.get("enabled")
        if not isinstance(enabled, bool):
            raise HTTPException(status_code=400, detail="enabled must be a boolean")
        try:
            return await admin_resource.toggle_pattern(pattern_id, enabled)
        except PatternNotFoundError as error:
            raise _not_found(error) from error

    @delete("/patterns/{pattern_id:str}", status_code=200)
    async def delete_pattern(
        self, pattern_id: str, admin: User, admin_resource: AdminResource,
    ) -> dict[str, bool]:
        """Delete a pattern."""
        try:
            return await admin_resource.delete_pattern(pattern_id)
        except PatternNotFoundError as error:
            raise _not_found(error) from error

    # --- Access requests ---

    @get("/requests")
    async def list_requests(
        self,
        admin: User,
        admin_resource: AdminResource,
        status: str | None = None,
    ) -> list[dict[str, object]]:
        """Requests with device names. ``?status=pending`` filters."""
        return await admin_resource.list_requests(status)

    @post("/requests/{request_id:str}/approve", status_code=200)
    async def approve_request(
        self,
        request_id: str,
        data: dict[str, Any],
        admin: User,
        admin_resource: AdminResource,
    ) -> dict[str, object]:
        """Body: {"pattern", "type"?, "duration"?, "custom_minutes"?}"""
        try:
            return await admin_resource.approve_request(request_id, data)
        except (InvalidDurationError, InvalidPatternError) as error:
            raise _bad_request(error) from error
        except RequestNotFoundError as error:
            raise _not_found(error) from error
        except RequestAlreadyResolvedError as error:
            raise HTTPException(status_code=409, detail=str(error)) from error

    @post("/requests/{request_id:str}/deny", status_code=200)
    async def deny_request(
        self, request_id: str, admin: User, admin_resource: AdminResource,
    ) -> dict[str, object]:
        """Resolve a pending request as denied."""
        try:
            return await admin_resource.deny_request(request_id)
        except RequestNotFoundError as error:
            raise _not_found(error) from error
        except RequestAlreadyResolvedError as error:
            raise HTTPException(status_code=409, detail=str(error)) from error

    # --- Admin accounts ---

    @get("/users")
    async def list_users(
        self, admin: User, admin_resource: AdminResource,
    ) -> list[dict[str, object]]:
        """All admin accounts."""
        return await admin_resource.list_users()

    @post("/users", status_code=201)
    async def create_user(
        self, data: dict[str, Any], admin: User, admin_resource: AdminResource,
    ) -> dict[str, object]:
        """Body: {"username": "...", "password": "..."}"""
        try:
            return await admin_resource.create_user(
                str(data.get("username") or ""), str(data.get("password") or ""),
            )
        except UsernameTakenError as error:
            raise HTTPException(status_code=409, detail=str(error)) from error
        except InvalidInputError as error:
            raise _bad_request(error) from error

    # --- Notifications ---

    @get("/notifications/prefs")
    async def get_prefs(
        self, admin: User, admin_resource: AdminResource,
    ) -> dict[str, bool]:
        """The caller's notification flags."""
        return admin_resource.notification_prefs(admin)

    @put("/notifications/prefs", status_code=200)
    async def update_prefs(
        self, data: dict[str, Any], admin: User, admin_resource: AdminResource,
    ) -> dict[str, bool]:
        """Body: {"notify_new_requests"?: bool, "notify_device_status"?: bool}"""
        try:
            return await admin_resource.update_notification_prefs(admin, data)
        except InvalidInputError as error:
            raise _bad_request(error) from error

    @post("/push/subscribe", status_code=201)
    async def subscribe(
        self, data: dict[str, Any], admin: User, admin_resource: AdminResource,
    ) -> dict[str, object]:
        """Body: {"endpoint": "...", "keys": {"p256dh": "...", "auth": "..."}}"""
        try:
            return await admin_resource.subscribe(admin, data)
        except InvalidInputError as error:
            raise _bad_request(error) from error

    @post("/push/unsubscribe", status_code=200)
    async def unsubscribe(
        self, data: dict[str, Any], admin: User, admin_resource: AdminResource,
    ) -> dict[str, bool]:
        """Body: {"endpoint": "..."}"""
        try:
            return await admin_resource.unsubscribe(str(data.get("endpoint") or ""))
        except InvalidInputError as error:
            raise _bad_request(error) from error

    @get("/push/subscriptions")
    async def list_subscriptions(
        self, admin: User, admin_resource: AdminResource,
    ) -> list[dict[str, object]]:
        """The caller's push subscriptions."""
        return await admin_resource.list_subscriptions(admin)
