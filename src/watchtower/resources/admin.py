"""Admin resource: device registry, patterns, approvals, and admin accounts."""

from __future__ import annotations

from typing import Any, cast

from watchtower.models.user import User
from watchtower.realtime.hub import ConnectionHub
from watchtower.realtime.publisher import SnapshotPublisher
from watchtower.resources.auth import InvalidInputError
from watchtower.services.device_service import DeviceService
from watchtower.services.pattern_service import PatternService
from watchtower.services.request_service import RequestService
from watchtower.services.user_service import UserService
from watchtower.utils.duration import Expiry


class DeviceNotFoundError(Exception):
    """Raised when the requested device does not exist."""


class PatternNotFoundError(Exception):
    """Raised when the requested pattern does not exist."""


class InvalidPatternError(Exception):
    """Raised when pattern text or type is invalid."""


class RequestNotFoundError(Exception):
    """Raised when the requested access request does not exist."""


class RequestAlreadyResolvedError(Exception):
    """Raised when approving or denying a request that is not pending."""


class UsernameTakenError(Exception):
    """Raised when creating an account with an existing username."""


def _pattern_error(error: ValueError) -> Exception:
    """Map a pattern service ValueError onto a domain error."""
    message = str(error)
    if "device not found" in message.lower():
        return DeviceNotFoundError(message)
    if "not found" in message.lower():
        return PatternNotFoundError(message)
    return InvalidPatternError(message)


class AdminResource:
    """Administrator operations.

    Built once at startup with all dependencies pre-wired. Every pattern
    mutation pushes a fresh snapshot to the owning device after commit.
    """

    def __init__(
        self,
        *,
        device_service: DeviceService,
        pattern_service: PatternService,
        request_service: RequestService,
        user_service: UserService,
        publisher: SnapshotPublisher,
        hub: ConnectionHub,
    ) -> None:
        self._devices = device_service
        self._patterns = pattern_service
        self._requests = request_service
        self._users = user_service
        self._publisher = publisher
        self._hub = hub

    # --- Devices ---

    async def list_devices(self) -> list[dict[str, object]]:
        """All devices with a live-connection flag."""
        devices = await self._devices.list_devices()
        for device in devices:
            device["connected"] = self._hub.is_device_connected(str(device["id"]))
        return devices

    async def create_device(self, name: str) -> dict[str, object]:
        """Register a device. The response carries its plaintext token.

        Raises:
            InvalidInputError: If the name is empty.
        """
        name = name.strip()
        if not name:
            raise InvalidInputError("Device name is required")
        return await self._devices.create_device(name)

    async def delete_device(self, device_id: str) -> dict[str, bool]:
        """Delete a device with its patterns and requests.

        Raises:
            DeviceNotFoundError: If the device does not exist.
        """
        try:
            await self._devices.delete_device(device_id)
        except ValueError as error:
            raise DeviceNotFoundError(str(error)) from error
        await self._hub.disconnect_device(device_id)
        return {"success": True}

    async def regenerate_token(self, device_id: str) -> dict[str, object]:
        """Rotate a device's token and drop sessions opened with the old one.

        Raises:
            DeviceNotFoundError: If the device does not exist.
        """
        try:
            rotated = await self._devices.rotate_token(device_id)
        except ValueError as error:
            raise DeviceNotFoundError(str(error)) from error
        await self._hub.disconnect_device(device_id)
        return rotated

    async def check_url(self, device_id: str, url: str) -> dict[str, str]:
        """Evaluate a URL against a device's current snapshot.

        Raises:
            DeviceNotFoundError: If the device does not exist.
            InvalidInputError: If the URL is empty.
        """
        if not url:
            raise InvalidInputError("url is required")
        try:
            device = await self._devices.get_device(device_id)
        except ValueError as error:
            raise DeviceNotFoundError(str(error)) from error
        decision = await self._patterns.check(device.id, url)
        return {"url": url, "decision": decision.value}

    def status(self) -> dict[str, int]:
        """Live connection statistics."""
        return self._hub.stats()

    # --- Patterns ---

    async def list_patterns(self) -> list[dict[str, object]]:
        """Every pattern, deny first, newest first."""
        return await self._patterns.list_all()

    async def create_pattern(self, data: dict[str, Any]) -> dict[str, object]:
        """Create a pattern for a device and push the new snapshot.

        Raises:
            InvalidDurationError: If the duration is not accepted.
            InvalidPatternError: If the pattern text or type is invalid.
            DeviceNotFoundError: If the device does not exist.
        """
        device_id = str(data.get("device_id") or "")
        if not device_id:
            raise InvalidPatternError("device_id is required")
        expiry = Expiry.parse(data.get("duration"), data.get("custom_minutes"))
        try:
            pattern = await self._patterns.create_pattern(
                device_id,
                str(data.get("pattern") or ""),
                str(data.get("type") or ""),
                expiry,
            )
        except ValueError as error:
            raise _pattern_error(error) from error
        await self._publisher.publish(device_id)
        return pattern

    async def update_pattern(
        self, pattern_id: str, data: dict[str, Any],
    ) -> dict[str, object]:
        """Replace a pattern's text, type and expiry, then push.

        Raises:
            InvalidDurationError: If the duration is not accepted.
            InvalidPatternError: If the pattern text or type is invalid.
            PatternNotFoundError: If the pattern does not exist.
        """
        expiry = Expiry.parse(data.get("duration"), data.get("custom_minutes"))
        try:
            pattern = await self._patterns.update_pattern(
                pattern_id,
                str(data.get("pattern") or ""),
                str(data.get("type") or ""),
                expiry,
            )
        except ValueError as error:
            raise _pattern_error(error) from error
        await self._publisher.publish(str(pattern["device_id"]))
        return pattern

    async def toggle_pattern(self, pattern_id: str, enabled: bool) -> dict[str, object]:
        """Enable or disable a pattern, then push.

        Raises:
            PatternNotFoundError: If the pattern does not exist.
        """
        try:
            pattern = await self._patterns.set_enabled(pattern_id, enabled)
        except ValueError as error:
            raise PatternNotFoundError(str(error)) from error
        await self._publisher.publish(str(pattern["device_id"]))
        return pattern

    async def delete_pattern(self, pattern_id: str) -> dict[str, bool]:
        """Delete a pattern, then push.

        Raises:
            PatternNotFoundError: If the pattern does not exist.
        """
        try:
            device_id = await self._patterns.delete_pattern(pattern_id)
        except ValueError as error:
            raise PatternNotFoundError(str(error)) from error
        await self._publisher.publish(device_id)
        return {"success": True}

    # --- Access requests ---

    async def list_requests(self, status: str | None = None) -> list[dict[str, object]]:
        """Requests with device names, optionally filtered by status."""
        return await self._requests.list_requests(status or None)

    async def approve_request(
        self, request_id: str, data: dict[str, Any],
    ) -> dict[str, object]:
        """Approve a pending request by creating a pattern, then push.

        ``type`` defaults to ``allow``.

        Raises:
            InvalidDurationError: If the duration is not accepted.
            InvalidPatternError: If the pattern text or type is invalid.
            RequestNotFoundError: If the request does not exist.
            RequestAlreadyResolvedError: If the request is not pending.
        """
        expiry = Expiry.parse(data.get("duration"), data.get("custom_minutes"))
        try:
            result = await self._requests.approve(
                request_id,
                str(data.get("pattern") or ""),
                str(data.get("type") or "allow"),
                expiry,
            )
        except ValueError as error:
            message = str(error)
            if "not found" in message.lower():
                raise RequestNotFoundError(message) from error
            if "already resolved" in message.lower():
                raise RequestAlreadyResolvedError(message) from error
            raise InvalidPatternError(message) from error
        pattern = cast("dict[str, object]", result["pattern"])
        await self._publisher.publish(str(pattern["device_id"]))
        return result

    async def deny_request(self, request_id: str) -> dict[str, object]:
        """Deny a pending request.

        Raises:
            RequestNotFoundError: If the request does not exist.
            RequestAlreadyResolvedError: If the request is not pending.
        """
        try:
            return await self._requests.deny(request_id)
        except ValueError as error:
            message = str(error)
            if "not found" in message.lower():
                raise RequestNotFoundError(message) from error
            raise RequestAlreadyResolvedError(message) from error

    # --- Admin accounts and notifications ---

    async def list_users(self) -> list[dict[str, object]]:
        """All admin accounts."""
        return await self._users.list_users()

    async def create_user(self, username: str, password: str) -> dict[str, object]:
        """Create another admin account.

        Raises:
            UsernameTakenError: If the username exists.
            InvalidInputError: If the input is invalid.
        """
        try:
            return await self._users.create_user(username, password)
        except ValueError as error:
            if "already exists" in str(error).lower():
                raise UsernameTakenError(str(error)) from error
            raise InvalidInputError(str(error)) from error

    def notification_prefs(self, user: User) -> dict[str, bool]:
        """The caller's notification flags."""
        return {
            "notify_new_requests": user.notify_new_requests,
            "notify_device_status": user.notify_device_status,
        }

    async def update_notification_prefs(
        self, user: User, data: dict[str, Any],
    ) -> dict[str, bool]:
        """Update the caller's notification flags.

        Raises:
            InvalidInputError: If a flag is not a boolean.
        """
        flags: dict[str, bool | None] = {}
        for key in ("notify_new_requests", "notify_device_status"):
            value = data.get(key)
            if value is not None and not isinstance(value, bool):
                raise InvalidInputError(f"{key} must be a boolean")
            flags[key] = value
        return await self._users.update_preferences(
            user,
            notify_new_requests=flags["notify_new_requests"],
            notify_device_status=flags["notify_device_status"],
        )

    async def subscribe(self, user: User, data: dict[str, Any]) -> dict[str, object]:
        """Register a browser push subscription.

        Accepts the browser's ``{endpoint, keys: {p256dh, auth}}`` shape.

        Raises:
            InvalidInputError: If fields are missing.
        """
        keys = data.get("keys") or {}
        if not isinstance(keys, dict):
            raise InvalidInputError("keys must be an object")
        try:
            return await self._users.subscribe(
                user,
                str(data.get("endpoint") or ""),
                str(keys.get("p256dh") or ""),
                str(keys.get("auth") or ""),
            )
        except ValueError as error:
            raise InvalidInputError(str(error)) from error

    async def unsubscribe(self, endpoint: str) -> dict[str, bool]:
        """Remove a push subscription.

        Raises:
            InvalidInputError: If the endpoint is empty.
        """
        if not endpoint:
            raise InvalidInputError("endpoint is required")
        await self._users.unsubscribe(endpoint)
        return {"success": True}

    async def list_subscriptions(self, user: User) -> list[dict[str, object]]:
        """The caller's push subscriptions."""
        return await self._users.list_subscriptions(user)
