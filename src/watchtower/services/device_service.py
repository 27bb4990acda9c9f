"""Business logic for the device registry and bearer tokens."""

from __future__ import annotations

from watchtower.dao.device_dao import DeviceDAO
from watchtower.models.device import Device
from watchtower.utils.crypto import Crypto
from watchtower.utils.time import Time


def device_to_dict(device: Device, token: str | None = None) -> dict[str, object]:
    """Serialize a device. The plaintext token is only ever included on issue."""
    result: dict[str, object] = {
        "id": device.id,
        "name": device.name,
        "status": device.status,
        "last_seen": Time.isoformat(device.last_seen_at),
        "created_at": Time.isoformat(device.created_at),
    }
    if token is not None:
        result["token"] = token
    return result


class DeviceService:
    """Built once at startup with its DAO pre-wired.

    Each method wraps its DAO calls in a transaction, one unit of work
    per service call.
    """

    def __init__(self, device_dao: DeviceDAO) -> None:
        self._dao = device_dao

    async def create_device(self, name: str) -> dict[str, object]:
        """Register a device and issue its bearer token.

        Returns:
            Device dict including the plaintext ``token``.
        """
        plaintext = Crypto.generate_device_token()
        async with self._dao.transaction():
            device = await self._dao.create_device(
                name=name,
                token_hash=Crypto.hash_key(plaintext),
                last_seen_at=Time.utcnow(),
            )
            await self._dao.commit()
        return device_to_dict(device, token=plaintext)

    async def list_devices(self) -> list[dict[str, object]]:
        """Return every device, newest first."""
        async with self._dao.transaction():
            devices = await self._dao.list_devices()
        return [device_to_dict(device) for device in devices]

    async def get_device(self, device_id: str) -> Device:
        """Fetch a device.

        Raises:
            ValueError: If the device does not exist.
        """
        async with self._dao.transaction():
            device = await self._dao.find_by_id(device_id)
        if device is None:
            raise ValueError("Device not found")
        return device

    async def delete_device(self, device_id: str) -> None:
        """Delete a device with its patterns and requests.

        Raises:
            ValueError: If the device does not exist.
        """
        async with self._dao.transaction():
            device = await self._dao.find_by_id(device_id)
            if device is None:
                raise ValueError("Device not found")
            await self._dao.delete_device(device_id)
            await self._dao.commit()

    async def rotate_token(self, device_id: str) -> dict[str, object]:
        """Issue a new token. The previous one stops authenticating at once.

        Raises:
            ValueError: If the device does not exist.
        """
        plaintext = Crypto.generate_device_token()
        async with self._dao.transaction():
            device = await self._dao.find_by_id(device_id)
            if device is None:
                raise ValueError("Device not found")
            await self._dao.set_token_hash(device_id, Crypto.hash_key(plaintext))
            await self._dao.commit()
        return {"id": device_id, "token": plaintext}

    async def resolve_token(self, token: str) -> Device:
        """Resolve a plaintext bearer token to its device.

        Raises:
            ValueError: If the token is empty or unknown.
        """
        if not token:
            raise ValueError("Missing device token")
        async with self._dao.transaction():
            device = await self._dao.find_by_token_hash(Crypto.hash_key(token))
        if device is None:
            raise ValueError("Invalid device token")
        return device
