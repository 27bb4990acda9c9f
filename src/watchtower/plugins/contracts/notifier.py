"""Notifier plugin contract: extensible admin notification delivery."""

from __future__ import annotations

from abc import ABC, abstractmethod


class NotifierPlugin(ABC):
    """Delivers admin notifications.

    Implementations decide how a notification reaches administrators:
    log it, send web push, or both.
    """

    @abstractmethod
    async def notify_new_request(self, device_name: str, url: str) -> None:
        """A device filed an access request.

        Args:
            device_name: Display name of the requesting device.
            url: The URL the device asked for.
        """

    @abstractmethod
    async def notify_device_status(self, device_name: str, status: str) -> None:
        """A device changed liveness status.

        Args:
            device_name: Display name of the device.
            status: The new status (``inactive`` or ``uninstalled``).
        """
