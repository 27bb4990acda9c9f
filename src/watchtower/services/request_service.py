"""Business logic for the access request approval workflow."""

from __future__ import annotations

from watchtower.dao.pattern_dao import PatternDAO
from watchtower.dao.request_dao import RequestDAO
from watchtower.matching import suggest_pattern
from watchtower.models.device import (
    REQUEST_APPROVED,
    REQUEST_DENIED,
    REQUEST_PENDING,
    AccessRequest,
    Device,
)
from watchtower.services.pattern_service import pattern_to_dict, validate_pattern
from watchtower.utils.duration import Expiry
from watchtower.utils.time import Time


def request_to_dict(
    request: AccessRequest, device_name: str | None = None,
) -> dict[str, object]:
    """Serialize an access request, optionally with its device name."""
    result: dict[str, object] = {
        "id": request.id,
        "device_id": request.device_id,
        "url": request.url,
        "suggested_pattern": request.suggested_pattern,
        "status": request.status,
        "created_at": Time.isoformat(request.created_at),
        "resolved_at": Time.isoformat(request.resolved_at),
    }
    if device_name is not None:
        result["device_name"] = device_name
    return result


class RequestService:
    """Built once at startup with its DAOs pre-wired.

    A resolved request is terminal: approve and deny only act on pending rows.
    """

    def __init__(self, request_dao: RequestDAO, pattern_dao: PatternDAO) -> None:
        self._dao = request_dao
        self._patterns = pattern_dao

    async def create_request(
        self, device: Device, url: str, suggested: str | None = None,
    ) -> dict[str, object]:
        """File a pending request. The suggested pattern defaults to ``host/*``.

        Raises:
            ValueError: If the URL is empty.
        """
        url = url.strip()
        if not url:
            raise ValueError("URL is required")
        suggested = (suggested or "").strip() or suggest_pattern(url)
        async with self._dao.transaction():
            request = await self._dao.create_request(
                device_id=device.id, url=url, suggested_pattern=suggested,
            )
            await self._dao.commit()
        return request_to_dict(request, device.name)

    async def list_requests(self, status: str | None = None) -> list[dict[str, object]]:
        """List requests with device names, optionally filtered by status."""
        async with self._dao.transaction():
            rows = await self._dao.list_with_device_names(status)
        return [request_to_dict(request, name) for request, name in rows]

    async def approve(
        self, request_id: str, text: str, pattern_type: str, expiry: Expiry,
    ) -> dict[str, object]:
        """Create the granting pattern and resolve the request in one transaction.

        Returns:
            Dict with the resolved ``request`` and the created ``pattern``.

        Raises:
            ValueError: If the request is unknown, already resolved,
                or the pattern input is invalid.
        """
        text = validate_pattern(text, pattern_type)
        now = Time.utcnow()
        async with self._dao.transaction():
            request = await self._dao.find_by_id(request_id)
            if request is None:
                raise ValueError("Request not found")
            if request.status != REQUEST_PENDING:
                raise ValueError("Request already resolved")
            pattern = await self._patterns.create_pattern(
                device_id=request.device_id,
                pattern=text,
                pattern_type=pattern_type,
                expires_at=expiry.expires_at(now),
                created_at=now,
            )
            request.status = REQUEST_APPROVED
            request.resolved_at = now
            await self._dao.commit()
        return {"request": request_to_dict(request), "pattern": pattern_to_dict(pattern)}

    async def deny(self, request_id: str) -> dict[str, object]:
        """Resolve a pending request as denied.

        Raises:
            ValueError: If the request is unknown or already resolved.
        """
        async with self._dao.transaction():
            request = await self._dao.find_by_id(request_id)
            if request is None:
                raise ValueError("Request not found")
            if request.status != REQUEST_PENDING:
                raise ValueError("Request already resolved")
            request.status = REQUEST_DENIED
            request.resolved_at = Time.utcnow()
            await self._dao.commit()
        return request_to_dict(request)
