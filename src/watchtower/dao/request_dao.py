"""Data access for AccessRequest rows."""

from __future__ import annotations

from sqlalchemy import select

from watchtower.dao.base import BaseDAO
from watchtower.models.device import AccessRequest, Device


class RequestDAO(BaseDAO):
    """Access request queries."""

    async def create_request(
        self, *, device_id: str, url: str, suggested_pattern: str,
    ) -> AccessRequest:
        """Insert a new pending request and flush to populate its id."""
        request = AccessRequest(
            device_id=device_id, url=url, suggested_pattern=suggested_pattern,
        )
        self._conn().add(request)
        await self._conn().flush()
        return request

    async def find_by_id(self, request_id: str) -> AccessRequest | None:
        """Find a request by primary key."""
        result = await self._conn().execute(
            select(AccessRequest).where(AccessRequest.id == request_id)
        )
        return result.scalar_one_or_none()

    async def list_with_device_names(
        self, status: str | None = None,
    ) -> list[tuple[AccessRequest, str]]:
        """Requests joined with their device name, newest first."""
        statement = (
            select(AccessRequest, Device.name)
            .join(Device, Device.id == AccessRequest.device_id)
            .order_by(AccessRequest.created_at.desc())
        )
        if status:
            statement = statement.where(AccessRequest.status == status)
        result = await self._conn().execute(statement)
        return [(row[0], row[1]) for row in result.all()]
