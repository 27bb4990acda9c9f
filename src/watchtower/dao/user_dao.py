"""Data access for User, AdminSession, and PushSubscription models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, func, select

from watchtower.dao.base import BaseDAO
from watchtower.models.user import AdminSession, PushSubscription, User


class UserDAO(BaseDAO):
    """Admin account, session, and subscription queries."""

    # --- User ---

    async def find_by_id(self, user_id: str) -> User | None:
        """Find a user by primary key."""
        result = await self._conn().execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def find_by_username(self, username: str) -> User | None:
        """Find a user by unique username."""
        result = await self._conn().execute(
            select(User).where(User.username == username)
        )
        return result.scalar_one_or_none()

    async def count_users(self) -> int:
        """Return total number of users."""
        result = await self._conn().execute(
            select(func.count()).select_from(User)
        )
        return int(result.scalar_one())

    async def create_user(self, *, username: str, password_hash: str) -> User:
        """Insert a new user and flush to populate its id."""
        user = User(
            username=username,
            password_hash=password_hash,
            notify_new_requests=True,
            notify_device_status=True,
        )
        self._conn().add(user)
        await self._conn().flush()
        return user

    async def list_users(self) -> list[User]:
        """Return all users, newest first."""
        result = await self._conn().execute(
            select(User).order_by(User.created_at.desc())
        )
        return list(result.scalars())

    async def list_opted_in(self, *, new_requests: bool) -> list[User]:
        """Users who want new-request (or device-status) notifications."""
        column = User.notify_new_requests if new_requests else User.notify_device_status
        result = await self._conn().execute(
            select(User).where(column == True)  # noqa: E712
        )
        return list(result.scalars())

    # --- AdminSession ---

    async def create_session(self, *, user_id: str, expires_at: datetime) -> AdminSession:
        """Insert a new admin session."""
        session = AdminSession(user_id=user_id, expires_at=expires_at)
        self._conn().add(session)
        await self._conn().flush()
        return session

    async def find_session(self, session_id: str) -> AdminSession | None:
        """Find an admin session by id."""
        result = await self._conn().execute(
            select(AdminSession).where(AdminSession.id == session_id)
        )
        return result.scalar_one_or_none()

    async def delete_session(self, session_id: str) -> None:
        """Delete an admin session row."""
        await self._conn().execute(
            delete(AdminSession).where(AdminSession.id == session_id)
        )

    async def delete_expired_sessions(self, now: datetime) -> None:
        """Delete admin sessions that expired before ``now``."""
        await self._conn().execute(
            delete(AdminSession).where(AdminSession.expires_at <= now)
        )

    # --- PushSubscription ---

    async def replace_subscription(
        self, *, user_id: str, endpoint: str, p256dh: str, auth: str,
    ) -> PushSubscription:
        """Upsert by endpoint: drop any existing row, insert the new one."""
        await self._conn().execute(
            delete(PushSubscription).where(PushSubscription.endpoint == endpoint)
        )
        subscription = PushSubscription(
            user_id=user_id, endpoint=endpoint, p256dh=p256dh, auth=auth,
        )
        self._conn().add(subscription)
        await self._conn().flush()
        return subscription

    async def list_subscriptions(self, user_id: str) -> list[PushSubscription]:
        """All push subscriptions registered by a user."""
        result = await self._conn().execute(
            select(PushSubscription).where(PushSubscription.user_id == user_id)
        )
        return list(result.scalars())

    async def delete_subscription(self, endpoint: str) -> None:
        """Delete a push subscription by endpoint."""
        await self._conn().execute(
            delete(PushSubscription).where(PushSubscription.endpoint == endpoint)
        )
