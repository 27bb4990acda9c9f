"""Business logic for admin accounts, login sessions, and notification settings."""

from __future__ import annotations

from datetime import timedelta

from watchtower.dao.user_dao import UserDAO
from watchtower.models.user import PushSubscription, User
from watchtower.utils.crypto import Crypto
from watchtower.utils.jwt import JWTManager, SessionClaims
from watchtower.utils.time import Time

MIN_PASSWORD_LENGTH = 8


def user_to_dict(user: User) -> dict[str, object]:
    """Serialize a user without the password hash."""
    return {
        "id": user.id,
        "username": user.username,
        "notify_new_requests": user.notify_new_requests,
        "notify_device_status": user.notify_device_status,
        "created_at": Time.isoformat(user.created_at),
    }


def subscription_to_dict(subscription: PushSubscription) -> dict[str, object]:
    """Serialize a push subscription."""
    return {
        "id": subscription.id,
        "endpoint": subscription.endpoint,
        "created_at": Time.isoformat(subscription.created_at),
    }


def _validate_credentials(username: str, password: str) -> str:
    """Normalize a username and check password strength.

    Raises:
        ValueError: If the username is empty or the password is too short.
    """
    username = username.strip()
    if not username:
        raise ValueError("Username is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
        )
    return username


class UserService:
    """Built once at startup with its DAO pre-wired.

    Admin sessions are stored rows; the cookie is a JWT naming the row,
    so deleting the row revokes the cookie.
    """

    def __init__(self, user_dao: UserDAO, *, session_expire_minutes: int = 1440) -> None:
        self._dao = user_dao
        self._session_expire_minutes = session_expire_minutes

    # --- Setup and accounts ---

    async def setup_needed(self) -> bool:
        """True while no admin account exists."""
        async with self._dao.transaction():
            return await self._dao.count_users() == 0

    async def create_first_user(self, username: str, password: str) -> User:
        """Create the initial admin account.

        Raises:
            ValueError: If setup is already complete or the input is invalid.
        """
        username = _validate_credentials(username, password)
        async with self._dao.transaction():
            if await self._dao.count_users() > 0:
                raise ValueError("Setup already complete")
            user = await self._dao.create_user(
                username=username, password_hash=Crypto.hash_password(password),
            )
            await self._dao.commit()
        return user

    async def create_user(self, username: str, password: str) -> dict[str, object]:
        """Create an additional admin account.

        Raises:
            ValueError: If the username is taken or the input is invalid.
        """
        username = _validate_credentials(username, password)
        async with self._dao.transaction():
            if await self._dao.find_by_username(username) is not None:
                raise ValueError("Username already exists")
            user = await self._dao.create_user(
                username=username, password_hash=Crypto.hash_password(password),
            )
            await self._dao.commit()
        return user_to_dict(user)

    async def list_users(self) -> list[dict[str, object]]:
        """Return all admin accounts."""
        async with self._dao.transaction():
            users = await self._dao.list_users()
        return [user_to_dict(user) for user in users]

    async def authenticate(self, username: str, password: str) -> User:
        """Check a username and password.

        Raises:
            ValueError: If the credentials do not match an account.
        """
        async with self._dao.transaction():
            user = await self._dao.find_by_username(username.strip())
        if user is None or not Crypto.verify_password(password, user.password_hash):
            raise ValueError("Invalid credentials")
        return user

    async def change_password(
        self, user: User, current_password: str, new_password: str,
    ) -> None:
        """Replace a user's password after checking the current one.

        Raises:
            ValueError: If the current password is wrong or the new one is too short.
        """
        if not Crypto.verify_password(current_password, user.password_hash):
            raise ValueError("Current password is incorrect")
        _validate_credentials(user.username, new_password)
        async with self._dao.transaction():
            row = await self._dao.find_by_id(user.id)
            if row is None:
                raise ValueError("User not found")
            row.password_hash = Crypto.hash_password(new_password)
            await self._dao.commit()

    # --- Sessions ---

    async def open_session(self, user: User) -> str:
        """Store a session row and return the signed cookie value."""
        now = Time.utcnow()
        expires_at = now + timedelta(minutes=self._session_expire_minutes)
        async with self._dao.transaction():
            await self._dao.delete_expired_sessions(now)
            session = await self._dao.create_session(user_id=user.id, expires_at=expires_at)
            await self._dao.commit()
        return JWTManager.issue_session(
            SessionClaims(user_id=user.id, session_id=session.id), expires_at,
        )

    async def resolve_session(self, token: str) -> User:
        """Resolve a session cookie to its user.

        Raises:
            ValueError: If the cookie is invalid, revoked, or expired.
        """
        claims = JWTManager.read_session(token)
        async with self._dao.transaction():
            session = await self._dao.find_session(claims.session_id)
            if session is None or session.user_id != claims.user_id:
                raise ValueError("Session not found")
            if Time.ensure_utc(session.expires_at) <= Time.utcnow():
                raise ValueError("Session expired")
            user = await self._dao.find_by_id(claims.user_id)
        if user is None:
            raise ValueError("User not found")
        return user

    async def close_session(self, token: str) -> None:
        """Delete the session row behind a cookie. Unknown cookies are ignored."""
        try:
            claims = JWTManager.read_session(token)
        except ValueError:
            return
        async with self._dao.transaction():
            await self._dao.delete_session(claims.session_id)
            await self._dao.commit()

    # --- Notification preferences and push subscriptions ---

    async def update_preferences(
        self,
        user: User,
        *,
        notify_new_requests: bool | None = None,
        notify_device_status: bool | None = None,
    ) -> dict[str, bool]:
        """Update whichever notification flags are given."""
        async with self._dao.transaction():
            row = await self._dao.find_by_id(user.id)
            if row is None:
                raise ValueError("User not found")
            if notify_new_requests is not None:
                row.notify_new_requests = notify_new_requests
            if notify_device_status is not None:
                row.notify_device_status = notify_device_status
            await self._dao.commit()
        return {
            "notify_new_requests": row.notify_new_requests,
            "notify_device_status": row.notify_device_status,
        }

    async def subscribe(
        self, user: User, endpoint: str, p256dh: str, auth: str,
    ) -> dict[str, object]:
        """Register a push endpoint, replacing any row with the same endpoint.

        Raises:
            ValueError: If any field is empty.
        """
        if not endpoint or not p256dh or not auth:
            raise ValueError("endpoint, p256dh and auth are required")
        async with self._dao.transaction():
            subscription = await self._dao.replace_subscription(
                user_id=user.id, endpoint=endpoint, p256dh=p256dh, auth=auth,
            )
            await self._dao.commit()
        return subscription_to_dict(subscription)

    async def unsubscribe(self, endpoint: str) -> None:
        """Remove a push endpoint."""
        async with self._dao.transaction():
            await self._dao.delete_subscription(endpoint)
            await self._dao.commit()

    async def list_subscriptions(self, user: User) -> list[dict[str, object]]:
        """Push endpoints registered by a user."""
        async with self._dao.transaction():
            rows = await self._dao.list_subscriptions(user.id)
        return [subscription_to_dict(row) for row in rows]

    async def recipients(self, *, new_requests: bool) -> list[tuple[User, list[PushSubscription]]]:
        """Opted-in users with their push endpoints, for one notification kind."""
        async with self._dao.transaction():
            users = await self._dao.list_opted_in(new_requests=new_requests)
            return [
                (user, await self._dao.list_subscriptions(user.id)) for user in users
            ]
