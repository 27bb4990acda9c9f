"""Auth resource: first-run setup, admin login sessions, and account settings."""

from __future__ import annotations

from watchtower.models.user import User
from watchtower.services.user_service import UserService, user_to_dict


class SetupCompleteError(Exception):
    """Raised when first-run setup is attempted after an account exists."""


class InvalidCredentialsError(Exception):
    """Raised when a username/password pair does not match."""


class InvalidInputError(Exception):
    """Raised when a request body fails validation."""


class AuthResource:
    """Setup and admin authentication.

    Built once at startup with all dependencies pre-wired.
    """

    def __init__(self, *, user_service: UserService) -> None:
        self._user_service = user_service

    async def setup_status(self) -> dict[str, bool]:
        """Report whether first-run setup is still needed."""
        return {"setup_needed": await self._user_service.setup_needed()}

    async def create_first_user(
        self, username: str, password: str, confirm_password: str,
    ) -> tuple[dict[str, object], str]:
        """Create the first admin and log them in.

        Returns:
            (user dict, session cookie value).

        Raises:
            SetupCompleteError: If any account already exists.
            InvalidInputError: If the input is invalid or passwords differ.
        """
        if not await self._user_service.setup_needed():
            raise SetupCompleteError("Setup already completed")
        if password != confirm_password:
            raise InvalidInputError("Passwords do not match")
        try:
            user = await self._user_service.create_first_user(username, password)
        except ValueError as error:
            if "already complete" in str(error).lower():
                raise SetupCompleteError("Setup already completed") from error
            raise InvalidInputError(str(error)) from error
        token = await self._user_service.open_session(user)
        return user_to_dict(user), token

    async def login(self, username: str, password: str) -> tuple[dict[str, object], str]:
        """Check credentials and open a session.

        Raises:
            InvalidCredentialsError: If the credentials do not match.
        """
        try:
            user = await self._user_service.authenticate(username, password)
        except ValueError as error:
            raise InvalidCredentialsError("Invalid credentials") from error
        token = await self._user_service.open_session(user)
        return user_to_dict(user), token

    async def logout(self, token: str) -> None:
        """Revoke the session behind a cookie, if any."""
        if token:
            await self._user_service.close_session(token)

    async def resolve_session(self, token: str) -> User:
        """Resolve a session cookie to its user.

        Raises:
            ValueError: If the cookie is missing, invalid, revoked, or expired.
        """
        if not token:
            raise ValueError("Not authenticated")
        return await self._user_service.resolve_session(token)

    async def change_password(
        self, user: User, current_password: str, new_password: str,
    ) -> dict[str, bool]:
        """Change the caller's password.

        Raises:
            InvalidCredentialsError: If the current password is wrong.
            InvalidInputError: If the new password is too short.
        """
        try:
            await self._user_service.change_password(user, current_password, new_password)
        except ValueError as error:
            if "incorrect" in str(error).lower():
                raise InvalidCredentialsError(str(error)) from error
            raise InvalidInputError(str(error)) from error
        return {"success": True}

    def me(self, user: User) -> dict[str, object]:
        """Return the current user's profile."""
        return user_to_dict(user)
