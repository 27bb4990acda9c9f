"""Setup and admin authentication controllers: session cookie in, session cookie out."""

from __future__ import annotations

from typing import Any

from litestar import Controller, Request, get, post
from litestar.datastructures import Cookie, State
from litestar.exceptions import HTTPException, NotAuthorizedException, PermissionDeniedException
from litestar.response import Response

from watchtower.config import Settings
from watchtower.models.user import User
from watchtower.resources.auth import (
    AuthResource,
    InvalidCredentialsError,
    InvalidInputError,
    SetupCompleteError,
)

SESSION_COOKIE = "session"


def _with_session(
    content: dict[str, Any], token: str, settings: Settings, status_code: int = 200,
) -> Response[dict[str, Any]]:
    """Attach the admin session cookie to a JSON response."""
    cookie = Cookie(
        key=SESSION_COOKIE,
        value=token,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.base_url.startswith("https://"),
        max_age=settings.session_expire_minutes * 60,
    )
    return Response(content=content, status_code=status_code, cookies=[cookie])


class SetupController(Controller):
    """First-run setup. Only functional while no admin account exists."""

    path = "/api/setup"

    @get("/status")
    async def status(self, auth: AuthResource) -> dict[str, bool]:
        """Report whether setup is still needed."""
        return await auth.setup_status()

    @post("/create-user", status_code=201)
    async def create_user(
        self, data: dict[str, Any], auth: AuthResource, settings: Settings,
    ) -> Response[dict[str, Any]]:
        """Create the first admin and log them in.

        Body: {"username": "...", "password": "...", "confirm_password": "..."}
        """
        try:
            user, token = await auth.create_first_user(
                str(data.get("username") or ""),
                str(data.get("password") or ""),
                str(data.get("confirm_password") or ""),
            )
        except SetupCompleteError as error:
            raise PermissionDeniedException(detail=str(error)) from error
        except InvalidInputError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error
        return _with_session({"success": True, "user": user}, token, settings, 201)


class AuthController(Controller):
    """Admin login, logout, password change, and identity."""

    path = "/api/auth"

    @post("/login", status_code=200)
    async def login(
        self, data: dict[str, Any], auth: AuthResource, settings: Settings,
    ) -> Response[dict[str, Any]]:
        """Body: {"username": "...", "password": "..."}"""
        try:
            user, token = await auth.login(
                str(data.get("username") or ""), str(data.get("password") or ""),
            )
        except InvalidCredentialsError:
            return Response(
                content={"success": False, "message": "Invalid credentials"},
                status_code=401,
            )
        return _with_session({"success": True, "user": user}, token, settings)

    @post("/logout", status_code=200)
    async def logout(
        self, request: Request[object, object, State], auth: AuthResource,
    ) -> Response[dict[str, bool]]:
        """Revoke the current session and clear the cookie."""
        await auth.logout(request.cookies.get(SESSION_COOKIE, ""))
        response = Response(content={"success": True})
        response.delete_cookie(SESSION_COOKIE, path="/")
        return response

    @post("/change-password", status_code=200)
    async def change_password(
        self, data: dict[str, Any], admin: User, auth: AuthResource,
    ) -> dict[str, bool]:
        """Body: {"current_password": "...", "new_password": "..."}"""
        try:
            return await auth.change_password(
                admin,
                str(data.get("current_password") or ""),
                str(data.get("new_password") or ""),
            )
        except InvalidCredentialsError as error:
            raise NotAuthorizedException(detail=str(error)) from error
        except InvalidInputError as error:
            raise HTTPException(status_code=400, detail=str(error)) from error

    @get("/me")
    async def me(self, admin: User, auth: AuthResource) -> dict[str, object]:
        """Return the logged-in admin."""
        return auth.me(admin)
