"""Signed admin session cookies (python-jose), configured once at startup."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar

from jose import JWTError, jwt


@dataclass(frozen=True)
class SessionClaims:
    """What an admin cookie names: the user and the stored session row."""

    user_id: str
    session_id: str


class JWTManager:
    """Class-level signer. Call ``configure()`` from the app factory first.

    The cookie only names a session; revocation and expiry are decided by
    the ``admin_sessions`` row it points at.
    """

    _secret_key: ClassVar[str] = ""
    _algorithm: ClassVar[str] = "HS256"

    @classmethod
    def configure(cls, *, secret_key: str, algorithm: str = "HS256") -> None:
        cls._secret_key = secret_key
        cls._algorithm = algorithm

    @classmethod
    def issue_session(cls, claims: SessionClaims, expires_at: datetime) -> str:
        """Sign a cookie value whose ``exp`` matches the session row."""
        payload: dict[str, Any] = {
            "sub": claims.user_id,
            "sid": claims.session_id,
            "exp": expires_at,
        }
        return jwt.encode(payload, cls._secret_key, algorithm=cls._algorithm)

    @classmethod
    def read_session(cls, token: str) -> SessionClaims:
        """Verify a cookie value and return the claims it carries.

        Raises:
            ValueError: If the signature or expiry fails, or a claim is missing.
        """
        try:
            payload = jwt.decode(token, cls._secret_key, algorithms=[cls._algorithm])
        except JWTError as error:
            raise ValueError(f"Invalid session token: {error}") from error
        user_id, session_id = payload.get("sub"), payload.get("sid")
        if not user_id or not session_id:
            raise ValueError("Invalid session token: missing claims")
        return SessionClaims(user_id=str(user_id), session_id=str(session_id))
