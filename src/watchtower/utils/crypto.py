"""Cryptographic helpers for device tokens and admin passwords."""

from __future__ import annotations

import hashlib
import secrets

import bcrypt

_DEVICE_TOKEN_PREFIX = "wt_"


class Crypto:
    """Static helpers for token generation and hashing."""

    @staticmethod
    def generate_device_token() -> str:
        """Generate a plaintext device bearer token with the ``wt_`` prefix."""
        return _DEVICE_TOKEN_PREFIX + secrets.token_hex(32)

    @staticmethod
    def hash_key(plaintext: str) -> str:
        """SHA-256 hash of a plaintext device token."""
        return hashlib.sha256(plaintext.encode()).hexdigest()

    @staticmethod
    def hash_password(password: str) -> str:
        """bcrypt hash of an admin password."""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        """Check a password against its bcrypt hash."""
        try:
            return bcrypt.checkpw(password.encode(), password_hash.encode())
        except ValueError:
            return False
