"""
security helpers:
- Argon2 password hashing via argon2-cffi
- opaque refresh token values
- UTC clock shared by the token core
"""
from __future__ import annotations

import secrets
from datetime import datetime, timezone

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

REFRESH_TOKEN_BYTES = 48


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_token_value() -> str:
    """Generate a high-entropy, url-safe opaque refresh token value.
    """
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


class Argon2Hasher:
    """Credential comparator backed by argon2-cffi."""

    def __init__(self, hasher: PasswordHasher | None = None):
        self._ph = hasher or PasswordHasher()

    def hash(self, raw: str) -> str:
        """Hash a plaintext password using Argon2
        """
        return self._ph.hash(raw)

    def verify(self, raw: str, hashed: str) -> bool:
        """ Verify a plaintext password using argon2
        """
        try:
            return self._ph.verify(hashed, raw)
        except (VerificationError, InvalidHashError):
            # VerifyMismatchError is a VerificationError
            return False
