"""Capability interfaces the authentication core depends on."""
from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Optional, Protocol

from models.refresh_token import RefreshToken
from models.user import User


class UserStore(Protocol):
    def find_by_identity(self, email: str) -> Optional[User]: ...

    def find_by_id(self, user_id: str) -> Optional[User]: ...

    def exists(self, email: str) -> bool: ...

    def save(self, user: User) -> User:
        """Persist user; raise DuplicateUserEmail if another account owns the email."""
        ...


class CredentialHasher(Protocol):
    def hash(self, raw: str) -> str: ...

    def verify(self, raw: str, hashed: str) -> bool: ...


class RefreshTokenStore(Protocol):
    def add(self, token: RefreshToken) -> RefreshToken:
        """Persist a new token; raise DuplicateTokenValue if the value is taken."""
        ...

    def find_active(self, value: str, lock: bool = False) -> Optional[RefreshToken]:
        """Unrevoked token for value; lock holds it until the unit of work ends."""
        ...

    def revoke(self, value: str) -> bool:
        """Flip revoked false -> true; return False if it was not active."""
        ...

    def revoke_all_for_owner(self, owner_id: str) -> int: ...

    def delete_revoked_or_expired(self, now: datetime) -> int: ...


class UnitOfWork(Protocol):
    def transaction(self) -> AbstractContextManager[Any]: ...


class DuplicateTokenValue(Exception):
    """Raised by a RefreshTokenStore when an opaque value already exists."""


class DuplicateUserEmail(Exception):
    """Raised by a UserStore when saving would duplicate an email."""
