"""
In-memory stores implementing the same capabilities as the SQL repositories.

Used by the unit tests to exercise the authentication core without a
database. A single MemoryStorage holds users and refresh tokens behind one
re-entrant lock; transaction() snapshots both tables and restores them if the
unit of work raises.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Optional

from models.refresh_token import RefreshToken
from models.user import User
from services.ports import DuplicateTokenValue, DuplicateUserEmail

_USER_FIELDS = ("email", "first_name", "last_name", "password_hash", "role", "last_login")
_TOKEN_FIELDS = ("revoked",)


class MemoryStorage:
    def __init__(self):
        self.users: Dict[str, User] = {}
        self.tokens: Dict[str, RefreshToken] = {}
        self.lock = threading.RLock()
        self._depth = 0

    @contextmanager
    def transaction(self):
        with self.lock:
            outermost = self._depth == 0
            snapshot = self._snapshot() if outermost else None
            self._depth += 1
            try:
                yield self
            except BaseException:
                if outermost:
                    self._restore(snapshot)
                raise
            finally:
                self._depth -= 1

    def _snapshot(self):
        users = {
            email: (user, {f: getattr(user, f) for f in _USER_FIELDS})
            for email, user in self.users.items()
        }
        tokens = {
            value: (token, {f: getattr(token, f) for f in _TOKEN_FIELDS})
            for value, token in self.tokens.items()
        }
        return users, tokens

    def _restore(self, snapshot):
        users, tokens = snapshot
        self.users = {}
        for email, (user, fields) in users.items():
            for name, value in fields.items():
                setattr(user, name, value)
            self.users[email] = user
        self.tokens = {}
        for value, (token, fields) in tokens.items():
            for name, field_value in fields.items():
                setattr(token, name, field_value)
            self.tokens[value] = token


class MemoryUserRepository:
    def __init__(self, storage: MemoryStorage):
        self._storage = storage

    def find_by_identity(self, email: str) -> Optional[User]:
        with self._storage.lock:
            return self._storage.users.get(email)

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self._storage.lock:
            for user in self._storage.users.values():
                if user.id == user_id:
                    return user
        return None

    def exists(self, email: str) -> bool:
        with self._storage.lock:
            return email in self._storage.users

    def save(self, user: User) -> User:
        with self._storage.lock:
            current = self._storage.users.get(user.email)
            if current is not None and current is not user:
                raise DuplicateUserEmail(user.id)
            self._storage.users[user.email] = user
        return user

    def delete(self, email: str) -> None:
        with self._storage.lock:
            self._storage.users.pop(email, None)


class MemoryRefreshTokenRepository:
    def __init__(self, storage: MemoryStorage):
        self._storage = storage

    def add(self, token: RefreshToken) -> RefreshToken:
        with self._storage.lock:
            if token.token in self._storage.tokens:
                raise DuplicateTokenValue(token.id)
            self._storage.tokens[token.token] = token
        return token

    def find_active(self, value: str, lock: bool = False) -> Optional[RefreshToken]:
        # transaction() already holds the storage lock for the whole unit of work
        with self._storage.lock:
            token = self._storage.tokens.get(value)
            if token is None or token.revoked:
                return None
            return token

    def find(self, value: str) -> Optional[RefreshToken]:
        with self._storage.lock:
            return self._storage.tokens.get(value)

    def revoke(self, value: str) -> bool:
        with self._storage.lock:
            token = self._storage.tokens.get(value)
            if token is None or token.revoked:
                return False
            token.revoked = True
            return True

    def revoke_all_for_owner(self, owner_id: str) -> int:
        count = 0
        with self._storage.lock:
            for token in self._storage.tokens.values():
                if token.user_id == owner_id and not token.revoked:
                    token.revoked = True
                    count += 1
        return count

    def delete_revoked_or_expired(self, now: datetime) -> int:
        with self._storage.lock:
            doomed = [
                value
                for value, token in self._storage.tokens.items()
                if token.revoked or token.expires_at <= now
            ]
            for value in doomed:
                del self._storage.tokens[value]
        return len(doomed)
