"""
SQLAlchemy-backed stores used by the authentication core.

Both repositories work on the DBStorage scoped session and only flush;
commits happen at the transaction boundary (DBStorage.transaction()).
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import exists, or_
from sqlalchemy.exc import IntegrityError

from models.db_storage import DBStorage
from models.refresh_token import RefreshToken
from models.user import User
from services.ports import DuplicateTokenValue, DuplicateUserEmail


class SqlUserRepository:
    def __init__(self, storage: DBStorage):
        self._storage = storage

    def find_by_identity(self, email: str) -> Optional[User]:
        session = self._storage.get_session()
        return session.query(User).filter(User.email == email).first()

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self._storage.get(User, user_id)

    def exists(self, email: str) -> bool:
        session = self._storage.get_session()
        return session.query(exists().where(User.email == email)).scalar()

    def save(self, user: User) -> User:
        self._storage.new(user)
        try:
            self._storage.get_session().flush()
        except IntegrityError as exc:
            raise DuplicateUserEmail(user.id) from exc
        return user


class SqlRefreshTokenRepository:
    def __init__(self, storage: DBStorage):
        self._storage = storage

    def add(self, token: RefreshToken) -> RefreshToken:
        session = self._storage.get_session()
        try:
            # the savepoint keeps the enclosing unit of work usable for a retry
            with session.begin_nested():
                session.add(token)
        except IntegrityError as exc:
            raise DuplicateTokenValue(token.id) from exc
        return token

    def find_active(self, value: str, lock: bool = False) -> Optional[RefreshToken]:
        session = self._storage.get_session()
        query = session.query(RefreshToken).filter(
            RefreshToken.token == value, RefreshToken.revoked.is_(False)
        )
        if lock:
            # SELECT ... FOR UPDATE; SQLite ignores it and serializes writers instead
            query = query.with_for_update()
        return query.first()

    def revoke(self, value: str) -> bool:
        session = self._storage.get_session()
        updated = (
            session.query(RefreshToken)
            .filter(RefreshToken.token == value, RefreshToken.revoked.is_(False))
            .update({RefreshToken.revoked: True}, synchronize_session="fetch")
        )
        return updated == 1

    def revoke_all_for_owner(self, owner_id: str) -> int:
        session = self._storage.get_session()
        return (
            session.query(RefreshToken)
            .filter(RefreshToken.user_id == owner_id, RefreshToken.revoked.is_(False))
            .update({RefreshToken.revoked: True}, synchronize_session="fetch")
        )

    def delete_revoked_or_expired(self, now: datetime) -> int:
        session = self._storage.get_session()
        return (
            session.query(RefreshToken)
            .filter(or_(RefreshToken.revoked.is_(True), RefreshToken.expires_at <= now))
            .delete(synchronize_session=False)
        )
