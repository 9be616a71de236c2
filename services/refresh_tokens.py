"""
Refresh token lifecycle: issue, validate, rotate, revoke_all, sweep.

Per-token state machine:

    Active --rotate / revoke_all--> Revoked
    Active --validate after expiry--> Revoked (then reported as EXPIRED)

Revoked is absorbing. Every write runs inside uow.transaction(); the
conditional store.revoke() is the only way a token leaves Active.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Union

from models.refresh_token import RefreshToken
from services.errors import TokenFailure
from services.ports import DuplicateTokenValue, RefreshTokenStore, UnitOfWork
from utils.security import generate_token_value, utcnow

logger = logging.getLogger(__name__)

MAX_ISSUE_ATTEMPTS = 5


class RefreshTokenManager:
    def __init__(
        self,
        store: RefreshTokenStore,
        uow: UnitOfWork,
        ttl: timedelta,
        clock: Callable[[], datetime] = utcnow,
        value_factory: Callable[[], str] = generate_token_value,
    ):
        if ttl <= timedelta(0):
            raise ValueError("Refresh token lifetime must be positive")
        self._store = store
        self._uow = uow
        self._ttl = ttl
        self._clock = clock
        self._value_factory = value_factory

    def issue(self, owner_id: str) -> RefreshToken:
        with self._uow.transaction():
            for _ in range(MAX_ISSUE_ATTEMPTS):
                now = self._clock()
                token = RefreshToken(
                    token=self._value_factory(),
                    user_id=owner_id,
                    revoked=False,
                    created_at=now,
                    expires_at=now + self._ttl,
                )
                try:
                    self._store.add(token)
                except DuplicateTokenValue:
                    logger.warning("Refresh token value collision, regenerating")
                    continue
                logger.debug("Refresh token issued for user id %s", owner_id)
                return token
        raise RuntimeError("could not generate a unique refresh token value")

    def validate(self, value: str, lock: bool = False) -> Union[RefreshToken, TokenFailure]:
        """
        Return the active token for value, or why it is unusable.

        lock=True holds the row until the enclosing unit of work ends; a
        caller that rotates right after uses it so the token cannot be
        revoked in between.
        """
        with self._uow.transaction():
            token = self._store.find_active(value, lock=lock)
            if token is None:
                logger.warning("Refresh token not found or already revoked")
                return TokenFailure.NOT_FOUND_OR_REVOKED

            if token.is_expired(self._clock()):
                # guarded transition: only an active row is flipped
                self._store.revoke(token.token)
                logger.warning("Expired refresh token revoked for user id %s", token.user_id)
                return TokenFailure.EXPIRED

        logger.debug("Refresh token validated for user id %s", token.user_id)
        return token

    def rotate(self, old: RefreshToken) -> Union[RefreshToken, TokenFailure]:
        with self._uow.transaction():
            if not self._store.revoke(old.token):
                # someone else redeemed or revoked it first
                logger.warning("Refresh token for user id %s already consumed", old.user_id)
                return TokenFailure.NOT_FOUND_OR_REVOKED
            logger.debug("Refresh token revoked for rotation, user id %s", old.user_id)
            return self.issue(old.user_id)

    def revoke_all(self, owner_id: str) -> int:
        with self._uow.transaction():
            count = self._store.revoke_all_for_owner(owner_id)
        logger.debug("Revoked %d refresh tokens for user id %s", count, owner_id)
        return count

    def sweep(self) -> int:
        logger.info("Deleting expired and revoked refresh tokens")
        with self._uow.transaction():
            deleted = self._store.delete_revoked_or_expired(self._clock())
        logger.info("%d expired or revoked refresh tokens deleted", deleted)
        return deleted
