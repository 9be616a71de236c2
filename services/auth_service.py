"""
Authentication use cases: register, login, refresh, logout.

AuthService is the only component that knows about users and both token
subsystems. Token subsystem failures come back as TokenFailure values and
are raised here as AuthError subclasses (services/errors.py).
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from models.user import User
from services.access_tokens import AccessTokenCodec
from services.errors import (
    DuplicateIdentityError,
    InvalidCredentialsError,
    InvalidTokenError,
    MissingTokenError,
    TokenFailure,
    UnknownIdentityError,
    raise_for_failure,
)
from services.ports import CredentialHasher, DuplicateUserEmail, UnitOfWork, UserStore
from services.refresh_tokens import RefreshTokenManager
from utils.security import utcnow

logger = logging.getLogger(__name__)

TOKEN_TYPE = "Bearer"


@dataclass(frozen=True)
class RegistrationProfile:
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


@dataclass(frozen=True)
class AuthResult:
    access_token: str
    refresh_token: str
    user: User
    token_type: str = TOKEN_TYPE


class AuthService:
    def __init__(
        self,
        users: UserStore,
        hasher: CredentialHasher,
        codec: AccessTokenCodec,
        refresh_tokens: RefreshTokenManager,
        uow: UnitOfWork,
        default_role: str = "user",
        clock: Callable[[], datetime] = utcnow,
    ):
        self._users = users
        self._hasher = hasher
        self._codec = codec
        self._refresh_tokens = refresh_tokens
        self._uow = uow
        self._default_role = default_role
        self._clock = clock
        self._dummy_hash: Optional[str] = None

    def register(self, profile: RegistrationProfile, raw_password: str) -> AuthResult:
        logger.info("Registration attempt")
        try:
            with self._uow.transaction():
                if self._users.exists(profile.email):
                    raise DuplicateIdentityError()

                user = User(
                    email=profile.email,
                    first_name=profile.first_name,
                    last_name=profile.last_name,
                    password_hash=self._hasher.hash(raw_password),
                    role=self._default_role,
                )
                self._users.save(user)
                refresh = self._refresh_tokens.issue(user.id)
        except DuplicateIdentityError:
            logger.warning("Registration rejected: email already in use")
            raise
        except DuplicateUserEmail as exc:
            # a concurrent registration won the race on the unique constraint
            logger.warning("Registration rejected: email already in use")
            raise DuplicateIdentityError() from exc

        logger.info("User registered, id %s", user.id)
        access = self._codec.mint(user.email, user.roles)
        return AuthResult(access_token=access, refresh_token=refresh.token, user=user)

    def login(self, email: str, raw_password: str) -> AuthResult:
        logger.info("Login attempt")
        user = self._authenticate(email, raw_password)

        with self._uow.transaction():
            user.last_login = self._clock()
            self._users.save(user)
            # one session lineage per user: a new login kills every older refresh token
            self._refresh_tokens.revoke_all(user.id)
            refresh = self._refresh_tokens.issue(user.id)

        access = self._codec.mint(user.email, user.roles)
        logger.info("Login succeeded for user id %s", user.id)
        return AuthResult(access_token=access, refresh_token=refresh.token, user=user)

    def refresh(self, value: str) -> AuthResult:
        logger.debug("Token refresh attempt")
        # validate and rotate share one unit of work, so a concurrent
        # revoke_all lands either before validate or after rotate. Failures
        # are raised only after commit so an expiry flip survives.
        with self._uow.transaction():
            current = self._refresh_tokens.validate(value, lock=True)
            if isinstance(current, TokenFailure):
                rotated = current
            else:
                rotated = self._refresh_tokens.rotate(current)
        if isinstance(rotated, TokenFailure):
            raise_for_failure(rotated)

        user = self._owner_of(current)
        access = self._codec.mint(user.email, user.roles)
        logger.info("Tokens renewed for user id %s", user.id)
        return AuthResult(access_token=access, refresh_token=rotated.token, user=user)

    def logout(self, value: Optional[str]) -> None:
        logger.debug("Logout attempt")
        if value is None or not value.strip():
            logger.debug("Logout attempted without a refresh token")
            raise MissingTokenError()

        current = self._refresh_tokens.validate(value)
        if isinstance(current, TokenFailure):
            raise_for_failure(current)

        self._refresh_tokens.revoke_all(current.user_id)
        logger.info("Logout succeeded for user id %s", current.user_id)

    def _authenticate(self, email: str, raw_password: str) -> User:
        user = self._users.find_by_identity(email)
        if user is None:
            # same cost as a real check so response time does not reveal the email
            self._hasher.verify(raw_password, self._get_dummy_hash())
            logger.warning("Login failed: unknown identity")
            raise UnknownIdentityError()
        if not self._hasher.verify(raw_password, user.password_hash):
            logger.warning("Login failed: invalid credentials for user id %s", user.id)
            raise InvalidCredentialsError()
        return user

    def _owner_of(self, token) -> User:
        user = self._users.find_by_id(token.user_id)
        if user is None:
            logger.warning("Refresh token owner %s no longer exists", token.user_id)
            raise InvalidTokenError()
        return user

    def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self._hasher.hash(secrets.token_hex(16))
        return self._dummy_hash
