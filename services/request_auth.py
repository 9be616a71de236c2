"""
Per-request authentication gate.

NoCredential           -> None (request continues unauthenticated)
CredentialPresent      -> verified, subject re-loaded -> Identity
                       -> rejected (expired, malformed, unknown subject) -> AuthError
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from models.user import User
from services.access_tokens import AccessTokenCodec
from services.errors import InvalidTokenError, MalformedTokenError, TokenFailure, raise_for_failure
from services.ports import UserStore

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Identity:
    user: User
    subject: str
    # roles as minted; may lag the user record by at most the access ttl
    roles: Tuple[str, ...]


class RequestAuthenticator:
    def __init__(self, codec: AccessTokenCodec, users: UserStore):
        self._codec = codec
        self._users = users

    @staticmethod
    def extract_credential(authorization: Optional[str]) -> Optional[str]:
        if not authorization or not authorization.startswith(BEARER_PREFIX):
            return None
        return authorization[len(BEARER_PREFIX):].strip()

    def authenticate(
        self,
        authorization: Optional[str],
        established: Optional[Identity] = None,
    ) -> Optional[Identity]:
        """
        Resolve the caller's identity from an Authorization header value.

        An identity already established upstream is returned untouched.
        Raises TokenExpiredError, MalformedTokenError or InvalidTokenError
        when a bearer credential is present but unusable.
        """
        if established is not None:
            return established

        token = self.extract_credential(authorization)
        if token is None:
            return None

        claims = self._codec.parse_and_verify(token)
        if isinstance(claims, TokenFailure):
            logger.warning("Access token rejected: %s", claims.value)
            raise_for_failure(claims)

        # trust the live store, not the claims: the account may be gone
        user = self._users.find_by_identity(claims.subject)
        if user is None:
            logger.warning("Access token subject no longer exists")
            raise InvalidTokenError("The user bound to this token no longer exists")
        if user.email != claims.subject:
            logger.warning("Access token subject does not match user id %s", user.id)
            raise MalformedTokenError()

        logger.debug("Access token accepted for user id %s", user.id)
        return Identity(user=user, subject=claims.subject, roles=claims.roles)
