"""
Access token codec.

Short-lived bearer tokens are compact JWTs signed with a symmetric key:
- sub: owner identifier (the user's email)
- roles: role list copied verbatim at mint time
- iat / exp: integer epoch seconds, exp = iat + access ttl

Expiry is checked here rather than by PyJWT so the clock stays injectable and
the boundary is exact: a token is expired iff exp <= now, with no leeway.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence, Tuple, Union

import jwt

from services.errors import TokenFailure
from utils.security import utcnow

logger = logging.getLogger(__name__)

HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")
REQUIRED_CLAIMS = ["sub", "iat", "exp"]


@dataclass(frozen=True)
class SigningKey:
    """Process-wide HMAC key, built once at start-up and shared read-only."""

    material: bytes
    algorithm: str = "HS256"

    @classmethod
    def from_secret(cls, secret: str, algorithm: str = "HS256") -> "SigningKey":
        if not secret or not secret.strip():
            raise ValueError("JWT secret must not be empty")
        if algorithm not in HMAC_ALGORITHMS:
            raise ValueError(f"Unsupported JWT algorithm: {algorithm}")
        return cls(material=secret.encode("utf-8"), algorithm=algorithm)

    def __repr__(self) -> str:
        return f"SigningKey(algorithm={self.algorithm!r})"


@dataclass(frozen=True)
class AccessClaims:
    subject: str
    roles: Tuple[str, ...]
    issued_at: datetime
    expires_at: datetime


class AccessTokenCodec:
    def __init__(
        self,
        key: SigningKey,
        ttl: timedelta,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._key = key
        self._ttl_seconds = ttl_to_seconds(ttl)
        self._clock = clock

    def mint(self, subject: str, roles: Sequence[str]) -> str:
        issued_at = int(self._clock().timestamp())
        payload = {
            "sub": str(subject),
            # ordered, without duplicates
            "roles": list(dict.fromkeys(roles)),
            "iat": issued_at,
            "exp": issued_at + self._ttl_seconds,
        }
        logger.debug("Minting access token with roles %s", payload["roles"])
        return jwt.encode(payload, self._key.material, algorithm=self._key.algorithm)

    def parse_and_verify(self, token: str) -> Union[AccessClaims, TokenFailure]:
        result = self._decode(token)
        if isinstance(result, TokenFailure):
            return result
        if result.expires_at <= self._clock():
            return TokenFailure.EXPIRED
        return result

    def extract_subject(self, token: str) -> Union[str, TokenFailure]:
        """Signature-checked read of the subject; expiry is not evaluated."""
        result = self._decode(token)
        if isinstance(result, TokenFailure):
            return result
        return result.subject

    def _decode(self, token: str) -> Union[AccessClaims, TokenFailure]:
        if not isinstance(token, str) or not token:
            return TokenFailure.MALFORMED
        try:
            decoded = jwt.decode(
                token,
                self._key.material,
                algorithms=[self._key.algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected access token: %s", exc)
            return TokenFailure.MALFORMED

        subject = decoded.get("sub")
        roles = decoded.get("roles", [])
        iat = decoded.get("iat")
        exp = decoded.get("exp")
        if not isinstance(subject, str) or not subject:
            return TokenFailure.MALFORMED
        if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
            return TokenFailure.MALFORMED
        if not _is_numeric(iat) or not _is_numeric(exp):
            return TokenFailure.MALFORMED

        try:
            issued_at = datetime.fromtimestamp(iat, tz=timezone.utc)
            expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
        except (OverflowError, ValueError, OSError):
            logger.debug("Rejected access token: timestamp out of range")
            return TokenFailure.MALFORMED

        return AccessClaims(
            subject=subject,
            roles=tuple(roles),
            issued_at=issued_at,
            expires_at=expires_at,
        )


def _is_numeric(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def ttl_to_seconds(ttl: timedelta) -> int:
    """Access token lifetime as JWT seconds; fractions would be truncated away."""
    if not isinstance(ttl, timedelta) or ttl < timedelta(seconds=1):
        raise ValueError("Access token lifetime must be at least one second")
    if ttl % timedelta(seconds=1):
        raise ValueError("Access token lifetime must be a whole number of seconds")
    return int(ttl.total_seconds())
