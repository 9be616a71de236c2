"""
Failure kinds and exceptions for the authentication core.

Two layers:
- TokenFailure: typed outcomes returned (not raised) by the token subsystem
  (access token codec, refresh token manager).
- AuthError and subclasses: the process-wide taxonomy raised by the
  orchestrator and the request authenticator. api/errors.py maps them to
  the JSON error envelope.
"""
from __future__ import annotations

from enum import Enum


class TokenFailure(str, Enum):
    MALFORMED = "malformed"
    EXPIRED = "expired"
    # "never existed" and "already revoked" are deliberately one kind
    NOT_FOUND_OR_REVOKED = "not_found_or_revoked"


class AuthError(Exception):
    """Base class for authentication failures surfaced to API callers."""

    code = "UNAUTHORIZED"
    status = 401
    message = "Authentication failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class MalformedTokenError(AuthError):
    code = "INVALID_TOKEN"
    message = "Invalid token"


class InvalidTokenError(AuthError):
    """Refresh token unknown or revoked, or access token subject is gone."""

    code = "INVALID_TOKEN"
    message = "Invalid or revoked token"


class TokenExpiredError(AuthError):
    code = "TOKEN_EXPIRED"
    message = "Token expired, please authenticate again"


class InvalidCredentialsError(AuthError):
    code = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


class UnknownIdentityError(InvalidCredentialsError):
    # Kept distinct for logs only; renders exactly like InvalidCredentialsError.
    pass


class DuplicateIdentityError(AuthError):
    code = "CONFLICT"
    status = 409
    message = "This email address is not available"


class MissingTokenError(AuthError):
    code = "MISSING_TOKEN"
    status = 400
    message = "Refresh token is missing or empty"


def raise_for_failure(failure: TokenFailure) -> None:
    """Translate a token subsystem failure into the matching AuthError."""
    if failure is TokenFailure.EXPIRED:
        raise TokenExpiredError()
    if failure is TokenFailure.MALFORMED:
        raise MalformedTokenError()
    raise InvalidTokenError()
