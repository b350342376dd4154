"""
core/errors.py -- Tagged error taxonomy for AuthGate.

Every failure the service layer reports to a caller is an AuthError carrying
an ErrorKind and a safe, non-leaking message. The HTTP boundary maps kind to
status code exactly once (api/errors.py); nothing below the boundary knows
about HTTP.

Messages for InvalidCredentials and InvalidToken are uniform.
Callers must not subclass-switch to build a more specific user message; the
`reason` attribute exists for server-side logging only.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "ValidationError"
    DUPLICATE_EMAIL = "DuplicateEmail"
    INVALID_CREDENTIALS = "InvalidCredentials"
    INVALID_TOKEN = "InvalidToken"
    NOT_FOUND = "NotFound"
    INTERNAL = "InternalError"


class AuthError(Exception):
    """Base class for every expected failure surfaced by the services."""

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, reason: str | None = None) -> None:
        self.message = message or self.default_message
        self.reason = reason
        super().__init__(self.message)


class ValidationError(AuthError):
    kind = ErrorKind.VALIDATION
    default_message = "Request validation failed."


class DuplicateEmailError(AuthError):
    kind = ErrorKind.DUPLICATE_EMAIL
    default_message = "Email already exists."


class InvalidCredentialsError(AuthError):
    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid credentials."


class InvalidTokenError(AuthError):
    kind = ErrorKind.INVALID_TOKEN
    default_message = "Invalid refresh token."


class MissingTokenError(InvalidTokenError):
    default_message = "Refresh token is required."


class NotFoundError(AuthError):
    kind = ErrorKind.NOT_FOUND
    default_message = "User not found."


class InternalError(AuthError):
    kind = ErrorKind.INTERNAL
