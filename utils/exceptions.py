"""
Domain errors raised by the token services.

Every error carries the envelope fields used by api.errors:
- code: machine readable error code
- status: HTTP status the API layer answers with
- message: public message (never the internal cause)
"""
from __future__ import annotations


class AppError(Exception):
    code = "INTERNAL_ERROR"
    status = 500
    message = "An unexpected error occurred"

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


class InvalidCredentials(AppError):
    """Unknown username or wrong password; both look the same to the caller."""
    code = "INVALID_CREDENTIALS"
    status = 401
    message = "Username or password is incorrect"


class InvalidToken(AppError):
    """Unknown, expired, revoked or raced refresh token.

    The message is fixed so callers cannot learn anything about the chain state.
    """
    code = "INVALID_TOKEN"
    status = 401
    message = "Invalid token"


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    status = 400
    message = "Invalid input"


class NotFound(AppError):
    code = "NOT_FOUND"
    status = 404
    message = "Resource not found"


class Conflict(AppError):
    code = "CONFLICT"
    status = 409
    message = "Conflict"


class Fatal(AppError):
    """Storage or random generation failure. Not retried."""


class ConcurrentUpdate(Fatal):
    """Another writer changed a token row between our read and our write."""
