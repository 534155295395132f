"""
core/errors.py -- Error taxonomy shared by the auth and vault layers.

Every error the service layer raises on purpose is a SecurePassError. Each
class carries the HTTP status and machine-readable code it maps to, so the
API layer needs exactly one exception handler to render all of them.

operation_boundary() wraps a service operation: SecurePassError subclasses
pass through untouched, anything else (SQLAlchemy, bcrypt, jose) is logged
with its traceback and replaced by a generic InternalError. No internal
exception detail ever reaches the caller.

Layer rule: core/ is the kernel. No imports from api/, auth/, or vault/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

logger = logging.getLogger("securepass.errors")


class SecurePassError(Exception):
    """Base class for all expected, caller-visible failures."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, detail: str | None = None) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


class ValidationError(SecurePassError):
    status_code = 400
    code = "validation_error"
    default_message = "Request validation failed."


class ConflictError(SecurePassError):
    """Uniqueness violation. The registration contract reports this as 400."""

    status_code = 400
    code = "username_taken"
    default_message = "Username already exists."


class ConcurrentModificationError(ConflictError):
    """Optimistic version check failed: someone else saved the record first."""

    status_code = 409
    code = "concurrent_modification"
    default_message = "The record was modified by another request. Retry the operation."


class InvalidCredentialsError(SecurePassError):
    # Same message for unknown username and wrong password.
    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid credentials."


class InvalidCodeError(SecurePassError):
    status_code = 401
    code = "invalid_code"
    default_message = "Invalid 2FA code."


class EnrollmentCodeError(InvalidCodeError):
    """Wrong code during enrollment confirmation -- a client error, not an auth failure."""

    status_code = 400


class MissingTokenError(SecurePassError):
    status_code = 401
    code = "missing_token"
    default_message = "Access token required."


class InvalidTokenError(SecurePassError):
    status_code = 403
    code = "invalid_token"
    default_message = "Invalid or expired token."


class NotFoundError(SecurePassError):
    status_code = 404
    code = "not_found"
    default_message = "User not found."


class InternalError(SecurePassError):
    status_code = 500
    code = "internal_error"


@contextmanager
def operation_boundary(operation: str) -> Iterator[None]:
    """Map any non-taxonomy exception raised inside the block to InternalError.

    Usage:
        with operation_boundary("register"):
            ...
    """
    try:
        yield
    except SecurePassError:
        raise
    except Exception as exc:
        logger.exception("%s failed with an unexpected error", operation)
        raise InternalError() from exc
