"""
Registry errors.

Every rejected call surfaces one of two kinds to its caller:

- Unauthorized: the caller lacks the role the operation requires
- InvalidState: the host environment rejects the call (malformed receiver,
  out-of-range integer, unknown token, second deployment, ...)

Both are raised before any state is committed. Each carries an ErrorCode so
callers can branch on the specific reason without parsing messages.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Specific error codes for programmatic handling."""

    # Permission errors
    NOT_AUTHORIZED = "not_authorized"
    NOT_OWNER = "not_owner"

    # Validation errors
    INVALID_RECEIVER = "invalid_receiver"
    INVALID_ARGUMENT = "invalid_argument"

    # State errors
    NOT_FOUND = "not_found"
    ALREADY_INITIALIZED = "already_initialized"
    NOT_INITIALIZED = "not_initialized"
    ADMIN_FLOOR = "admin_floor"
    STORE_ERROR = "store_error"


class RegistryError(Exception):
    """Base class for every rejection raised by the registry core."""

    default_code = ErrorCode.INVALID_ARGUMENT

    def __init__(self, message: str, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


class Unauthorized(RegistryError):
    """Raised when the caller does not hold the role an operation requires."""

    default_code = ErrorCode.NOT_AUTHORIZED


class InvalidState(RegistryError):
    """Raised when a call is rejected by host rules before any mutation."""

    default_code = ErrorCode.INVALID_ARGUMENT
