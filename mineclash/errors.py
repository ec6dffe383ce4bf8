"""
Errors - Exception hierarchy for rejected actions.

Every rejected action maps to exactly one ErrorCode. Engine transitions
report failures as ActionResult values; the session manager turns them into
the exceptions below before anything is written, so a rejected action never
leaves a session half-updated.
"""

from __future__ import annotations
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Structured error codes."""
    INVALID_INPUT = "INVALID_INPUT"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INVALID_STATE = "INVALID_STATE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class GameError(Exception):
    """Base exception for all rejected actions."""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        retryable: bool = False,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.retryable = retryable
        self.details = details or {}
        super().__init__(message)


class InvalidInputError(GameError):
    """Malformed request."""
    error_code = ErrorCode.INVALID_INPUT


class UnauthorizedError(GameError):
    """Missing or failed credential (e.g. wrong lobby password)."""
    error_code = ErrorCode.UNAUTHORIZED


class ForbiddenError(GameError):
    """Caller is known but not entitled (not the host, not your turn)."""
    error_code = ErrorCode.FORBIDDEN


class NotFoundError(GameError):
    """Referenced lobby or game does not exist."""
    error_code = ErrorCode.NOT_FOUND


class ConflictError(GameError):
    """State precondition violated, or a concurrent write won the race."""
    error_code = ErrorCode.CONFLICT


class InvalidStateError(GameError):
    """Action not valid for the current lifecycle phase."""
    error_code = ErrorCode.INVALID_STATE


_ERRORS_BY_CODE: dict[ErrorCode, type[GameError]] = {
    ErrorCode.INVALID_INPUT: InvalidInputError,
    ErrorCode.UNAUTHORIZED: UnauthorizedError,
    ErrorCode.FORBIDDEN: ForbiddenError,
    ErrorCode.NOT_FOUND: NotFoundError,
    ErrorCode.CONFLICT: ConflictError,
    ErrorCode.INVALID_STATE: InvalidStateError,
}


def error_for_code(
    code: ErrorCode,
    message: str,
    retryable: bool = False,
) -> GameError:
    """Build the exception matching an error code."""
    error_cls = _ERRORS_BY_CODE.get(code, GameError)
    return error_cls(message, retryable=retryable)
