"""
Action Results - Outcome of applying a transition to a document.

Transitions never raise for rule violations; they return an ActionResult.
A failed result carries the ErrorCode the caller should see, and no new
document. A successful result carries the complete new document, so the
caller can persist it in one write.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .board import Coord
from ..errors import ErrorCode, GameError, error_for_code

T = TypeVar("T")


@dataclass
class ActionResult(Generic[T]):
    """
    Result of applying an action.

    Contains:
    - Whether the action succeeded
    - The new document (if succeeded)
    - Error message and code (if failed)
    - Cells revealed and points gained (for moves)
    """
    success: bool
    new_state: T | None = None
    error: str | None = None
    error_code: ErrorCode | None = None

    revealed: frozenset[Coord] = field(default_factory=frozenset)
    points: int = 0
    hit_mine: bool = False
    game_over: bool = False
    changes: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, error: str, error_code: ErrorCode) -> ActionResult[Any]:
        """Create a failure result."""
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def success_with_state(
        cls,
        state: T,
        changes: list[str] | None = None,
        **kwargs: Any,
    ) -> ActionResult[T]:
        """Create a success result with a new document."""
        return cls(success=True, new_state=state, changes=changes or [], **kwargs)

    def to_error(self) -> GameError:
        """Exception matching this failure."""
        return error_for_code(self.error_code or ErrorCode.INTERNAL_ERROR, self.error or "")
