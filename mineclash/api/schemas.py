"""
Pydantic Schemas for API - Request/response models for OpenAPI.

Game and lobby bodies are the sanitized views from engine_core.view; this
module only adds request bodies and the small envelope responses.

Error Codes:
- INVALID_INPUT: Malformed request (400, or 422 for schema failures)
- UNAUTHORIZED: Missing player identity or wrong lobby password (401)
- FORBIDDEN: Not the host, not your turn, not a player (403)
- NOT_FOUND: Lobby or game does not exist (404)
- CONFLICT: Precondition failed or a concurrent write won; see retryable (409)
- INVALID_STATE: Action not valid in the current phase (409)
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from ..engine_core.generator import Difficulty
from ..engine_core.state import GameMode
from ..engine_core.view import LobbyView
from ..errors import ErrorCode


# =============================================================================
# Request Models
# =============================================================================

class CreateLobbyRequest(BaseModel):
    """Request to open a new lobby."""
    name: str = Field(..., description="Lobby name, 1-50 characters")
    max_players: int = Field(2, description="Seats including the host (2-6)")
    difficulty: Difficulty = Field(Difficulty.EASY, description="Board preset")
    mode: GameMode = Field(GameMode.CLASSIC, description="classic (turns) or race")
    password: Optional[str] = Field(None, description="Optional join password")


class JoinLobbyRequest(BaseModel):
    """Request to join a lobby."""
    password: Optional[str] = None


class MoveRequest(BaseModel):
    """Reveal one cell."""
    row: int = Field(..., description="Zero-based row")
    col: int = Field(..., description="Zero-based column")


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    retryable: bool = Field(False, description="True if the same request may succeed on retry")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class LobbyListResponse(BaseModel):
    """Open lobbies, newest first."""
    lobbies: list[LobbyView]
    count: int


class LeaveLobbyResponse(BaseModel):
    success: bool = True
    lobby_id: str


class LeaveGameResponse(BaseModel):
    """Result of forfeiting a game."""
    game_id: str
    winner_id: str


class SpectateResponse(BaseModel):
    success: bool = True
    game_id: str


class ReapResponse(BaseModel):
    """Counts from one reaper sweep."""
    deleted_lobbies: int
    finished_games: int
    deleted_games: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
    env: str
