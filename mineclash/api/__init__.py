"""
API Module - HTTP interface for game clients.

Clients:
1. Create or browse lobbies
2. Join (with a password if the lobby has one)
3. Start the game once the lobby is full (host only)
4. Reveal cells and poll the sanitized game view
5. Leave, forfeit, or spectate

All state lives in the session store; the API keeps nothing between requests.
"""

from .app import create_app
from .schemas import (
    # Requests
    CreateLobbyRequest,
    JoinLobbyRequest,
    MoveRequest,
    # Responses
    ErrorResponse,
    HealthResponse,
    LeaveGameResponse,
    LeaveLobbyResponse,
    LobbyListResponse,
    ReapResponse,
    SpectateResponse,
)

__all__ = [
    "create_app",
    "CreateLobbyRequest",
    "JoinLobbyRequest",
    "MoveRequest",
    "ErrorResponse",
    "HealthResponse",
    "LeaveGameResponse",
    "LeaveLobbyResponse",
    "LobbyListResponse",
    "ReapResponse",
    "SpectateResponse",
]
