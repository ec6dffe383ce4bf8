"""
FastAPI Application - REST API for minesweeper lobbies and games.

Endpoints:
    POST   /api/v1/lobbies                  Create a lobby
    GET    /api/v1/lobbies                  List open lobbies
    GET    /api/v1/lobbies/{id}             Get a lobby
    POST   /api/v1/lobbies/{id}/join        Join a lobby
    POST   /api/v1/lobbies/{id}/leave       Leave a lobby (host closes it)
    POST   /api/v1/lobbies/{id}/start       Host starts the game
    GET    /api/v1/games/{id}               Sanitized game view for the caller
    POST   /api/v1/games/{id}/move          Classic reveal
    POST   /api/v1/games/{id}/race-move     Race reveal
    POST   /api/v1/games/{id}/leave         Forfeit
    POST   /api/v1/games/{id}/spectate      Start spectating
    DELETE /api/v1/games/{id}/spectate      Stop spectating
    POST   /api/v1/admin/reap               Run one reaper sweep
    GET    /health                          Health check

The caller is identified by the X-Player-Id header (X-Player-Name is the
optional display name). Every error is an ErrorResponse.

Run with:
    uvicorn --factory mineclash.api.app:create_app
"""

from contextlib import asynccontextmanager, suppress
from typing import Annotated, Optional
import asyncio
import logging

from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Settings
from ..engine_core.view import GameView, LobbyView
from ..errors import ErrorCode, GameError, UnauthorizedError
from ..session.manager import SessionManager
from ..session.reaper import SessionReaper
from ..session.store import create_store
from .schemas import (
    CreateLobbyRequest,
    ErrorResponse,
    HealthResponse,
    JoinLobbyRequest,
    LeaveGameResponse,
    LeaveLobbyResponse,
    LobbyListResponse,
    MoveRequest,
    ReapResponse,
    SpectateResponse,
)

logger = logging.getLogger(__name__)

STATUS_FOR_CODE = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.INVALID_STATE: 409,
    ErrorCode.INTERNAL_ERROR: 500,
}

PlayerId = Annotated[Optional[str], Header(alias="X-Player-Id")]
PlayerName = Annotated[Optional[str], Header(alias="X-Player-Name")]


def require_player(player_id: Optional[str]) -> str:
    """The caller's identity; anonymous callers may only read."""
    if not player_id or not player_id.strip():
        raise UnauthorizedError("X-Player-Id header is required")
    return player_id.strip()


def create_app(manager: SessionManager | None = None, settings: Settings | None = None):
    """
    Create the FastAPI application.

    Args:
        manager: Optional SessionManager (built from settings if not provided)
        settings: Optional Settings (read from the environment if not provided)

    Returns:
        FastAPI application instance
    """
    settings = settings or Settings.from_env()
    session_manager = manager or SessionManager(create_store(settings.database_url))
    reaper = SessionReaper(session_manager.store, settings, clock=session_manager.clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(reaper.run_forever(settings.reap_interval_seconds))
        app.state.reaper_task = task
        yield
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    app = FastAPI(
        title="Mineclash API",
        description="""
Multiplayer minesweeper: lobbies, turn-based classic games and race games.

## Error Codes

| Code | HTTP | Description |
|------|------|-------------|
| `INVALID_INPUT` | 400/422 | Malformed request |
| `UNAUTHORIZED` | 401 | Missing identity or wrong password |
| `FORBIDDEN` | 403 | Not the host, not your turn, not a player |
| `NOT_FOUND` | 404 | Lobby or game does not exist |
| `CONFLICT` | 409 | Precondition failed or concurrent write; check `retryable` |
| `INVALID_STATE` | 409 | Action not valid in the current phase |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )
    app.state.manager = session_manager
    app.state.reaper = reaper
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        retryable: bool = False,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                retryable=retryable,
                details=details or None,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(GameError)
    async def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
        return make_error_response(
            exc.error_code,
            exc.message,
            status_code=STATUS_FOR_CODE.get(exc.error_code, 500),
            retryable=exc.retryable,
            details=exc.details,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return make_error_response(
            ErrorCode.INVALID_INPUT,
            "Request validation failed",
            status_code=422,
            details={"errors": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
                for e in exc.errors()
            ]},
        )

    error_responses = {
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    }

    # =========================================================================
    # Lobbies
    # =========================================================================

    @app.post(
        "/api/v1/lobbies",
        response_model=LobbyView,
        status_code=201,
        responses=error_responses,
        tags=["Lobbies"],
        summary="Create a lobby",
    )
    def create_lobby(
        body: CreateLobbyRequest,
        x_player_id: PlayerId = None,
        x_player_name: PlayerName = None,
    ) -> LobbyView:
        """Open a lobby hosted by the caller. The host takes the first seat."""
        player_id = require_player(x_player_id)
        return session_manager.create_lobby(
            player_id=player_id,
            player_name=x_player_name or player_id,
            name=body.name,
            max_players=body.max_players,
            difficulty=body.difficulty.value,
            mode=body.mode.value,
            password=body.password,
        )

    @app.get(
        "/api/v1/lobbies",
        response_model=LobbyListResponse,
        tags=["Lobbies"],
        summary="List open lobbies",
    )
    def list_lobbies() -> LobbyListResponse:
        lobbies = session_manager.list_lobbies()
        return LobbyListResponse(lobbies=lobbies, count=len(lobbies))

    @app.get(
        "/api/v1/lobbies/{lobby_id}",
        response_model=LobbyView,
        responses={404: {"model": ErrorResponse}},
        tags=["Lobbies"],
        summary="Get a lobby",
    )
    def get_lobby(lobby_id: str) -> LobbyView:
        return session_manager.get_lobby(lobby_id)

    @app.post(
        "/api/v1/lobbies/{lobby_id}/join",
        response_model=LobbyView,
        responses=error_responses,
        tags=["Lobbies"],
        summary="Join a lobby",
    )
    def join_lobby(
        lobby_id: str,
        body: Optional[JoinLobbyRequest] = None,
        x_player_id: PlayerId = None,
        x_player_name: PlayerName = None,
    ) -> LobbyView:
        player_id = require_player(x_player_id)
        return session_manager.join_lobby(
            lobby_id,
            player_id,
            x_player_name or player_id,
            password=body.password if body else None,
        )

    @app.post(
        "/api/v1/lobbies/{lobby_id}/leave",
        response_model=LeaveLobbyResponse,
        responses=error_responses,
        tags=["Lobbies"],
        summary="Leave a lobby",
    )
    def leave_lobby(lobby_id: str, x_player_id: PlayerId = None) -> LeaveLobbyResponse:
        """Leave a lobby. If the host leaves, the lobby is deleted."""
        session_manager.leave_lobby(lobby_id, require_player(x_player_id))
        return LeaveLobbyResponse(lobby_id=lobby_id)

    @app.post(
        "/api/v1/lobbies/{lobby_id}/start",
        response_model=GameView,
        status_code=201,
        responses=error_responses,
        tags=["Lobbies"],
        summary="Start the game",
    )
    def start_game(lobby_id: str, x_player_id: PlayerId = None) -> GameView:
        """Host starts a full lobby. The board is generated server-side."""
        return session_manager.start_game(lobby_id, require_player(x_player_id))

    # =========================================================================
    # Games
    # =========================================================================

    @app.get(
        "/api/v1/games/{game_id}",
        response_model=GameView,
        responses={404: {"model": ErrorResponse}},
        tags=["Games"],
        summary="Get the game as the caller may see it",
    )
    def get_game(game_id: str, x_player_id: PlayerId = None) -> GameView:
        return session_manager.get_game(game_id, x_player_id)

    @app.post(
        "/api/v1/games/{game_id}/move",
        response_model=GameView,
        responses=error_responses,
        tags=["Games"],
        summary="Reveal a cell (classic)",
    )
    def move(game_id: str, body: MoveRequest, x_player_id: PlayerId = None) -> GameView:
        return session_manager.move(game_id, require_player(x_player_id), body.row, body.col)

    @app.post(
        "/api/v1/games/{game_id}/race-move",
        response_model=GameView,
        responses=error_responses,
        tags=["Games"],
        summary="Reveal a cell (race)",
    )
    def race_move(game_id: str, body: MoveRequest, x_player_id: PlayerId = None) -> GameView:
        return session_manager.race_move(
            game_id, require_player(x_player_id), body.row, body.col
        )

    @app.post(
        "/api/v1/games/{game_id}/leave",
        response_model=LeaveGameResponse,
        responses=error_responses,
        tags=["Games"],
        summary="Forfeit a game",
    )
    def leave_game(game_id: str, x_player_id: PlayerId = None) -> LeaveGameResponse:
        winner_id = session_manager.leave_game(game_id, require_player(x_player_id))
        return LeaveGameResponse(game_id=game_id, winner_id=winner_id)

    @app.post(
        "/api/v1/games/{game_id}/spectate",
        response_model=GameView,
        responses=error_responses,
        tags=["Games"],
        summary="Start spectating",
    )
    def join_spectator(game_id: str, x_player_id: PlayerId = None) -> GameView:
        return session_manager.join_spectator(game_id, require_player(x_player_id))

    @app.delete(
        "/api/v1/games/{game_id}/spectate",
        response_model=SpectateResponse,
        responses=error_responses,
        tags=["Games"],
        summary="Stop spectating",
    )
    def leave_spectator(game_id: str, x_player_id: PlayerId = None) -> SpectateResponse:
        session_manager.leave_spectator(game_id, require_player(x_player_id))
        return SpectateResponse(game_id=game_id)

    # =========================================================================
    # System
    # =========================================================================

    @app.post(
        "/api/v1/admin/reap",
        response_model=ReapResponse,
        tags=["System"],
        summary="Run one reaper sweep now",
    )
    def reap() -> ReapResponse:
        report = reaper.sweep()
        return ReapResponse(
            deleted_lobbies=report.deleted_lobbies,
            finished_games=report.finished_games,
            deleted_games=report.deleted_games,
        )

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="mineclash",
            version=__version__,
            env=settings.env,
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Mineclash API",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/health",
        }

    logger.debug("API created (env=%s)", settings.env)
    return app
