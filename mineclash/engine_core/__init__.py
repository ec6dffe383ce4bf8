"""
Engine Core - The authoritative minesweeper rules.

Pure, I/O-free components:
- board: fixed-shape Cell and Board records
- generator: mine placement with a guaranteed-safe cell
- reveal: flood-fill cascade and scoring
- state: Lobby and Game documents
- modes: per-mode move validation (classic, race) and forfeits
- view: sanitized per-viewer projections
"""

from .board import Board, Cell, CellState, Coord
from .generator import (
    DIFFICULTY_PRESETS,
    BoardConfig,
    Difficulty,
    board_from_mines,
    generate_board,
    preset_for,
)
from .reveal import cell_score, reveal, score_cells
from .state import (
    DRAW,
    TIMEOUT,
    Game,
    GameMode,
    GamePlayer,
    GameStatus,
    Lobby,
    LobbyPlayer,
    LobbyStatus,
    RaceProgress,
)
from .action import ActionResult
from .modes import (
    ClassicMoveValidator,
    MoveValidator,
    RaceMoveValidator,
    finish_game,
    resolve_forfeit,
    top_scorer,
    validator_for,
)
from .view import CellView, GameView, LobbyView, PlayerView, build_game_view, build_lobby_view

__all__ = [
    "Board",
    "Cell",
    "CellState",
    "Coord",
    "DIFFICULTY_PRESETS",
    "BoardConfig",
    "Difficulty",
    "board_from_mines",
    "generate_board",
    "preset_for",
    "cell_score",
    "reveal",
    "score_cells",
    "DRAW",
    "TIMEOUT",
    "Game",
    "GameMode",
    "GamePlayer",
    "GameStatus",
    "Lobby",
    "LobbyPlayer",
    "LobbyStatus",
    "RaceProgress",
    "ActionResult",
    "ClassicMoveValidator",
    "MoveValidator",
    "RaceMoveValidator",
    "finish_game",
    "resolve_forfeit",
    "top_scorer",
    "validator_for",
    "CellView",
    "GameView",
    "LobbyView",
    "PlayerView",
    "build_game_view",
    "build_lobby_view",
]
