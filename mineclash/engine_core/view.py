"""
Views - Sanitized, per-viewer projections of lobbies and games.

These are the only shapes that leave the server. A cell the viewer has not
revealed always reads is_mine=False, neighbor_mines=0, state="hidden",
whatever its true content. Once a game is finished the full board is
disclosed for the post-game summary.

Who has "revealed" a cell:
- classic: anyone, via the shared board
- race: only the player whose revealed set contains it
- race spectators: nobody, until the game is finished
"""

from __future__ import annotations
from typing import AbstractSet, Optional

from pydantic import BaseModel, Field

from .board import Board, CellState, Coord
from .state import Game, GameMode, GameStatus, Lobby


class CellView(BaseModel):
    """A cell as one viewer is allowed to see it."""
    row: int
    col: int
    is_mine: bool = False
    neighbor_mines: int = 0
    state: CellState = CellState.HIDDEN


class PlayerView(BaseModel):
    player_id: str
    name: str
    score: int = 0
    is_current_turn: bool = False
    revealed_safe_cells: Optional[int] = Field(
        None, description="Race mode progress; counts only, never positions"
    )
    finished: Optional[bool] = None


class LobbyPlayerView(BaseModel):
    player_id: str
    name: str


class LobbyView(BaseModel):
    """Lobby as shown to clients. Never includes the password hash."""
    lobby_id: str
    name: str
    host_id: str
    max_players: int
    players: list[LobbyPlayerView] = Field(default_factory=list)
    status: str
    difficulty: str
    mode: str
    created_at: float
    game_id: Optional[str] = None
    has_password: bool = False


class GameView(BaseModel):
    """Game as shown to one viewer."""
    game_id: str
    lobby_id: str
    mode: str
    difficulty: str
    status: str
    rows: int
    cols: int
    mine_count: int
    board: list[list[CellView]]
    players: list[PlayerView]
    current_turn: Optional[str] = None
    winner_id: Optional[str] = None
    mines_revealed: int = 0
    started_at: float
    finished_at: Optional[float] = None
    last_move_by: Optional[str] = None
    last_move_cell: Optional[tuple[int, int]] = None
    spectators: list[str] = Field(default_factory=list)
    viewer_id: Optional[str] = None
    is_spectator: bool = False


def sanitize_board(
    board: Board,
    visible: AbstractSet[Coord] | None = None,
    disclose_all: bool = False,
) -> list[list[CellView]]:
    """
    Project the authoritative board for one viewer.

    Args:
        board: Authoritative board
        visible: Cells this viewer has revealed. None means the board's own
            revealed cell states.
        disclose_all: Show everything (finished games)
    """
    rows = []
    for board_row in board.cells:
        view_row = []
        for cell in board_row:
            if visible is None:
                seen = cell.is_revealed
            else:
                seen = cell.coord in visible
            if disclose_all or seen:
                view_row.append(
                    CellView(
                        row=cell.row,
                        col=cell.col,
                        is_mine=cell.is_mine,
                        neighbor_mines=cell.neighbor_mines,
                        state=CellState.REVEALED if seen else CellState.HIDDEN,
                    )
                )
            else:
                view_row.append(CellView(row=cell.row, col=cell.col))
        rows.append(view_row)
    return rows


def build_game_view(game: Game, viewer_id: str | None) -> GameView:
    """Build the sanitized view of a game for viewer_id."""
    finished = game.status == GameStatus.FINISHED
    is_player = viewer_id is not None and game.has_player(viewer_id)

    if game.mode == GameMode.CLASSIC:
        board = sanitize_board(game.board, disclose_all=finished)
    else:
        if is_player:
            visible = game.race.get(viewer_id).revealed if viewer_id in game.race else set()
        else:
            visible = set()
        board = sanitize_board(game.board, visible=visible, disclose_all=finished)

    players = []
    for p in game.players:
        player_view = PlayerView(
            player_id=p.player_id,
            name=p.name,
            score=p.score,
            is_current_turn=(p.player_id == game.current_turn),
        )
        if game.mode == GameMode.RACE:
            progress = game.race.get(p.player_id)
            player_view.revealed_safe_cells = (
                game.board.count_safe_in(progress.revealed) if progress else 0
            )
            player_view.finished = progress.finished if progress else False
        players.append(player_view)

    # Mid-race, another player's last cell plus their progress gives away what it holds.
    last_move_by, last_move_cell = game.last_move_by, game.last_move_cell
    if game.mode == GameMode.RACE and not finished and viewer_id != game.last_move_by:
        last_move_by, last_move_cell = None, None

    return GameView(
        game_id=game.game_id,
        lobby_id=game.lobby_id,
        mode=game.mode.value,
        difficulty=game.difficulty.value,
        status=game.status.value,
        rows=game.rows,
        cols=game.cols,
        mine_count=game.mine_count,
        board=board,
        players=players,
        current_turn=game.current_turn if not finished else None,
        winner_id=game.winner_id,
        mines_revealed=game.mines_revealed,
        started_at=game.started_at,
        finished_at=game.finished_at,
        last_move_by=last_move_by,
        last_move_cell=last_move_cell,
        spectators=list(game.spectators),
        viewer_id=viewer_id,
        is_spectator=viewer_id in game.spectators if viewer_id else False,
    )


def build_lobby_view(lobby: Lobby) -> LobbyView:
    return LobbyView(
        lobby_id=lobby.lobby_id,
        name=lobby.name,
        host_id=lobby.host_id,
        max_players=lobby.max_players,
        players=[LobbyPlayerView(player_id=p.player_id, name=p.name) for p in lobby.players],
        status=lobby.status.value,
        difficulty=lobby.difficulty.value,
        mode=lobby.mode.value,
        created_at=lobby.created_at,
        game_id=lobby.game_id,
        has_password=lobby.has_password,
    )
