"""
Move Validators - Per-mode rules for revealing a cell.

One MoveValidator per GameMode, dispatched through validator_for(). Each
validator:
- Validates the move against the loaded Game (no mutation on failure)
- Computes the full new Game on a clone
- Returns an ActionResult the session manager persists in one write

Scoring is the same shape in both modes: a mine costs 3 points (floored at
0); a safe cell is worth its neighbor count, or 1 if it has none, summed
over every cell the cascade reveals.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Iterable
import time

from ..errors import ErrorCode
from .action import ActionResult
from .reveal import reveal, score_cells
from .state import DRAW, Game, GameMode, GamePlayer, GameStatus, RaceProgress

MINE_PENALTY = 3


def top_scorer(players: Iterable[GamePlayer]) -> str:
    """Sole highest scorer's id, or DRAW on a tie."""
    players = list(players)
    if not players:
        return DRAW
    best = max(p.score for p in players)
    leaders = [p for p in players if p.score == best]
    return leaders[0].player_id if len(leaders) == 1 else DRAW


def finish_game(game: Game, winner_id: str, now: float | None = None) -> Game:
    """Mark a (cloned) game finished in place and return it."""
    game.status = GameStatus.FINISHED
    game.winner_id = winner_id
    game.finished_at = time.time() if now is None else now
    return game


class MoveValidator(ABC):
    """
    Validates and applies a reveal for one game mode.

    Stateless - all state is in the Game.
    """
    mode: GameMode

    def apply(
        self,
        game: Game,
        player_id: str,
        row: int,
        col: int,
        now: float | None = None,
    ) -> ActionResult[Game]:
        """
        Apply a reveal at (row, col) by player_id.

        Returns ActionResult with the new game or the rejection reason.
        """
        if game.mode != self.mode:
            return ActionResult.failure(
                f"Game {game.game_id} is a {game.mode.value} game, not {self.mode.value}",
                ErrorCode.INVALID_STATE,
            )

        rejection = self._validate(game, player_id, row, col)
        if rejection:
            return rejection

        return self._apply_move(game.clone(), player_id, row, col, now)

    @abstractmethod
    def _validate(
        self, game: Game, player_id: str, row: int, col: int
    ) -> ActionResult[Game] | None:
        """Return a failure result if the move is illegal, None otherwise."""

    @abstractmethod
    def _apply_move(
        self, game: Game, player_id: str, row: int, col: int, now: float | None
    ) -> ActionResult[Game]:
        """Apply a validated move to a cloned game."""


class ClassicMoveValidator(MoveValidator):
    """
    Turn-based mode on one shared board.

    A safe reveal keeps the turn; a mine passes it to the next player in
    turn order. The game ends when every safe cell is revealed.
    """
    mode = GameMode.CLASSIC

    def _validate(self, game, player_id, row, col):
        if game.status != GameStatus.PLAYING:
            return ActionResult.failure("Game is not in playing state", ErrorCode.INVALID_STATE)
        if player_id != game.current_turn:
            return ActionResult.failure("Not your turn", ErrorCode.FORBIDDEN)
        if not game.has_player(player_id):
            return ActionResult.failure("You are not a player in this game", ErrorCode.FORBIDDEN)
        if not game.board.in_bounds(row, col):
            return ActionResult.failure(f"Invalid coordinates ({row}, {col})", ErrorCode.CONFLICT)
        if game.board.cell(row, col).is_revealed:
            return ActionResult.failure("Cell is already revealed", ErrorCode.CONFLICT)
        return None

    def _apply_move(self, game, player_id, row, col, now):
        player = game.get_player(player_id)
        cell = game.board.cell(row, col)
        revealed = reveal(game.board, row, col)

        if cell.is_mine:
            before = player.score
            player.score = max(0, player.score - MINE_PENALTY)
            points = player.score - before
            game.mines_revealed += 1
            game.current_turn_index = (game.current_turn_index + 1) % len(game.turn_order)
            change = f"{player.name} hit a mine at ({row}, {col})"
        else:
            points = score_cells(game.board, revealed)
            player.score += points
            change = f"{player.name} revealed {len(revealed)} cell(s) for {points} point(s)"

        game.board = game.board.with_revealed(revealed)
        game.last_move_by = player_id
        game.last_move_cell = (row, col)

        game_over = game.board.all_safe_revealed()
        changes = [change]
        if game_over:
            finish_game(game, top_scorer(game.players), now)
            changes.append(f"Game over, winner: {game.winner_id}")

        return ActionResult.success_with_state(
            game,
            changes=changes,
            revealed=revealed,
            points=points,
            hit_mine=cell.is_mine,
            game_over=game_over,
        )


class RaceMoveValidator(MoveValidator):
    """
    Simultaneous mode over one mine layout.

    Each player reveals into their own set; there are no turns. The first
    player to reveal every safe cell wins and ends the game for everyone.
    """
    mode = GameMode.RACE

    def _validate(self, game, player_id, row, col):
        if game.status != GameStatus.PLAYING:
            return ActionResult.failure("Game is not in playing state", ErrorCode.INVALID_STATE)
        if not game.has_player(player_id):
            return ActionResult.failure("You are not a player in this game", ErrorCode.FORBIDDEN)
        if not game.board.in_bounds(row, col):
            return ActionResult.failure(f"Invalid coordinates ({row}, {col})", ErrorCode.CONFLICT)
        progress = game.race.get(player_id)
        if progress and progress.finished:
            return ActionResult.failure("You already finished", ErrorCode.CONFLICT)
        if progress and (row, col) in progress.revealed:
            return ActionResult.failure("Cell already revealed", ErrorCode.CONFLICT)
        return None

    def _apply_move(self, game, player_id, row, col, now):
        player = game.get_player(player_id)
        progress = game.race.setdefault(player_id, RaceProgress())
        cell = game.board.cell(row, col)
        revealed = reveal(game.board, row, col, progress.revealed)
        progress.revealed |= revealed

        if cell.is_mine:
            before = player.score
            player.score = max(0, player.score - MINE_PENALTY)
            points = player.score - before
            change = f"{player.name} hit a mine at ({row}, {col})"
        else:
            points = score_cells(game.board, revealed)
            player.score += points
            change = f"{player.name} revealed {len(revealed)} cell(s) for {points} point(s)"

        game.last_move_by = player_id
        game.last_move_cell = (row, col)

        changes = [change]
        cleared = game.board.count_safe_in(progress.revealed) >= game.board.safe_cell_count
        if cleared:
            progress.finished = True
            finish_game(game, player_id, now)
            changes.append(f"{player.name} cleared the board first")

        return ActionResult.success_with_state(
            game,
            changes=changes,
            revealed=revealed,
            points=points,
            hit_mine=cell.is_mine,
            game_over=cleared,
        )


VALIDATORS: dict[GameMode, MoveValidator] = {
    GameMode.CLASSIC: ClassicMoveValidator(),
    GameMode.RACE: RaceMoveValidator(),
}


def validator_for(mode: GameMode) -> MoveValidator:
    """Get the move validator for a game mode."""
    return VALIDATORS[GameMode(mode)]


def resolve_forfeit(game: Game, player_id: str, now: float | None = None) -> ActionResult[Game]:
    """
    A player leaves a game in progress.

    The remaining player wins; with several remaining, the sole highest
    scorer wins, or the game is a draw.
    """
    if game.status != GameStatus.PLAYING:
        return ActionResult.failure("Game is not in playing state", ErrorCode.INVALID_STATE)
    if not game.has_player(player_id):
        return ActionResult.failure("You are not a player in this game", ErrorCode.FORBIDDEN)

    new_game = game.clone()
    remaining = [p for p in new_game.players if p.player_id != player_id]
    if len(remaining) == 1:
        winner_id = remaining[0].player_id
    else:
        winner_id = top_scorer(remaining)

    finish_game(new_game, winner_id, now)
    return ActionResult.success_with_state(
        new_game,
        changes=[f"{player_id} forfeited, winner: {winner_id}"],
        game_over=True,
    )
