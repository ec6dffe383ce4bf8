"""
Board Generator - Mine placement and neighbor counts.

Mines are placed by rejection sampling: draw a uniformly random cell, skip
it if it is the safe cell or already mined, repeat until enough mines are
placed. Presets keep the mine density low, so this converges quickly.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable
import random

from ..errors import InvalidInputError
from .board import Board, Coord


class Difficulty(str, Enum):
    """Difficulty preset names."""
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


@dataclass(frozen=True)
class BoardConfig:
    """Board dimensions and mine count."""
    rows: int
    cols: int
    mines: int


DIFFICULTY_PRESETS: dict[Difficulty, BoardConfig] = {
    Difficulty.EASY: BoardConfig(rows=9, cols=9, mines=10),
    Difficulty.MEDIUM: BoardConfig(rows=15, cols=15, mines=30),
    Difficulty.HARD: BoardConfig(rows=16, cols=30, mines=99),
}


def preset_for(difficulty: Difficulty | str) -> BoardConfig:
    """Look up a difficulty preset, rejecting unknown names."""
    try:
        return DIFFICULTY_PRESETS[Difficulty(difficulty)]
    except (ValueError, KeyError):
        raise InvalidInputError(f"Invalid difficulty: {difficulty}")


def generate_board(
    rows: int,
    cols: int,
    mine_count: int,
    safe_row: int,
    safe_col: int,
    rng: random.Random | None = None,
) -> Board:
    """
    Generate a board with mine_count mines, none at (safe_row, safe_col).

    Args:
        rows: Number of rows (>= 1)
        cols: Number of columns (>= 1)
        mine_count: Mines to place, 0 <= mine_count < rows * cols
        safe_row: Row of the guaranteed-safe cell
        safe_col: Column of the guaranteed-safe cell
        rng: Random source (defaults to a fresh random.Random)

    Returns:
        Board with mines placed and neighbor counts computed

    Raises:
        InvalidInputError: If the dimensions, mine count or safe cell are invalid
    """
    if rows < 1 or cols < 1:
        raise InvalidInputError(f"Board must be at least 1x1, got {rows}x{cols}")
    if not 0 <= mine_count < rows * cols:
        raise InvalidInputError(
            f"Mine count must be in [0, {rows * cols}), got {mine_count}"
        )
    if not (0 <= safe_row < rows and 0 <= safe_col < cols):
        raise InvalidInputError(f"Safe cell ({safe_row}, {safe_col}) is off the board")

    rng = rng or random.Random()
    mines: set[Coord] = set()
    while len(mines) < mine_count:
        r = rng.randrange(rows)
        c = rng.randrange(cols)
        if (r, c) == (safe_row, safe_col) or (r, c) in mines:
            continue
        mines.add((r, c))

    return board_from_mines(rows, cols, mines)


def board_from_mines(rows: int, cols: int, mines: Iterable[Coord]) -> Board:
    """Build a board from an explicit set of mine coordinates."""
    mine_set = set(mines)
    board = Board.empty(rows, cols)
    for r, c in mine_set:
        board.cells[r][c] = replace(board.cells[r][c], is_mine=True)

    for r in range(rows):
        for c in range(cols):
            if (r, c) in mine_set:
                continue
            count = sum(1 for n in board.neighbors(r, c) if n in mine_set)
            board.cells[r][c] = replace(board.cells[r][c], neighbor_mines=count)

    return board
