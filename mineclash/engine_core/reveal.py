"""
Reveal Engine - Flood-fill reveal of connected zero-neighbor cells.

Pure functions, no I/O. The caller decides what to do with the result:
classic mode marks the cells revealed on the shared board, race mode adds
them to the player's own revealed set.
"""

from __future__ import annotations
from typing import AbstractSet

from .board import Board, Cell, Coord


def reveal(
    board: Board,
    row: int,
    col: int,
    revealed: AbstractSet[Coord] | None = None,
) -> frozenset[Coord]:
    """
    Compute the cells newly revealed by clicking (row, col).

    Args:
        board: Authoritative board
        row: Target row (must be in bounds)
        col: Target column (must be in bounds)
        revealed: Cells already revealed for this viewer. When None the
            board's own cell states are used.

    Returns:
        Every coordinate that transitions to revealed, target included.
        Empty if the target is already revealed.
    """
    if revealed is None:
        def is_hidden(coord: Coord) -> bool:
            return not board.cells[coord[0]][coord[1]].is_revealed
    else:
        def is_hidden(coord: Coord) -> bool:
            return coord not in revealed

    start = (row, col)
    if not is_hidden(start):
        return frozenset()

    target = board.cell(row, col)
    if target.is_mine or target.neighbor_mines > 0:
        return frozenset({start})

    result: set[Coord] = {start}
    visited: set[Coord] = {start}
    stack: list[Coord] = [start]
    while stack:
        r, c = stack.pop()
        for coord in board.neighbors(r, c):
            if coord in visited:
                continue
            visited.add(coord)
            neighbor = board.cells[coord[0]][coord[1]]
            if neighbor.is_mine or not is_hidden(coord):
                continue
            result.add(coord)
            if neighbor.neighbor_mines == 0:
                stack.append(coord)

    return frozenset(result)


def cell_score(cell: Cell) -> int:
    """Points for revealing a cell: its neighbor count, 1 if empty, 0 for a mine."""
    if cell.is_mine:
        return 0
    if cell.neighbor_mines == 0:
        return 1
    return cell.neighbor_mines


def score_cells(board: Board, coords: AbstractSet[Coord]) -> int:
    """Sum of cell_score over the given coordinates."""
    return sum(cell_score(board.cells[r][c]) for r, c in coords)
