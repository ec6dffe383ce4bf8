"""
Board - Authoritative minefield model.

Design principles:
- Fixed shape: every cell is a Cell record, never a loose dict
- Immutable-friendly: mutations return a new Board
- Serializable: to_dict()/from_dict() round-trip through the session store
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Iterator

Coord = tuple[int, int]


class CellState(Enum):
    """Visibility of a cell."""
    HIDDEN = "hidden"
    REVEALED = "revealed"
    FLAGGED = "flagged"  # client-side annotation only


@dataclass(frozen=True)
class Cell:
    """A single board cell with its true content."""
    row: int
    col: int
    is_mine: bool = False
    neighbor_mines: int = 0
    state: CellState = CellState.HIDDEN

    @property
    def coord(self) -> Coord:
        return (self.row, self.col)

    @property
    def is_revealed(self) -> bool:
        return self.state == CellState.REVEALED


@dataclass
class Board:
    """
    A rows x cols grid of cells.

    The board held by a Game is the only copy with real mine data;
    clients only ever see views built from it.
    """
    rows: int
    cols: int
    cells: list[list[Cell]] = field(default_factory=list)

    @classmethod
    def empty(cls, rows: int, cols: int) -> Board:
        """Create a board with no mines and every cell hidden."""
        return cls(
            rows=rows,
            cols=cols,
            cells=[[Cell(row=r, col=c) for c in range(cols)] for r in range(rows)],
        )

    def cell(self, row: int, col: int) -> Cell:
        return self.cells[row][col]

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.rows and 0 <= col < self.cols

    def neighbors(self, row: int, col: int) -> Iterator[Coord]:
        """Yield the in-bounds Moore neighbors of a cell."""
        for r in range(max(0, row - 1), min(self.rows - 1, row + 1) + 1):
            for c in range(max(0, col - 1), min(self.cols - 1, col + 1) + 1):
                if r != row or c != col:
                    yield (r, c)

    def iter_cells(self) -> Iterator[Cell]:
        for row in self.cells:
            yield from row

    @property
    def mine_count(self) -> int:
        return sum(1 for cell in self.iter_cells() if cell.is_mine)

    @property
    def safe_cell_count(self) -> int:
        return self.rows * self.cols - self.mine_count

    def mine_coords(self) -> set[Coord]:
        return {cell.coord for cell in self.iter_cells() if cell.is_mine}

    def all_safe_revealed(self) -> bool:
        """True when every non-mine cell is revealed."""
        return all(cell.is_revealed for cell in self.iter_cells() if not cell.is_mine)

    def count_safe_in(self, coords: Iterable[Coord]) -> int:
        """Count how many of the given coordinates are safe cells."""
        return sum(1 for r, c in coords if not self.cells[r][c].is_mine)

    def with_revealed(self, coords: Iterable[Coord]) -> Board:
        """Return a new board with the given cells marked revealed."""
        new_cells = [row.copy() for row in self.cells]
        for r, c in coords:
            new_cells[r][c] = replace(new_cells[r][c], state=CellState.REVEALED)
        return Board(rows=self.rows, cols=self.cols, cells=new_cells)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": self.rows,
            "cols": self.cols,
            "cells": [
                [
                    {
                        "is_mine": cell.is_mine,
                        "neighbor_mines": cell.neighbor_mines,
                        "state": cell.state.value,
                    }
                    for cell in row
                ]
                for row in self.cells
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Board:
        return cls(
            rows=data["rows"],
            cols=data["cols"],
            cells=[
                [
                    Cell(
                        row=r,
                        col=c,
                        is_mine=raw["is_mine"],
                        neighbor_mines=raw["neighbor_mines"],
                        state=CellState(raw["state"]),
                    )
                    for c, raw in enumerate(row)
                ]
                for r, row in enumerate(data["cells"])
            ],
        )
