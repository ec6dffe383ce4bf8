"""
Pytest fixtures for Mineclash tests.
"""

import random

import pytest

from ..engine_core.board import Board
from ..engine_core.generator import Difficulty, board_from_mines
from ..engine_core.state import Game, GameMode, GamePlayer, RaceProgress
from ..session.manager import SessionManager
from ..session.store import InMemorySessionStore


class FakeClock:
    """Settable clock for time-dependent code."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_game(
    board: Board,
    mode: GameMode = GameMode.CLASSIC,
    player_ids=("alice", "bob"),
    started_at: float = 1_000_000.0,
) -> Game:
    """Build a PLAYING game directly, bypassing the lobby."""
    game = Game(
        game_id="g1",
        lobby_id="l1",
        mode=mode,
        difficulty=Difficulty.EASY,
        board=board,
        started_at=started_at,
        players=[GamePlayer(player_id=p, name=p.title()) for p in player_ids],
    )
    if mode == GameMode.CLASSIC:
        game.turn_order = list(player_ids)
    else:
        game.race = {p: RaceProgress() for p in player_ids}
    return game


def install_board(store, game_id: str, board: Board) -> Game:
    """Swap a stored game's random board for a known one."""
    game = store.get_game(game_id)
    game.board = board
    return store.save_game(game, expected_version=game.version)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def manager(store, clock) -> SessionManager:
    """Manager over an in-memory store with a seeded RNG and fake clock."""
    return SessionManager(store, rng=random.Random(7), clock=clock)


@pytest.fixture
def ring_board() -> Board:
    """
    3x3 with a single mine in the middle.

    Every safe cell has exactly one neighbor mine, so each reveal uncovers
    one cell worth one point.
    """
    return board_from_mines(3, 3, {(1, 1)})


@pytest.fixture
def corner_board() -> Board:
    """3x3 with a mine at (0, 0); clicking (2, 2) clears the whole board."""
    return board_from_mines(3, 3, {(0, 0)})


@pytest.fixture
def center_safe_board() -> Board:
    """9x9 with 10 mines on the edges, leaving the center region empty."""
    mines = {
        (0, 0), (0, 4), (0, 8), (0, 2),
        (4, 0), (4, 8),
        (8, 0), (8, 4), (8, 8), (8, 6),
    }
    return board_from_mines(9, 9, mines)


def open_lobby(manager, mode: str, players=("alice", "bob")) -> str:
    host, *others = players
    lobby = manager.create_lobby(host, host.title(), "Test lobby", len(players), "EASY", mode)
    for player_id in others:
        manager.join_lobby(lobby.lobby_id, player_id, player_id.title())
    return lobby.lobby_id


@pytest.fixture
def classic_game(manager, store, ring_board) -> Game:
    """Started two-player classic game (alice, bob) on ring_board."""
    lobby_id = open_lobby(manager, "classic")
    view = manager.start_game(lobby_id, "alice")
    return install_board(store, view.game_id, ring_board)


@pytest.fixture
def race_game(manager, store, corner_board) -> Game:
    """Started two-player race game (alice, bob) on corner_board."""
    lobby_id = open_lobby(manager, "race")
    view = manager.start_game(lobby_id, "alice")
    return install_board(store, view.game_id, corner_board)
