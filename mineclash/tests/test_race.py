"""
Tests for race (simultaneous) moves and forfeits.

Tests:
- Per-player revealed sets over one layout
- First to clear wins
- Forfeit winner selection
"""

import pytest

from ..engine_core.modes import RaceMoveValidator, resolve_forfeit
from ..engine_core.state import DRAW, GameMode, GameStatus
from ..errors import ErrorCode
from .conftest import make_game


@pytest.fixture
def validator():
    return RaceMoveValidator()


class TestRaceMoves:
    """Tests for race reveals."""

    def test_players_reveal_independently(self, validator, ring_board):
        game = make_game(ring_board, mode=GameMode.RACE)

        game = validator.apply(game, "alice", 0, 0).new_state
        game = validator.apply(game, "bob", 0, 0).new_state

        assert game.race["alice"].revealed == {(0, 0)}
        assert game.race["bob"].revealed == {(0, 0)}
        assert game.get_player("alice").score == 1
        assert game.get_player("bob").score == 1
        # the shared board is never marked
        assert not any(cell.is_revealed for cell in game.board.iter_cells())

    def test_no_turns(self, validator, ring_board):
        game = make_game(ring_board, mode=GameMode.RACE)
        assert game.current_turn is None

        result = validator.apply(game, "bob", 2, 2)

        assert result.success

    def test_mine_penalty(self, validator, ring_board):
        game = make_game(ring_board, mode=GameMode.RACE)
        for cell in [(0, 0), (0, 1), (0, 2), (1, 0)]:
            game = validator.apply(game, "alice", *cell).new_state

        result = validator.apply(game, "alice", 1, 1)

        assert result.hit_mine
        assert result.points == -3
        assert result.new_state.get_player("alice").score == 1
        assert (1, 1) in result.new_state.race["alice"].revealed

    def test_own_revealed_cell_is_conflict(self, validator, ring_board):
        game = validator.apply(make_game(ring_board, mode=GameMode.RACE), "alice", 1, 1).new_state
        before = game.to_dict()

        result = validator.apply(game, "alice", 1, 1)

        assert result.error_code == ErrorCode.CONFLICT
        assert game.to_dict() == before

    def test_finished_player_is_conflict(self, validator, ring_board):
        game = make_game(ring_board, mode=GameMode.RACE, player_ids=("a", "b", "c"))
        game.race["a"].finished = True

        assert validator.apply(game, "a", 0, 0).error_code == ErrorCode.CONFLICT

    def test_stranger_rejected(self, validator, ring_board):
        game = make_game(ring_board, mode=GameMode.RACE)
        assert validator.apply(game, "mallory", 0, 0).error_code == ErrorCode.FORBIDDEN

    def test_out_of_bounds(self, validator, ring_board):
        game = make_game(ring_board, mode=GameMode.RACE)
        assert validator.apply(game, "alice", 9, 9).error_code == ErrorCode.CONFLICT


class TestRaceFinish:
    """First player to clear every safe cell wins."""

    def test_first_to_clear_wins(self, validator, corner_board):
        game = make_game(corner_board, mode=GameMode.RACE)
        game = validator.apply(game, "bob", 1, 1).new_state

        result = validator.apply(game, "alice", 2, 2, now=55.0)
        game = result.new_state

        assert result.game_over
        assert game.status == GameStatus.FINISHED
        assert game.winner_id == "alice"
        assert game.race["alice"].finished
        assert not game.race["bob"].finished
        assert game.finished_at == 55.0

    def test_loser_rejected_after_finish(self, validator, corner_board):
        game = make_game(corner_board, mode=GameMode.RACE)
        game = validator.apply(game, "alice", 2, 2).new_state

        result = validator.apply(game, "bob", 2, 2)

        assert result.error_code == ErrorCode.INVALID_STATE

    def test_mines_do_not_count_toward_clearing(self, validator, ring_board):
        game = make_game(ring_board, mode=GameMode.RACE)
        game = validator.apply(game, "alice", 1, 1).new_state
        for cell in [(0, 0), (0, 1), (0, 2), (1, 0), (1, 2), (2, 0), (2, 1)]:
            game = validator.apply(game, "alice", *cell).new_state
        assert game.status == GameStatus.PLAYING

        game = validator.apply(game, "alice", 2, 2).new_state

        assert game.status == GameStatus.FINISHED
        assert game.winner_id == "alice"


class TestForfeit:
    """Tests for resolve_forfeit()."""

    def test_remaining_player_wins(self, ring_board):
        result = resolve_forfeit(make_game(ring_board), "alice", now=9.0)

        assert result.game_over
        assert result.new_state.status == GameStatus.FINISHED
        assert result.new_state.winner_id == "bob"
        assert result.new_state.finished_at == 9.0

    def test_highest_remaining_score_wins(self, ring_board):
        game = make_game(ring_board, player_ids=("a", "b", "c"))
        game.get_player("a").score = 10
        game.get_player("b").score = 4
        game.get_player("c").score = 2

        result = resolve_forfeit(game, "a")

        assert result.new_state.winner_id == "b"

    def test_tied_remaining_is_draw(self, ring_board):
        game = make_game(ring_board, player_ids=("a", "b", "c"))
        game.get_player("b").score = 3
        game.get_player("c").score = 3

        assert resolve_forfeit(game, "a").new_state.winner_id == DRAW

    def test_finished_game(self, corner_board):
        game = make_game(corner_board)
        game.status = GameStatus.FINISHED

        assert resolve_forfeit(game, "alice").error_code == ErrorCode.INVALID_STATE

    def test_stranger(self, ring_board):
        assert resolve_forfeit(make_game(ring_board), "mallory").error_code == ErrorCode.FORBIDDEN

    def test_race_forfeit(self, ring_board):
        game = make_game(ring_board, mode=GameMode.RACE)
        assert resolve_forfeit(game, "bob").new_state.winner_id == "alice"
