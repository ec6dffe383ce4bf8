"""
Tests for the session manager.

Tests:
- Lobby lifecycle through the store
- Classic and race games end to end
- Companion cleanup when games finish
- Version conflicts between concurrent writers
"""

import pytest

from ..engine_core.state import GameStatus, LobbyStatus
from ..errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from ..session.manager import SessionManager
from ..session.store import InMemorySessionStore


class TestLobbies:
    """Lobby actions through the manager."""

    def test_create_and_get(self, manager):
        created = manager.create_lobby("alice", "Alice", "Friday", 2, "EASY")
        fetched = manager.get_lobby(created.lobby_id)

        assert fetched.lobby_id == created.lobby_id
        assert fetched.players[0].player_id == "alice"
        assert fetched.status == "waiting"

    def test_invalid_input_raises(self, manager):
        with pytest.raises(InvalidInputError):
            manager.create_lobby("alice", "Alice", "", 2, "EASY")

    def test_one_open_lobby_per_player(self, manager):
        manager.create_lobby("alice", "Alice", "First", 2, "EASY")
        with pytest.raises(ConflictError):
            manager.create_lobby("alice", "Alice", "Second", 2, "EASY")

    def test_cannot_join_while_in_another_lobby(self, manager):
        manager.create_lobby("alice", "Alice", "First", 2, "EASY")
        other = manager.create_lobby("bob", "Bob", "Second", 2, "EASY")

        with pytest.raises(ConflictError):
            manager.join_lobby(other.lobby_id, "alice", "Alice")

    def test_join_fills(self, manager):
        lobby = manager.create_lobby("alice", "Alice", "Friday", 2, "EASY")
        joined = manager.join_lobby(lobby.lobby_id, "bob", "Bob")

        assert joined.status == "full"
        assert [p.player_id for p in joined.players] == ["alice", "bob"]

    def test_wrong_password(self, manager):
        lobby = manager.create_lobby("alice", "Alice", "Private", 2, "EASY", password="pw")
        with pytest.raises(UnauthorizedError):
            manager.join_lobby(lobby.lobby_id, "bob", "Bob", password="nope")

    def test_join_missing_lobby(self, manager):
        with pytest.raises(NotFoundError):
            manager.join_lobby("missing", "bob", "Bob")

    def test_list_newest_first_and_open_only(self, manager, clock):
        first = manager.create_lobby("alice", "Alice", "Old", 2, "EASY")
        clock.advance(10)
        second = manager.create_lobby("bob", "Bob", "New", 2, "EASY")
        clock.advance(10)
        started = manager.create_lobby("carol", "Carol", "Started", 2, "EASY")
        manager.join_lobby(started.lobby_id, "dave", "Dave")
        manager.start_game(started.lobby_id, "carol")

        listed = [lobby.lobby_id for lobby in manager.list_lobbies()]

        assert listed == [second.lobby_id, first.lobby_id]

    def test_host_leaving_deletes_lobby(self, manager):
        lobby = manager.create_lobby("alice", "Alice", "Friday", 2, "EASY")
        manager.join_lobby(lobby.lobby_id, "bob", "Bob")

        manager.leave_lobby(lobby.lobby_id, "alice")

        with pytest.raises(NotFoundError):
            manager.get_lobby(lobby.lobby_id)

    def test_player_leaving_reopens(self, manager):
        lobby = manager.create_lobby("alice", "Alice", "Friday", 2, "EASY")
        manager.join_lobby(lobby.lobby_id, "bob", "Bob")

        manager.leave_lobby(lobby.lobby_id, "bob")

        fetched = manager.get_lobby(lobby.lobby_id)
        assert fetched.status == "waiting"
        assert len(fetched.players) == 1

    def test_stranger_leaving(self, manager):
        lobby = manager.create_lobby("alice", "Alice", "Friday", 2, "EASY")
        with pytest.raises(ForbiddenError):
            manager.leave_lobby(lobby.lobby_id, "mallory")


class TestStartGame:
    """Starting games."""

    def test_start_with_only_host(self, manager):
        """Two-seat lobby with one player cannot start."""
        lobby = manager.create_lobby("alice", "Alice", "Friday", 2, "EASY")
        with pytest.raises(InvalidStateError):
            manager.start_game(lobby.lobby_id, "alice")

    def test_non_host_cannot_start(self, manager):
        lobby = manager.create_lobby("alice", "Alice", "Friday", 2, "EASY")
        manager.join_lobby(lobby.lobby_id, "bob", "Bob")
        with pytest.raises(ForbiddenError):
            manager.start_game(lobby.lobby_id, "bob")

    def test_start_links_lobby_and_game(self, manager, store):
        lobby = manager.create_lobby("alice", "Alice", "Friday", 2, "MEDIUM")
        manager.join_lobby(lobby.lobby_id, "bob", "Bob")

        view = manager.start_game(lobby.lobby_id, "alice")

        stored_lobby = store.get_lobby(lobby.lobby_id)
        assert stored_lobby.status == LobbyStatus.IN_GAME
        assert stored_lobby.game_id == view.game_id
        assert (view.rows, view.cols, view.mine_count) == (15, 15, 30)
        assert view.current_turn == "alice"
        assert all(not cell.is_mine for row in view.board for cell in row)

    def test_lost_lobby_race_removes_game(self, clock):
        """If the lobby changes between read and write, no game is left behind."""

        class RacingStore(InMemorySessionStore):
            def save_lobby(self, lobby, expected_version):
                if lobby.status == LobbyStatus.IN_GAME:
                    raise ConflictError("stale", retryable=True)
                return super().save_lobby(lobby, expected_version)

        store = RacingStore()
        manager = SessionManager(store, clock=clock)
        lobby = manager.create_lobby("alice", "Alice", "Friday", 2, "EASY")
        manager.join_lobby(lobby.lobby_id, "bob", "Bob")

        with pytest.raises(ConflictError) as exc_info:
            manager.start_game(lobby.lobby_id, "alice")

        assert exc_info.value.retryable
        assert store.list_games() == []
        assert store.get_lobby(lobby.lobby_id).status == LobbyStatus.FULL


class TestClassicGames:
    """Classic games through the manager."""

    def test_first_turn_mine(self, manager, classic_game):
        """Hitting a mine first floors the score at 0 and passes the turn."""
        view = manager.move(classic_game.game_id, "alice", 1, 1)

        alice = next(p for p in view.players if p.player_id == "alice")
        assert alice.score == 0
        assert view.current_turn == "bob"
        assert view.mines_revealed == 1

    def test_not_your_turn(self, manager, store, classic_game):
        before = store.get_game(classic_game.game_id)

        with pytest.raises(ForbiddenError):
            manager.move(classic_game.game_id, "bob", 0, 0)

        after = store.get_game(classic_game.game_id)
        assert after.to_dict() == before.to_dict()

    def test_repeat_reveal_is_noop(self, manager, store, classic_game):
        manager.move(classic_game.game_id, "alice", 0, 0)
        before = store.get_game(classic_game.game_id)

        with pytest.raises(ConflictError) as exc_info:
            manager.move(classic_game.game_id, "alice", 0, 0)

        assert not exc_info.value.retryable
        assert store.get_game(classic_game.game_id).to_dict() == before.to_dict()

    def test_race_move_on_classic_game(self, manager, classic_game):
        with pytest.raises(InvalidStateError):
            manager.race_move(classic_game.game_id, "alice", 0, 0)

    def test_finishing_deletes_lobby(self, manager, store, classic_game):
        for cell in [(0, 0), (0, 1), (0, 2), (1, 0), (1, 2), (2, 0), (2, 1), (2, 2)]:
            view = manager.move(classic_game.game_id, "alice", *cell)

        assert view.status == "finished"
        assert view.winner_id == "alice"
        assert view.board[1][1].is_mine
        with pytest.raises(NotFoundError):
            store.get_lobby(classic_game.lobby_id)
        # the game stays readable for the post-game summary
        assert store.get_game(classic_game.game_id).status == GameStatus.FINISHED

    def test_view_has_no_hidden_mines(self, manager, classic_game):
        view = manager.move(classic_game.game_id, "alice", 0, 0)
        hidden = [cell for row in view.board for cell in row if cell.state.value == "hidden"]

        assert len(hidden) == 8
        assert not any(cell.is_mine or cell.neighbor_mines for cell in hidden)


class TestRaceGames:
    """Race games through the manager."""

    def test_first_to_clear(self, manager, race_game):
        view = manager.race_move(race_game.game_id, "alice", 2, 2)

        assert view.status == "finished"
        assert view.winner_id == "alice"
        with pytest.raises(InvalidStateError):
            manager.race_move(race_game.game_id, "bob", 2, 2)

    def test_players_see_only_their_reveals(self, manager, race_game):
        manager.race_move(race_game.game_id, "alice", 1, 1)

        bob_view = manager.get_game(race_game.game_id, "bob")
        alice_view = manager.get_game(race_game.game_id, "alice")

        assert bob_view.board[1][1].neighbor_mines == 0
        assert alice_view.board[1][1].neighbor_mines == 1
        assert bob_view.last_move_cell is None
        assert alice_view.last_move_cell == (1, 1)

    def test_classic_move_on_race_game(self, manager, race_game):
        with pytest.raises(InvalidStateError):
            manager.move(race_game.game_id, "alice", 0, 0)


class TestLeaveGame:
    """Forfeits."""

    def test_forfeit(self, manager, store, classic_game):
        winner = manager.leave_game(classic_game.game_id, "alice")

        assert winner == "bob"
        assert store.get_game(classic_game.game_id).status == GameStatus.FINISHED
        with pytest.raises(NotFoundError):
            store.get_lobby(classic_game.lobby_id)

    def test_forfeit_finished_game(self, manager, classic_game):
        manager.leave_game(classic_game.game_id, "alice")
        with pytest.raises(InvalidStateError):
            manager.leave_game(classic_game.game_id, "bob")

    def test_forfeit_by_stranger(self, manager, classic_game):
        with pytest.raises(ForbiddenError):
            manager.leave_game(classic_game.game_id, "mallory")


class TestSpectators:
    """Spectating games."""

    def test_join_and_leave(self, manager, classic_game):
        view = manager.join_spectator(classic_game.game_id, "carol")
        assert view.is_spectator
        assert view.spectators == ["carol"]

        again = manager.join_spectator(classic_game.game_id, "carol")
        assert again.spectators == ["carol"]

        manager.leave_spectator(classic_game.game_id, "carol")
        assert manager.get_game(classic_game.game_id, "carol").spectators == []

    def test_player_cannot_spectate(self, manager, classic_game):
        with pytest.raises(ConflictError):
            manager.join_spectator(classic_game.game_id, "alice")

    def test_missing_game(self, manager):
        with pytest.raises(NotFoundError):
            manager.join_spectator("missing", "carol")


class TestConcurrency:
    """Version checks between concurrent writers."""

    def test_stale_write_is_retryable_conflict(self, manager, store, race_game):
        # Both handlers load the same version
        seen_by_bob = store.get_game(race_game.game_id)

        manager.race_move(race_game.game_id, "alice", 1, 1)

        bob_result = seen_by_bob.clone()
        bob_result.get_player("bob").score = 1
        with pytest.raises(ConflictError) as exc_info:
            store.save_game(bob_result, expected_version=seen_by_bob.version)

        assert exc_info.value.retryable
        # alice's write survived
        stored = store.get_game(race_game.game_id)
        assert (1, 1) in stored.race["alice"].revealed
        assert stored.get_player("bob").score == 0

    def test_interleaved_move_loses(self, clock, corner_board):
        """A move computed from a stale read is rejected, not silently applied."""

        class InterleavingStore(InMemorySessionStore):
            stale = None

            def get_game(self, game_id):
                if self.stale is not None:
                    stale, self.stale = self.stale, None
                    return stale
                return super().get_game(game_id)

        store = InterleavingStore()
        manager = SessionManager(store, clock=clock)
        lobby = manager.create_lobby("alice", "Alice", "Race", 2, "EASY", "race")
        manager.join_lobby(lobby.lobby_id, "bob", "Bob")
        game_id = manager.start_game(lobby.lobby_id, "alice").game_id
        game = store.get_game(game_id)
        game.board = corner_board
        store.save_game(game, expected_version=game.version)

        # bob's handler reads, then alice's handler commits first
        read_by_bob = store.get_game(game_id)
        manager.race_move(game_id, "alice", 1, 1)

        store.stale = read_by_bob
        with pytest.raises(ConflictError) as exc_info:
            manager.race_move(game_id, "bob", 0, 1)

        assert exc_info.value.retryable
        stored = store.get_game(game_id)
        assert stored.race["alice"].revealed == {(1, 1)}
        assert stored.race["bob"].revealed == set()

        # retrying against the fresh version succeeds
        view = manager.race_move(game_id, "bob", 0, 1)
        assert view.board[0][1].neighbor_mines == 1
