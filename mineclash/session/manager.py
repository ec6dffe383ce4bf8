"""
Session Manager - The single choke point for every session mutation.

LIFECYCLE:
1. Host creates a lobby -> players join until it is full
2. Host starts the game -> board generated server-side, lobby IN_GAME
3. Players reveal cells (classic: in turn; race: simultaneously)
4. Game finishes (board cleared, forfeit, or reaper timeout) -> lobby deleted
5. The reaper deletes the finished game after its grace period

Every handler follows the same shape:
    load document(s) by id -> pure transition -> write with version check
    -> return a sanitized view

Nothing is cached between requests. A rejected transition raises the
matching GameError before anything is written. A lost version race raises
a retryable ConflictError.
"""

from __future__ import annotations
from typing import Callable
import logging
import random
import time
import uuid

from ..engine_core.action import ActionResult
from ..engine_core.modes import resolve_forfeit, validator_for
from ..engine_core.state import Game, GameMode, GameStatus, LobbyStatus
from ..engine_core.view import GameView, LobbyView, build_game_view, build_lobby_view
from ..errors import ConflictError, NotFoundError
from . import lobby as lobby_rules
from .store import InMemorySessionStore, SessionStore

logger = logging.getLogger(__name__)

OPEN_LOBBY_STATUSES = (LobbyStatus.WAITING, LobbyStatus.FULL)


class SessionManager:
    """
    Handles lobby and game actions against a SessionStore.

    Usage:
        manager = SessionManager(store)
        lobby = manager.create_lobby("alice", "Alice", "Friday game", 2, "EASY")
        manager.join_lobby(lobby.lobby_id, "bob", "Bob")
        game = manager.start_game(lobby.lobby_id, "alice")
        view = manager.move(game.game_id, "alice", 4, 4)
    """

    def __init__(
        self,
        store: SessionStore | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.store = store or InMemorySessionStore()
        self._rng = rng or random.Random()
        self.clock = clock or time.time

    # =========================================================================
    # Lobbies
    # =========================================================================

    def create_lobby(
        self,
        player_id: str,
        player_name: str,
        name: str,
        max_players: int = 2,
        difficulty: str = "EASY",
        mode: str = GameMode.CLASSIC.value,
        password: str | None = None,
    ) -> LobbyView:
        """Create a lobby hosted by player_id."""
        self._ensure_not_in_open_lobby(player_id)
        result = lobby_rules.create_lobby(
            lobby_id=str(uuid.uuid4()),
            host_id=player_id,
            host_name=player_name,
            name=name,
            max_players=max_players,
            difficulty=difficulty,
            mode=mode,
            password=password,
            now=self.clock(),
        )
        lobby = self.store.insert_lobby(self._unwrap(result, "create_lobby", player_id))
        logger.info(
            "Lobby %s created by %s (%s, %s, max %d)",
            lobby.lobby_id, player_id, lobby.difficulty.value, lobby.mode.value, lobby.max_players,
        )
        return build_lobby_view(lobby)

    def list_lobbies(self) -> list[LobbyView]:
        """Open lobbies, newest first."""
        lobbies = self.store.list_lobbies(OPEN_LOBBY_STATUSES)
        lobbies.sort(key=lambda lobby: lobby.created_at, reverse=True)
        return [build_lobby_view(lobby) for lobby in lobbies]

    def get_lobby(self, lobby_id: str) -> LobbyView:
        return build_lobby_view(self.store.get_lobby(lobby_id))

    def join_lobby(
        self,
        lobby_id: str,
        player_id: str,
        player_name: str,
        password: str | None = None,
    ) -> LobbyView:
        lobby = self.store.get_lobby(lobby_id)
        result = lobby_rules.join_lobby(lobby, player_id, player_name, password)
        new_lobby = self._unwrap(result, "join_lobby", player_id)
        self._ensure_not_in_open_lobby(player_id, exclude=lobby_id)
        saved = self.store.save_lobby(new_lobby, expected_version=lobby.version)
        logger.info(
            "%s joined lobby %s (%d/%d)",
            player_id, lobby_id, len(saved.players), saved.max_players,
        )
        return build_lobby_view(saved)

    def leave_lobby(self, lobby_id: str, player_id: str) -> None:
        """Leave a lobby. The host leaving deletes it."""
        lobby = self.store.get_lobby(lobby_id)
        result = lobby_rules.leave_lobby(lobby, player_id)
        if not result.success:
            self._reject(result, "leave_lobby", player_id)

        if result.extra.get("deleted"):
            self.store.delete_lobby(lobby_id)
            logger.info("Lobby %s deleted, host %s left", lobby_id, player_id)
            return

        self.store.save_lobby(result.new_state, expected_version=lobby.version)
        logger.info("%s left lobby %s", player_id, lobby_id)

    def start_game(self, lobby_id: str, player_id: str) -> GameView:
        """
        Host starts a full lobby.

        Two writes: insert the game, then move the lobby to IN_GAME. If the
        lobby changed in between, the new game is removed and the start is
        rejected as a retryable conflict.
        """
        lobby = self.store.get_lobby(lobby_id)
        result = lobby_rules.start_game(
            lobby,
            player_id,
            game_id=str(uuid.uuid4()),
            now=self.clock(),
            rng=self._rng,
        )
        new_lobby = self._unwrap(result, "start_game", player_id)
        game = self.store.insert_game(result.extra["game"])

        try:
            self.store.save_lobby(new_lobby, expected_version=lobby.version)
        except (ConflictError, NotFoundError):
            self.store.discard_game(game.game_id)
            raise

        logger.info(
            "Game %s started from lobby %s (%s, %d players)",
            game.game_id, lobby_id, game.mode.value, len(game.players),
        )
        return build_game_view(game, player_id)

    # =========================================================================
    # Games
    # =========================================================================

    def get_game(self, game_id: str, viewer_id: str | None) -> GameView:
        return build_game_view(self.store.get_game(game_id), viewer_id)

    def move(self, game_id: str, player_id: str, row: int, col: int) -> GameView:
        """Classic (turn-based) reveal."""
        game = self.store.get_game(game_id)
        return self._apply_move(game, GameMode.CLASSIC, player_id, row, col)

    def race_move(self, game_id: str, player_id: str, row: int, col: int) -> GameView:
        """Race (simultaneous) reveal."""
        game = self.store.get_game(game_id)
        return self._apply_move(game, GameMode.RACE, player_id, row, col)

    def leave_game(self, game_id: str, player_id: str) -> str:
        """Forfeit a game in progress. Returns the winner id."""
        game = self.store.get_game(game_id)
        result = resolve_forfeit(game, player_id, now=self.clock())
        new_game = self._unwrap(result, "leave_game", player_id)
        saved = self.store.save_game(new_game, expected_version=game.version)
        self.store.discard_lobby(saved.lobby_id)
        logger.info("%s forfeited game %s, winner %s", player_id, game_id, saved.winner_id)
        return saved.winner_id

    def join_spectator(self, game_id: str, viewer_id: str) -> GameView:
        game = self.store.get_game(game_id)
        if game.has_player(viewer_id):
            raise ConflictError("You are a player in this game")
        if viewer_id in game.spectators:
            return build_game_view(game, viewer_id)

        new_game = game.clone()
        new_game.spectators.append(viewer_id)
        saved = self.store.save_game(new_game, expected_version=game.version)
        logger.info("%s is now spectating game %s", viewer_id, game_id)
        return build_game_view(saved, viewer_id)

    def leave_spectator(self, game_id: str, viewer_id: str) -> None:
        game = self.store.get_game(game_id)
        if viewer_id not in game.spectators:
            return
        new_game = game.clone()
        new_game.spectators = [s for s in new_game.spectators if s != viewer_id]
        self.store.save_game(new_game, expected_version=game.version)
        logger.info("%s stopped spectating game %s", viewer_id, game_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _apply_move(
        self,
        game: Game,
        mode: GameMode,
        player_id: str,
        row: int,
        col: int,
    ) -> GameView:
        result = validator_for(mode).apply(game, player_id, row, col, now=self.clock())
        new_game = self._unwrap(result, f"{mode.value}_move", player_id)
        saved = self.store.save_game(new_game, expected_version=game.version)

        logger.debug("Game %s: %s", game.game_id, "; ".join(result.changes))
        if saved.status == GameStatus.FINISHED:
            self.store.discard_lobby(saved.lobby_id)
            logger.info("Game %s finished, winner %s", saved.game_id, saved.winner_id)
        return build_game_view(saved, player_id)

    def _ensure_not_in_open_lobby(self, player_id: str, exclude: str | None = None) -> None:
        for other in self.store.list_lobbies(OPEN_LOBBY_STATUSES):
            if other.lobby_id == exclude:
                continue
            if other.host_id == player_id or other.has_player(player_id):
                raise ConflictError("You are already in a lobby. Leave it first.")

    def _unwrap(self, result: ActionResult, action: str, player_id: str):
        if not result.success:
            self._reject(result, action, player_id)
        return result.new_state

    @staticmethod
    def _reject(result: ActionResult, action: str, player_id: str):
        logger.debug(
            "Rejected %s by %s: %s (%s)",
            action, player_id, result.error, result.error_code.value if result.error_code else "",
        )
        raise result.to_error()
