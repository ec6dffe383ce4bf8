"""
Lobby Transitions - The pre-game half of the session state machine.

    WAITING <-> FULL -> IN_GAME -> (deleted)

Each transition takes the loaded Lobby and returns an ActionResult holding
the new Lobby; the input is never mutated. start_game also builds the Game.
"""

from __future__ import annotations
import hashlib
import hmac
import random
import secrets
import time

from ..engine_core.action import ActionResult
from ..engine_core.generator import Difficulty, generate_board, preset_for
from ..engine_core.state import (
    MAX_PLAYERS,
    MIN_PLAYERS,
    Game,
    GameMode,
    GamePlayer,
    Lobby,
    LobbyPlayer,
    LobbyStatus,
    RaceProgress,
)
from ..errors import ErrorCode, InvalidInputError

MAX_NAME_LENGTH = 50


def hash_password(password: str, salt: str | None = None) -> tuple[str, str]:
    """Salted SHA-256 of a lobby password. Returns (hash, salt)."""
    salt = salt if salt is not None else secrets.token_hex(16)
    digest = hashlib.sha256((password + salt).encode("utf-8")).hexdigest()
    return digest, salt


def password_matches(lobby: Lobby, password: str | None) -> bool:
    """True if the lobby is open or the password hashes to the stored value."""
    if not lobby.has_password:
        return True
    candidate, _ = hash_password(password or "", lobby.password_salt)
    return hmac.compare_digest(candidate, lobby.password_hash)


def create_lobby(
    lobby_id: str,
    host_id: str,
    host_name: str,
    name: str,
    max_players: int,
    difficulty: str,
    mode: str = GameMode.CLASSIC.value,
    password: str | None = None,
    now: float | None = None,
) -> ActionResult[Lobby]:
    """Validate the request and build a new lobby with the host seated."""
    name = (name or "").strip()
    if not 1 <= len(name) <= MAX_NAME_LENGTH:
        return ActionResult.failure(
            f"Name must be 1-{MAX_NAME_LENGTH} characters", ErrorCode.INVALID_INPUT
        )
    try:
        preset_for(difficulty)
    except InvalidInputError as e:
        return ActionResult.failure(str(e), ErrorCode.INVALID_INPUT)
    try:
        game_mode = GameMode(mode)
    except ValueError:
        return ActionResult.failure(f"Invalid game mode: {mode}", ErrorCode.INVALID_INPUT)
    if not isinstance(max_players, int) or not MIN_PLAYERS <= max_players <= MAX_PLAYERS:
        return ActionResult.failure(
            f"max_players must be between {MIN_PLAYERS} and {MAX_PLAYERS}",
            ErrorCode.INVALID_INPUT,
        )

    password_hash = password_salt = ""
    if password and password.strip():
        password_hash, password_salt = hash_password(password)

    lobby = Lobby(
        lobby_id=lobby_id,
        name=name,
        host_id=host_id,
        max_players=max_players,
        difficulty=Difficulty(difficulty),
        mode=game_mode,
        created_at=time.time() if now is None else now,
        players=[LobbyPlayer(player_id=host_id, name=host_name)],
        password_hash=password_hash,
        password_salt=password_salt,
    )
    return ActionResult.success_with_state(lobby, changes=[f"{host_name} created lobby {name}"])


def join_lobby(
    lobby: Lobby,
    player_id: str,
    player_name: str,
    password: str | None = None,
) -> ActionResult[Lobby]:
    """Seat a player; the lobby becomes FULL when the last seat is taken."""
    if not password_matches(lobby, password):
        return ActionResult.failure("Incorrect password", ErrorCode.UNAUTHORIZED)
    if lobby.has_player(player_id):
        return ActionResult.failure("You are already in this lobby", ErrorCode.CONFLICT)
    if len(lobby.players) >= lobby.max_players:
        return ActionResult.failure("Lobby is full", ErrorCode.CONFLICT)
    if lobby.status != LobbyStatus.WAITING:
        return ActionResult.failure("Lobby is not accepting players", ErrorCode.CONFLICT)

    new_lobby = lobby.clone()
    new_lobby.players.append(LobbyPlayer(player_id=player_id, name=player_name))
    if len(new_lobby.players) >= new_lobby.max_players:
        new_lobby.status = LobbyStatus.FULL
    return ActionResult.success_with_state(
        new_lobby, changes=[f"{player_name} joined lobby {lobby.name}"]
    )


def leave_lobby(lobby: Lobby, player_id: str) -> ActionResult[Lobby]:
    """
    Remove a player from a lobby.

    The host leaving deletes the lobby (no host migration): the result then
    has extra["deleted"] set and no new lobby.
    """
    if not lobby.has_player(player_id) and lobby.host_id != player_id:
        return ActionResult.failure("You are not in this lobby", ErrorCode.FORBIDDEN)

    if lobby.host_id == player_id:
        return ActionResult(
            success=True,
            changes=[f"Host left, lobby {lobby.name} closed"],
            extra={"deleted": True},
        )

    if lobby.status == LobbyStatus.IN_GAME:
        return ActionResult.failure(
            "Game already started, leave the game instead", ErrorCode.INVALID_STATE
        )

    new_lobby = lobby.clone()
    new_lobby.players = [p for p in new_lobby.players if p.player_id != player_id]
    new_lobby.status = LobbyStatus.WAITING
    return ActionResult.success_with_state(
        new_lobby,
        changes=[f"{player_id} left lobby {lobby.name}"],
        extra={"deleted": False},
    )


def start_game(
    lobby: Lobby,
    player_id: str,
    game_id: str,
    now: float | None = None,
    rng: random.Random | None = None,
) -> ActionResult[Lobby]:
    """
    Host starts a full lobby.

    Generates the board around a server-chosen safe cell and builds the
    Game. The result's new_state is the IN_GAME lobby; the game is in
    extra["game"].
    """
    if lobby.host_id != player_id:
        return ActionResult.failure("Only the host can start the game", ErrorCode.FORBIDDEN)
    if lobby.status != LobbyStatus.FULL:
        return ActionResult.failure("Lobby is not full", ErrorCode.INVALID_STATE)

    rng = rng or random.Random()
    config = preset_for(lobby.difficulty)
    board = generate_board(
        config.rows,
        config.cols,
        config.mines,
        safe_row=rng.randrange(config.rows),
        safe_col=rng.randrange(config.cols),
        rng=rng,
    )

    host_first = [lobby.host_id] + [
        p.player_id for p in lobby.players if p.player_id != lobby.host_id
    ]
    game = Game(
        game_id=game_id,
        lobby_id=lobby.lobby_id,
        mode=lobby.mode,
        difficulty=lobby.difficulty,
        board=board,
        started_at=time.time() if now is None else now,
        players=[GamePlayer(player_id=p.player_id, name=p.name) for p in lobby.players],
    )
    if lobby.mode == GameMode.CLASSIC:
        game.turn_order = host_first
    else:
        game.race = {p.player_id: RaceProgress() for p in lobby.players}

    new_lobby = lobby.clone()
    new_lobby.status = LobbyStatus.IN_GAME
    new_lobby.game_id = game_id
    return ActionResult.success_with_state(
        new_lobby,
        changes=[f"Game {game_id} started from lobby {lobby.name}"],
        extra={"game": game},
    )
