"""
Session State - Lobby and Game documents.

Design principles:
- One document per lobby and per game, fetched by id on every request
- Every document carries a version for optimistic concurrency
- Serializable: to_dict()/from_dict() are what the store persists
- Transitions work on clone()d copies; the loaded document is never mutated
"""

from __future__ import annotations
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .board import Board, Coord
from .generator import Difficulty

DRAW = "draw"
TIMEOUT = "timeout"

MIN_PLAYERS = 2
MAX_PLAYERS = 6


class GameMode(str, Enum):
    """Closed set of play modes."""
    CLASSIC = "classic"  # turn-based, one shared board
    RACE = "race"  # simultaneous, per-player revealed sets


class LobbyStatus(str, Enum):
    """Lobby lifecycle: WAITING <-> FULL -> IN_GAME -> (deleted)."""
    WAITING = "waiting"
    FULL = "full"
    IN_GAME = "in_game"


class GameStatus(str, Enum):
    """Game lifecycle: PLAYING -> FINISHED."""
    PLAYING = "playing"
    FINISHED = "finished"


@dataclass
class LobbyPlayer:
    player_id: str
    name: str


@dataclass
class Lobby:
    """
    A pre-game waiting room.

    players[0] is always the host. The password is never stored in clear:
    password_hash is empty when the lobby is open to anyone.
    """
    lobby_id: str
    name: str
    host_id: str
    max_players: int
    difficulty: Difficulty
    mode: GameMode
    created_at: float
    players: list[LobbyPlayer] = field(default_factory=list)
    status: LobbyStatus = LobbyStatus.WAITING
    password_hash: str = ""
    password_salt: str = ""
    game_id: str | None = None
    version: int = 0

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    @property
    def is_open(self) -> bool:
        return self.status in {LobbyStatus.WAITING, LobbyStatus.FULL}

    def has_player(self, player_id: str) -> bool:
        return any(p.player_id == player_id for p in self.players)

    def clone(self) -> Lobby:
        return deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lobby_id": self.lobby_id,
            "name": self.name,
            "host_id": self.host_id,
            "max_players": self.max_players,
            "difficulty": self.difficulty.value,
            "mode": self.mode.value,
            "created_at": self.created_at,
            "players": [{"player_id": p.player_id, "name": p.name} for p in self.players],
            "status": self.status.value,
            "password_hash": self.password_hash,
            "password_salt": self.password_salt,
            "game_id": self.game_id,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Lobby:
        return cls(
            lobby_id=data["lobby_id"],
            name=data["name"],
            host_id=data["host_id"],
            max_players=data["max_players"],
            difficulty=Difficulty(data["difficulty"]),
            mode=GameMode(data["mode"]),
            created_at=data["created_at"],
            players=[LobbyPlayer(**p) for p in data.get("players", [])],
            status=LobbyStatus(data["status"]),
            password_hash=data.get("password_hash", ""),
            password_salt=data.get("password_salt", ""),
            game_id=data.get("game_id"),
            version=data.get("version", 0),
        )


@dataclass
class GamePlayer:
    player_id: str
    name: str
    score: int = 0


@dataclass
class RaceProgress:
    """One player's private view of a race: what they revealed, and whether they cleared it."""
    revealed: set[Coord] = field(default_factory=set)
    finished: bool = False


@dataclass
class Game:
    """
    One played match.

    board holds the authoritative mine layout. In classic mode its cell
    states are the shared reveal state; in race mode the board stays hidden
    and each player's progress lives in race[player_id].
    """
    game_id: str
    lobby_id: str
    mode: GameMode
    difficulty: Difficulty
    board: Board
    started_at: float
    players: list[GamePlayer] = field(default_factory=list)
    status: GameStatus = GameStatus.PLAYING

    # Classic mode
    turn_order: list[str] = field(default_factory=list)
    current_turn_index: int = 0
    mines_revealed: int = 0

    # Race mode
    race: dict[str, RaceProgress] = field(default_factory=dict)

    winner_id: str | None = None
    finished_at: float | None = None
    last_move_by: str | None = None
    last_move_cell: Coord | None = None
    spectators: list[str] = field(default_factory=list)
    version: int = 0

    @property
    def rows(self) -> int:
        return self.board.rows

    @property
    def cols(self) -> int:
        return self.board.cols

    @property
    def mine_count(self) -> int:
        return self.board.mine_count

    @property
    def current_turn(self) -> str | None:
        """Player whose turn it is (classic only)."""
        if self.mode != GameMode.CLASSIC or not self.turn_order:
            return None
        return self.turn_order[self.current_turn_index % len(self.turn_order)]

    def get_player(self, player_id: str) -> GamePlayer | None:
        for p in self.players:
            if p.player_id == player_id:
                return p
        return None

    def has_player(self, player_id: str) -> bool:
        return self.get_player(player_id) is not None

    def clone(self) -> Game:
        return deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "game_id": self.game_id,
            "lobby_id": self.lobby_id,
            "mode": self.mode.value,
            "difficulty": self.difficulty.value,
            "board": self.board.to_dict(),
            "started_at": self.started_at,
            "players": [
                {"player_id": p.player_id, "name": p.name, "score": p.score}
                for p in self.players
            ],
            "status": self.status.value,
            "turn_order": list(self.turn_order),
            "current_turn_index": self.current_turn_index,
            "mines_revealed": self.mines_revealed,
            "race": {
                player_id: {
                    "revealed": sorted([r, c] for r, c in progress.revealed),
                    "finished": progress.finished,
                }
                for player_id, progress in self.race.items()
            },
            "winner_id": self.winner_id,
            "finished_at": self.finished_at,
            "last_move_by": self.last_move_by,
            "last_move_cell": list(self.last_move_cell) if self.last_move_cell else None,
            "spectators": list(self.spectators),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Game:
        last_cell = data.get("last_move_cell")
        return cls(
            game_id=data["game_id"],
            lobby_id=data["lobby_id"],
            mode=GameMode(data["mode"]),
            difficulty=Difficulty(data["difficulty"]),
            board=Board.from_dict(data["board"]),
            started_at=data["started_at"],
            players=[GamePlayer(**p) for p in data.get("players", [])],
            status=GameStatus(data["status"]),
            turn_order=list(data.get("turn_order", [])),
            current_turn_index=data.get("current_turn_index", 0),
            mines_revealed=data.get("mines_revealed", 0),
            race={
                player_id: RaceProgress(
                    revealed={(r, c) for r, c in raw.get("revealed", [])},
                    finished=raw.get("finished", False),
                )
                for player_id, raw in data.get("race", {}).items()
            },
            winner_id=data.get("winner_id"),
            finished_at=data.get("finished_at"),
            last_move_by=data.get("last_move_by"),
            last_move_cell=tuple(last_cell) if last_cell else None,
            spectators=list(data.get("spectators", [])),
            version=data.get("version", 0),
        )
