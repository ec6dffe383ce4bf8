"""
Session Store - Where lobby and game documents live between requests.

PERSISTENCE RULES:
- All session state lives here; request handlers keep nothing in process
- Every document has a version; writes are compare-and-swap on it
- A write whose expected version is stale raises a retryable ConflictError
  instead of silently overwriting the concurrent winner
- Deleting something already gone raises NotFoundError; cleanup paths use
  discard_*() which swallow it

Two implementations:
- InMemorySessionStore: single process, tests and development
- SqlSessionStore: SQLAlchemy, survives a process restart (e.g. SQLite file)
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Iterable
import logging
import threading

from sqlalchemy import JSON, Column, Float, Integer, String, create_engine, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..engine_core.state import Game, GameStatus, Lobby, LobbyStatus
from ..errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


def _stale(kind: str, doc_id: str) -> ConflictError:
    return ConflictError(
        f"{kind} {doc_id} was modified concurrently, retry",
        retryable=True,
    )


class SessionStore(ABC):
    """
    Document store for lobbies and games.

    Reads return detached copies: mutating a returned document never
    changes what is stored until it is saved.
    """

    # Lobbies

    @abstractmethod
    def get_lobby(self, lobby_id: str) -> Lobby:
        """Raises NotFoundError if absent."""

    @abstractmethod
    def list_lobbies(self, statuses: Iterable[LobbyStatus] | None = None) -> list[Lobby]:
        """All lobbies, optionally filtered by status."""

    @abstractmethod
    def insert_lobby(self, lobby: Lobby) -> Lobby:
        """Store a new lobby at version 1."""

    @abstractmethod
    def save_lobby(self, lobby: Lobby, expected_version: int) -> Lobby:
        """Replace a lobby if its stored version is expected_version."""

    @abstractmethod
    def delete_lobby(self, lobby_id: str) -> None:
        """Raises NotFoundError if absent."""

    # Games

    @abstractmethod
    def get_game(self, game_id: str) -> Game:
        """Raises NotFoundError if absent."""

    @abstractmethod
    def list_games(self, statuses: Iterable[GameStatus] | None = None) -> list[Game]:
        """All games, optionally filtered by status."""

    @abstractmethod
    def insert_game(self, game: Game) -> Game:
        """Store a new game at version 1."""

    @abstractmethod
    def save_game(self, game: Game, expected_version: int) -> Game:
        """Replace a game if its stored version is expected_version."""

    @abstractmethod
    def delete_game(self, game_id: str) -> None:
        """Raises NotFoundError if absent."""

    # Best-effort cleanup

    def discard_lobby(self, lobby_id: str | None) -> bool:
        """Delete a lobby if it still exists. Returns whether it did."""
        if not lobby_id:
            return False
        try:
            self.delete_lobby(lobby_id)
            return True
        except NotFoundError:
            logger.debug("Lobby %s already deleted", lobby_id)
            return False

    def discard_game(self, game_id: str | None) -> bool:
        """Delete a game if it still exists. Returns whether it did."""
        if not game_id:
            return False
        try:
            self.delete_game(game_id)
            return True
        except NotFoundError:
            logger.debug("Game %s already deleted", game_id)
            return False


class InMemorySessionStore(SessionStore):
    """
    Process-local store.

    Documents are kept serialized, so every read builds a fresh object and
    no caller can alias stored state.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._lobbies: dict[str, dict] = {}
        self._games: dict[str, dict] = {}

    def get_lobby(self, lobby_id: str) -> Lobby:
        with self._lock:
            data = self._lobbies.get(lobby_id)
        if data is None:
            raise NotFoundError(f"Lobby {lobby_id} not found")
        return Lobby.from_dict(data)

    def list_lobbies(self, statuses=None) -> list[Lobby]:
        wanted = {LobbyStatus(s) for s in statuses} if statuses else None
        with self._lock:
            docs = list(self._lobbies.values())
        lobbies = [Lobby.from_dict(d) for d in docs]
        return [lobby for lobby in lobbies if wanted is None or lobby.status in wanted]

    def insert_lobby(self, lobby: Lobby) -> Lobby:
        with self._lock:
            if lobby.lobby_id in self._lobbies:
                raise ConflictError(f"Lobby {lobby.lobby_id} already exists")
            lobby = lobby.clone()
            lobby.version = 1
            self._lobbies[lobby.lobby_id] = lobby.to_dict()
        return lobby

    def save_lobby(self, lobby: Lobby, expected_version: int) -> Lobby:
        with self._lock:
            current = self._lobbies.get(lobby.lobby_id)
            if current is None:
                raise NotFoundError(f"Lobby {lobby.lobby_id} not found")
            if current["version"] != expected_version:
                raise _stale("Lobby", lobby.lobby_id)
            lobby = lobby.clone()
            lobby.version = expected_version + 1
            self._lobbies[lobby.lobby_id] = lobby.to_dict()
        return lobby

    def delete_lobby(self, lobby_id: str) -> None:
        with self._lock:
            if self._lobbies.pop(lobby_id, None) is None:
                raise NotFoundError(f"Lobby {lobby_id} not found")

    def get_game(self, game_id: str) -> Game:
        with self._lock:
            data = self._games.get(game_id)
        if data is None:
            raise NotFoundError(f"Game {game_id} not found")
        return Game.from_dict(data)

    def list_games(self, statuses=None) -> list[Game]:
        wanted = {GameStatus(s) for s in statuses} if statuses else None
        with self._lock:
            docs = list(self._games.values())
        games = [Game.from_dict(d) for d in docs]
        return [g for g in games if wanted is None or g.status in wanted]

    def insert_game(self, game: Game) -> Game:
        with self._lock:
            if game.game_id in self._games:
                raise ConflictError(f"Game {game.game_id} already exists")
            game = game.clone()
            game.version = 1
            self._games[game.game_id] = game.to_dict()
        return game

    def save_game(self, game: Game, expected_version: int) -> Game:
        with self._lock:
            current = self._games.get(game.game_id)
            if current is None:
                raise NotFoundError(f"Game {game.game_id} not found")
            if current["version"] != expected_version:
                raise _stale("Game", game.game_id)
            game = game.clone()
            game.version = expected_version + 1
            self._games[game.game_id] = game.to_dict()
        return game

    def delete_game(self, game_id: str) -> None:
        with self._lock:
            if self._games.pop(game_id, None) is None:
                raise NotFoundError(f"Game {game_id} not found")


# =============================================================================
# SQL store
# =============================================================================

Base = declarative_base()


class LobbyRecord(Base):
    __tablename__ = "lobbies"
    id = Column(String, primary_key=True)
    status = Column(String, index=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(Float)
    document = Column(JSON)  # Lobby.to_dict()


class GameRecord(Base):
    __tablename__ = "games"
    id = Column(String, primary_key=True)
    lobby_id = Column(String, index=True)
    status = Column(String, index=True)
    version = Column(Integer, nullable=False, default=1)
    started_at = Column(Float)
    document = Column(JSON)  # Game.to_dict(), authoritative board included


class SqlSessionStore(SessionStore):
    """
    SQLAlchemy-backed store.

    Usage:
        store = SqlSessionStore("sqlite:///mineclash.db")

    Saves are a single UPDATE ... WHERE version = :expected; zero rows
    touched means someone else won (ConflictError) or the row is gone
    (NotFoundError).
    """

    def __init__(self, database_url: str):
        engine_kwargs = {}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
        self.engine = create_engine(database_url, **engine_kwargs)
        Base.metadata.create_all(self.engine)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    # Lobbies

    def get_lobby(self, lobby_id: str) -> Lobby:
        with self._session_factory() as session:
            record = session.get(LobbyRecord, lobby_id)
            if record is None:
                raise NotFoundError(f"Lobby {lobby_id} not found")
            return self._to_lobby(record)

    def list_lobbies(self, statuses=None) -> list[Lobby]:
        query = select(LobbyRecord)
        if statuses:
            query = query.where(LobbyRecord.status.in_([LobbyStatus(s).value for s in statuses]))
        with self._session_factory() as session:
            return [self._to_lobby(r) for r in session.scalars(query)]

    def insert_lobby(self, lobby: Lobby) -> Lobby:
        lobby = lobby.clone()
        lobby.version = 1
        record = LobbyRecord(
            id=lobby.lobby_id,
            status=lobby.status.value,
            version=1,
            created_at=lobby.created_at,
            document=lobby.to_dict(),
        )
        try:
            with self._session_factory() as session, session.begin():
                session.add(record)
        except IntegrityError:
            raise ConflictError(f"Lobby {lobby.lobby_id} already exists")
        return lobby

    def save_lobby(self, lobby: Lobby, expected_version: int) -> Lobby:
        lobby = lobby.clone()
        lobby.version = expected_version + 1
        with self._session_factory() as session, session.begin():
            result = session.execute(
                update(LobbyRecord)
                .where(LobbyRecord.id == lobby.lobby_id, LobbyRecord.version == expected_version)
                .values(status=lobby.status.value, version=lobby.version, document=lobby.to_dict())
            )
            if result.rowcount == 0:
                if session.get(LobbyRecord, lobby.lobby_id) is None:
                    raise NotFoundError(f"Lobby {lobby.lobby_id} not found")
                raise _stale("Lobby", lobby.lobby_id)
        return lobby

    def delete_lobby(self, lobby_id: str) -> None:
        with self._session_factory() as session, session.begin():
            result = session.execute(delete(LobbyRecord).where(LobbyRecord.id == lobby_id))
            if result.rowcount == 0:
                raise NotFoundError(f"Lobby {lobby_id} not found")

    # Games

    def get_game(self, game_id: str) -> Game:
        with self._session_factory() as session:
            record = session.get(GameRecord, game_id)
            if record is None:
                raise NotFoundError(f"Game {game_id} not found")
            return self._to_game(record)

    def list_games(self, statuses=None) -> list[Game]:
        query = select(GameRecord)
        if statuses:
            query = query.where(GameRecord.status.in_([GameStatus(s).value for s in statuses]))
        with self._session_factory() as session:
            return [self._to_game(r) for r in session.scalars(query)]

    def insert_game(self, game: Game) -> Game:
        game = game.clone()
        game.version = 1
        record = GameRecord(
            id=game.game_id,
            lobby_id=game.lobby_id,
            status=game.status.value,
            version=1,
            started_at=game.started_at,
            document=game.to_dict(),
        )
        try:
            with self._session_factory() as session, session.begin():
                session.add(record)
        except IntegrityError:
            raise ConflictError(f"Game {game.game_id} already exists")
        return game

    def save_game(self, game: Game, expected_version: int) -> Game:
        game = game.clone()
        game.version = expected_version + 1
        with self._session_factory() as session, session.begin():
            result = session.execute(
                update(GameRecord)
                .where(GameRecord.id == game.game_id, GameRecord.version == expected_version)
                .values(status=game.status.value, version=game.version, document=game.to_dict())
            )
            if result.rowcount == 0:
                if session.get(GameRecord, game.game_id) is None:
                    raise NotFoundError(f"Game {game.game_id} not found")
                raise _stale("Game", game.game_id)
        return game

    def delete_game(self, game_id: str) -> None:
        with self._session_factory() as session, session.begin():
            result = session.execute(delete(GameRecord).where(GameRecord.id == game_id))
            if result.rowcount == 0:
                raise NotFoundError(f"Game {game_id} not found")

    @staticmethod
    def _to_lobby(record: LobbyRecord) -> Lobby:
        lobby = Lobby.from_dict(record.document)
        lobby.version = record.version
        return lobby

    @staticmethod
    def _to_game(record: GameRecord) -> Game:
        game = Game.from_dict(record.document)
        game.version = record.version
        return game


def create_store(database_url: str | None = None) -> SessionStore:
    """SQL store when a database URL is configured, in-memory otherwise."""
    if database_url:
        logger.info("Using SQL session store at %s", database_url)
        return SqlSessionStore(database_url)
    logger.info("Using in-memory session store")
    return InMemorySessionStore()
