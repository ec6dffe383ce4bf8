"""
Session Module - Lobbies and games as stored documents.

A session is one lobby and, once started, its game:
- Created when a host opens a lobby
- Loaded by id at the top of every action, never cached in process
- Written back with a version check so concurrent writers cannot
  silently overwrite each other
- Deleted when the host leaves, the game finishes, or the reaper
  decides it has aged out
"""

from .lobby import create_lobby, hash_password, join_lobby, leave_lobby, start_game
from .manager import SessionManager
from .reaper import ReapReport, SessionReaper
from .store import InMemorySessionStore, SessionStore, SqlSessionStore, create_store

__all__ = [
    "create_lobby",
    "hash_password",
    "join_lobby",
    "leave_lobby",
    "start_game",
    "SessionManager",
    "ReapReport",
    "SessionReaper",
    "InMemorySessionStore",
    "SessionStore",
    "SqlSessionStore",
    "create_store",
]
