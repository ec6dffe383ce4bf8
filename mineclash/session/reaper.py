"""
Session Reaper - Periodic cleanup of idle and aged sessions.

Each sweep, in order:
1. Open (WAITING/FULL) lobbies older than the idle threshold are deleted
2. PLAYING games older than the age threshold are force-finished with
   winner "timeout" and their lobby is deleted
3. IN_GAME lobbies whose game is missing or finished are deleted
4. FINISHED games past their grace period are deleted with their lobby

Nothing here is tied to a request; the API runs run_forever() as a
background task and exposes sweep() for operators.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable
import asyncio
import logging
import time

from ..config import Settings
from ..engine_core.modes import finish_game
from ..engine_core.state import TIMEOUT, GameStatus, LobbyStatus
from ..errors import ConflictError, NotFoundError
from .store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class ReapReport:
    """What one sweep removed or finished."""
    deleted_lobbies: int = 0
    finished_games: int = 0
    deleted_games: int = 0

    @property
    def total(self) -> int:
        return self.deleted_lobbies + self.finished_games + self.deleted_games


class SessionReaper:
    """
    Sweeps a SessionStore on a fixed interval.

    Usage:
        reaper = SessionReaper(store, Settings.from_env())
        report = reaper.sweep()
    """

    def __init__(
        self,
        store: SessionStore,
        settings: Settings | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.store = store
        self.settings = settings or Settings()
        self._clock = clock or time.time

    def sweep(self, now: float | None = None) -> ReapReport:
        """Run one full cleanup pass."""
        now = self._clock() if now is None else now
        report = ReapReport()

        self._reap_idle_lobbies(now, report)
        self._time_out_games(now, report)
        self._reap_orphan_lobbies(report)
        self._reap_finished_games(now, report)

        if report.total:
            logger.info(
                "Reaper: %d lobbies deleted, %d games timed out, %d games deleted",
                report.deleted_lobbies, report.finished_games, report.deleted_games,
            )
        return report

    async def run_forever(self, interval: float | None = None) -> None:
        """Sweep every interval seconds until cancelled."""
        interval = interval or self.settings.reap_interval_seconds
        logger.info("Reaper started, interval %ss", interval)
        while True:
            await asyncio.sleep(interval)
            try:
                await asyncio.to_thread(self.sweep)
            except Exception:
                logger.exception("Reaper sweep failed, retrying next interval")

    def _reap_idle_lobbies(self, now: float, report: ReapReport) -> None:
        cutoff = now - self.settings.lobby_idle_seconds
        for lobby in self.store.list_lobbies([LobbyStatus.WAITING, LobbyStatus.FULL]):
            if lobby.created_at < cutoff and self.store.discard_lobby(lobby.lobby_id):
                logger.debug("Deleted idle lobby %s", lobby.lobby_id)
                report.deleted_lobbies += 1

    def _time_out_games(self, now: float, report: ReapReport) -> None:
        cutoff = now - self.settings.game_max_age_seconds
        for game in self.store.list_games([GameStatus.PLAYING]):
            if game.started_at >= cutoff:
                continue
            timed_out = finish_game(game.clone(), TIMEOUT, now)
            try:
                self.store.save_game(timed_out, expected_version=game.version)
            except ConflictError:
                logger.warning("Game %s changed during timeout, retrying next sweep", game.game_id)
                continue
            except NotFoundError:
                continue
            report.finished_games += 1
            logger.info("Game %s timed out", game.game_id)
            if self.store.discard_lobby(game.lobby_id):
                report.deleted_lobbies += 1

    def _reap_orphan_lobbies(self, report: ReapReport) -> None:
        for lobby in self.store.list_lobbies([LobbyStatus.IN_GAME]):
            try:
                orphaned = self.store.get_game(lobby.game_id).status == GameStatus.FINISHED
            except NotFoundError:
                orphaned = True
            if orphaned and self.store.discard_lobby(lobby.lobby_id):
                logger.debug("Deleted orphan lobby %s", lobby.lobby_id)
                report.deleted_lobbies += 1

    def _reap_finished_games(self, now: float, report: ReapReport) -> None:
        cutoff = now - self.settings.finished_grace_seconds
        for game in self.store.list_games([GameStatus.FINISHED]):
            finished_at = game.finished_at if game.finished_at is not None else game.started_at
            if finished_at >= cutoff:
                continue
            if self.store.discard_game(game.game_id):
                report.deleted_games += 1
            if self.store.discard_lobby(game.lobby_id):
                report.deleted_lobbies += 1
