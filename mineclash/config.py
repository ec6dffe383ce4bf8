"""
Configuration - Runtime settings read from the environment.

Environment variables:
    MINECLASH_ENV                      deployment name (default: development)
    MINECLASH_DATABASE_URL             SQLAlchemy URL; unset keeps sessions in memory
    MINECLASH_REAP_INTERVAL_SECONDS    reaper period (default: 60)
    MINECLASH_LOBBY_IDLE_SECONDS       open lobby lifetime (default: 2h)
    MINECLASH_GAME_MAX_AGE_SECONDS     playing game lifetime (default: 4h)
    MINECLASH_FINISHED_GRACE_SECONDS   finished game retention (default: 10m)
    MINECLASH_LOG_LEVEL                logging level name (default: INFO)
    MINECLASH_LOG_FILE                 optional JSON-lines log file
    ALLOWED_ORIGINS                    comma-separated CORS origins (default: *)
"""

from __future__ import annotations
from dataclasses import dataclass, field
import os

STALE_LOBBY_SECONDS = 2 * 60 * 60
STALE_GAME_SECONDS = 4 * 60 * 60
FINISHED_GRACE_SECONDS = 10 * 60
REAP_INTERVAL_SECONDS = 60


@dataclass
class Settings:
    """Service settings."""
    env: str = "development"
    database_url: str | None = None
    reap_interval_seconds: float = REAP_INTERVAL_SECONDS
    lobby_idle_seconds: float = STALE_LOBBY_SECONDS
    game_max_age_seconds: float = STALE_GAME_SECONDS
    finished_grace_seconds: float = FINISHED_GRACE_SECONDS
    log_level: str = "INFO"
    log_file: str | None = None
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables."""
        settings = cls(
            env=os.getenv("MINECLASH_ENV", "development"),
            database_url=os.getenv("MINECLASH_DATABASE_URL") or None,
            reap_interval_seconds=float(
                os.getenv("MINECLASH_REAP_INTERVAL_SECONDS", REAP_INTERVAL_SECONDS)
            ),
            lobby_idle_seconds=float(
                os.getenv("MINECLASH_LOBBY_IDLE_SECONDS", STALE_LOBBY_SECONDS)
            ),
            game_max_age_seconds=float(
                os.getenv("MINECLASH_GAME_MAX_AGE_SECONDS", STALE_GAME_SECONDS)
            ),
            finished_grace_seconds=float(
                os.getenv("MINECLASH_FINISHED_GRACE_SECONDS", FINISHED_GRACE_SECONDS)
            ),
            log_level=os.getenv("MINECLASH_LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("MINECLASH_LOG_FILE") or None,
            allowed_origins=os.getenv("ALLOWED_ORIGINS", "*").split(","),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """
        Check that all periods and thresholds are positive.

        Raises:
            ValueError: If a value is out of range
        """
        numeric = {
            "reap_interval_seconds": self.reap_interval_seconds,
            "lobby_idle_seconds": self.lobby_idle_seconds,
            "game_max_age_seconds": self.game_max_age_seconds,
            "finished_grace_seconds": self.finished_grace_seconds,
        }
        bad = [name for name, value in numeric.items() if value <= 0]
        if bad:
            raise ValueError(f"Settings must be positive: {bad}")
