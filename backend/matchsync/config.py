"""
backend/matchsync/config.py

Purpose:
    Central settings loading for the match synchronization worker.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    # Canonical match store (durable)
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "matchsync"

    # Slip cache (ephemeral, unconfirmed slips only)
    SLIP_CACHE_URI: str = ""  # Empty: reuse MONGO_URI
    SLIP_CACHE_DB: str = "matchsync_cache"
    SLIP_CACHE_TTL_HOURS: int = 24

    # football-data.org update feed
    FOOTBALL_DATA_ORG_API_KEY: str = ""
    FOOTBALL_DATA_ORG_BASE_URL: str = "https://api.football-data.org/v4"
    FEED_COMPETITIONS: str = "SA"  # Comma separated competition codes
    FEED_DAYS_BACK: int = 1
    FEED_DAYS_AHEAD: int = 7
    FEED_TIMEOUT_SECONDS: float = 15.0
    FEED_MAX_RETRIES: int = 3
    FEED_BASE_DELAY_SECONDS: float = 2.0

    # Sync engine
    SYNC_INTERVAL_SECONDS: int = 60
    NEXT_ID_WINDOW_DAYS: int = 60  # ~2 months, speeds up the max(match_id) lookup

    LOG_LEVEL: str = "INFO"

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }

    @property
    def slip_cache_uri(self) -> str:
        return self.SLIP_CACHE_URI or self.MONGO_URI

    @property
    def feed_competitions(self) -> list[str]:
        return [c.strip() for c in self.FEED_COMPETITIONS.split(",") if c.strip()]


settings = Settings()
