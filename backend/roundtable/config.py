"""Application Configuration: environment-driven settings via pydantic-settings.

Invariants:
    - The store token comes from the environment (never hardcoded)
    - get_settings() is cached (lru_cache): single instance per process
    - Polling and backoff timings are in milliseconds

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables (prefix RT_)."""

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="RT_", case_sensitive=False,
    )

    # Content store (GitHub Contents API shape)
    store_api_url: str = "https://api.github.com"
    store_owner: str = "sanders1973"
    store_repo: str = "RoundTable"
    store_branch: str = "main"
    store_dir: str = "roundtable"
    store_token: str = ""
    store_timeout_seconds: float = 30.0
    committer_name: str = "Round Table App"
    committer_email: str = "roundtable@example.com"

    @field_validator("store_dir", mode="before")
    @classmethod
    def strip_dir_slashes(cls, v: str) -> str:
        """Directory is stored without leading/trailing slashes."""
        if isinstance(v, str):
            return v.strip("/")
        return v

    # Active board
    team_name: str = "GNT SLT"

    # Polling
    poll_interval_ms: int = 10_000
    min_poll_interval_ms: int = 2_000
    backoff_floor_ms: int = 5_000
    backoff_ceiling_ms: int = 60_000

    # Reactions
    reaction_debounce_ms: int = 500
    resync_delay_ms: int = 400

    # Local state (passphrase cache, speaker queue snapshots)
    database_url: str = "sqlite+aiosqlite:///roundtable.db"

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
