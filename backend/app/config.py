"""Application configuration with environment variable support.

All settings can be overridden via environment variables prefixed with ``FEATUREBOARD_``,
or via a ``.env`` file in the project root.

Examples::

    FEATUREBOARD_PORT=9000 featureboard start
    FEATUREBOARD_DATA_DIR=/var/data/featureboard featureboard start
    FEATUREBOARD_LOG_LEVEL=DEBUG featureboard start
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root: two levels up from this file (backend/app/config.py -> repo root)
_BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """FeatureBoard configuration; all values overridable via env vars."""

    model_config = SettingsConfigDict(
        env_prefix="FEATUREBOARD_",
        env_file=str(_BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Paths
    data_dir: Path = _BASE_DIR / "data"

    # Logging
    log_level: str = "INFO"

    # Browser origins allowed to call the API (the portal UI)
    cors_origins: list[str] = ["http://localhost:5173"]

    # Similarity search
    search_min_length: int = 2
    duplicate_min_length: int = 5
    search_max_limit: int = 20

    # SQLite busy timeout (ms): concurrent writers wait this long for the lock
    busy_timeout_ms: int = 5000

    @property
    def db_path(self) -> Path:
        return self.data_dir / "featureboard.db"

    @property
    def database_url(self) -> str:
        return f"sqlite+aiosqlite:///{self.db_path}"


# Singleton instance, import this everywhere
settings = Settings()

DATA_DIR = settings.data_dir
DATABASE_URL = settings.database_url
