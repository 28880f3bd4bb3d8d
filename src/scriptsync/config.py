"""Process configuration using pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Configuration loaded from SCRIPTSYNC_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SCRIPTSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OAuth2 access token with script.projects, drive.metadata.readonly
    # and logging.read scopes
    access_token: str = ""

    # HTTP
    timeout: int = 60

    # Logging
    log_level: str = "WARNING"
    json_logs: bool = False

    # push --watch polling period in seconds
    watch_interval: float = 1.0


@lru_cache
def get_config() -> Config:
    """Get cached config instance."""
    return Config()
