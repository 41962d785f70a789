"""Configuration management using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Fetcher settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FETCHJOB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Transport
    default_timeout_seconds: float = 35.0
    max_redirects: int = 10
    user_agent: str = "fetchjob/0.1 (+https://github.com/fetchjob/fetchjob)"

    # Host environment probe used by the standalone runtime
    dev_environment: bool = False

    # Diagnostics
    log_level: int = 0
    preview_chars: int = 800


settings = Settings()
