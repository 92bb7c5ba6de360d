"""Application settings using Pydantic Settings for environment-based configuration."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, PostgresDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the feed-aggregator application.

    All settings can be overridden via environment variables.
    Prefix is not used to allow standard env var names (e.g., DATABASE_URL).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False

    # Persisted artifacts
    data_dir: Path = Path("data")
    feed_filename: str = "feed.json"
    seen_filename: str = "seen.json"

    # Retention
    feed_max_items: int = Field(default=500, ge=1)
    seen_max_ids: int = Field(default=1000, ge=1)
    seen_max_conversations: int = Field(default=1000, ge=1)

    # Scheduling
    poll_interval_minutes: int = Field(default=10, ge=1)
    manual_refresh_cooldown_seconds: float = Field(default=30.0, ge=0.0)

    # Apify (Twitter + Reddit scraping actors)
    apify_token: str | None = None
    apify_poll_interval_seconds: float = Field(default=5.0, gt=0.0)
    apify_max_polls: int = Field(default=24, ge=1)
    apify_max_items: int = Field(default=50, ge=1)

    # GitHub GraphQL
    github_token: str | None = None
    github_repo: str = "Factory-AI/factory"

    # Source selection (JSON file, overridable from env)
    sources_config_path: Path | None = None
    twitter_search_terms: str | None = None  # comma-separated
    reddit_urls: str | None = None  # comma-separated
    team_twitter_usernames: str | None = None  # comma-separated
    threaded_sources: str = "twitter"  # comma-separated source tags

    # PostgreSQL mirror (optional)
    database_url: PostgresDsn | None = None
    db_pool_min_size: int = 1
    db_pool_max_size: int = 5

    # Slack notifications (optional)
    slack_webhook_url: str | None = None
    slack_channel: str | None = None

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    api_keys: str | None = None  # comma-separated
    cors_origins: str = "*"

    # HTTP retry configuration
    max_http_retries: int = Field(default=3, ge=0, le=10)
    max_backoff_seconds: float = Field(default=60.0, ge=1.0, le=300.0)

    # Observability
    metrics_port: int = 8000

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def feed_path(self) -> Path:
        return self.data_dir / self.feed_filename

    @property
    def seen_path(self) -> Path:
        return self.data_dir / self.seen_filename

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_minutes * 60.0

    @property
    def apify_configured(self) -> bool:
        """Check if Apify scraping is configured."""
        return bool(self.apify_token)

    @property
    def github_configured(self) -> bool:
        """Check if GitHub GraphQL access is configured."""
        return bool(self.github_token)

    @property
    def database_configured(self) -> bool:
        """Check if the PostgreSQL mirror is configured."""
        return self.database_url is not None

    @property
    def slack_configured(self) -> bool:
        """Check if Slack notifications are configured."""
        return bool(self.slack_webhook_url)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()
