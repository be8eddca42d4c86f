"""
Configuration management for Bet Sentinel.

Uses pydantic-settings to load configuration from environment variables
with sensible defaults for development.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database configuration
    database_path: str = "bet_sentinel.db"

    # Analysis window and result sizes
    window_days: int = 7
    top_n: int = 20
    max_candidates: int = 100

    # Absolute tolerance for the round-amount check (currency units)
    round_amount_tolerance: float = 1e-6

    # Event listing cache (0 disables it)
    cache_ttl_seconds: int = 30

    # Scheduled analysis
    analysis_interval_minutes: int = 15

    # HTTP API
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Logging
    log_level: str = "INFO"


# Global settings instance
settings = Settings()
