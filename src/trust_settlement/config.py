"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. All settings are validated
at startup — if a setting is malformed, the app fails fast with a clear
error message.

Usage:
    from trust_settlement.config import get_settings
    settings = get_settings()
    print(settings.escrow_auto_release_days)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Trust & Settlement core."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True
    app_log_level: str = "DEBUG"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # --- Database (PostgreSQL) ---
    database_url: str = (
        "postgresql+asyncpg://trust:trust_dev"
        "@localhost:5432/trust_settlement"
    )
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_echo_sql: bool = False

    # --- Redis ---
    redis_url: str = "redis://localhost:6379/0"
    redis_idempotency_ttl_seconds: int = 86400  # 24 hours

    # --- Trust score weights ---
    trust_base: int = 0
    trust_l1_bonus: int = 30
    trust_pos_weight: int = 5
    trust_neg_weight: int = 10
    trust_report_weight: int = 15
    trust_response_divisor: int = 5
    trust_score_floor: int = 0
    trust_suspension_threshold: int = 10

    # --- Verification ledger ---
    # Days to wait after level N is approved before level N+1 can be requested.
    verification_cooling_days: dict[int, int] = Field(
        default_factory=lambda: {1: 1, 2: 7, 3: 30}
    )
    seeker_max_level: int = 1

    # --- Reputation ---
    reputation_upvote_points: int = 1
    reputation_downvote_points: int = -1
    reputation_badge_thresholds: list[int] = Field(
        default_factory=lambda: [10, 50, 100, 250, 500]
    )
    reputation_max_votes_per_day: int = 50

    # --- Escrow ---
    escrow_auto_release_days: int = 7
    escrow_min_provider_level: int = 1
    default_country_code: str = "CM"
    default_subscription_tier: str = "free"

    # --- HTTP ---
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    # --- External collaborators ---
    collaborator_mode: Literal["simulated", "http"] = "simulated"
    payment_collector_url: str = "http://localhost:9001"
    document_storage_url: str = "http://localhost:9002"
    notifier_url: str = "http://localhost:9003"
    dependency_timeout_seconds: float = 10.0
    dependency_max_attempts: int = 3

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


APP_VERSION = "0.1.0"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()
