from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production", "test"] = "local"
    LOG_LEVEL: str = "INFO"
    # Reference timezone for week keys, accrual slots and raffle close times
    TIMEZONE: str = "America/Los_Angeles"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 40
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Redis (optional). When unset, operation locks are process-local.
    REDIS_URL: Optional[str] = None

    # Auth
    # Placeholder defaults keep local/test runs from failing. Real deployments
    # must override via env.
    SERVICE_JWT_SECRET: str = "test-jwt-secret"
    CRON_SECRET: str = ""

    # Microservices URLs
    COMMUNICATIONS_SERVICE_URL: str = "http://communications-service:8004"

    # On-chain balance lookup
    SOLANA_RPC_URL: str = "https://api.mainnet-beta.solana.com"
    TOKEN_MINT_ADDRESS: str = ""
    RPC_BATCH_SIZE: int = 100
    RPC_CONCURRENCY: int = 8
    RPC_TIMEOUT_SECONDS: float = 15.0

    # Weekly rewards
    REWARDS_LAUNCH_WEEK_KEY: str = "2026-01-04"
    REWARDS_ALL_TIME_LIKES_BPS: int = 2000
    REWARDS_VOTER_LIKES_BPS: int = 1000
    REWARDS_MIN_WEEKLY_SCORE: int = 1
    REWARDS_MIN_ALL_TIME_SCORE: int = 1
    REWARDS_MIN_MVM_POINTS: int = 1

    # Raffle
    RAFFLE_MATCH_CAP_MICRO: int = 0  # 0 = uncapped
    RAFFLE_LOCK_TIMEOUT_SECONDS: float = 300.0

    # Votes
    VOTE_FLIP_WINDOW_SECONDS: int = 60
    VOTE_CREDIT_MICRO: int = 100
    VOTE_RATE_LIMIT: str = "30/minute"  # per voter and per client IP

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
