"""Settings — every tunable of the bid/order engine, read from the environment.

Invariants:
    - The payment secret is never defaulted to a usable value outside tests
    - Limits (price ceiling, image count, retry budgets) are positive; a zero would
      silently disable a rule, so startup fails instead
    - get_settings() is cached: one Settings per process

Design Decisions:
    - pydantic-settings with .env support; names are case-insensitive env vars
      (DATABASE_URL, PAYMENT_API_SECRET, BID_MAX_PRICE, ...)
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = "postgresql+asyncpg://plantbid:plantbid@db:5432/plantbid"
    database_pool_size: int = Field(20, gt=0)
    database_max_overflow: int = Field(10, ge=0)

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Payment provider (PortOne V2 REST)
    payment_api_base_url: str = "https://api.portone.io"
    payment_api_secret: str = Field(min_length=1)
    payment_timeout_seconds: float = Field(5.0, gt=0)
    payment_max_retries: int = Field(2, ge=0)
    payment_base_delay_ms: int = Field(200, gt=0)
    payment_max_delay_ms: int = Field(2_000, gt=0)

    # Transcript
    transcript_append_max_attempts: int = Field(20, gt=0)

    # Bids
    bid_max_price: int = Field(100_000_000, gt=0)
    bid_max_reference_images: int = Field(5, gt=0)

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
