"""Engine construction — one place that knows how PlantBid talks to each backend.

Invariants:
    - Postgres engines are pooled and pre-pinged; SQLite engines are not pooled
      by size (aiosqlite rejects pool_size/max_overflow)
    - SQLite writers wait on the file lock instead of failing at once, so
      compare-and-set losers see a stale version, not "database is locked"
    - expire_on_commit=False on every factory: controllers re-read rows explicitly
"""

from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker,
)

SQLITE_LOCK_TIMEOUT_SECONDS = 30


def engine_options(
    database_url: str, pool_size: int = 20, max_overflow: int = 10,
) -> dict[str, Any]:
    if make_url(database_url).get_backend_name() == "sqlite":
        return {"connect_args": {"timeout": SQLITE_LOCK_TIMEOUT_SECONDS}}
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


def build_engine(database_url: str, **pool: int) -> AsyncEngine:
    return create_async_engine(database_url, **engine_options(database_url, **pool))


def create_session_factory(
    database_url: str,
) -> async_sessionmaker[AsyncSession]:
    """Session factory with its own engine, for scripts and test fixtures."""
    return async_sessionmaker(
        build_engine(database_url), class_=AsyncSession, expire_on_commit=False,
    )
