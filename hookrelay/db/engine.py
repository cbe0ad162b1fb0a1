"""Async engine creation for HookRelay."""

import os

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from hookrelay.db.exceptions import ConfigurationError


def _normalize_url(url: str) -> str:
    """Pin the async driver: asyncpg for PostgreSQL, aiosqlite for SQLite."""
    u = url.strip()
    if u.startswith("postgresql://"):
        return "postgresql+asyncpg://" + u[len("postgresql://") :]
    if u.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + u[len("sqlite://") :]
    if u.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
        return u
    raise ConfigurationError(
        "Database URL must be PostgreSQL (postgresql://) or SQLite (sqlite://)."
    )


def _get_url(database_url: str | None) -> str:
    """Resolve database URL from argument or environment."""
    if database_url is not None and database_url != "":
        return _normalize_url(database_url)
    url = os.environ.get("HOOKRELAY_DATABASE_URL")
    if not url or not url.strip():
        raise ConfigurationError(
            "Database URL not set. Set HOOKRELAY_DATABASE_URL or pass database_url."
        )
    return _normalize_url(url)


def create_engine(database_url: str | None = None, *, echo: bool = False) -> AsyncEngine:
    """Create an async database engine.

    Args:
        database_url: Database URL. If None, uses HOOKRELAY_DATABASE_URL.
        echo: Log SQL (for development).

    Raises:
        ConfigurationError: URL missing or invalid.
    """
    url = _get_url(database_url)
    if url.startswith("sqlite+aiosqlite://"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(url, pool_size=20, max_overflow=10, pool_pre_ping=True, echo=echo)
