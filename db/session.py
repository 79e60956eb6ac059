"""Engine and session factory for the listings database.

``DATABASE_URL`` selects the backend and defaults to a SQLite file next to the
app. SQLite connections are opened off the event loop thread by aiosqlite, and
an in-memory database keeps a single shared connection so every session sees
the same ``listings`` table.
"""

from __future__ import annotations

import os
from typing import Any, Dict

from loguru import logger
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from .models import Base

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./camera_store.db"
_TRUTHY = {"1", "true", "yes", "on"}

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def database_url() -> str:
    return os.getenv("DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL


def _echo_enabled() -> bool:
    return os.getenv("DATABASE_ECHO", "").strip().lower() in _TRUTHY


def engine_options(url: str) -> Dict[str, Any]:
    """Keyword arguments for :func:`create_async_engine` given a database URL."""

    options: Dict[str, Any] = {"echo": _echo_enabled()}
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        options["connect_args"] = {"check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
    else:
        # Hosted Postgres drops idle connections
        options["pool_pre_ping"] = True
    return options


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        url = database_url()
        _engine = create_async_engine(url, **engine_options(url))
        logger.info(
            "Listings database engine created",
            url=make_url(url).render_as_string(hide_password=True),
            dialect=_engine.dialect.name,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        # Listings are handed back to callers after commit
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def init_db() -> None:
    """Create the listings table if it does not yet exist."""

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug("Listings table ready")


async def close_db() -> None:
    """Dispose the engine; the next call to :func:`get_engine` reads ``DATABASE_URL`` again."""

    global _engine, _session_factory
    engine, _engine, _session_factory = _engine, None, None
    if engine is not None:
        await engine.dispose()
