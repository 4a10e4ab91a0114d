"""Engine registry and unit-of-work sessions for the SQL cart store."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import StorefrontSettings

_ENGINES: dict[str, AsyncEngine] = {}
_SESSION_FACTORIES: dict[str, async_sessionmaker[AsyncSession]] = {}


def create_engine(database_url: str, **kwargs: Any) -> AsyncEngine:
    """Return the shared engine for ``database_url``, building it on first use.

    Every adapter pointed at the same URL shares one connection pool.
    """

    engine = _ENGINES.get(database_url)
    if engine is not None:
        return engine

    kwargs.setdefault("pool_pre_ping", True)
    engine = create_async_engine(database_url, **kwargs)
    _ENGINES[database_url] = engine
    return engine


def get_session_factory(database_url: str) -> async_sessionmaker[AsyncSession]:
    factory = _SESSION_FACTORIES.get(database_url)
    if factory is None:
        factory = async_sessionmaker(create_engine(database_url), expire_on_commit=False)
        _SESSION_FACTORIES[database_url] = factory
    return factory


@asynccontextmanager
async def lifespan_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Run one remote-store operation as a single transaction.

    The block commits when it exits cleanly. Any exception rolls the
    transaction back and propagates to the caller.
    """

    async with session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        await session.commit()


def resolve_database_url(settings: StorefrontSettings, fallback: str) -> str:
    """Configured store URL, or ``fallback`` when it is unset or blank."""

    configured = (settings.database_url or "").strip()
    return configured or fallback


async def dispose_engines() -> None:
    """Close every shared pool and forget the cached session factories."""

    engines = list(_ENGINES.values())
    _ENGINES.clear()
    _SESSION_FACTORIES.clear()
    for engine in engines:
        await engine.dispose()
