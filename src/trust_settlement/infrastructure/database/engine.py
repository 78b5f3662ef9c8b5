"""Async engine, session factory and the per-unit-of-work transaction scope.

One HTTP request, or one auto-release candidate in the sweep, is one
transaction. A cascade started by that unit (vote -> stats -> trust score ->
suspension) commits or rolls back together; callers never commit halfway.

Side effects that must not outlive a rollback (notifications) are queued with
`after_commit` and only run once the scope has committed.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from trust_settlement.config import Settings, get_settings
from trust_settlement.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

logger = get_logger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None

AFTER_COMMIT_KEY = "after_commit"


def engine_options(settings: Settings) -> dict[str, Any]:
    """Pool sizing applies to PostgreSQL only; SQLite keeps its default pool."""
    options: dict[str, Any] = {"echo": settings.db_echo_sql}
    if settings.database_url.startswith("sqlite"):
        return options
    options.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=True,
    )
    return options


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(settings.database_url, **engine_options(settings))
        logger.info(
            "database.engine_created",
            dialect=_engine.dialect.name,
            pool_size=settings.db_pool_size,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        # Rows stay readable after commit; the sweep logs them once committed.
        _session_factory = async_sessionmaker(
            bind=get_engine(), expire_on_commit=False, autoflush=False
        )
    return _session_factory


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session; commit if the block finishes, roll back if it raises."""
    async with (factory or get_session_factory())() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            discard_after_commit(session)
            raise
        await run_after_commit(session)


def after_commit(session: AsyncSession, hook: Callable[[], Awaitable[None]]) -> None:
    """Queue a coroutine function to run once the session's transaction commits."""
    session.info.setdefault(AFTER_COMMIT_KEY, []).append(hook)


async def run_after_commit(session: AsyncSession) -> None:
    """Run and clear the hooks queued on a committed session."""
    hooks = session.info.pop(AFTER_COMMIT_KEY, [])
    for hook in hooks:
        await hook()


def discard_after_commit(session: AsyncSession) -> int:
    """Drop queued hooks after a rollback. Returns how many were dropped."""
    dropped = len(session.info.pop(AFTER_COMMIT_KEY, []))
    if dropped:
        logger.info("database.after_commit_discarded", hooks=dropped)
    return dropped


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for FastAPI's Depends()."""
    async with session_scope() as session:
        yield session


async def init_db() -> None:
    """Create the core's tables in development; elsewhere Alembic owns the schema."""
    from trust_settlement.infrastructure.database.orm_models import Base

    settings = get_settings()
    if not settings.is_development:
        logger.info("database.schema_managed_by_alembic", env=settings.app_env)
        return
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database.tables_created", tables=len(Base.metadata.tables))


async def close_db() -> None:
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("database.engine_disposed")
