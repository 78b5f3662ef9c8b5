"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
services, the Redis client and configuration.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import redis.asyncio as aioredis
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from trust_settlement.config import Settings, get_settings
from trust_settlement.infrastructure.database.engine import get_async_session
from trust_settlement.infrastructure.redis_client import get_redis
from trust_settlement.logging_config import get_logger
from trust_settlement.services import (
    EscrowService,
    ReputationService,
    ServiceContext,
    VerificationService,
)

logger = get_logger(__name__)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async for session in get_async_session():
        yield session


def get_service_context(request: Request) -> ServiceContext:
    """Provide the context built at startup (settings, collaborators, clock)."""
    ctx = getattr(request.app.state, "service_context", None)
    if ctx is None:
        ctx = ServiceContext.from_settings(get_settings())
        request.app.state.service_context = ctx
    return ctx


async def get_verification_service(
    session: AsyncSession = Depends(get_db_session),
    ctx: ServiceContext = Depends(get_service_context),
) -> VerificationService:
    return VerificationService(session, ctx)


async def get_reputation_service(
    session: AsyncSession = Depends(get_db_session),
    ctx: ServiceContext = Depends(get_service_context),
) -> ReputationService:
    return ReputationService(session, ctx)


async def get_escrow_service(
    session: AsyncSession = Depends(get_db_session),
    ctx: ServiceContext = Depends(get_service_context),
) -> EscrowService:
    return EscrowService(session, ctx)


def get_redis_client() -> aioredis.Redis | None:
    """Provide the Redis client, or None when Redis was unavailable at startup."""
    try:
        return get_redis()
    except RuntimeError:
        logger.debug("redis.unavailable")
        return None


def get_app_settings() -> Settings:
    """Provide the application settings."""
    return get_settings()
