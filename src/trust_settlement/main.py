"""ASGI entry point for the Trust & Settlement Core.

The lifespan wires the process once: logging, the async engine, the optional
Redis idempotency store and the ServiceContext (settings, collaborators,
clock) that every request's services share. Routes reach the context through
``api.deps.get_service_context``.

The auto-release sweep runs out of process (``trust-auto-release`` on cron);
``POST /api/v1/admin/auto-release/run`` triggers the same sweep on demand.

    uvicorn trust_settlement.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from trust_settlement.config import APP_VERSION, Settings, get_settings
from trust_settlement.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


async def _start_redis(settings: Settings) -> bool:
    from trust_settlement.infrastructure.redis_client import init_redis

    try:
        await init_redis()
    except Exception as exc:
        # Funding and payout still work; repeated keys are simply not deduplicated.
        get_logger(__name__).warning(
            "app.redis_unavailable", redis_url=settings.redis_url, error=str(exc)
        )
        return False
    return True


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    from trust_settlement.infrastructure.database.engine import close_db, init_db
    from trust_settlement.infrastructure.redis_client import close_redis
    from trust_settlement.services.context import ServiceContext

    settings = get_settings()
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
        component="api",
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        collaborator_mode=settings.collaborator_mode,
        auto_release_days=settings.escrow_auto_release_days,
    )

    await init_db()
    redis_ready = await _start_redis(settings)
    app.state.service_context = ServiceContext.from_settings(settings)

    logger.info("app.started", port=settings.app_port, idempotency=redis_ready)
    try:
        yield
    finally:
        logger.info("app.shutting_down")
        await close_db()
        await close_redis()
        logger.info("app.stopped")


def create_app() -> FastAPI:
    """Build the FastAPI app with middleware and the four API sections."""
    from trust_settlement.api.middleware import setup_middleware
    from trust_settlement.api.routes import admin, escrow, health, reputation, verification

    settings = get_settings()
    app = FastAPI(
        title="Trust & Settlement Core",
        description=(
            "Verification ledger, trust scoring, reputation voting and "
            "escrow settlement for the property marketplace."
        ),
        version=APP_VERSION,
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
    )
    setup_middleware(app)

    for module in (health, verification, reputation, escrow, admin):
        app.include_router(module.router)
    return app


app = create_app()
