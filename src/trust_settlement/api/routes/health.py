"""GET /health for container probes and the load balancer.

    ok        database and Redis reachable
    degraded  Redis down (idempotency keys off), settlement still works
    down      database unreachable
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from trust_settlement.api.deps import get_service_context
from trust_settlement.config import APP_VERSION
from trust_settlement.infrastructure.database.engine import session_scope
from trust_settlement.infrastructure.database.repositories import EscrowRepository
from trust_settlement.infrastructure.redis_client import get_redis
from trust_settlement.logging_config import get_logger
from trust_settlement.schemas.common import HealthResponse
from trust_settlement.services import ServiceContext

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


async def _auto_release_backlog(ctx: ServiceContext) -> int:
    async with session_scope() as session:
        return await EscrowRepository(session).count_due_for_release(ctx.now())


async def _redis_status() -> str:
    try:
        await get_redis().ping()
    except Exception as exc:
        logger.warning("health.redis_unreachable", error=str(exc))
        return f"unhealthy: {exc}"
    return "healthy"


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check(
    ctx: ServiceContext = Depends(get_service_context),
) -> HealthResponse:
    backlog: int | None = None
    try:
        backlog = await _auto_release_backlog(ctx)
        database = "healthy"
    except Exception as exc:
        logger.error("health.database_unreachable", error=str(exc))
        database = f"unhealthy: {exc}"

    redis = await _redis_status()
    if database != "healthy":
        status = "down"
    elif redis != "healthy":
        status = "degraded"
    else:
        status = "ok"

    return HealthResponse(
        status=status,
        version=APP_VERSION,
        database=database,
        redis=redis,
        collaborators=ctx.settings.collaborator_mode,
        auto_release_backlog=backlog,
    )
