"""Redis-backed idempotency keys for escrow creation and funding.

Clients retrying a POST send the same ``idempotency_key``. The first request
records the transaction id it produced; a replay inside the TTL is answered
from that id and never reaches the payment collector twice.

Redis is optional. When ``init_redis`` fails at startup the API runs
without deduplication and ``get_redis`` keeps raising RuntimeError.
"""

from __future__ import annotations

import redis.asyncio as aioredis

from trust_settlement.config import get_settings
from trust_settlement.logging_config import get_logger

logger = get_logger(__name__)

KEY_NAMESPACE = "trust-core:idempotency"

_client: aioredis.Redis | None = None


def idempotency_key(scope: str, key: str) -> str:
    """``escrow.create`` + ``abc`` -> ``trust-core:idempotency:escrow.create:abc``."""
    return f"{KEY_NAMESPACE}:{scope}:{key}"


async def init_redis() -> aioredis.Redis:
    global _client
    settings = get_settings()
    client = aioredis.from_url(settings.redis_url, decode_responses=True)
    await client.ping()
    _client = client
    logger.info("redis.connected", ttl_seconds=settings.redis_idempotency_ttl_seconds)
    return _client


def get_redis() -> aioredis.Redis:
    if _client is None:
        raise RuntimeError("Redis not initialized; idempotency keys are unavailable")
    return _client


async def close_redis() -> None:
    global _client
    if _client is None:
        return
    await _client.aclose()
    _client = None
    logger.info("redis.disconnected")


async def get_idempotency(redis: aioredis.Redis, scope: str, key: str) -> str | None:
    """The transaction id recorded for this key, or None on first use."""
    return await redis.get(idempotency_key(scope, key))


async def set_idempotency(
    redis: aioredis.Redis,
    scope: str,
    key: str,
    transaction_id: str,
    ttl_seconds: int | None = None,
) -> bool:
    """Record the id under the key unless a concurrent request got there first."""
    ttl = ttl_seconds or get_settings().redis_idempotency_ttl_seconds
    stored = await redis.set(idempotency_key(scope, key), transaction_id, ex=ttl, nx=True)
    if not stored:
        logger.info("redis.idempotency_key_taken", scope=scope)
    return bool(stored)
