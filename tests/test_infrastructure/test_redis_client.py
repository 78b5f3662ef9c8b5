"""Tests for the Redis idempotency helpers."""

from __future__ import annotations

import pytest

from trust_settlement.infrastructure.redis_client import (
    get_idempotency,
    get_redis,
    idempotency_key,
    set_idempotency,
)


class InMemoryRedis:
    """Implements the two commands the helpers use."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(
        self, key: str, value: str, ex: int | None = None, nx: bool = False
    ) -> bool | None:
        if nx and key in self.values:
            return None
        self.values[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True


class TestIdempotencyKeys:
    @pytest.mark.asyncio
    async def test_unknown_key(self) -> None:
        assert await get_idempotency(InMemoryRedis(), "escrow.create", "k-1") is None

    @pytest.mark.asyncio
    async def test_first_write_wins(self) -> None:
        redis = InMemoryRedis()
        assert await set_idempotency(redis, "escrow.create", "k-1", "tx-1")
        assert not await set_idempotency(redis, "escrow.create", "k-1", "tx-2")
        assert await get_idempotency(redis, "escrow.create", "k-1") == "tx-1"

    @pytest.mark.asyncio
    async def test_scopes_are_separate(self) -> None:
        redis = InMemoryRedis()
        await set_idempotency(redis, "escrow.fund.tx-1", "k-1", "tx-1")
        assert await get_idempotency(redis, "escrow.fund.tx-2", "k-1") is None

    @pytest.mark.asyncio
    async def test_keys_expire(self) -> None:
        redis = InMemoryRedis()
        await set_idempotency(redis, "escrow.create", "k-1", "tx-1")
        await set_idempotency(redis, "escrow.create", "k-2", "tx-2", ttl_seconds=60)
        assert redis.ttls[idempotency_key("escrow.create", "k-1")] == 86400
        assert redis.ttls[idempotency_key("escrow.create", "k-2")] == 60

    def test_key_is_namespaced(self) -> None:
        assert idempotency_key("escrow.create", "abc") == "trust-core:idempotency:escrow.create:abc"

    def test_client_requires_init(self) -> None:
        with pytest.raises(RuntimeError, match="not initialized"):
            get_redis()
