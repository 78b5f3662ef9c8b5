"""Tests for TrustService recomputation and auto-suspension."""

from __future__ import annotations

import pytest

from trust_settlement.services import ReputationService, TrustService


async def _downvote(reputation, target: str, count: int, start: int = 0) -> None:
    for i in range(start, start + count):
        await reputation.cast_vote(f"voter-{i}", target, "down")


class TestRecompute:
    @pytest.mark.asyncio
    async def test_no_record(self, trust) -> None:
        assert await trust.recompute("nobody") is None

    @pytest.mark.asyncio
    async def test_recompute_is_idempotent(self, trust, verify_level_1) -> None:
        await verify_level_1("owner-1")
        first = await trust.recompute("owner-1")
        second = await trust.recompute("owner-1")
        assert first.score == second.score == 30
        assert second.previous_score == 30

    @pytest.mark.asyncio
    async def test_unchanged_new_account_is_not_suspended(self, trust, verification) -> None:
        await verification.get_or_create_record("owner-1")
        result = await trust.recompute("owner-1")
        assert result.score == 0
        assert not result.suspended

    @pytest.mark.asyncio
    async def test_changed_signal_at_floor_suspends(self, trust, verification) -> None:
        await verification.get_or_create_record("owner-1")
        result = await trust.recompute("owner-1", signal_changed=True)
        assert result.score == 0
        assert result.newly_suspended


class TestAutoSuspension:
    @pytest.mark.asyncio
    async def test_suspended_below_threshold(
        self, reputation, verification, verify_level_1, notifier, commit
    ) -> None:
        await verify_level_1("owner-1")
        await _downvote(reputation, "owner-1", 2)
        record = await verification.get_record("owner-1")
        assert record.trust_score == 10
        assert not record.is_suspended

        await _downvote(reputation, "owner-1", 1, start=2)
        record = await verification.get_record("owner-1")
        assert record.trust_score == 0
        assert record.is_suspended
        assert "below threshold" in record.suspension_reason
        await commit()
        assert notifier.kinds().count("account_suspended") == 1

    @pytest.mark.asyncio
    async def test_lift_survives_noop_recompute(
        self, trust, reputation, verification, verify_level_1
    ) -> None:
        await verify_level_1("owner-1")
        await _downvote(reputation, "owner-1", 3)
        await verification.lift_suspension("owner-1", actor_id="admin-1")

        result = await trust.recompute("owner-1")
        assert not result.suspended
        assert not result.newly_suspended

    @pytest.mark.asyncio
    async def test_new_negative_signal_after_lift_suspends_again(
        self, reputation, verification, verify_level_1
    ) -> None:
        await verify_level_1("owner-1")
        await _downvote(reputation, "owner-1", 3)
        await verification.lift_suspension("owner-1", actor_id="admin-1")

        await reputation.cast_vote("voter-9", "owner-1", "down")
        record = await verification.get_record("owner-1")
        assert record.is_suspended

    @pytest.mark.asyncio
    async def test_recompute_never_unsuspends(
        self, trust, reputation, verification, verify_level_1
    ) -> None:
        await verify_level_1("owner-1")
        await _downvote(reputation, "owner-1", 3)
        for i in range(10):
            await reputation.cast_vote(f"fan-{i}", "owner-1", "up")

        result = await trust.recompute("owner-1")
        assert result.score == 50
        assert result.suspended

    @pytest.mark.asyncio
    async def test_notifier_failure_does_not_undo_suspension(
        self, session, make_ctx, failing_notifier, verify_level_1
    ) -> None:
        await verify_level_1("owner-1")
        ctx = make_ctx(notifier=failing_notifier)
        reputation = ReputationService(session, ctx)
        await _downvote(reputation, "owner-1", 3)

        result = await TrustService(session, ctx).recompute("owner-1")
        assert result.suspended
