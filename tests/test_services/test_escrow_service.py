"""Tests for EscrowService.

Covers creation against accepted quotes, funding through the payment
collector, release, refund, disputes and the payout lifecycle.
"""

from __future__ import annotations

import uuid

import pytest
import pytest_asyncio

from trust_settlement.domain.enums import SubjectType
from trust_settlement.domain.exceptions import (
    AlreadyTerminalError,
    DependencyFailureError,
    InvalidStateTransitionError,
    NotEligibleError,
    NotFoundError,
    PaymentDeclinedError,
    SequenceError,
    ValidationError,
)
from trust_settlement.infrastructure.database.repositories import EventRepository


@pytest_asyncio.fixture
async def pending_transaction(escrow, make_quote, make_rule, verify_level_1):
    await make_rule(percent="10")
    await verify_level_1("provider-1")
    quote = await make_quote()
    return await escrow.create_transaction(quote.id)


class TestCreateTransaction:
    @pytest.mark.asyncio
    async def test_amounts_split_by_commission(self, pending_transaction) -> None:
        tx = pending_transaction
        assert tx.status == "pending"
        assert tx.amount_xaf == 100_000
        assert tx.commission_xaf == 10_000
        assert tx.net_amount_xaf == 90_000
        assert tx.commission_xaf + tx.net_amount_xaf == tx.amount_xaf
        assert tx.auto_release_at is None

    @pytest.mark.asyncio
    async def test_idempotent_per_quote(self, escrow, pending_transaction) -> None:
        again = await escrow.create_transaction(pending_transaction.quote_id)
        assert again.id == pending_transaction.id

    @pytest.mark.asyncio
    async def test_unknown_quote(self, escrow) -> None:
        with pytest.raises(NotFoundError):
            await escrow.create_transaction(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_quote_must_be_accepted(
        self, escrow, make_quote, make_rule, verify_level_1
    ) -> None:
        await make_rule()
        await verify_level_1("provider-1")
        quote = await make_quote(status="pending")
        with pytest.raises(SequenceError, match="accepted"):
            await escrow.create_transaction(quote.id)

    @pytest.mark.asyncio
    async def test_unverified_provider(self, escrow, make_quote, make_rule) -> None:
        await make_rule()
        quote = await make_quote(provider_id="provider-x")
        with pytest.raises(NotEligibleError, match="no verification record"):
            await escrow.create_transaction(quote.id)

    @pytest.mark.asyncio
    async def test_provider_level_1_pending(
        self, escrow, verification, make_quote, make_rule
    ) -> None:
        await make_rule()
        await verification.submit_document("provider-1", "profile_photo", 1, "sim://p")
        quote = await make_quote()
        with pytest.raises(NotEligibleError, match="level 1"):
            await escrow.create_transaction(quote.id)

    @pytest.mark.asyncio
    async def test_suspended_provider(
        self, session, escrow, make_quote, make_rule, verify_level_1
    ) -> None:
        await make_rule()
        record = await verify_level_1("provider-1")
        record.is_suspended = True
        await session.flush()
        quote = await make_quote()
        with pytest.raises(NotEligibleError, match="suspended"):
            await escrow.create_transaction(quote.id)

    @pytest.mark.asyncio
    async def test_suspended_client(
        self, session, escrow, make_quote, make_rule, verify_level_1
    ) -> None:
        await make_rule()
        await verify_level_1("provider-1")
        client = await verify_level_1("client-1")
        client.is_suspended = True
        await session.flush()
        quote = await make_quote()
        with pytest.raises(NotEligibleError, match="client is suspended"):
            await escrow.create_transaction(quote.id)


class TestFunding:
    @pytest.mark.asyncio
    async def test_fund_sets_auto_release(
        self, escrow, pending_transaction, clock, notifier, commit
    ) -> None:
        tx = await escrow.fund(pending_transaction.id, "MOMO-REF-1")
        assert tx.status == "funded"
        assert tx.payment_reference == "MOMO-REF-1"
        assert tx.funded_at == clock()
        assert tx.auto_release_at == clock().replace(day=17)
        await commit()
        assert "transaction_funded" in notifier.kinds()

    @pytest.mark.asyncio
    async def test_declined_payment(self, escrow, pending_transaction, payments) -> None:
        payments.mode = "declined"
        with pytest.raises(PaymentDeclinedError):
            await escrow.fund(pending_transaction.id, "MOMO-REF-1")
        tx = await escrow.get_transaction(pending_transaction.id)
        assert tx.status == "pending"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", ["hang", "error"])
    async def test_collector_unavailable(
        self, escrow, pending_transaction, payments, mode
    ) -> None:
        payments.mode = mode
        with pytest.raises(DependencyFailureError, match="payment_collector"):
            await escrow.fund(pending_transaction.id, "MOMO-REF-1")
        tx = await escrow.get_transaction(pending_transaction.id)
        assert tx.status == "pending"
        assert tx.funded_at is None

    @pytest.mark.asyncio
    async def test_fund_twice(self, escrow, pending_transaction, payments) -> None:
        await escrow.fund(pending_transaction.id, "MOMO-REF-1")
        with pytest.raises(InvalidStateTransitionError):
            await escrow.fund(pending_transaction.id, "MOMO-REF-2")
        assert payments.calls == ["MOMO-REF-1"]

    @pytest.mark.asyncio
    async def test_empty_reference(self, escrow, pending_transaction) -> None:
        with pytest.raises(ValidationError):
            await escrow.fund(pending_transaction.id, " ")


class TestRelease:
    @pytest.mark.asyncio
    async def test_release_emits_one_payout(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        released = await escrow.release(tx.id, actor_id="client-1")
        assert released.status == "released"
        assert released.resolution_actor == "client-1"

        payout = await escrow.get_payout(tx.id)
        assert payout.amount_xaf == 90_000
        assert payout.status == "pending"
        assert payout.provider_id == "provider-1"

    @pytest.mark.asyncio
    async def test_release_twice(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        await escrow.release(tx.id, actor_id="client-1")
        with pytest.raises(AlreadyTerminalError):
            await escrow.release(tx.id, actor_id="client-1")

    @pytest.mark.asyncio
    async def test_provider_cannot_release(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        with pytest.raises(ValidationError, match="not the client"):
            await escrow.release(tx.id, actor_id="provider-1")
        assert (await escrow.get_transaction(tx.id)).status == "funded"
        assert await escrow.get_payout(tx.id) is None

    @pytest.mark.asyncio
    async def test_outsider_cannot_release(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        with pytest.raises(ValidationError, match="not the client"):
            await escrow.release(tx.id, actor_id="someone-else")

    @pytest.mark.asyncio
    async def test_disputed_needs_resolution(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        await escrow.raise_dispute(tx.id, "work incomplete", raised_by="provider-1")
        with pytest.raises(InvalidStateTransitionError):
            await escrow.release(tx.id, actor_id="client-1")
        assert (await escrow.get_transaction(tx.id)).status == "disputed"
        assert await escrow.get_payout(tx.id) is None

    @pytest.mark.asyncio
    async def test_pending_cannot_be_released(self, escrow, pending_transaction) -> None:
        with pytest.raises(InvalidStateTransitionError):
            await escrow.release(pending_transaction.id, actor_id="client-1")
        assert await escrow.get_payout(pending_transaction.id) is None

    @pytest.mark.asyncio
    async def test_status_lists_allowed_events(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        status = await escrow.get_status(tx.id)
        assert status["status"] == "funded"
        assert set(status["allowed_events"]) == {"release", "refund", "raise_dispute"}

    @pytest.mark.asyncio
    async def test_events_recorded(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        await escrow.release(tx.id, actor_id="client-1")
        events = [e.event_type for e in await escrow.get_events(tx.id)]
        assert sorted(events) == [
            "TRANSACTION_CREATED",
            "TRANSACTION_FUNDED",
            "TRANSACTION_RELEASED",
        ]


class TestRefund:
    @pytest.mark.asyncio
    async def test_refund_counts_cancellation(
        self, escrow, verification, funded_transaction, notifier, commit
    ) -> None:
        tx = await funded_transaction()
        refunded = await escrow.refund(tx.id, reason="work not started", actor_id="admin-1")
        assert refunded.status == "refunded"
        assert refunded.refund_reason == "work not started"
        assert await escrow.get_payout(tx.id) is None

        record = await verification.get_record("provider-1")
        assert record.cancellation_count == 1
        await commit()
        assert "transaction_refunded" in notifier.kinds()

    @pytest.mark.asyncio
    async def test_refund_requires_reason(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        with pytest.raises(ValidationError):
            await escrow.refund(tx.id, reason="", actor_id="admin-1")

    @pytest.mark.asyncio
    async def test_refund_after_release(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        await escrow.release(tx.id, actor_id="client-1")
        with pytest.raises(AlreadyTerminalError):
            await escrow.refund(tx.id, reason="too late", actor_id="admin-1")


class TestDisputes:
    @pytest.mark.asyncio
    async def test_party_can_dispute(
        self, escrow, funded_transaction, notifier, commit
    ) -> None:
        tx = await funded_transaction()
        disputed = await escrow.raise_dispute(tx.id, "work incomplete", raised_by="client-1")
        assert disputed.status == "disputed"
        assert disputed.dispute_reason == "work incomplete"
        await commit()
        assert notifier.sent[-1].recipient_id == "provider-1"

    @pytest.mark.asyncio
    async def test_outsider_cannot_dispute(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        with pytest.raises(ValidationError, match="not a party"):
            await escrow.raise_dispute(tx.id, "nosy", raised_by="someone-else")

    @pytest.mark.asyncio
    async def test_pending_cannot_be_disputed(self, escrow, pending_transaction) -> None:
        with pytest.raises(InvalidStateTransitionError):
            await escrow.raise_dispute(pending_transaction.id, "early", raised_by="client-1")

    @pytest.mark.asyncio
    async def test_resolve_release(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        await escrow.raise_dispute(tx.id, "late", raised_by="client-1")
        resolved = await escrow.resolve_dispute(tx.id, "release", actor_id="admin-1")
        assert resolved.status == "released"
        payout = await escrow.get_payout(tx.id)
        assert payout.amount_xaf == 90_000
        events = {e.event_type for e in await escrow.get_events(tx.id)}
        assert "DISPUTE_RESOLVED_RELEASE" in events

    @pytest.mark.asyncio
    async def test_resolve_refund(self, escrow, verification, funded_transaction) -> None:
        tx = await funded_transaction()
        await escrow.raise_dispute(tx.id, "never showed up", raised_by="client-1")
        resolved = await escrow.resolve_dispute(
            tx.id, "refund", actor_id="admin-1", notes="provider absent"
        )
        assert resolved.status == "refunded"
        assert resolved.refund_reason == "provider absent"
        assert await escrow.get_payout(tx.id) is None
        record = await verification.get_record("provider-1")
        assert record.cancellation_count == 1

    @pytest.mark.asyncio
    async def test_resolve_requires_dispute(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        with pytest.raises(InvalidStateTransitionError):
            await escrow.resolve_dispute(tx.id, "release", actor_id="admin-1")

    @pytest.mark.asyncio
    async def test_unknown_outcome(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        await escrow.raise_dispute(tx.id, "late", raised_by="client-1")
        with pytest.raises(ValidationError, match="outcome"):
            await escrow.resolve_dispute(tx.id, "split", actor_id="admin-1")


class TestSettlementRecompute:
    @pytest.mark.asyncio
    async def test_release_recomputes_provider_score(
        self, escrow, verification, funded_transaction
    ) -> None:
        tx = await funded_transaction()
        record = await verification.get_record("provider-1")
        record.trust_score = 99

        await escrow.release(tx.id, actor_id="client-1")
        record = await verification.get_record("provider-1")
        assert record.trust_score == 30
        trail = {(e.event_type, e.actor) for e in await verification.get_events("provider-1")}
        assert ("TRUST_SCORE_CHANGED", "client-1") in trail

    @pytest.mark.asyncio
    async def test_refund_recomputes_provider_score(
        self, escrow, verification, funded_transaction
    ) -> None:
        tx = await funded_transaction()
        record = await verification.get_record("provider-1")
        record.trust_score = 99

        await escrow.refund(tx.id, reason="work not started", actor_id="admin-1")
        record = await verification.get_record("provider-1")
        assert record.trust_score == 30
        assert record.cancellation_count == 1
        assert not record.is_suspended


class TestPayouts:
    @pytest.mark.asyncio
    async def test_complete_payout(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        await escrow.release(tx.id, actor_id="client-1")
        payout = await escrow.get_payout(tx.id)

        completed = await escrow.complete_payout(payout.id, "BANK-42", actor_id="ops-1")
        assert completed.status == "completed"
        assert completed.payout_reference == "BANK-42"
        with pytest.raises(SequenceError):
            await escrow.complete_payout(payout.id, "BANK-43", actor_id="ops-1")

    @pytest.mark.asyncio
    async def test_fail_payout(self, escrow, funded_transaction) -> None:
        tx = await funded_transaction()
        await escrow.release(tx.id, actor_id="client-1")
        payout = await escrow.get_payout(tx.id)

        failed = await escrow.fail_payout(payout.id, "account closed", actor_id="ops-2")
        assert failed.status == "failed"
        assert failed.failure_reason == "account closed"

    @pytest.mark.asyncio
    async def test_unknown_payout(self, escrow) -> None:
        with pytest.raises(NotFoundError):
            await escrow.complete_payout(uuid.uuid4(), "BANK-1", actor_id="ops-1")

    @pytest.mark.asyncio
    async def test_payout_actions_record_their_actor(
        self, session, escrow, funded_transaction
    ) -> None:
        first = await funded_transaction()
        second = await funded_transaction()
        await escrow.release(first.id, actor_id="client-1")
        await escrow.release(second.id, actor_id="client-1")
        paid = await escrow.get_payout(first.id)
        bounced = await escrow.get_payout(second.id)

        await escrow.complete_payout(paid.id, "BANK-42", actor_id="ops-1")
        await escrow.fail_payout(bounced.id, "account closed", actor_id="ops-2")

        events = EventRepository(session)
        paid_trail = await events.get_by_subject(SubjectType.PROVIDER_PAYOUT, str(paid.id))
        bounced_trail = await events.get_by_subject(SubjectType.PROVIDER_PAYOUT, str(bounced.id))
        assert {e.event_type: e.actor for e in paid_trail} == {
            "PAYOUT_REQUESTED": "client-1",
            "PAYOUT_COMPLETED": "ops-1",
        }
        assert {e.event_type: e.actor for e in bounced_trail} == {
            "PAYOUT_REQUESTED": "client-1",
            "PAYOUT_FAILED": "ops-2",
        }
