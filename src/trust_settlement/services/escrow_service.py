"""Escrow Service — core business logic for the settlement lifecycle.

This is the application layer that coordinates between:
    - Domain state machine (transition guard)
    - Commission resolver (platform cut, monthly cap)
    - Payment collector (funding confirmation, called before any write)
    - Repositories (data access)
    - Event log (audit trail)

Both REST routes and the auto-release sweep call into this service,
ensuring a single source of truth for all business rules.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from trust_settlement.domain.enums import (
    DisputeOutcome,
    EscrowStatus,
    EventType,
    LevelStatus,
    NotificationKind,
    PayoutStatus,
    QuoteStatus,
    SubjectType,
)
from trust_settlement.domain.exceptions import (
    InvalidStateTransitionError,
    NotEligibleError,
    NotFoundError,
    PaymentDeclinedError,
    SequenceError,
    ValidationError,
)
from trust_settlement.domain.state_machine import EscrowStateMachine, validate_transition
from trust_settlement.infrastructure.collaborators import call_dependency
from trust_settlement.infrastructure.database.orm_models import (
    EscrowTransaction,
    ProviderPayout,
)
from trust_settlement.infrastructure.database.repositories import (
    EscrowRepository,
    EventRepository,
    PayoutRepository,
    QuoteRepository,
    VerificationRepository,
)
from trust_settlement.logging_config import get_logger
from trust_settlement.services.cascade import TrustCascade
from trust_settlement.services.commission_service import CommissionService
from trust_settlement.services.context import ServiceContext, defer_notification
from trust_settlement.services.verification_service import parse_choice

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class EscrowService:
    """Manages the escrow transaction lifecycle."""

    def __init__(self, session: AsyncSession, ctx: ServiceContext | None = None) -> None:
        self._session = session
        self._ctx = ctx or ServiceContext()
        self._escrow_repo = EscrowRepository(session)
        self._payout_repo = PayoutRepository(session)
        self._quote_repo = QuoteRepository(session)
        self._record_repo = VerificationRepository(session)
        self._event_repo = EventRepository(session)
        self._commission = CommissionService(session, self._ctx)
        self._cascade = TrustCascade(session, self._ctx)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_transaction(
        self,
        quote_id: uuid.UUID,
        country_code: str | None = None,
    ) -> EscrowTransaction:
        """Open an escrow for an accepted quote. Idempotent per quote."""
        existing = await self._escrow_repo.get_by_quote(quote_id)
        if existing is not None:
            logger.info("escrow.create_replayed", transaction_id=str(existing.id))
            return existing

        quote = await self._quote_repo.get_by_id(quote_id)
        if quote is None:
            raise NotFoundError("Quote", str(quote_id))
        if quote.status != QuoteStatus.ACCEPTED:
            raise SequenceError(
                f"Quote {quote_id} is {quote.status}; only accepted quotes can be escrowed",
                code="QUOTE_NOT_ACCEPTED",
            )

        await self._assert_provider_eligible(quote.provider_id)
        await self._assert_not_suspended(quote.client_id)

        commission = await self._commission.charge(
            amount_xaf=quote.amount_xaf,
            provider_id=quote.provider_id,
            country_code=country_code,
        )

        now = self._ctx.now()
        transaction = EscrowTransaction(
            quote_id=quote.id,
            request_id=quote.request_id,
            client_id=quote.client_id,
            provider_id=quote.provider_id,
            amount_xaf=commission.amount_xaf,
            commission_rate=commission.commission_rate,
            commission_xaf=commission.commission_xaf,
            net_amount_xaf=commission.net_amount_xaf,
            status=EscrowStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        transaction = await self._escrow_repo.create(transaction)

        await self._event_repo.record(
            subject_type=SubjectType.ESCROW_TRANSACTION,
            subject_id=str(transaction.id),
            event_type=EventType.TRANSACTION_CREATED,
            new_status=EscrowStatus.PENDING,
            actor=quote.client_id,
            metadata={
                "quote_id": str(quote.id),
                "amount_xaf": commission.amount_xaf,
                "commission_xaf": commission.commission_xaf,
                "commission_rate": str(commission.commission_rate),
                "capped": commission.capped,
            },
            created_at=now,
        )

        logger.info(
            "escrow.created",
            transaction_id=str(transaction.id),
            amount=transaction.amount_xaf,
            commission=transaction.commission_xaf,
        )
        return transaction

    # ------------------------------------------------------------------
    # Funding
    # ------------------------------------------------------------------

    async def fund(self, transaction_id: uuid.UUID, payment_reference: str) -> EscrowTransaction:
        """Confirm the client's payment with the collector, then mark funded.

        Raises:
            DependencyFailureError: The collector could not be reached in time.
            PaymentDeclinedError: The collector reports the payment failed.
        """
        if not payment_reference or not payment_reference.strip():
            raise ValidationError("payment_reference must not be empty")

        transaction = await self._get_or_raise(transaction_id)
        new_status = validate_transition(transaction.status, "fund")

        confirmation = await call_dependency(
            "payment_collector",
            self._ctx.collaborators.payments.confirm_funding(payment_reference),
            self._ctx.settings.dependency_timeout_seconds,
        )
        if not confirmation.success:
            logger.warning(
                "escrow.funding_declined",
                transaction_id=str(transaction_id),
                reference=payment_reference,
                details=confirmation.details,
            )
            raise PaymentDeclinedError(payment_reference)

        now = self._ctx.now()
        old_status = transaction.status
        transaction.status = new_status
        transaction.payment_reference = payment_reference
        transaction.funded_at = now
        transaction.auto_release_at = now + timedelta(
            days=self._ctx.settings.escrow_auto_release_days
        )
        transaction.updated_at = now
        await self._escrow_repo.save(transaction)

        await self._event_repo.record(
            subject_type=SubjectType.ESCROW_TRANSACTION,
            subject_id=str(transaction.id),
            event_type=EventType.TRANSACTION_FUNDED,
            old_status=old_status,
            new_status=new_status,
            actor=transaction.client_id,
            metadata={
                "payment_reference": payment_reference,
                "auto_release_at": transaction.auto_release_at.isoformat(),
            },
            created_at=now,
        )

        logger.info(
            "escrow.funded",
            transaction_id=str(transaction_id),
            reference=payment_reference,
        )
        defer_notification(
            self._session,
            self._ctx,
            NotificationKind.TRANSACTION_FUNDED,
            transaction.provider_id,
            transaction_id=str(transaction.id),
            amount_xaf=transaction.amount_xaf,
        )
        return transaction

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    async def release(self, transaction_id: uuid.UUID, actor_id: str) -> EscrowTransaction:
        """Client confirms the work; funds go to the provider with exactly one payout.

        A disputed transaction is only settled through `resolve_dispute`.
        """
        transaction = await self._get_or_raise(transaction_id)
        new_status = validate_transition(transaction.status, "release")
        if transaction.status == EscrowStatus.DISPUTED:
            raise InvalidStateTransitionError(transaction.status, "release")
        if actor_id != transaction.client_id:
            raise ValidationError(
                f"{actor_id} is not the client of transaction {transaction_id}"
            )
        await self._settle_release(
            transaction, new_status, actor_id, EventType.TRANSACTION_RELEASED
        )
        return transaction

    async def refund(
        self,
        transaction_id: uuid.UUID,
        reason: str,
        actor_id: str,
    ) -> EscrowTransaction:
        """Return held funds to the client and count a cancellation on the provider."""
        if not reason or not reason.strip():
            raise ValidationError("A refund reason is required")
        transaction = await self._get_or_raise(transaction_id)
        new_status = validate_transition(transaction.status, "refund")
        await self._settle_refund(
            transaction, new_status, reason.strip(), actor_id, EventType.TRANSACTION_REFUNDED
        )
        return transaction

    # ------------------------------------------------------------------
    # Disputes
    # ------------------------------------------------------------------

    async def raise_dispute(
        self,
        transaction_id: uuid.UUID,
        reason: str,
        raised_by: str,
    ) -> EscrowTransaction:
        """Freeze a funded transaction. Auto-release no longer applies."""
        if not reason or not reason.strip():
            raise ValidationError("A dispute reason is required")
        transaction = await self._get_or_raise(transaction_id)
        if raised_by not in (transaction.client_id, transaction.provider_id):
            raise ValidationError(
                f"{raised_by} is not a party to transaction {transaction_id}"
            )

        old_status = transaction.status
        new_status = validate_transition(old_status, "raise_dispute")

        now = self._ctx.now()
        transaction.status = new_status
        transaction.disputed_at = now
        transaction.dispute_reason = reason.strip()
        transaction.updated_at = now
        await self._escrow_repo.save(transaction)

        await self._event_repo.record(
            subject_type=SubjectType.ESCROW_TRANSACTION,
            subject_id=str(transaction.id),
            event_type=EventType.DISPUTE_RAISED,
            old_status=old_status,
            new_status=new_status,
            actor=raised_by,
            metadata={"reason": transaction.dispute_reason},
            created_at=now,
        )

        logger.info("escrow.dispute_raised", transaction_id=str(transaction_id), by=raised_by)
        other_party = (
            transaction.provider_id if raised_by == transaction.client_id else transaction.client_id
        )
        defer_notification(
            self._session,
            self._ctx,
            NotificationKind.TRANSACTION_DISPUTED,
            other_party,
            transaction_id=str(transaction.id),
            reason=transaction.dispute_reason,
        )
        return transaction

    async def resolve_dispute(
        self,
        transaction_id: uuid.UUID,
        outcome: str,
        actor_id: str,
        notes: str | None = None,
    ) -> EscrowTransaction:
        """Admin decision on a disputed transaction: release or refund."""
        choice = parse_choice(DisputeOutcome, outcome, "outcome")
        transaction = await self._get_or_raise(transaction_id)
        if transaction.status != EscrowStatus.DISPUTED:
            # Terminal rows get AlreadyTerminalError from the guard.
            validate_transition(transaction.status, choice.value)
            raise InvalidStateTransitionError(transaction.status, f"resolve_{choice.value}")

        if choice == DisputeOutcome.RELEASE:
            new_status = validate_transition(transaction.status, "release")
            await self._settle_release(
                transaction, new_status, actor_id, EventType.DISPUTE_RESOLVED_RELEASE, notes
            )
        else:
            new_status = validate_transition(transaction.status, "refund")
            await self._settle_refund(
                transaction,
                new_status,
                notes or transaction.dispute_reason or "dispute resolved for client",
                actor_id,
                EventType.DISPUTE_RESOLVED_REFUND,
            )
        return transaction

    # ------------------------------------------------------------------
    # Auto-release (called by the sweep)
    # ------------------------------------------------------------------

    async def auto_release_one(self, transaction_id: uuid.UUID) -> bool:
        """Claim and release one overdue funded transaction.

        Returns False when another actor got there first (released, refunded,
        disputed, or simply not due anymore). Only the claim winner emits
        the payout.
        """
        now = self._ctx.now()
        claimed = await self._escrow_repo.claim_auto_release(transaction_id, now)
        if not claimed:
            logger.debug("auto_release.claim_lost", transaction_id=str(transaction_id))
            return False

        transaction = await self._escrow_repo.get_by_id(transaction_id, refresh=True)
        if transaction is None:
            raise NotFoundError("Escrow transaction", str(transaction_id))

        transaction.resolution_actor = "SYSTEM"
        payout = await self._emit_payout(transaction, now, "SYSTEM")
        await self._event_repo.record(
            subject_type=SubjectType.ESCROW_TRANSACTION,
            subject_id=str(transaction.id),
            event_type=EventType.TRANSACTION_AUTO_RELEASED,
            old_status=EscrowStatus.FUNDED,
            new_status=EscrowStatus.RELEASED,
            actor="SYSTEM",
            metadata={
                "payout_id": str(payout.id),
                "auto_release_at": transaction.auto_release_at.isoformat(),
            },
            created_at=now,
        )

        logger.info(
            "escrow.auto_released",
            transaction_id=str(transaction_id),
            payout_id=str(payout.id),
        )
        await self._cascade.on_transaction_settled(transaction.provider_id, actor="SYSTEM")
        defer_notification(
            self._session,
            self._ctx,
            NotificationKind.TRANSACTION_RELEASED,
            transaction.provider_id,
            transaction_id=str(transaction.id),
            net_amount_xaf=transaction.net_amount_xaf,
        )
        return True

    # ------------------------------------------------------------------
    # Payouts
    # ------------------------------------------------------------------

    async def complete_payout(
        self, payout_id: uuid.UUID, reference: str, actor_id: str
    ) -> ProviderPayout:
        """Operator confirms the provider was paid out of band."""
        payout = await self._get_payout_or_raise(payout_id)
        self._assert_payout_pending(payout)
        now = self._ctx.now()
        payout.status = PayoutStatus.COMPLETED.value
        payout.payout_reference = reference
        payout.completed_at = now
        await self._payout_repo.save(payout)

        await self._event_repo.record(
            subject_type=SubjectType.PROVIDER_PAYOUT,
            subject_id=str(payout.id),
            event_type=EventType.PAYOUT_COMPLETED,
            old_status=PayoutStatus.PENDING,
            new_status=PayoutStatus.COMPLETED,
            actor=actor_id,
            metadata={"reference": reference, "escrow_id": str(payout.escrow_id)},
            created_at=now,
        )
        logger.info(
            "payout.completed", payout_id=str(payout.id), reference=reference, actor=actor_id
        )
        return payout

    async def fail_payout(
        self, payout_id: uuid.UUID, reason: str, actor_id: str
    ) -> ProviderPayout:
        payout = await self._get_payout_or_raise(payout_id)
        self._assert_payout_pending(payout)
        payout.status = PayoutStatus.FAILED.value
        payout.failure_reason = reason
        await self._payout_repo.save(payout)

        await self._event_repo.record(
            subject_type=SubjectType.PROVIDER_PAYOUT,
            subject_id=str(payout.id),
            event_type=EventType.PAYOUT_FAILED,
            old_status=PayoutStatus.PENDING,
            new_status=PayoutStatus.FAILED,
            actor=actor_id,
            metadata={"reason": reason, "escrow_id": str(payout.escrow_id)},
            created_at=self._ctx.now(),
        )
        logger.warning("payout.failed", payout_id=str(payout.id), reason=reason, actor=actor_id)
        return payout

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_transaction(self, transaction_id: uuid.UUID) -> EscrowTransaction:
        """Get a transaction or raise."""
        return await self._get_or_raise(transaction_id)

    async def get_status(self, transaction_id: uuid.UUID) -> dict:
        """Get transaction status with allowed events."""
        transaction = await self._get_or_raise(transaction_id)
        sm = EscrowStateMachine(current_status=transaction.status)
        return {
            "transaction_id": str(transaction.id),
            "status": transaction.status,
            "auto_release_at": transaction.auto_release_at,
            "allowed_events": sm.get_allowed_events(),
        }

    async def get_payout(self, transaction_id: uuid.UUID) -> ProviderPayout | None:
        return await self._payout_repo.get_by_escrow(transaction_id)

    async def get_events(self, transaction_id: uuid.UUID) -> list:
        """Get audit trail."""
        return await self._event_repo.get_by_subject(
            SubjectType.ESCROW_TRANSACTION, str(transaction_id)
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_or_raise(self, transaction_id: uuid.UUID) -> EscrowTransaction:
        transaction = await self._escrow_repo.get_by_id(transaction_id)
        if transaction is None:
            raise NotFoundError("Escrow transaction", str(transaction_id))
        return transaction

    async def _get_payout_or_raise(self, payout_id: uuid.UUID) -> ProviderPayout:
        payout = await self._payout_repo.get_by_id(payout_id)
        if payout is None:
            raise NotFoundError("Payout", str(payout_id))
        return payout

    @staticmethod
    def _assert_payout_pending(payout: ProviderPayout) -> None:
        if payout.status != PayoutStatus.PENDING:
            raise SequenceError(
                f"Payout {payout.id} is already {payout.status}",
                code="PAYOUT_ALREADY_SETTLED",
            )

    async def _assert_provider_eligible(self, provider_id: str) -> None:
        min_level = self._ctx.settings.escrow_min_provider_level
        record = await self._record_repo.get_by_account(provider_id)
        if record is None:
            raise NotEligibleError(provider_id, "provider has no verification record")
        if record.is_suspended:
            raise NotEligibleError(provider_id, "provider is suspended")
        if record.level_status(min_level) != LevelStatus.APPROVED:
            raise NotEligibleError(
                provider_id, f"verification level {min_level} is not approved"
            )

    async def _assert_not_suspended(self, client_id: str) -> None:
        record = await self._record_repo.get_by_account(client_id)
        if record is not None and record.is_suspended:
            raise NotEligibleError(client_id, "client is suspended")

    async def _emit_payout(
        self, transaction: EscrowTransaction, now: datetime, actor: str
    ) -> ProviderPayout:
        payout = await self._payout_repo.create(
            ProviderPayout(
                escrow_id=transaction.id,
                provider_id=transaction.provider_id,
                amount_xaf=transaction.net_amount_xaf,
                status=PayoutStatus.PENDING.value,
                created_at=now,
            )
        )
        await self._event_repo.record(
            subject_type=SubjectType.PROVIDER_PAYOUT,
            subject_id=str(payout.id),
            event_type=EventType.PAYOUT_REQUESTED,
            new_status=PayoutStatus.PENDING,
            actor=actor,
            metadata={"escrow_id": str(transaction.id), "amount_xaf": payout.amount_xaf},
            created_at=now,
        )
        return payout

    async def _settle_release(
        self,
        transaction: EscrowTransaction,
        new_status: str,
        actor_id: str,
        event_type: EventType,
        notes: str | None = None,
    ) -> None:
        now = self._ctx.now()
        old_status = transaction.status
        transaction.status = new_status
        transaction.released_at = now
        transaction.resolution_actor = actor_id
        transaction.updated_at = now
        await self._escrow_repo.save(transaction)

        payout = await self._emit_payout(transaction, now, actor_id)
        metadata: dict = {"payout_id": str(payout.id)}
        if notes:
            metadata["notes"] = notes
        await self._event_repo.record(
            subject_type=SubjectType.ESCROW_TRANSACTION,
            subject_id=str(transaction.id),
            event_type=event_type,
            old_status=old_status,
            new_status=new_status,
            actor=actor_id,
            metadata=metadata,
            created_at=now,
        )

        logger.info(
            "escrow.released",
            transaction_id=str(transaction.id),
            payout_id=str(payout.id),
            net_amount=transaction.net_amount_xaf,
            actor=actor_id,
        )
        await self._cascade.on_transaction_settled(transaction.provider_id, actor=actor_id)
        defer_notification(
            self._session,
            self._ctx,
            NotificationKind.TRANSACTION_RELEASED,
            transaction.provider_id,
            transaction_id=str(transaction.id),
            net_amount_xaf=transaction.net_amount_xaf,
        )

    async def _settle_refund(
        self,
        transaction: EscrowTransaction,
        new_status: str,
        reason: str,
        actor_id: str,
        event_type: EventType,
    ) -> None:
        now = self._ctx.now()
        old_status = transaction.status
        transaction.status = new_status
        transaction.refunded_at = now
        transaction.refund_reason = reason
        transaction.resolution_actor = actor_id
        transaction.updated_at = now
        await self._escrow_repo.save(transaction)
        await self._commission.give_back(transaction)

        provider_record = await self._record_repo.get_by_account(transaction.provider_id)
        if provider_record is not None:
            provider_record.cancellation_count += 1
            await self._record_repo.save(provider_record)

        await self._event_repo.record(
            subject_type=SubjectType.ESCROW_TRANSACTION,
            subject_id=str(transaction.id),
            event_type=event_type,
            old_status=old_status,
            new_status=new_status,
            actor=actor_id,
            metadata={"reason": reason},
            created_at=now,
        )

        logger.info(
            "escrow.refunded",
            transaction_id=str(transaction.id),
            amount=transaction.amount_xaf,
            actor=actor_id,
        )
        await self._cascade.on_transaction_settled(
            transaction.provider_id, actor=actor_id, cancelled=True
        )
        defer_notification(
            self._session,
            self._ctx,
            NotificationKind.TRANSACTION_REFUNDED,
            transaction.client_id,
            transaction_id=str(transaction.id),
            amount_xaf=transaction.amount_xaf,
        )
