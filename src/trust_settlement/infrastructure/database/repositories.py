"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from trust_settlement.domain.enums import (
    DocumentStatus,
    EscrowStatus,
    ReportStatus,
    SubscriptionTier,
)
from trust_settlement.domain.exceptions import ConcurrencyConflictError
from trust_settlement.infrastructure.database.orm_models import (
    AccountReport,
    AuditEvent,
    CommissionRule,
    EscrowTransaction,
    PeriodCounter,
    ProviderPayout,
    ProviderSubscription,
    ReputationBadge,
    ReputationStats,
    ReputationVote,
    ServiceQuote,
    VerificationDocument,
    VerificationRecord,
)

if TYPE_CHECKING:
    import uuid
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from trust_settlement.domain.enums import EventType, SubjectType


async def flush_or_conflict(session: AsyncSession, subject: str) -> None:
    """Flush pending writes, turning lost races into ConcurrencyConflictError.

    A stale version counter (optimistic lock) or a unique key inserted by a
    concurrent request both mean the caller should retry from a fresh read.
    """
    try:
        await session.flush()
    except (StaleDataError, IntegrityError) as err:
        raise ConcurrencyConflictError(subject) from err


class VerificationRepository:
    """Data access for verification records."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, record: VerificationRecord) -> VerificationRecord:
        self._session.add(record)
        await flush_or_conflict(self._session, f"verification record {record.account_id}")
        return record

    async def get_by_account(self, account_id: str) -> VerificationRecord | None:
        result = await self._session.execute(
            select(VerificationRecord).where(VerificationRecord.account_id == account_id)
        )
        return result.scalar_one_or_none()

    async def save(self, record: VerificationRecord) -> VerificationRecord:
        """Flush changes; the version column guards against lost updates."""
        await flush_or_conflict(self._session, f"verification record {record.account_id}")
        return record


class DocumentRepository:
    """Data access for verification documents."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, document: VerificationDocument) -> VerificationDocument:
        self._session.add(document)
        await self._session.flush()
        return document

    async def get_by_id(self, document_id: uuid.UUID) -> VerificationDocument | None:
        result = await self._session.execute(
            select(VerificationDocument).where(VerificationDocument.id == document_id)
        )
        return result.scalar_one_or_none()

    async def list_for_record(self, record_id: uuid.UUID) -> list[VerificationDocument]:
        result = await self._session.execute(
            select(VerificationDocument)
            .where(VerificationDocument.record_id == record_id)
            .order_by(VerificationDocument.created_at.asc())
        )
        return list(result.scalars().all())

    async def approved_types(self, record_id: uuid.UUID, level: int) -> set[str]:
        """Document types with at least one approved document for a level."""
        result = await self._session.execute(
            select(VerificationDocument.document_type)
            .where(
                VerificationDocument.record_id == record_id,
                VerificationDocument.verification_level == level,
                VerificationDocument.status == DocumentStatus.APPROVED.value,
            )
            .distinct()
        )
        return set(result.scalars().all())

    async def save(self, document: VerificationDocument) -> VerificationDocument:
        await self._session.flush()
        return document


class ReportRepository:
    """Data access for abuse reports."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, report: AccountReport) -> AccountReport:
        self._session.add(report)
        await self._session.flush()
        return report

    async def get_by_id(self, report_id: uuid.UUID) -> AccountReport | None:
        result = await self._session.execute(
            select(AccountReport).where(AccountReport.id == report_id)
        )
        return result.scalar_one_or_none()

    async def count_approved(self, reported_user_id: str) -> int:
        result = await self._session.execute(
            select(func.count(AccountReport.id)).where(
                AccountReport.reported_user_id == reported_user_id,
                AccountReport.status == ReportStatus.APPROVED.value,
            )
        )
        return int(result.scalar_one())


class VoteRepository:
    """Data access for reputation votes."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(
        self, voter_id: str, target_user_id: str, context_key: str
    ) -> ReputationVote | None:
        result = await self._session.execute(
            select(ReputationVote).where(
                ReputationVote.voter_id == voter_id,
                ReputationVote.target_user_id == target_user_id,
                ReputationVote.context_key == context_key,
            )
        )
        return result.scalar_one_or_none()

    async def create(self, vote: ReputationVote) -> ReputationVote:
        self._session.add(vote)
        await flush_or_conflict(self._session, f"vote {vote.voter_id}->{vote.target_user_id}")
        return vote


class StatsRepository:
    """Data access for reputation stats and badges."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_user(self, user_id: str) -> ReputationStats | None:
        result = await self._session.execute(
            select(ReputationStats).where(ReputationStats.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def create(self, stats: ReputationStats) -> ReputationStats:
        self._session.add(stats)
        await flush_or_conflict(self._session, f"reputation stats {stats.user_id}")
        return stats

    async def save(self, stats: ReputationStats) -> ReputationStats:
        await flush_or_conflict(self._session, f"reputation stats {stats.user_id}")
        return stats

    async def badge_levels(self, user_id: str, badge_type: str) -> set[int]:
        result = await self._session.execute(
            select(ReputationBadge.badge_level).where(
                ReputationBadge.user_id == user_id,
                ReputationBadge.badge_type == badge_type,
            )
        )
        return set(result.scalars().all())

    async def add_badge(self, badge: ReputationBadge) -> ReputationBadge:
        self._session.add(badge)
        await flush_or_conflict(self._session, f"badge {badge.user_id}/{badge.badge_level}")
        return badge

    async def list_badges(self, user_id: str) -> list[ReputationBadge]:
        result = await self._session.execute(
            select(ReputationBadge)
            .where(ReputationBadge.user_id == user_id)
            .order_by(ReputationBadge.earned_at.asc(), ReputationBadge.badge_level.asc())
        )
        return list(result.scalars().all())


class QuoteRepository:
    """Read access to service quotes owned by the marketplace."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, quote_id: uuid.UUID) -> ServiceQuote | None:
        result = await self._session.execute(
            select(ServiceQuote).where(ServiceQuote.id == quote_id)
        )
        return result.scalar_one_or_none()


class CommissionRuleRepository:
    """Read access to the commission table and provider subscriptions."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def matching(
        self, country_code: str, tier: str, amount_xaf: int
    ) -> list[CommissionRule]:
        """All active rules whose amount range contains `amount_xaf`."""
        result = await self._session.execute(
            select(CommissionRule).where(
                CommissionRule.country_code == country_code,
                CommissionRule.subscription_tier == tier,
                CommissionRule.is_active.is_(True),
                CommissionRule.min_amount <= amount_xaf,
                (CommissionRule.max_amount.is_(None))
                | (CommissionRule.max_amount >= amount_xaf),
            )
        )
        return list(result.scalars().all())

    async def active_tier(self, user_id: str, now: datetime) -> str | None:
        result = await self._session.execute(
            select(ProviderSubscription.subscription_tier)
            .where(
                ProviderSubscription.user_id == user_id,
                ProviderSubscription.is_active.is_(True),
                ProviderSubscription.starts_at <= now,
                (ProviderSubscription.ends_at.is_(None))
                | (ProviderSubscription.ends_at > now),
            )
            .order_by(ProviderSubscription.starts_at.desc())
            .limit(1)
        )
        tier = result.scalar_one_or_none()
        if tier is not None and tier not in {t.value for t in SubscriptionTier}:
            return None
        return tier


class EscrowRepository:
    """Data access for escrow transactions."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, transaction: EscrowTransaction) -> EscrowTransaction:
        self._session.add(transaction)
        await flush_or_conflict(self._session, f"escrow for quote {transaction.quote_id}")
        return transaction

    async def get_by_id(
        self, transaction_id: uuid.UUID, refresh: bool = False
    ) -> EscrowTransaction | None:
        stmt = select(EscrowTransaction).where(EscrowTransaction.id == transaction_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_quote(self, quote_id: uuid.UUID) -> EscrowTransaction | None:
        result = await self._session.execute(
            select(EscrowTransaction).where(EscrowTransaction.quote_id == quote_id)
        )
        return result.scalar_one_or_none()

    async def save(self, transaction: EscrowTransaction) -> EscrowTransaction:
        """Flush changes (call AFTER state machine validation)."""
        await flush_or_conflict(self._session, f"escrow transaction {transaction.id}")
        return transaction

    async def due_for_release(self, now: datetime, limit: int = 500) -> list[uuid.UUID]:
        """IDs of funded transactions whose auto-release time has passed."""
        result = await self._session.execute(
            select(EscrowTransaction.id)
            .where(
                EscrowTransaction.status == EscrowStatus.FUNDED.value,
                EscrowTransaction.auto_release_at.is_not(None),
                EscrowTransaction.auto_release_at <= now,
            )
            .order_by(EscrowTransaction.auto_release_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_due_for_release(self, now: datetime) -> int:
        result = await self._session.execute(
            select(func.count(EscrowTransaction.id)).where(
                EscrowTransaction.status == EscrowStatus.FUNDED.value,
                EscrowTransaction.auto_release_at.is_not(None),
                EscrowTransaction.auto_release_at <= now,
            )
        )
        return int(result.scalar_one())

    async def claim_auto_release(self, transaction_id: uuid.UUID, now: datetime) -> bool:
        """Conditionally move funded -> released. Returns True only for the winner.

        The WHERE clause re-checks status and deadline, so a concurrent sweep,
        manual release or dispute makes this a no-op instead of a double release.
        """
        result = await self._session.execute(
            update(EscrowTransaction)
            .where(
                EscrowTransaction.id == transaction_id,
                EscrowTransaction.status == EscrowStatus.FUNDED.value,
                EscrowTransaction.auto_release_at <= now,
            )
            .values(
                status=EscrowStatus.RELEASED.value,
                released_at=now,
                updated_at=now,
                version=EscrowTransaction.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class PayoutRepository:
    """Data access for provider payouts."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, payout: ProviderPayout) -> ProviderPayout:
        self._session.add(payout)
        await flush_or_conflict(self._session, f"payout for escrow {payout.escrow_id}")
        return payout

    async def get_by_id(self, payout_id: uuid.UUID) -> ProviderPayout | None:
        result = await self._session.execute(
            select(ProviderPayout).where(ProviderPayout.id == payout_id)
        )
        return result.scalar_one_or_none()

    async def get_by_escrow(self, escrow_id: uuid.UUID) -> ProviderPayout | None:
        result = await self._session.execute(
            select(ProviderPayout).where(ProviderPayout.escrow_id == escrow_id)
        )
        return result.scalar_one_or_none()

    async def save(self, payout: ProviderPayout) -> ProviderPayout:
        await self._session.flush()
        return payout


class PeriodCounterRepository:
    """Running totals keyed by (subject, counter, calendar period)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, subject_id: str, counter: str, period_key: str) -> PeriodCounter | None:
        result = await self._session.execute(
            select(PeriodCounter).where(
                PeriodCounter.subject_id == subject_id,
                PeriodCounter.counter == counter,
                PeriodCounter.period_key == period_key,
            )
        )
        return result.scalar_one_or_none()

    async def lock(
        self, subject_id: str, counter: str, period_key: str, now: datetime
    ) -> PeriodCounter:
        """Fetch the row FOR UPDATE, starting it at zero for a new period.

        Two requests opening the same period both insert; the loser hits the
        unique key and gets ConcurrencyConflictError.
        """
        result = await self._session.execute(
            select(PeriodCounter)
            .where(
                PeriodCounter.subject_id == subject_id,
                PeriodCounter.counter == counter,
                PeriodCounter.period_key == period_key,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is not None:
            return row
        row = PeriodCounter(
            subject_id=subject_id,
            counter=counter,
            period_key=period_key,
            value=0,
            created_at=now,
            updated_at=now,
        )
        self._session.add(row)
        await flush_or_conflict(self._session, f"{counter} {subject_id}@{period_key}")
        return row

    async def save(self, row: PeriodCounter) -> PeriodCounter:
        """Flush the new value; the version column rejects a lost update."""
        await flush_or_conflict(
            self._session, f"{row.counter} {row.subject_id}@{row.period_key}"
        )
        return row


class EventRepository:
    """Data access for the append-only audit event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        subject_type: SubjectType,
        subject_id: str,
        event_type: EventType,
        old_status: str | None = None,
        new_status: str | None = None,
        actor: str = "SYSTEM",
        metadata: dict | None = None,
        created_at: datetime | None = None,
    ) -> AuditEvent:
        """Append a new audit event. This is the ONLY write operation allowed."""
        evt = AuditEvent(
            subject_type=subject_type.value,
            subject_id=subject_id,
            event_type=event_type.value,
            old_status=old_status,
            new_status=new_status,
            actor=actor,
            metadata_json=metadata,
        )
        if created_at is not None:
            evt.created_at = created_at
        self._session.add(evt)
        await self._session.flush()
        return evt

    async def get_by_subject(
        self, subject_type: SubjectType, subject_id: str
    ) -> list[AuditEvent]:
        """Fetch all events for a subject in chronological order."""
        result = await self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.subject_type == subject_type.value,
                AuditEvent.subject_id == subject_id,
            )
            .order_by(AuditEvent.created_at.asc())
        )
        return list(result.scalars().all())
