"""Trust Service — recomputes an account's trust score and applies suspension.

Inputs are read fresh on every call:
    - level 1 status and response rate from the verification record
    - review counts from the reputation stats aggregate
    - validated report count from account_reports

The mirrored counters on the record are overwritten, never incremented, so a
second recompute from the same inputs writes nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from trust_settlement.domain.enums import (
    EventType,
    LevelStatus,
    NotificationKind,
    SubjectType,
)
from trust_settlement.domain.trust_score import (
    TrustInputs,
    TrustWeights,
    compute_trust_score,
    propose_suspension,
)
from trust_settlement.infrastructure.database.repositories import (
    EventRepository,
    ReportRepository,
    StatsRepository,
    VerificationRepository,
)
from trust_settlement.logging_config import get_logger
from trust_settlement.services.context import ServiceContext, defer_notification

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from trust_settlement.infrastructure.database.orm_models import VerificationRecord

logger = get_logger(__name__)


@dataclass(frozen=True)
class Recomputation:
    account_id: str
    previous_score: int
    score: int
    raw_score: int
    suspended: bool
    newly_suspended: bool


class TrustService:
    """Keeps `trust_score` and `is_suspended` consistent with their inputs."""

    def __init__(self, session: AsyncSession, ctx: ServiceContext | None = None) -> None:
        self._session = session
        self._ctx = ctx or ServiceContext()
        self._weights = TrustWeights.from_settings(self._ctx.settings)
        self._record_repo = VerificationRepository(session)
        self._stats_repo = StatsRepository(session)
        self._report_repo = ReportRepository(session)
        self._event_repo = EventRepository(session)

    async def recompute(
        self,
        account_id: str,
        actor: str = "SYSTEM",
        signal_changed: bool = False,
    ) -> Recomputation | None:
        """Recompute one account's score. Returns None when it has no record yet.

        Suspension is only proposed when something actually moved: the score,
        a mirrored counter, or a signal the caller wrote itself
        (`signal_changed`). An admin's lift therefore survives a no-op
        recompute. Nothing here ever unsuspends.
        """
        record = await self._record_repo.get_by_account(account_id)
        if record is None:
            logger.debug("trust.recompute_skipped", account_id=account_id, reason="no_record")
            return None

        stats = await self._stats_repo.get_by_user(account_id)
        inputs = TrustInputs(
            level_1_approved=record.level_1_status == LevelStatus.APPROVED,
            positive_reviews_count=stats.upvotes_received if stats else 0,
            negative_reviews_count=stats.downvotes_received if stats else 0,
            validated_reports_count=await self._report_repo.count_approved(account_id),
            response_rate=record.response_rate,
        )
        score = compute_trust_score(inputs, self._weights)

        previous = record.trust_score
        counters_moved = self._mirror_counters(record, inputs)
        record.trust_score = score.clamped

        if score.clamped != previous:
            await self._event_repo.record(
                subject_type=SubjectType.VERIFICATION_RECORD,
                subject_id=account_id,
                event_type=EventType.TRUST_SCORE_CHANGED,
                old_status=str(previous),
                new_status=str(score.clamped),
                actor=actor,
                metadata={"raw": score.raw},
                created_at=self._ctx.now(),
            )

        newly_suspended = False
        changed = signal_changed or counters_moved or score.clamped != previous
        if changed and not record.is_suspended:
            reason = propose_suspension(inputs, score, self._weights)
            if reason is not None:
                await self._suspend(record, reason, actor)
                newly_suspended = True

        await self._record_repo.save(record)

        if changed:
            logger.info(
                "trust.recomputed",
                account_id=account_id,
                previous=previous,
                score=score.clamped,
                raw=score.raw,
                suspended=record.is_suspended,
            )

        if newly_suspended:
            defer_notification(
                self._session,
                self._ctx,
                NotificationKind.ACCOUNT_SUSPENDED,
                account_id,
                reason=record.suspension_reason,
                trust_score=record.trust_score,
            )

        return Recomputation(
            account_id=account_id,
            previous_score=previous,
            score=score.clamped,
            raw_score=score.raw,
            suspended=record.is_suspended,
            newly_suspended=newly_suspended,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _mirror_counters(record: VerificationRecord, inputs: TrustInputs) -> bool:
        moved = (
            record.positive_reviews_count != inputs.positive_reviews_count
            or record.negative_reviews_count != inputs.negative_reviews_count
            or record.reports_count != inputs.validated_reports_count
        )
        record.positive_reviews_count = inputs.positive_reviews_count
        record.negative_reviews_count = inputs.negative_reviews_count
        record.reports_count = inputs.validated_reports_count
        return moved

    async def _suspend(self, record: VerificationRecord, reason: str, actor: str) -> None:
        record.is_suspended = True
        record.suspension_reason = reason
        record.suspended_at = self._ctx.now()

        await self._event_repo.record(
            subject_type=SubjectType.VERIFICATION_RECORD,
            subject_id=record.account_id,
            event_type=EventType.ACCOUNT_SUSPENDED,
            old_status="active",
            new_status="suspended",
            actor=actor,
            metadata={"reason": reason, "trust_score": record.trust_score},
            created_at=self._ctx.now(),
        )
        logger.warning(
            "trust.account_suspended",
            account_id=record.account_id,
            score=record.trust_score,
        )
