"""Verification Service — the four-level verification ledger.

Coordinates between:
    - Level policy (domain/eligibility.py): order, cooling periods, requirements
    - Level state machine (domain/state_machine.py): legal status moves
    - Repositories and the audit event log
    - The trust cascade, fired after approvals, validated reports and signals

Every check runs before the first write, so a refused request leaves no
document row and no status change behind.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from trust_settlement.domain.eligibility import (
    LEVEL_REQUIREMENTS,
    LEVELS,
    LevelEligibility,
    cooling_period,
    evaluate_level,
    requirements_met,
)
from trust_settlement.domain.enums import (
    AccountType,
    DocumentDecision,
    DocumentStatus,
    DocumentType,
    EventType,
    LevelStatus,
    NotificationKind,
    ReportStatus,
    SubjectType,
    UserType,
)
from trust_settlement.domain.exceptions import (
    DocumentAlreadyDecidedError,
    InvalidLevelOrderError,
    NotFoundError,
    SequenceError,
    ValidationError,
)
from trust_settlement.domain.state_machine import validate_level_transition
from trust_settlement.infrastructure.collaborators import call_dependency
from trust_settlement.infrastructure.database.orm_models import (
    AccountReport,
    VerificationDocument,
    VerificationRecord,
)
from trust_settlement.infrastructure.database.repositories import (
    DocumentRepository,
    EventRepository,
    ReportRepository,
    VerificationRepository,
)
from trust_settlement.logging_config import get_logger
from trust_settlement.services.cascade import TrustCascade
from trust_settlement.services.context import ServiceContext, defer_notification

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

E = TypeVar("E", bound=enum.StrEnum)

SUPER_OWNER_SCORE = 80


def parse_choice(enum_cls: type[E], value: str, field_name: str) -> E:
    """Coerce a raw string to an enum member or raise ValidationError."""
    try:
        return enum_cls(value)
    except ValueError as err:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {field_name} '{value}'. Expected one of: {allowed}"
        ) from err


def derive_badges(record: VerificationRecord) -> list[str]:
    """Badges displayed next to an account, derived from its ledger state."""
    badges: list[str] = []
    if record.level_1_status == LevelStatus.APPROVED:
        badges.append("account_confirmed")
    if record.level_2_status == LevelStatus.APPROVED:
        badges.append("identity_verified")
    if record.level_3_status == LevelStatus.APPROVED:
        badges.append("property_verified")
    if record.level_4_status == LevelStatus.APPROVED:
        badges.append(f"{record.account_type}_certified")
    if record.trust_score >= SUPER_OWNER_SCORE:
        badges.append("super_owner")
    return badges


@dataclass(frozen=True)
class VerificationSummary:
    record: VerificationRecord
    badges: list[str]
    displayed_trust_score: int | None
    levels: list[LevelEligibility]


class VerificationService:
    """Manages verification records, documents, reports and suspension lifts."""

    def __init__(self, session: AsyncSession, ctx: ServiceContext | None = None) -> None:
        self._session = session
        self._ctx = ctx or ServiceContext()
        self._record_repo = VerificationRepository(session)
        self._document_repo = DocumentRepository(session)
        self._report_repo = ReportRepository(session)
        self._event_repo = EventRepository(session)
        self._cascade = TrustCascade(session, self._ctx)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    async def get_or_create_record(
        self,
        account_id: str,
        user_type: str | None = None,
        account_type: str | None = None,
    ) -> VerificationRecord:
        """Return the account's record, creating it on first use."""
        record = await self._record_repo.get_by_account(account_id)
        if record is not None:
            return record

        now = self._ctx.now()
        record = VerificationRecord(
            account_id=account_id,
            user_type=parse_choice(UserType, user_type or UserType.OWNER, "user_type").value,
            account_type=parse_choice(
                AccountType, account_type or AccountType.OWNER, "account_type"
            ).value,
            current_level=1,
            level_1_eligible_at=now,
            created_at=now,
            updated_at=now,
        )
        record = await self._record_repo.create(record)

        await self._event_repo.record(
            subject_type=SubjectType.VERIFICATION_RECORD,
            subject_id=account_id,
            event_type=EventType.RECORD_CREATED,
            new_status=f"level_{record.current_level}",
            actor=account_id,
            metadata={"user_type": record.user_type, "account_type": record.account_type},
            created_at=now,
        )
        logger.info("verification.record_created", account_id=account_id)

        await self._cascade.on_record_created(account_id)
        return record

    async def get_record(self, account_id: str) -> VerificationRecord:
        return await self._get_record_or_raise(account_id)

    async def set_account_type(self, account_id: str, account_type: str) -> VerificationRecord:
        """Switch between owner, agent and agency (drives the level 4 badge)."""
        new_type = parse_choice(AccountType, account_type, "account_type")
        record = await self._get_record_or_raise(account_id)
        record.account_type = new_type.value
        await self._record_repo.save(record)
        logger.info("verification.account_type_set", account_id=account_id, type=new_type)
        return record

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def submit_document(
        self,
        account_id: str,
        document_type: str,
        level: int,
        file_url: str,
        file_name: str | None = None,
    ) -> VerificationDocument:
        """Attach a stored document to a level and move the level to pending.

        Raises:
            ValidationError: Unknown level or document type, or empty URL.
            InvalidLevelOrderError: The level cannot be requested now.
        """
        doc_type = self._validate_document_args(document_type, level)
        if not file_url or not file_url.strip():
            raise ValidationError("file_url must not be empty")

        record = await self.get_or_create_record(account_id)
        self._assert_requestable(record, level)
        old_status = record.level_status(level)
        new_status = validate_level_transition(old_status, "submit")

        now = self._ctx.now()
        document = VerificationDocument(
            record_id=record.id,
            account_id=account_id,
            document_type=doc_type.value,
            verification_level=level,
            status=DocumentStatus.PENDING.value,
            file_url=file_url,
            file_name=file_name,
            created_at=now,
        )
        document = await self._document_repo.create(document)

        record.set_level_status(level, new_status)
        await self._record_repo.save(record)

        await self._event_repo.record(
            subject_type=SubjectType.VERIFICATION_RECORD,
            subject_id=account_id,
            event_type=EventType.DOCUMENT_SUBMITTED,
            old_status=old_status,
            new_status=new_status,
            actor=account_id,
            metadata={
                "document_id": str(document.id),
                "document_type": doc_type.value,
                "level": level,
            },
            created_at=now,
        )

        logger.info(
            "verification.document_submitted",
            account_id=account_id,
            document_id=str(document.id),
            level=level,
            document_type=doc_type.value,
        )
        return document

    async def upload_document(
        self,
        account_id: str,
        document_type: str,
        level: int,
        content: bytes,
        file_name: str,
    ) -> VerificationDocument:
        """Store the bytes with the document storage, then submit the URL.

        The level is checked before uploading so a refused request never
        leaves an orphan blob behind.
        """
        self._validate_document_args(document_type, level)
        if not content:
            raise ValidationError("Uploaded document is empty")
        record = await self._record_repo.get_by_account(account_id)
        if record is not None:
            self._assert_requestable(record, level)

        file_url = await call_dependency(
            "document_storage",
            self._ctx.collaborators.storage.store(content, file_name),
            self._ctx.settings.dependency_timeout_seconds,
        )
        return await self.submit_document(
            account_id=account_id,
            document_type=document_type,
            level=level,
            file_url=file_url,
            file_name=file_name,
        )

    async def decide_document(
        self,
        document_id: uuid.UUID,
        decision: str,
        reviewer_id: str,
        reason: str | None = None,
    ) -> VerificationDocument:
        """Approve or reject one pending document.

        Approving the last missing document of a pending level approves the
        level, opens the next level after its cooling period and runs the
        trust cascade. Rejection needs a reason and leaves the level as is.
        """
        choice = parse_choice(DocumentDecision, decision, "decision")
        if choice == DocumentDecision.REJECTED and not (reason and reason.strip()):
            raise ValidationError("A rejection reason is required")

        document = await self._document_repo.get_by_id(document_id)
        if document is None:
            raise NotFoundError("Document", str(document_id))
        if document.status != DocumentStatus.PENDING:
            raise DocumentAlreadyDecidedError(str(document_id), document.status)

        record = await self._get_record_or_raise(document.account_id)
        now = self._ctx.now()
        document.verified_by = reviewer_id
        document.verified_at = now

        if choice == DocumentDecision.REJECTED:
            document.status = DocumentStatus.REJECTED.value
            document.rejection_reason = reason.strip()
            await self._document_repo.save(document)
            await self._event_repo.record(
                subject_type=SubjectType.VERIFICATION_DOCUMENT,
                subject_id=str(document.id),
                event_type=EventType.DOCUMENT_REJECTED,
                old_status=DocumentStatus.PENDING,
                new_status=DocumentStatus.REJECTED,
                actor=reviewer_id,
                metadata={"reason": document.rejection_reason},
                created_at=now,
            )
            logger.info(
                "verification.document_rejected",
                document_id=str(document.id),
                reviewer=reviewer_id,
            )
            defer_notification(
                self._session,
                self._ctx,
                NotificationKind.DOCUMENT_REJECTED,
                record.account_id,
                document_id=str(document.id),
                level=document.verification_level,
                reason=document.rejection_reason,
            )
            return document

        document.status = DocumentStatus.APPROVED.value
        await self._document_repo.save(document)
        await self._event_repo.record(
            subject_type=SubjectType.VERIFICATION_DOCUMENT,
            subject_id=str(document.id),
            event_type=EventType.DOCUMENT_APPROVED,
            old_status=DocumentStatus.PENDING,
            new_status=DocumentStatus.APPROVED,
            actor=reviewer_id,
            created_at=now,
        )
        logger.info(
            "verification.document_approved",
            document_id=str(document.id),
            reviewer=reviewer_id,
        )

        level = document.verification_level
        if record.level_status(level) == LevelStatus.PENDING:
            approved_types = await self._document_repo.approved_types(record.id, level)
            if requirements_met(level, approved_types):
                await self._approve_level(record, level, reviewer_id)

        return document

    async def list_documents(self, account_id: str) -> list[VerificationDocument]:
        record = await self._get_record_or_raise(account_id)
        return await self._document_repo.list_for_record(record.id)

    # ------------------------------------------------------------------
    # Levels
    # ------------------------------------------------------------------

    async def reject_level(
        self,
        account_id: str,
        level: int,
        reviewer_id: str,
        reason: str,
    ) -> VerificationRecord:
        """Mark a pending level rejected. The account may resubmit afterwards."""
        return await self._close_pending_level(
            account_id, level, reviewer_id, reason, "reject", EventType.LEVEL_REJECTED
        )

    async def expire_level(
        self,
        account_id: str,
        level: int,
        actor_id: str,
        reason: str,
    ) -> VerificationRecord:
        """Expire a pending level whose submission went stale; resubmission reopens it."""
        return await self._close_pending_level(
            account_id, level, actor_id, reason, "expire", EventType.LEVEL_EXPIRED
        )

    async def _close_pending_level(
        self,
        account_id: str,
        level: int,
        actor_id: str,
        reason: str,
        event: str,
        event_type: EventType,
    ) -> VerificationRecord:
        if level not in LEVELS:
            raise ValidationError(f"Unknown verification level {level}")
        if not reason or not reason.strip():
            raise ValidationError(f"A reason is required to {event} a level")

        record = await self._get_record_or_raise(account_id)
        old_status = record.level_status(level)
        new_status = validate_level_transition(old_status, event)
        record.set_level_status(level, new_status)
        await self._record_repo.save(record)

        await self._event_repo.record(
            subject_type=SubjectType.VERIFICATION_RECORD,
            subject_id=account_id,
            event_type=event_type,
            old_status=old_status,
            new_status=new_status,
            actor=actor_id,
            metadata={"level": level, "reason": reason.strip()},
            created_at=self._ctx.now(),
        )
        logger.info(
            "verification.level_closed",
            account_id=account_id,
            level=level,
            status=new_status,
        )
        return record

    async def check_eligibility(self, account_id: str) -> list[LevelEligibility]:
        """Per-level status and eligibility. Read only, creates nothing."""
        record = await self._record_repo.get_by_account(account_id)
        now = self._ctx.now()
        if record is None:
            statuses: dict[int, str | None] = dict.fromkeys(LEVELS)
            eligible_at = {1: now, 2: None, 3: None, 4: None}
            user_type = UserType.OWNER.value
        else:
            statuses = record.level_statuses()
            eligible_at = record.level_eligibility_columns()
            user_type = record.user_type

        return [
            evaluate_level(
                level=level,
                statuses=statuses,
                eligible_at=eligible_at,
                user_type=user_type,
                seeker_max_level=self._ctx.settings.seeker_max_level,
                now=now,
            )
            for level in LEVELS
        ]

    # ------------------------------------------------------------------
    # Reports and behavioural signals
    # ------------------------------------------------------------------

    async def file_report(
        self,
        reporter_id: str,
        reported_user_id: str,
        reason: str,
        description: str | None = None,
    ) -> AccountReport:
        if reporter_id == reported_user_id:
            raise ValidationError("Accounts cannot report themselves")
        if not reason or not reason.strip():
            raise ValidationError("A report reason is required")

        now = self._ctx.now()
        report = AccountReport(
            reporter_id=reporter_id,
            reported_user_id=reported_user_id,
            reason=reason.strip(),
            description=description,
            status=ReportStatus.PENDING.value,
            created_at=now,
        )
        report = await self._report_repo.create(report)

        await self._event_repo.record(
            subject_type=SubjectType.ACCOUNT_REPORT,
            subject_id=str(report.id),
            event_type=EventType.REPORT_FILED,
            new_status=ReportStatus.PENDING,
            actor=reporter_id,
            metadata={"reported_user_id": reported_user_id, "reason": report.reason},
            created_at=now,
        )
        logger.info(
            "verification.report_filed",
            report_id=str(report.id),
            reported_user_id=reported_user_id,
        )
        return report

    async def resolve_report(
        self,
        report_id: uuid.UUID,
        decision: str,
        actor_id: str,
        notes: str | None = None,
    ) -> AccountReport:
        """Validate or dismiss a report. A validated report lowers the trust score."""
        choice = parse_choice(ReportStatus, decision, "decision")
        if choice == ReportStatus.PENDING:
            raise ValidationError("A report can only be resolved as approved or rejected")

        report = await self._report_repo.get_by_id(report_id)
        if report is None:
            raise NotFoundError("Report", str(report_id))
        if report.status != ReportStatus.PENDING:
            raise SequenceError(
                f"Report {report_id} is already {report.status}",
                code="REPORT_ALREADY_RESOLVED",
            )

        now = self._ctx.now()
        report.status = choice.value
        report.reviewed_by = actor_id
        report.reviewed_at = now
        report.resolution_notes = notes
        await self._session.flush()

        await self._event_repo.record(
            subject_type=SubjectType.ACCOUNT_REPORT,
            subject_id=str(report.id),
            event_type=(
                EventType.REPORT_APPROVED
                if choice == ReportStatus.APPROVED
                else EventType.REPORT_REJECTED
            ),
            old_status=ReportStatus.PENDING,
            new_status=choice,
            actor=actor_id,
            metadata={"notes": notes} if notes else None,
            created_at=now,
        )
        logger.info("verification.report_resolved", report_id=str(report.id), decision=choice)

        if choice == ReportStatus.APPROVED:
            await self._cascade.on_report_validated(report.reported_user_id, actor=actor_id)
        return report

    async def update_response_rate(self, account_id: str, rate: int) -> VerificationRecord:
        if not 0 <= rate <= 100:
            raise ValidationError(f"response_rate must be between 0 and 100, got {rate}")

        record = await self._get_record_or_raise(account_id)
        if record.response_rate == rate:
            return record
        record.response_rate = rate
        await self._record_repo.save(record)
        await self._cascade.on_signal_updated(account_id, actor="SYSTEM")
        return record

    async def lift_suspension(
        self, account_id: str, actor_id: str, notes: str | None = None
    ) -> VerificationRecord:
        """Admin-only reinstatement. Recomputation never does this on its own."""
        record = await self._get_record_or_raise(account_id)
        if not record.is_suspended:
            raise SequenceError(
                f"Account {account_id} is not suspended", code="NOT_SUSPENDED"
            )

        previous_reason = record.suspension_reason
        record.is_suspended = False
        record.suspension_reason = None
        record.suspended_at = None
        await self._record_repo.save(record)

        await self._event_repo.record(
            subject_type=SubjectType.VERIFICATION_RECORD,
            subject_id=account_id,
            event_type=EventType.SUSPENSION_LIFTED,
            old_status="suspended",
            new_status="active",
            actor=actor_id,
            metadata={"notes": notes, "previous_reason": previous_reason},
            created_at=self._ctx.now(),
        )
        logger.info("verification.suspension_lifted", account_id=account_id, actor=actor_id)
        return record

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_summary(self, account_id: str) -> VerificationSummary:
        record = await self._get_record_or_raise(account_id)
        displayed = None if record.user_type == UserType.SEEKER else record.trust_score
        return VerificationSummary(
            record=record,
            badges=derive_badges(record),
            displayed_trust_score=displayed,
            levels=await self.check_eligibility(account_id),
        )

    async def get_events(self, account_id: str) -> list:
        return await self._event_repo.get_by_subject(
            SubjectType.VERIFICATION_RECORD, account_id
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_record_or_raise(self, account_id: str) -> VerificationRecord:
        record = await self._record_repo.get_by_account(account_id)
        if record is None:
            raise NotFoundError("Verification record", account_id)
        return record

    @staticmethod
    def _validate_document_args(document_type: str, level: int) -> DocumentType:
        if level not in LEVELS:
            raise ValidationError(f"Unknown verification level {level}")
        doc_type = parse_choice(DocumentType, document_type, "document_type")
        if not any(doc_type in group for group in LEVEL_REQUIREMENTS[level]):
            raise ValidationError(
                f"Document type '{doc_type.value}' does not count toward level {level}"
            )
        return doc_type

    def _assert_requestable(self, record: VerificationRecord, level: int) -> None:
        verdict = evaluate_level(
            level=level,
            statuses=record.level_statuses(),
            eligible_at=record.level_eligibility_columns(),
            user_type=record.user_type,
            seeker_max_level=self._ctx.settings.seeker_max_level,
            now=self._ctx.now(),
        )
        if not verdict.requestable:
            raise InvalidLevelOrderError(level, verdict.reason or "not requestable")

    async def _approve_level(
        self, record: VerificationRecord, level: int, reviewer_id: str
    ) -> None:
        now = self._ctx.now()
        new_status = validate_level_transition(record.level_status(level), "approve")
        record.set_level_status(level, new_status)
        record.set_level_completed_at(level, now)
        record.current_level = max(record.current_level, level)
        if level < LEVELS[-1]:
            cooling = cooling_period(level, self._ctx.settings.verification_cooling_days)
            record.set_level_eligible_at(level + 1, now + cooling)
        await self._record_repo.save(record)

        await self._event_repo.record(
            subject_type=SubjectType.VERIFICATION_RECORD,
            subject_id=record.account_id,
            event_type=EventType.LEVEL_APPROVED,
            old_status=LevelStatus.PENDING,
            new_status=LevelStatus.APPROVED,
            actor=reviewer_id,
            metadata={"level": level},
            created_at=now,
        )
        logger.info(
            "verification.level_approved",
            account_id=record.account_id,
            level=level,
        )

        defer_notification(
            self._session,
            self._ctx,
            NotificationKind.LEVEL_APPROVED,
            record.account_id,
            level=level,
        )
        await self._cascade.on_level_approved(record.account_id, level, actor=reviewer_id)
