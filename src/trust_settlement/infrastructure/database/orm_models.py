"""SQLAlchemy 2.0 ORM models for the Trust & Settlement core.

Tables owned by the core:
    1. verification_records   — one verification ledger row per account.
    2. verification_documents — documents submitted for a level.
    3. account_reports        — abuse reports, validated by admins.
    4. reputation_votes       — one vote per (voter, target, context).
    5. reputation_stats       — cached aggregate of the vote set.
    6. reputation_badges      — append-only badge history.
    7. escrow_transactions    — money held for a service engagement.
    8. provider_payouts       — payout requests emitted on release.
    9. audit_events           — append-only trail of every state change.
   10. period_counters        — monthly commission and daily vote totals.

Tables written by external collaborators and only read here:
    service_quotes, provider_subscriptions, commission_rules.

Design decisions:
    - UUIDs as primary keys.
    - Integer XAF amounts; Decimal percentages (no floating point drift).
    - Optimistic locking (version_id_col) on rows mutated by racing events.
    - CHECK constraints mirror the numeric and enum invariants at DB level.
    - audit_events is append-only: no UPDATE or DELETE at the application level.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal  # noqa: TC003 - needed at runtime by SQLAlchemy Mapped[]

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class UTCDateTime(TypeDecorator):
    """Timezone-aware DateTime that always hands back UTC-aware values.

    SQLite drops tzinfo on the way out; PostgreSQL keeps it. Both come back aware.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):  # noqa: ANN001
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value

    def process_result_value(self, value, dialect):  # noqa: ANN001
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# 1. verification_records
# ---------------------------------------------------------------------------
class VerificationRecord(Base):
    """Per-account verification ledger, trust score and behaviour counters."""

    __tablename__ = "verification_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    user_type: Mapped[str] = mapped_column(String(16), nullable=False, default="owner")
    account_type: Mapped[str] = mapped_column(String(16), nullable=False, default="owner")

    # --- Levels ---
    current_level: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Highest approved level, 1 while nothing is approved",
    )
    level_1_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    level_2_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    level_3_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    level_4_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    level_1_eligible_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    level_2_eligible_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    level_3_eligible_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    level_4_eligible_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    level_1_completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    level_2_completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    level_3_completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    level_4_completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # --- Trust ---
    trust_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_suspended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    suspension_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    suspended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # --- Behaviour counters ---
    positive_reviews_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    negative_reviews_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reports_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    response_rate: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cancellation_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("current_level BETWEEN 1 AND 4", name="ck_record_level_range"),
        CheckConstraint("response_rate BETWEEN 0 AND 100", name="ck_record_response_rate"),
        CheckConstraint(
            "level_2_status IS NULL OR level_2_status <> 'approved' "
            "OR level_1_status = 'approved'",
            name="ck_record_level_2_chain",
        ),
        CheckConstraint(
            "level_3_status IS NULL OR level_3_status <> 'approved' "
            "OR level_2_status = 'approved'",
            name="ck_record_level_3_chain",
        ),
        CheckConstraint(
            "level_4_status IS NULL OR level_4_status <> 'approved' "
            "OR level_3_status = 'approved'",
            name="ck_record_level_4_chain",
        ),
        Index("idx_record_suspended", "is_suspended"),
    )

    def level_status(self, level: int) -> str | None:
        return getattr(self, f"level_{level}_status")

    def set_level_status(self, level: int, status: str | None) -> None:
        setattr(self, f"level_{level}_status", status)

    def level_eligible_at(self, level: int) -> datetime | None:
        return getattr(self, f"level_{level}_eligible_at")

    def set_level_eligible_at(self, level: int, value: datetime | None) -> None:
        setattr(self, f"level_{level}_eligible_at", value)

    def set_level_completed_at(self, level: int, value: datetime | None) -> None:
        setattr(self, f"level_{level}_completed_at", value)

    def level_statuses(self) -> dict[int, str | None]:
        return {level: self.level_status(level) for level in (1, 2, 3, 4)}

    def level_eligibility_columns(self) -> dict[int, datetime | None]:
        return {level: self.level_eligible_at(level) for level in (1, 2, 3, 4)}

    def __repr__(self) -> str:
        return (
            f"<VerificationRecord account={self.account_id} level={self.current_level} "
            f"score={self.trust_score} suspended={self.is_suspended}>"
        )


# ---------------------------------------------------------------------------
# 2. verification_documents
# ---------------------------------------------------------------------------
class VerificationDocument(Base):
    """A document submitted for one verification level. Terminal once decided."""

    __tablename__ = "verification_documents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("verification_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    document_type: Mapped[str] = mapped_column(String(32), nullable=False)
    verification_level: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    file_url: Mapped[str] = mapped_column(Text, nullable=False, comment="Opaque blob URL")
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    face_match_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    duplicate_detected: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_document_valid_status",
        ),
        CheckConstraint("verification_level BETWEEN 1 AND 4", name="ck_document_level"),
        CheckConstraint(
            "status <> 'rejected' OR rejection_reason IS NOT NULL",
            name="ck_document_rejection_reason",
        ),
        Index("idx_document_record_level", "record_id", "verification_level"),
        Index("idx_document_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<VerificationDocument id={self.id} type={self.document_type} "
            f"level={self.verification_level} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# 3. account_reports
# ---------------------------------------------------------------------------
class AccountReport(Base):
    """An abuse report filed against an account, validated by an admin."""

    __tablename__ = "account_reports"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reporter_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reported_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    reviewed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_report_valid_status",
        ),
        Index("idx_report_reported_user", "reported_user_id"),
    )


# ---------------------------------------------------------------------------
# 4. reputation_votes
# ---------------------------------------------------------------------------
class ReputationVote(Base):
    """A peer vote. At most one row per (voter, target, context)."""

    __tablename__ = "reputation_votes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    voter_id: Mapped[str] = mapped_column(String(64), nullable=False)
    target_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    vote_type: Mapped[str] = mapped_column(String(8), nullable=False)
    context: Mapped[str | None] = mapped_column(String(64), nullable=True)
    context_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    context_key: Mapped[str] = mapped_column(
        String(140),
        nullable=False,
        comment="Normalised context:context_id, carries the uniqueness guard",
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "voter_id", "target_user_id", "context_key", name="uq_vote_voter_target_context"
        ),
        CheckConstraint("vote_type IN ('up', 'down')", name="ck_vote_valid_type"),
        CheckConstraint("voter_id <> target_user_id", name="ck_vote_not_self"),
        Index("idx_vote_target", "target_user_id"),
        Index("idx_vote_voter_created", "voter_id", "created_at"),
    )


# ---------------------------------------------------------------------------
# 5. reputation_stats
# ---------------------------------------------------------------------------
class ReputationStats(Base):
    """Aggregate of the votes received by one account."""

    __tablename__ = "reputation_stats"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    upvotes_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downvotes_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    badges_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_badge_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("upvotes_received >= 0", name="ck_stats_upvotes"),
        CheckConstraint("downvotes_received >= 0", name="ck_stats_downvotes"),
    )


# ---------------------------------------------------------------------------
# 6. reputation_badges (Append-Only)
# ---------------------------------------------------------------------------
class ReputationBadge(Base):
    """A badge earned by crossing a points tier. Never removed."""

    __tablename__ = "reputation_badges"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    badge_type: Mapped[str] = mapped_column(String(32), nullable=False)
    badge_level: Mapped[int] = mapped_column(Integer, nullable=False)
    points_at_award: Mapped[int] = mapped_column(Integer, nullable=False)
    earned_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "badge_type", "badge_level", name="uq_badge_tier"),
        Index("idx_badge_user", "user_id"),
    )


# ---------------------------------------------------------------------------
# 7. service_quotes (written by the marketplace, read here)
# ---------------------------------------------------------------------------
class ServiceQuote(Base):
    """A provider's quote for a service request."""

    __tablename__ = "service_quotes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    request_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    client_id: Mapped[str] = mapped_column(String(64), nullable=False)
    provider_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount_xaf: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# 8. provider_subscriptions (written by billing, read here)
# ---------------------------------------------------------------------------
class ProviderSubscription(Base):
    __tablename__ = "provider_subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subscription_tier: Mapped[str] = mapped_column(String(16), nullable=False, default="free")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    starts_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    ends_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (Index("idx_subscription_user", "user_id"),)


# ---------------------------------------------------------------------------
# 9. commission_rules (externally administered lookup table)
# ---------------------------------------------------------------------------
class CommissionRule(Base):
    """Commission rate and monthly cap for a country, tier and amount range."""

    __tablename__ = "commission_rules"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    country_code: Mapped[str] = mapped_column(String(2), nullable=False, default="CM")
    subscription_tier: Mapped[str] = mapped_column(String(16), nullable=False, default="free")
    min_amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    max_amount: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True, comment="Inclusive upper bound; NULL = unbounded"
    )
    commission_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    monthly_cap_xaf: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        CheckConstraint(
            "commission_percent >= 0 AND commission_percent <= 100",
            name="ck_rule_percent_range",
        ),
        Index("idx_rule_lookup", "country_code", "subscription_tier", "is_active"),
    )


# ---------------------------------------------------------------------------
# 10. escrow_transactions
# ---------------------------------------------------------------------------
class EscrowTransaction(Base):
    """Money held for one accepted service quote."""

    __tablename__ = "escrow_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    quote_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, unique=True)
    request_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    client_id: Mapped[str] = mapped_column(String(64), nullable=False)
    provider_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # --- Financials ---
    amount_xaf: Mapped[int] = mapped_column(BigInteger, nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    commission_xaf: Mapped[int] = mapped_column(BigInteger, nullable=False)
    net_amount_xaf: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # --- Status (Enum-guarded) ---
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="pending",
        comment="Current lifecycle state (guarded by EscrowStateMachine)",
    )
    funded_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    auto_release_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    released_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    disputed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    dispute_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    refund_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolution_actor: Mapped[str | None] = mapped_column(String(64), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'funded', 'released', 'refunded', 'disputed')",
            name="ck_escrow_valid_status",
        ),
        CheckConstraint("amount_xaf > 0", name="ck_escrow_positive_amount"),
        CheckConstraint("commission_xaf >= 0", name="ck_escrow_commission_non_negative"),
        CheckConstraint(
            "amount_xaf = commission_xaf + net_amount_xaf",
            name="ck_escrow_amount_balances",
        ),
        Index("idx_escrow_status_release", "status", "auto_release_at"),
        Index("idx_escrow_provider_created", "provider_id", "created_at"),
        Index("idx_escrow_client", "client_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<EscrowTransaction id={self.id} status={self.status} "
            f"amount={self.amount_xaf} XAF>"
        )


# ---------------------------------------------------------------------------
# 11. provider_payouts
# ---------------------------------------------------------------------------
class ProviderPayout(Base):
    """Money movement out to the provider for a released transaction."""

    __tablename__ = "provider_payouts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    escrow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("escrow_transactions.id"),
        nullable=False,
        unique=True,
    )
    provider_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount_xaf: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    payout_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed')",
            name="ck_payout_valid_status",
        ),
        CheckConstraint("amount_xaf >= 0", name="ck_payout_amount"),
    )


# ---------------------------------------------------------------------------
# 12. audit_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class AuditEvent(Base):
    """Immutable record of a state change and the actor that caused it.

    This table is APPEND-ONLY. No UPDATE or DELETE operations are permitted
    at the application level.
    """

    __tablename__ = "audit_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    subject_type: Mapped[str] = mapped_column(String(32), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    event_type: Mapped[str] = mapped_column(String(40), nullable=False)
    old_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    actor: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="SYSTEM",
        comment="Who triggered this event (account id, reviewer id or SYSTEM)",
    )
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata",
        JSONType,
        nullable=True,
        default=None,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_audit_subject", "subject_type", "subject_id"),
        Index("idx_audit_event_type", "event_type"),
        Index("idx_audit_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditEvent {self.subject_type}:{self.subject_id} type={self.event_type} "
            f"{self.old_status}->{self.new_status}>"
        )


# ---------------------------------------------------------------------------
# 13. period_counters
# ---------------------------------------------------------------------------
class PeriodCounter(Base):
    """A running total for one subject, one counter and one calendar period.

    Used for a provider's commission charged in a month ("2024-06") and a
    voter's effective votes on a day ("2024-06-10"). Rows are read FOR UPDATE
    and carry a version counter; a new period simply starts a new row.
    """

    __tablename__ = "period_counters"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    counter: Mapped[str] = mapped_column(String(32), nullable=False)
    period_key: Mapped[str] = mapped_column(
        String(10), nullable=False, comment="YYYY-MM or YYYY-MM-DD, UTC"
    )
    value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint(
            "subject_id", "counter", "period_key", name="uq_period_counter_subject"
        ),
        CheckConstraint("value >= 0", name="ck_period_counter_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<PeriodCounter {self.counter}:{self.subject_id}@{self.period_key}={self.value}>"
