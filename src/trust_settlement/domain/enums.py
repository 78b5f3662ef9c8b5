"""Domain enumerations for the Trust & Settlement core.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class LevelStatus(enum.StrEnum):
    """Status of a single verification level.

    An unstarted level is stored as NULL, not as a member of this enum.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class DocumentStatus(enum.StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DocumentDecision(enum.StrEnum):
    APPROVED = "approved"
    REJECTED = "rejected"


class DocumentType(enum.StrEnum):
    """Kinds of document an account can submit for verification."""

    PROFILE_PHOTO = "profile_photo"
    ID_CARD = "id_card"
    PASSPORT = "passport"
    SELFIE_WITH_ID = "selfie_with_id"
    DIGITAL_SIGNATURE = "digital_signature"
    PROPERTY_PHOTO = "property_photo"
    PROPERTY_VIDEO = "property_video"
    UTILITY_BILL = "utility_bill"
    BUSINESS_REGISTER = "business_register"
    MANAGEMENT_MANDATE = "management_mandate"
    OTHER = "other"


class UserType(enum.StrEnum):
    SEEKER = "seeker"
    OWNER = "owner"
    BOTH = "both"


class AccountType(enum.StrEnum):
    OWNER = "owner"
    AGENT = "agent"
    AGENCY = "agency"


class ReportStatus(enum.StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class VoteType(enum.StrEnum):
    UP = "up"
    DOWN = "down"


class EscrowStatus(enum.StrEnum):
    """Lifecycle states of an escrow transaction.

    State transitions are enforced by the EscrowStateMachine guard.
    See domain/state_machine.py for the transition table.
    """

    PENDING = "pending"
    FUNDED = "funded"
    RELEASED = "released"
    REFUNDED = "refunded"
    DISPUTED = "disputed"


class DisputeOutcome(enum.StrEnum):
    RELEASE = "release"
    REFUND = "refund"


class PayoutStatus(enum.StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class QuoteStatus(enum.StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class SubscriptionTier(enum.StrEnum):
    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"


class CounterName(enum.StrEnum):
    """Running totals kept per calendar period in period_counters."""

    COMMISSION_XAF = "commission_xaf"
    VOTES_CAST = "votes_cast"


class SubjectType(enum.StrEnum):
    """Kinds of entity an audit event can be attached to."""

    VERIFICATION_RECORD = "verification_record"
    VERIFICATION_DOCUMENT = "verification_document"
    ACCOUNT_REPORT = "account_report"
    ESCROW_TRANSACTION = "escrow_transaction"
    PROVIDER_PAYOUT = "provider_payout"


class EventType(enum.StrEnum):
    """Types of audit events recorded in the audit_events table.

    Every state transition MUST produce exactly one event.
    This is the append-only trail used for disputes and admin review.
    """

    # Verification events
    RECORD_CREATED = "RECORD_CREATED"
    DOCUMENT_SUBMITTED = "DOCUMENT_SUBMITTED"
    DOCUMENT_APPROVED = "DOCUMENT_APPROVED"
    DOCUMENT_REJECTED = "DOCUMENT_REJECTED"
    LEVEL_APPROVED = "LEVEL_APPROVED"
    LEVEL_REJECTED = "LEVEL_REJECTED"
    LEVEL_EXPIRED = "LEVEL_EXPIRED"

    # Trust events
    TRUST_SCORE_CHANGED = "TRUST_SCORE_CHANGED"
    ACCOUNT_SUSPENDED = "ACCOUNT_SUSPENDED"
    SUSPENSION_LIFTED = "SUSPENSION_LIFTED"
    REPORT_FILED = "REPORT_FILED"
    REPORT_APPROVED = "REPORT_APPROVED"
    REPORT_REJECTED = "REPORT_REJECTED"

    # Escrow events
    TRANSACTION_CREATED = "TRANSACTION_CREATED"
    TRANSACTION_FUNDED = "TRANSACTION_FUNDED"
    TRANSACTION_RELEASED = "TRANSACTION_RELEASED"
    TRANSACTION_AUTO_RELEASED = "TRANSACTION_AUTO_RELEASED"
    TRANSACTION_REFUNDED = "TRANSACTION_REFUNDED"
    DISPUTE_RAISED = "DISPUTE_RAISED"
    DISPUTE_RESOLVED_RELEASE = "DISPUTE_RESOLVED_RELEASE"
    DISPUTE_RESOLVED_REFUND = "DISPUTE_RESOLVED_REFUND"

    # Payout events
    PAYOUT_REQUESTED = "PAYOUT_REQUESTED"
    PAYOUT_COMPLETED = "PAYOUT_COMPLETED"
    PAYOUT_FAILED = "PAYOUT_FAILED"


class NotificationKind(enum.StrEnum):
    """Fire-and-forget events handed to the notifier collaborator."""

    LEVEL_APPROVED = "level_approved"
    DOCUMENT_REJECTED = "document_rejected"
    ACCOUNT_SUSPENDED = "account_suspended"
    BADGE_EARNED = "badge_earned"
    TRANSACTION_FUNDED = "transaction_funded"
    TRANSACTION_RELEASED = "transaction_released"
    TRANSACTION_REFUNDED = "transaction_refunded"
    TRANSACTION_DISPUTED = "transaction_disputed"
