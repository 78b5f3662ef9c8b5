"""Domain layer — pure business logic with zero framework dependencies."""

from trust_settlement.domain.collaborators import (
    DocumentStorage,
    FundingConfirmation,
    Notification,
    Notifier,
    PaymentCollector,
)
from trust_settlement.domain.commission import CommissionQuote, build_quote
from trust_settlement.domain.eligibility import (
    EligibleAt,
    LevelEligibility,
    NotEligible,
    evaluate_level,
)
from trust_settlement.domain.enums import (
    EscrowStatus,
    EventType,
    LevelStatus,
    VoteType,
)
from trust_settlement.domain.exceptions import (
    ConcurrencyConflictError,
    DependencyFailureError,
    InvalidStateTransitionError,
    NotFoundError,
    SequenceError,
    TrustCoreError,
    ValidationError,
)
from trust_settlement.domain.state_machine import (
    EscrowStateMachine,
    LevelStateMachine,
    validate_level_transition,
    validate_transition,
)
from trust_settlement.domain.trust_score import (
    TrustInputs,
    TrustScore,
    TrustWeights,
    compute_trust_score,
)

__all__ = [
    "DocumentStorage",
    "FundingConfirmation",
    "Notification",
    "Notifier",
    "PaymentCollector",
    "CommissionQuote",
    "build_quote",
    "EligibleAt",
    "LevelEligibility",
    "NotEligible",
    "evaluate_level",
    "EscrowStatus",
    "EventType",
    "LevelStatus",
    "VoteType",
    "ConcurrencyConflictError",
    "DependencyFailureError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "SequenceError",
    "TrustCoreError",
    "ValidationError",
    "EscrowStateMachine",
    "LevelStateMachine",
    "validate_level_transition",
    "validate_transition",
    "TrustInputs",
    "TrustScore",
    "TrustWeights",
    "compute_trust_score",
]
