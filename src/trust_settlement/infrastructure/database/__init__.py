"""Database infrastructure — engine, ORM models, and repositories."""

from trust_settlement.infrastructure.database.engine import (
    after_commit,
    close_db,
    get_async_session,
    get_session_factory,
    init_db,
    session_scope,
)
from trust_settlement.infrastructure.database.orm_models import (
    AccountReport,
    AuditEvent,
    Base,
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
from trust_settlement.infrastructure.database.repositories import (
    CommissionRuleRepository,
    DocumentRepository,
    EscrowRepository,
    EventRepository,
    PayoutRepository,
    PeriodCounterRepository,
    QuoteRepository,
    ReportRepository,
    StatsRepository,
    VerificationRepository,
    VoteRepository,
)

__all__ = [
    "Base",
    "AccountReport",
    "AuditEvent",
    "CommissionRule",
    "EscrowTransaction",
    "PeriodCounter",
    "ProviderPayout",
    "ProviderSubscription",
    "ReputationBadge",
    "ReputationStats",
    "ReputationVote",
    "ServiceQuote",
    "VerificationDocument",
    "VerificationRecord",
    "CommissionRuleRepository",
    "DocumentRepository",
    "EscrowRepository",
    "EventRepository",
    "PayoutRepository",
    "PeriodCounterRepository",
    "QuoteRepository",
    "ReportRepository",
    "StatsRepository",
    "VerificationRepository",
    "VoteRepository",
    "after_commit",
    "close_db",
    "get_async_session",
    "get_session_factory",
    "init_db",
    "session_scope",
]
