"""Pydantic API schemas."""

from trust_settlement.schemas.common import AuditEventResponse, ErrorResponse, HealthResponse
from trust_settlement.schemas.escrow import (
    CompletePayoutRequest,
    CreateTransactionRequest,
    EscrowTransactionResponse,
    FailPayoutRequest,
    FundTransactionRequest,
    PayoutResponse,
    RaiseDisputeRequest,
    RefundRequest,
    ReleaseRequest,
    ResolveDisputeRequest,
    SweepReportResponse,
    TransactionStatusResponse,
)
from trust_settlement.schemas.reputation import (
    BadgeResponse,
    CastVoteRequest,
    ReputationStatsResponse,
    VoteOutcomeResponse,
    VoteResponse,
)
from trust_settlement.schemas.verification import (
    CreateRecordRequest,
    DecideDocumentRequest,
    DocumentResponse,
    FileReportRequest,
    LevelEligibilityResponse,
    LiftSuspensionRequest,
    RejectLevelRequest,
    ReportResponse,
    ResolveReportRequest,
    ResponseRateRequest,
    SetAccountTypeRequest,
    SubmitDocumentRequest,
    UploadDocumentRequest,
    VerificationRecordResponse,
    VerificationSummaryResponse,
)

__all__ = [
    "AuditEventResponse",
    "BadgeResponse",
    "CastVoteRequest",
    "CompletePayoutRequest",
    "CreateRecordRequest",
    "CreateTransactionRequest",
    "DecideDocumentRequest",
    "DocumentResponse",
    "ErrorResponse",
    "EscrowTransactionResponse",
    "FailPayoutRequest",
    "FileReportRequest",
    "FundTransactionRequest",
    "HealthResponse",
    "LevelEligibilityResponse",
    "LiftSuspensionRequest",
    "PayoutResponse",
    "RaiseDisputeRequest",
    "RefundRequest",
    "RejectLevelRequest",
    "ReleaseRequest",
    "ReportResponse",
    "ReputationStatsResponse",
    "ResolveDisputeRequest",
    "ResolveReportRequest",
    "ResponseRateRequest",
    "SetAccountTypeRequest",
    "SubmitDocumentRequest",
    "SweepReportResponse",
    "TransactionStatusResponse",
    "UploadDocumentRequest",
    "VerificationRecordResponse",
    "VerificationSummaryResponse",
    "VoteOutcomeResponse",
    "VoteResponse",
]
