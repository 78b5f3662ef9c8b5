"""Pydantic schemas for the verification ledger and trust endpoints.

Enum-typed fields reject unknown values at the edge (422) before the
service layer is reached.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from trust_settlement.domain.enums import (
    AccountType,
    DocumentDecision,
    DocumentType,
    ReportStatus,
    UserType,
)

if TYPE_CHECKING:
    from trust_settlement.domain.eligibility import LevelEligibility

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class CreateRecordRequest(BaseModel):
    """Request body for opening a verification record."""

    account_id: str = Field(..., min_length=1, max_length=64)
    user_type: UserType = UserType.OWNER
    account_type: AccountType = AccountType.OWNER


class SubmitDocumentRequest(BaseModel):
    """Request body for attaching an already stored document to a level."""

    document_type: DocumentType
    level: int = Field(..., ge=1, le=4, description="Verification level 1-4")
    file_url: str = Field(..., min_length=1, description="Opaque URL from document storage")
    file_name: str | None = Field(default=None, max_length=255)


class UploadDocumentRequest(BaseModel):
    """Request body for uploading document bytes through the core."""

    document_type: DocumentType
    level: int = Field(..., ge=1, le=4)
    file_name: str = Field(..., min_length=1, max_length=255)
    content_base64: str = Field(..., min_length=1, description="Base64-encoded file content")


class DecideDocumentRequest(BaseModel):
    decision: DocumentDecision
    reviewer_id: str = Field(..., min_length=1, max_length=64)
    reason: str | None = Field(
        default=None,
        max_length=2000,
        description="Required when the decision is 'rejected'",
    )


class RejectLevelRequest(BaseModel):
    reviewer_id: str = Field(..., min_length=1, max_length=64)
    reason: str = Field(..., min_length=1, max_length=2000)


class SetAccountTypeRequest(BaseModel):
    account_type: AccountType


class ResponseRateRequest(BaseModel):
    response_rate: int = Field(..., ge=0, le=100)


class FileReportRequest(BaseModel):
    reporter_id: str = Field(..., min_length=1, max_length=64)
    reported_user_id: str = Field(..., min_length=1, max_length=64)
    reason: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)


class ResolveReportRequest(BaseModel):
    decision: ReportStatus = Field(..., description="'approved' or 'rejected'")
    actor_id: str = Field(..., min_length=1, max_length=64)
    notes: str | None = Field(default=None, max_length=2000)


class LiftSuspensionRequest(BaseModel):
    actor_id: str = Field(..., min_length=1, max_length=64)
    notes: str | None = Field(default=None, max_length=2000)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class VerificationRecordResponse(BaseModel):
    """Response schema for a verification record."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    account_id: str
    user_type: str
    account_type: str
    current_level: int
    level_1_status: str | None
    level_2_status: str | None
    level_3_status: str | None
    level_4_status: str | None
    level_1_eligible_at: datetime | None
    level_2_eligible_at: datetime | None
    level_3_eligible_at: datetime | None
    level_4_eligible_at: datetime | None
    trust_score: int
    is_suspended: bool
    suspension_reason: str | None
    positive_reviews_count: int
    negative_reviews_count: int
    reports_count: int
    response_rate: int
    cancellation_count: int
    created_at: datetime
    updated_at: datetime


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    account_id: str
    document_type: str
    verification_level: int
    status: str
    file_url: str
    file_name: str | None
    rejection_reason: str | None
    verified_by: str | None
    verified_at: datetime | None
    created_at: datetime


class LevelEligibilityResponse(BaseModel):
    """One level of the eligibility check.

    `eligible_at` is null while the previous level is not approved.
    """

    level: int
    status: str | None
    eligible_at: datetime | None
    requestable: bool
    reason: str | None = None

    @classmethod
    def from_domain(cls, item: LevelEligibility) -> LevelEligibilityResponse:
        return cls(
            level=item.level,
            status=item.status,
            eligible_at=item.eligibility.as_timestamp(),
            requestable=item.requestable,
            reason=item.reason,
        )


class VerificationSummaryResponse(BaseModel):
    record: VerificationRecordResponse
    badges: list[str]
    displayed_trust_score: int | None = Field(
        description="Null for seeker accounts, which are exempt from score display"
    )
    levels: list[LevelEligibilityResponse]


class ReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    reporter_id: str
    reported_user_id: str
    reason: str
    description: str | None
    status: str
    reviewed_by: str | None
    reviewed_at: datetime | None
    resolution_notes: str | None
    created_at: datetime
