"""Verification ledger REST API routes (account-facing).

Routes:
    POST   /api/v1/verification/records                          — Open (or fetch) a record
    GET    /api/v1/verification/records/{account_id}             — Record details
    PUT    /api/v1/verification/records/{account_id}/account-type
    PUT    /api/v1/verification/records/{account_id}/response-rate
    POST   /api/v1/verification/records/{account_id}/documents   — Submit a stored document
    POST   /api/v1/verification/records/{account_id}/uploads     — Upload and submit
    GET    /api/v1/verification/records/{account_id}/documents
    GET    /api/v1/verification/records/{account_id}/eligibility
    GET    /api/v1/verification/records/{account_id}/summary
    GET    /api/v1/verification/records/{account_id}/events      — Audit trail
    POST   /api/v1/verification/reports                          — File an abuse report
"""

from __future__ import annotations

import base64
import binascii

from fastapi import APIRouter, Depends

from trust_settlement.api.deps import get_verification_service
from trust_settlement.domain.exceptions import ValidationError
from trust_settlement.logging_config import get_logger
from trust_settlement.schemas.common import AuditEventResponse
from trust_settlement.schemas.verification import (
    CreateRecordRequest,
    DocumentResponse,
    FileReportRequest,
    LevelEligibilityResponse,
    ReportResponse,
    ResponseRateRequest,
    SetAccountTypeRequest,
    SubmitDocumentRequest,
    UploadDocumentRequest,
    VerificationRecordResponse,
    VerificationSummaryResponse,
)
from trust_settlement.services.verification_service import VerificationService

router = APIRouter(prefix="/api/v1/verification", tags=["Verification"])
logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@router.post(
    "/records",
    response_model=VerificationRecordResponse,
    status_code=201,
    summary="Open a verification record",
)
async def create_record(
    request: CreateRecordRequest,
    svc: VerificationService = Depends(get_verification_service),
) -> VerificationRecordResponse:
    """Create the record on first use; returns the existing one afterwards."""
    record = await svc.get_or_create_record(
        account_id=request.account_id,
        user_type=request.user_type,
        account_type=request.account_type,
    )
    return VerificationRecordResponse.model_validate(record)


@router.get(
    "/records/{account_id}",
    response_model=VerificationRecordResponse,
    summary="Get a verification record",
)
async def get_record(
    account_id: str,
    svc: VerificationService = Depends(get_verification_service),
) -> VerificationRecordResponse:
    record = await svc.get_record(account_id)
    return VerificationRecordResponse.model_validate(record)


@router.put(
    "/records/{account_id}/account-type",
    response_model=VerificationRecordResponse,
    summary="Change the account type",
)
async def set_account_type(
    account_id: str,
    request: SetAccountTypeRequest,
    svc: VerificationService = Depends(get_verification_service),
) -> VerificationRecordResponse:
    record = await svc.set_account_type(account_id, request.account_type)
    return VerificationRecordResponse.model_validate(record)


@router.put(
    "/records/{account_id}/response-rate",
    response_model=VerificationRecordResponse,
    summary="Report the account's message response rate",
)
async def update_response_rate(
    account_id: str,
    request: ResponseRateRequest,
    svc: VerificationService = Depends(get_verification_service),
) -> VerificationRecordResponse:
    """Behavioural signal from messaging; triggers a trust recompute."""
    record = await svc.update_response_rate(account_id, request.response_rate)
    return VerificationRecordResponse.model_validate(record)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/records/{account_id}/documents",
    response_model=DocumentResponse,
    status_code=201,
    summary="Submit a document for a level",
)
async def submit_document(
    account_id: str,
    request: SubmitDocumentRequest,
    svc: VerificationService = Depends(get_verification_service),
) -> DocumentResponse:
    """Attach a stored document. Level N needs level N-1 approved and cooled down."""
    document = await svc.submit_document(
        account_id=account_id,
        document_type=request.document_type,
        level=request.level,
        file_url=request.file_url,
        file_name=request.file_name,
    )
    return DocumentResponse.model_validate(document)


@router.post(
    "/records/{account_id}/uploads",
    response_model=DocumentResponse,
    status_code=201,
    summary="Upload a document and submit it for a level",
)
async def upload_document(
    account_id: str,
    request: UploadDocumentRequest,
    svc: VerificationService = Depends(get_verification_service),
) -> DocumentResponse:
    try:
        content = base64.b64decode(request.content_base64, validate=True)
    except (binascii.Error, ValueError) as err:
        raise ValidationError("content_base64 is not valid base64") from err

    document = await svc.upload_document(
        account_id=account_id,
        document_type=request.document_type,
        level=request.level,
        content=content,
        file_name=request.file_name,
    )
    return DocumentResponse.model_validate(document)


@router.get(
    "/records/{account_id}/documents",
    response_model=list[DocumentResponse],
    summary="List submitted documents",
)
async def list_documents(
    account_id: str,
    svc: VerificationService = Depends(get_verification_service),
) -> list[DocumentResponse]:
    documents = await svc.list_documents(account_id)
    return [DocumentResponse.model_validate(d) for d in documents]


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


@router.get(
    "/records/{account_id}/eligibility",
    response_model=list[LevelEligibilityResponse],
    summary="Per-level eligibility check",
)
async def check_eligibility(
    account_id: str,
    svc: VerificationService = Depends(get_verification_service),
) -> list[LevelEligibilityResponse]:
    levels = await svc.check_eligibility(account_id)
    return [LevelEligibilityResponse.from_domain(item) for item in levels]


@router.get(
    "/records/{account_id}/summary",
    response_model=VerificationSummaryResponse,
    summary="Record, badges and displayed trust score",
)
async def get_summary(
    account_id: str,
    svc: VerificationService = Depends(get_verification_service),
) -> VerificationSummaryResponse:
    summary = await svc.get_summary(account_id)
    return VerificationSummaryResponse(
        record=VerificationRecordResponse.model_validate(summary.record),
        badges=summary.badges,
        displayed_trust_score=summary.displayed_trust_score,
        levels=[LevelEligibilityResponse.from_domain(item) for item in summary.levels],
    )


@router.get(
    "/records/{account_id}/events",
    response_model=list[AuditEventResponse],
    summary="Get the record's audit trail",
)
async def get_record_events(
    account_id: str,
    svc: VerificationService = Depends(get_verification_service),
) -> list[AuditEventResponse]:
    events = await svc.get_events(account_id)
    return [AuditEventResponse.model_validate(e) for e in events]


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@router.post(
    "/reports",
    response_model=ReportResponse,
    status_code=201,
    summary="Report an account",
)
async def file_report(
    request: FileReportRequest,
    svc: VerificationService = Depends(get_verification_service),
) -> ReportResponse:
    """File an abuse report. It only counts once an admin validates it."""
    report = await svc.file_report(
        reporter_id=request.reporter_id,
        reported_user_id=request.reported_user_id,
        reason=request.reason,
        description=request.description,
    )
    return ReportResponse.model_validate(report)
