"""Back-office REST API routes.

Reviewer and operator actions. Authentication is handled upstream by the
marketplace gateway; these routes trust the actor id they are given.

Routes:
    POST   /api/v1/admin/documents/{id}/decision
    POST   /api/v1/admin/records/{account_id}/levels/{level}/reject
    POST   /api/v1/admin/records/{account_id}/levels/{level}/expire
    POST   /api/v1/admin/records/{account_id}/lift-suspension
    POST   /api/v1/admin/reports/{id}/resolve
    POST   /api/v1/admin/escrow/{id}/resolve-dispute
    POST   /api/v1/admin/payouts/{id}/complete
    POST   /api/v1/admin/payouts/{id}/fail
    POST   /api/v1/admin/auto-release/run      — Run one auto-release sweep now
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from trust_settlement.api.deps import (
    get_escrow_service,
    get_service_context,
    get_verification_service,
)
from trust_settlement.infrastructure.database.engine import get_session_factory
from trust_settlement.jobs.auto_release import AutoReleaseSweep
from trust_settlement.logging_config import get_logger
from trust_settlement.schemas.escrow import (
    CompletePayoutRequest,
    EscrowTransactionResponse,
    FailPayoutRequest,
    PayoutResponse,
    ResolveDisputeRequest,
    SweepReportResponse,
)
from trust_settlement.schemas.verification import (
    DecideDocumentRequest,
    DocumentResponse,
    LiftSuspensionRequest,
    RejectLevelRequest,
    ReportResponse,
    ResolveReportRequest,
    VerificationRecordResponse,
)
from trust_settlement.services.context import ServiceContext
from trust_settlement.services.escrow_service import EscrowService
from trust_settlement.services.verification_service import VerificationService

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])
logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Verification review
# ---------------------------------------------------------------------------


@router.post(
    "/documents/{document_id}/decision",
    response_model=DocumentResponse,
    summary="Approve or reject a document",
)
async def decide_document(
    document_id: uuid.UUID,
    request: DecideDocumentRequest,
    svc: VerificationService = Depends(get_verification_service),
) -> DocumentResponse:
    """Approving the last missing document of a level approves the level."""
    document = await svc.decide_document(
        document_id=document_id,
        decision=request.decision,
        reviewer_id=request.reviewer_id,
        reason=request.reason,
    )
    return DocumentResponse.model_validate(document)


@router.post(
    "/records/{account_id}/levels/{level}/reject",
    response_model=VerificationRecordResponse,
    summary="Reject a pending level",
)
async def reject_level(
    account_id: str,
    level: int,
    request: RejectLevelRequest,
    svc: VerificationService = Depends(get_verification_service),
) -> VerificationRecordResponse:
    record = await svc.reject_level(
        account_id=account_id,
        level=level,
        reviewer_id=request.reviewer_id,
        reason=request.reason,
    )
    return VerificationRecordResponse.model_validate(record)


@router.post(
    "/records/{account_id}/levels/{level}/expire",
    response_model=VerificationRecordResponse,
    summary="Expire a stale pending level",
)
async def expire_level(
    account_id: str,
    level: int,
    request: RejectLevelRequest,
    svc: VerificationService = Depends(get_verification_service),
) -> VerificationRecordResponse:
    record = await svc.expire_level(
        account_id=account_id,
        level=level,
        actor_id=request.reviewer_id,
        reason=request.reason,
    )
    return VerificationRecordResponse.model_validate(record)


@router.post(
    "/records/{account_id}/lift-suspension",
    response_model=VerificationRecordResponse,
    summary="Reinstate a suspended account",
)
async def lift_suspension(
    account_id: str,
    request: LiftSuspensionRequest,
    svc: VerificationService = Depends(get_verification_service),
) -> VerificationRecordResponse:
    record = await svc.lift_suspension(account_id, request.actor_id, request.notes)
    return VerificationRecordResponse.model_validate(record)


@router.post(
    "/reports/{report_id}/resolve",
    response_model=ReportResponse,
    summary="Validate or dismiss a report",
)
async def resolve_report(
    report_id: uuid.UUID,
    request: ResolveReportRequest,
    svc: VerificationService = Depends(get_verification_service),
) -> ReportResponse:
    report = await svc.resolve_report(
        report_id=report_id,
        decision=request.decision,
        actor_id=request.actor_id,
        notes=request.notes,
    )
    return ReportResponse.model_validate(report)


# ---------------------------------------------------------------------------
# Settlement operations
# ---------------------------------------------------------------------------


@router.post(
    "/escrow/{transaction_id}/resolve-dispute",
    response_model=EscrowTransactionResponse,
    summary="Resolve a dispute",
)
async def resolve_dispute(
    transaction_id: uuid.UUID,
    request: ResolveDisputeRequest,
    svc: EscrowService = Depends(get_escrow_service),
) -> EscrowTransactionResponse:
    """Release to the provider or refund the client."""
    transaction = await svc.resolve_dispute(
        transaction_id=transaction_id,
        outcome=request.outcome,
        actor_id=request.actor_id,
        notes=request.notes,
    )
    return EscrowTransactionResponse.model_validate(transaction)


@router.post(
    "/payouts/{payout_id}/complete",
    response_model=PayoutResponse,
    summary="Mark a payout as paid",
)
async def complete_payout(
    payout_id: uuid.UUID,
    request: CompletePayoutRequest,
    svc: EscrowService = Depends(get_escrow_service),
) -> PayoutResponse:
    payout = await svc.complete_payout(payout_id, request.reference, request.actor_id)
    return PayoutResponse.model_validate(payout)


@router.post(
    "/payouts/{payout_id}/fail",
    response_model=PayoutResponse,
    summary="Mark a payout as failed",
)
async def fail_payout(
    payout_id: uuid.UUID,
    request: FailPayoutRequest,
    svc: EscrowService = Depends(get_escrow_service),
) -> PayoutResponse:
    payout = await svc.fail_payout(payout_id, request.reason, request.actor_id)
    return PayoutResponse.model_validate(payout)


@router.post(
    "/auto-release/run",
    response_model=SweepReportResponse,
    summary="Run the auto-release sweep",
)
async def run_auto_release(
    ctx: ServiceContext = Depends(get_service_context),
) -> SweepReportResponse:
    """Run one sweep in-process. Normally cron does this via the jobs module."""
    sweep = AutoReleaseSweep(session_factory=get_session_factory(), ctx=ctx)
    report = await sweep.run()
    logger.info("admin.auto_release_run", released=report.released, failed=report.failed)
    return SweepReportResponse(
        candidates=report.candidates,
        released=report.released,
        skipped=report.skipped,
        failed=report.failed,
        failures=report.failures,
    )
