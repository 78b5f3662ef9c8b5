"""Escrow settlement REST API routes.

Routes:
    POST   /api/v1/escrow                — Open an escrow for an accepted quote
    GET    /api/v1/escrow/{id}           — Get transaction details
    GET    /api/v1/escrow/{id}/status    — Get lightweight status check
    GET    /api/v1/escrow/{id}/events    — Get audit trail
    GET    /api/v1/escrow/{id}/payout    — Get the provider payout, if any
    POST   /api/v1/escrow/{id}/fund      — Confirm the client's payment
    POST   /api/v1/escrow/{id}/release   — Client releases funds to the provider
    POST   /api/v1/escrow/{id}/refund    — Refund the client
    POST   /api/v1/escrow/{id}/dispute   — Raise dispute
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends

from trust_settlement.api.deps import get_escrow_service, get_redis_client
from trust_settlement.domain.exceptions import NotFoundError
from trust_settlement.infrastructure.redis_client import get_idempotency, set_idempotency
from trust_settlement.logging_config import get_logger
from trust_settlement.schemas.common import AuditEventResponse
from trust_settlement.schemas.escrow import (
    CreateTransactionRequest,
    EscrowTransactionResponse,
    FundTransactionRequest,
    PayoutResponse,
    RaiseDisputeRequest,
    RefundRequest,
    ReleaseRequest,
    TransactionStatusResponse,
)
from trust_settlement.services.escrow_service import EscrowService

router = APIRouter(prefix="/api/v1/escrow", tags=["Escrow"])
logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=EscrowTransactionResponse,
    status_code=201,
    summary="Open an escrow transaction",
)
async def create_transaction(
    request: CreateTransactionRequest,
    svc: EscrowService = Depends(get_escrow_service),
    redis: aioredis.Redis | None = Depends(get_redis_client),
) -> EscrowTransactionResponse:
    """Open an escrow in PENDING state with the commission resolved and frozen."""
    if request.idempotency_key and redis is not None:
        stored = await get_idempotency(redis, "escrow.create", request.idempotency_key)
        if stored is not None:
            logger.info("escrow.idempotent_replay", key=request.idempotency_key)
            transaction = await svc.get_transaction(uuid.UUID(stored))
            return EscrowTransactionResponse.model_validate(transaction)

    transaction = await svc.create_transaction(
        quote_id=request.quote_id,
        country_code=request.country_code,
    )

    if request.idempotency_key and redis is not None:
        await set_idempotency(
            redis, "escrow.create", request.idempotency_key, str(transaction.id)
        )
    return EscrowTransactionResponse.model_validate(transaction)


# ---------------------------------------------------------------------------
# Fund
# ---------------------------------------------------------------------------


@router.post(
    "/{transaction_id}/fund",
    response_model=EscrowTransactionResponse,
    summary="Confirm the client's payment",
)
async def fund_transaction(
    transaction_id: uuid.UUID,
    request: FundTransactionRequest,
    svc: EscrowService = Depends(get_escrow_service),
    redis: aioredis.Redis | None = Depends(get_redis_client),
) -> EscrowTransactionResponse:
    """Confirm payment with the collector. Transitions PENDING -> FUNDED."""
    scope = f"escrow.fund.{transaction_id}"
    if request.idempotency_key and redis is not None:
        if await get_idempotency(redis, scope, request.idempotency_key) is not None:
            logger.info("escrow.idempotent_replay", key=request.idempotency_key)
            transaction = await svc.get_transaction(transaction_id)
            return EscrowTransactionResponse.model_validate(transaction)

    transaction = await svc.fund(transaction_id, request.payment_reference)

    if request.idempotency_key and redis is not None:
        await set_idempotency(redis, scope, request.idempotency_key, str(transaction.id))
    return EscrowTransactionResponse.model_validate(transaction)


# ---------------------------------------------------------------------------
# Settle
# ---------------------------------------------------------------------------


@router.post(
    "/{transaction_id}/release",
    response_model=EscrowTransactionResponse,
    summary="Release funds to the provider",
)
async def release_transaction(
    transaction_id: uuid.UUID,
    request: ReleaseRequest,
    svc: EscrowService = Depends(get_escrow_service),
) -> EscrowTransactionResponse:
    """Transitions FUNDED -> RELEASED and emits the provider payout."""
    transaction = await svc.release(transaction_id, request.actor_id)
    return EscrowTransactionResponse.model_validate(transaction)


@router.post(
    "/{transaction_id}/refund",
    response_model=EscrowTransactionResponse,
    summary="Refund the client",
)
async def refund_transaction(
    transaction_id: uuid.UUID,
    request: RefundRequest,
    svc: EscrowService = Depends(get_escrow_service),
) -> EscrowTransactionResponse:
    transaction = await svc.refund(transaction_id, request.reason, request.actor_id)
    return EscrowTransactionResponse.model_validate(transaction)


@router.post(
    "/{transaction_id}/dispute",
    response_model=EscrowTransactionResponse,
    summary="Raise a dispute",
)
async def raise_dispute(
    transaction_id: uuid.UUID,
    request: RaiseDisputeRequest,
    svc: EscrowService = Depends(get_escrow_service),
) -> EscrowTransactionResponse:
    """Freeze a funded transaction until an admin resolves it."""
    transaction = await svc.raise_dispute(
        transaction_id=transaction_id,
        reason=request.reason,
        raised_by=request.raised_by,
    )
    return EscrowTransactionResponse.model_validate(transaction)


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


@router.get(
    "/{transaction_id}",
    response_model=EscrowTransactionResponse,
    summary="Get transaction details",
)
async def get_transaction(
    transaction_id: uuid.UUID,
    svc: EscrowService = Depends(get_escrow_service),
) -> EscrowTransactionResponse:
    transaction = await svc.get_transaction(transaction_id)
    return EscrowTransactionResponse.model_validate(transaction)


@router.get(
    "/{transaction_id}/status",
    response_model=TransactionStatusResponse,
    summary="Lightweight status check",
)
async def get_transaction_status(
    transaction_id: uuid.UUID,
    svc: EscrowService = Depends(get_escrow_service),
) -> TransactionStatusResponse:
    status = await svc.get_status(transaction_id)
    return TransactionStatusResponse(**status)


@router.get(
    "/{transaction_id}/events",
    response_model=list[AuditEventResponse],
    summary="Get audit trail",
)
async def get_transaction_events(
    transaction_id: uuid.UUID,
    svc: EscrowService = Depends(get_escrow_service),
) -> list[AuditEventResponse]:
    """Get the full audit trail for a transaction."""
    events = await svc.get_events(transaction_id)
    return [AuditEventResponse.model_validate(e) for e in events]


@router.get(
    "/{transaction_id}/payout",
    response_model=PayoutResponse,
    summary="Get the provider payout",
)
async def get_transaction_payout(
    transaction_id: uuid.UUID,
    svc: EscrowService = Depends(get_escrow_service),
) -> PayoutResponse:
    await svc.get_transaction(transaction_id)
    payout = await svc.get_payout(transaction_id)
    if payout is None:
        raise NotFoundError("Payout", str(transaction_id))
    return PayoutResponse.model_validate(payout)
