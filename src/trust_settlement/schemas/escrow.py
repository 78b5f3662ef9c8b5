"""Pydantic schemas for the Escrow API.

These schemas define the request/response shapes for the REST API. They are
separate from the ORM models to maintain clean boundaries between the API
and database layers.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from trust_settlement.domain.enums import DisputeOutcome

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class CreateTransactionRequest(BaseModel):
    """Request body for opening an escrow on an accepted quote."""

    quote_id: uuid.UUID = Field(..., description="UUID of the accepted service quote")
    country_code: str | None = Field(
        default=None,
        min_length=2,
        max_length=2,
        description="ISO country code for the commission table (defaults to settings)",
        examples=["CM"],
    )
    idempotency_key: str | None = Field(
        default=None,
        description="Optional idempotency key to prevent duplicate transaction creation",
    )


class FundTransactionRequest(BaseModel):
    """Request body for confirming the client's payment."""

    payment_reference: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Reference issued by the payment collector",
        examples=["MOMO-20240611-8812"],
    )
    idempotency_key: str | None = Field(default=None)


class ReleaseRequest(BaseModel):
    actor_id: str = Field(..., min_length=1, max_length=64)


class RefundRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)
    actor_id: str = Field(..., min_length=1, max_length=64)


class RaiseDisputeRequest(BaseModel):
    """Request body for raising a dispute against a transaction."""

    reason: str = Field(
        ...,
        min_length=10,
        max_length=2000,
        description="Detailed reason for the dispute",
    )
    raised_by: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Account id of the client or provider raising the dispute",
    )


class ResolveDisputeRequest(BaseModel):
    outcome: DisputeOutcome
    actor_id: str = Field(..., min_length=1, max_length=64)
    notes: str | None = Field(default=None, max_length=2000)


class CompletePayoutRequest(BaseModel):
    reference: str = Field(..., min_length=1, max_length=128)
    actor_id: str = Field(..., min_length=1, max_length=64)


class FailPayoutRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)
    actor_id: str = Field(..., min_length=1, max_length=64)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class EscrowTransactionResponse(BaseModel):
    """Response schema for an escrow transaction."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    quote_id: uuid.UUID
    request_id: uuid.UUID
    client_id: str
    provider_id: str
    amount_xaf: int
    commission_rate: Decimal
    commission_xaf: int
    net_amount_xaf: int
    payment_reference: str | None
    status: str
    funded_at: datetime | None
    auto_release_at: datetime | None
    released_at: datetime | None
    refunded_at: datetime | None
    disputed_at: datetime | None
    dispute_reason: str | None
    refund_reason: str | None
    created_at: datetime
    updated_at: datetime


class PayoutResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    escrow_id: uuid.UUID
    provider_id: str
    amount_xaf: int
    status: str
    payout_reference: str | None
    failure_reason: str | None
    completed_at: datetime | None
    created_at: datetime


class TransactionStatusResponse(BaseModel):
    """Lightweight status check response."""

    transaction_id: uuid.UUID
    status: str
    auto_release_at: datetime | None
    allowed_events: list[str] = Field(
        description="State machine events that can fire from the current status"
    )


class SweepReportResponse(BaseModel):
    candidates: int
    released: int
    skipped: int
    failed: int
    failures: dict[str, str]
