"""Pydantic schemas for reputation voting."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from trust_settlement.domain.enums import VoteType


class CastVoteRequest(BaseModel):
    """Request body for casting or changing a vote."""

    voter_id: str = Field(..., min_length=1, max_length=64)
    target_user_id: str = Field(..., min_length=1, max_length=64)
    vote_type: VoteType
    context: str | None = Field(
        default=None,
        max_length=64,
        description="What the vote is about, e.g. 'listing' or 'transaction'",
        examples=["transaction"],
    )
    context_id: str | None = Field(default=None, max_length=64)


class VoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    voter_id: str
    target_user_id: str
    vote_type: str
    context: str | None
    context_id: str | None
    created_at: datetime
    updated_at: datetime


class ReputationStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    total_points: int
    upvotes_received: int
    downvotes_received: int
    badges_count: int
    last_badge_at: datetime | None = None


class BadgeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    badge_type: str
    badge_level: int
    points_at_award: int
    earned_at: datetime


class VoteOutcomeResponse(BaseModel):
    vote: VoteResponse
    stats: ReputationStatsResponse
    changed: bool = Field(description="False when the same vote was already recorded")
    new_badges: list[BadgeResponse]
