"""Reputation voting REST API routes.

Routes:
    POST   /api/v1/reputation/votes                  — Cast or change a vote
    GET    /api/v1/reputation/users/{user_id}/stats  — Vote aggregate
    GET    /api/v1/reputation/users/{user_id}/badges — Badge history
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from trust_settlement.api.deps import get_reputation_service
from trust_settlement.schemas.reputation import (
    BadgeResponse,
    CastVoteRequest,
    ReputationStatsResponse,
    VoteOutcomeResponse,
    VoteResponse,
)
from trust_settlement.services.reputation_service import ReputationService

router = APIRouter(prefix="/api/v1/reputation", tags=["Reputation"])


@router.post(
    "/votes",
    response_model=VoteOutcomeResponse,
    summary="Cast or change a vote",
)
async def cast_vote(
    request: CastVoteRequest,
    svc: ReputationService = Depends(get_reputation_service),
) -> VoteOutcomeResponse:
    """Upsert the vote, update stats and badges, and recompute the target's trust score."""
    outcome = await svc.cast_vote(
        voter_id=request.voter_id,
        target_id=request.target_user_id,
        vote_type=request.vote_type,
        context=request.context,
        context_id=request.context_id,
    )
    return VoteOutcomeResponse(
        vote=VoteResponse.model_validate(outcome.vote),
        stats=ReputationStatsResponse.model_validate(outcome.stats),
        changed=outcome.changed,
        new_badges=[BadgeResponse.model_validate(b) for b in outcome.new_badges],
    )


@router.get(
    "/users/{user_id}/stats",
    response_model=ReputationStatsResponse,
    summary="Get reputation stats",
)
async def get_stats(
    user_id: str,
    svc: ReputationService = Depends(get_reputation_service),
) -> ReputationStatsResponse:
    stats = await svc.get_stats(user_id)
    return ReputationStatsResponse.model_validate(stats)


@router.get(
    "/users/{user_id}/badges",
    response_model=list[BadgeResponse],
    summary="List reputation badges",
)
async def list_badges(
    user_id: str,
    svc: ReputationService = Depends(get_reputation_service),
) -> list[BadgeResponse]:
    badges = await svc.list_badges(user_id)
    return [BadgeResponse.model_validate(b) for b in badges]
