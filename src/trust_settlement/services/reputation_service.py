"""Reputation Service — peer votes, the stats aggregate and reputation badges.

One vote per (voter, target, context). Changing a vote's direction reverses
the old contribution before applying the new one; re-casting the same vote
is a no-op. Stats, badges and the target's trust score are updated in the
same transaction as the vote.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from trust_settlement.domain.enums import CounterName, NotificationKind, VoteType
from trust_settlement.domain.exceptions import SelfVoteError, VoteLimitExceededError
from trust_settlement.infrastructure.database.orm_models import (
    ReputationBadge,
    ReputationStats,
    ReputationVote,
)
from trust_settlement.infrastructure.database.repositories import (
    PeriodCounterRepository,
    StatsRepository,
    VoteRepository,
)
from trust_settlement.logging_config import get_logger
from trust_settlement.services.cascade import TrustCascade
from trust_settlement.services.context import ServiceContext, defer_notification
from trust_settlement.services.verification_service import parse_choice

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

REPUTATION_BADGE = "reputation"


def context_key(context: str | None, context_id: str | None) -> str:
    """Normalise a vote context into the key that carries the uniqueness guard."""
    return f"{(context or '').strip().lower()}:{(context_id or '').strip()}"


def day_key(moment: datetime) -> str:
    """UTC calendar day of `moment`, e.g. ``2024-06-10``."""
    return moment.astimezone(UTC).strftime("%Y-%m-%d")


@dataclass
class VoteOutcome:
    vote: ReputationVote
    stats: ReputationStats
    changed: bool
    new_badges: list[ReputationBadge] = field(default_factory=list)


class ReputationService:
    def __init__(self, session: AsyncSession, ctx: ServiceContext | None = None) -> None:
        self._session = session
        self._ctx = ctx or ServiceContext()
        self._vote_repo = VoteRepository(session)
        self._stats_repo = StatsRepository(session)
        self._counter_repo = PeriodCounterRepository(session)
        self._cascade = TrustCascade(session, self._ctx)

    async def cast_vote(
        self,
        voter_id: str,
        target_id: str,
        vote_type: str,
        context: str | None = None,
        context_id: str | None = None,
    ) -> VoteOutcome:
        """Cast or change a vote.

        Raises:
            SelfVoteError: voter and target are the same account.
            VoteLimitExceededError: the voter used up today's allowance.
        """
        new_type = parse_choice(VoteType, vote_type, "vote_type")
        if voter_id == target_id:
            raise SelfVoteError(voter_id)

        key = context_key(context, context_id)
        existing = await self._vote_repo.get(voter_id, target_id, key)
        stats = await self._get_or_create_stats(target_id)

        if existing is not None and existing.vote_type == new_type:
            logger.debug("reputation.vote_unchanged", voter_id=voter_id, target_id=target_id)
            return VoteOutcome(vote=existing, stats=stats, changed=False)

        now = self._ctx.now()
        await self._enforce_daily_limit(voter_id, now)

        if existing is not None:
            self._apply(stats, VoteType(existing.vote_type), sign=-1)
            existing.vote_type = new_type.value
            existing.updated_at = now
            vote = existing
        else:
            vote = await self._vote_repo.create(
                ReputationVote(
                    voter_id=voter_id,
                    target_user_id=target_id,
                    vote_type=new_type.value,
                    context=context,
                    context_id=context_id,
                    context_key=key,
                    created_at=now,
                    updated_at=now,
                )
            )
        self._apply(stats, new_type, sign=1)

        new_badges = await self._award_badges(stats, now)
        await self._stats_repo.save(stats)

        logger.info(
            "reputation.vote_cast",
            voter_id=voter_id,
            target_id=target_id,
            vote_type=new_type,
            changed_direction=existing is not None,
            total_points=stats.total_points,
        )

        for badge in new_badges:
            defer_notification(
                self._session,
                self._ctx,
                NotificationKind.BADGE_EARNED,
                target_id,
                badge_type=badge.badge_type,
                badge_level=badge.badge_level,
            )

        await self._cascade.on_votes_changed(target_id, actor=voter_id)
        return VoteOutcome(vote=vote, stats=stats, changed=True, new_badges=new_badges)

    async def get_stats(self, user_id: str) -> ReputationStats:
        stats = await self._stats_repo.get_by_user(user_id)
        if stats is None:
            return ReputationStats(
                user_id=user_id,
                total_points=0,
                upvotes_received=0,
                downvotes_received=0,
                badges_count=0,
            )
        return stats

    async def list_badges(self, user_id: str) -> list[ReputationBadge]:
        return await self._stats_repo.list_badges(user_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_or_create_stats(self, user_id: str) -> ReputationStats:
        stats = await self._stats_repo.get_by_user(user_id)
        if stats is not None:
            return stats
        now = self._ctx.now()
        return await self._stats_repo.create(
            ReputationStats(
                user_id=user_id,
                total_points=0,
                upvotes_received=0,
                downvotes_received=0,
                badges_count=0,
                created_at=now,
                updated_at=now,
            )
        )

    async def _enforce_daily_limit(self, voter_id: str, now: datetime) -> None:
        """Count one effective vote against the voter's UTC day, or refuse it.

        Every cast or flip counts, so toggling one vote back and forth uses
        up the allowance like voting on different targets.
        """
        limit = self._ctx.settings.reputation_max_votes_per_day
        counter = await self._counter_repo.lock(
            voter_id, CounterName.VOTES_CAST, day_key(now), now
        )
        if counter.value >= limit:
            logger.warning("reputation.vote_limit_reached", voter_id=voter_id, limit=limit)
            raise VoteLimitExceededError(voter_id, limit)
        counter.value += 1
        counter.updated_at = now
        await self._counter_repo.save(counter)

    def _apply(self, stats: ReputationStats, vote_type: VoteType, sign: int) -> None:
        settings = self._ctx.settings
        if vote_type == VoteType.UP:
            stats.total_points += sign * settings.reputation_upvote_points
            stats.upvotes_received += sign
        else:
            stats.total_points += sign * settings.reputation_downvote_points
            stats.downvotes_received += sign

    async def _award_badges(
        self, stats: ReputationStats, now: datetime
    ) -> list[ReputationBadge]:
        """Append a badge for every tier reached and not yet awarded. Never removes."""
        awarded = await self._stats_repo.badge_levels(stats.user_id, REPUTATION_BADGE)
        new_badges: list[ReputationBadge] = []
        for level, threshold in enumerate(self._ctx.settings.reputation_badge_thresholds, 1):
            if stats.total_points < threshold or level in awarded:
                continue
            badge = await self._stats_repo.add_badge(
                ReputationBadge(
                    user_id=stats.user_id,
                    badge_type=REPUTATION_BADGE,
                    badge_level=level,
                    points_at_award=stats.total_points,
                    earned_at=now,
                )
            )
            new_badges.append(badge)
            stats.badges_count += 1
            stats.last_badge_at = now
            logger.info(
                "reputation.badge_earned",
                user_id=stats.user_id,
                level=level,
                points=stats.total_points,
            )
        return new_badges
