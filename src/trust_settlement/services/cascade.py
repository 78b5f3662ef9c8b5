"""Trust cascade — the explicit handler chain behind every trust-relevant change.

    vote cast        -> stats updated -> on_votes_changed       -> recompute
    level approved                    -> on_level_approved      -> recompute
    report validated                  -> on_report_validated    -> recompute
    response rate set                 -> on_signal_updated      -> recompute
    escrow settled                    -> on_transaction_settled -> recompute

Handlers run synchronously inside the caller's transaction, so a committed
vote is never observed next to a stale score. Recompute decides suspension
and queues its notification for after commit. Nothing downstream can roll
back the triggering write except an exception, which rolls back the whole
unit of work.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from trust_settlement.logging_config import get_logger
from trust_settlement.services.trust_service import Recomputation, TrustService

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from trust_settlement.services.context import ServiceContext

logger = get_logger(__name__)


class TrustCascade:
    def __init__(self, session: AsyncSession, ctx: ServiceContext | None = None) -> None:
        self._trust = TrustService(session, ctx)

    async def on_votes_changed(self, target_id: str, actor: str) -> Recomputation | None:
        logger.debug("cascade.votes_changed", target_id=target_id)
        return await self._trust.recompute(target_id, actor=actor)

    async def on_level_approved(
        self, account_id: str, level: int, actor: str
    ) -> Recomputation | None:
        logger.debug("cascade.level_approved", account_id=account_id, level=level)
        return await self._trust.recompute(account_id, actor=actor)

    async def on_report_validated(self, account_id: str, actor: str) -> Recomputation | None:
        logger.debug("cascade.report_validated", account_id=account_id)
        return await self._trust.recompute(account_id, actor=actor)

    async def on_signal_updated(self, account_id: str, actor: str) -> Recomputation | None:
        logger.debug("cascade.signal_updated", account_id=account_id)
        return await self._trust.recompute(account_id, actor=actor, signal_changed=True)

    async def on_transaction_settled(
        self, provider_id: str, actor: str, cancelled: bool = False
    ) -> Recomputation | None:
        # A refund bumps the provider's cancellation counter, a signal in its own right.
        logger.debug(
            "cascade.transaction_settled", provider_id=provider_id, cancelled=cancelled
        )
        return await self._trust.recompute(provider_id, actor=actor, signal_changed=cancelled)

    async def on_record_created(self, account_id: str) -> Recomputation | None:
        # Folds in votes and reports received before the record existed.
        return await self._trust.recompute(account_id)
