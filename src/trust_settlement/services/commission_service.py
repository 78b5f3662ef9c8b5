"""Commission Service — resolves the platform's cut for one escrow amount.

Lookup order:
    1. Provider's active subscription tier (default from settings).
    2. Exactly one active commission rule for (country, tier, amount range).
    3. Percentage applied with ROUND_HALF_UP to the whole XAF.
    4. Monthly cap applied against the provider's commission counter for the
       calendar month (UTC). Refunds give their commission back.

`resolve` only quotes. `charge` quotes and books the commission on the
period counter in the caller's transaction; the counter row is locked and
versioned so two escrows created at once cannot spend the same headroom.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from trust_settlement.domain.commission import CommissionQuote, build_quote
from trust_settlement.domain.enums import CounterName
from trust_settlement.domain.exceptions import CommissionRuleError, ValidationError
from trust_settlement.infrastructure.database.repositories import (
    CommissionRuleRepository,
    PeriodCounterRepository,
)
from trust_settlement.logging_config import get_logger
from trust_settlement.services.context import ServiceContext

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from trust_settlement.infrastructure.database.orm_models import (
        CommissionRule,
        EscrowTransaction,
    )

logger = get_logger(__name__)


def month_key(moment: datetime) -> str:
    """UTC calendar month of `moment`, e.g. ``2024-06``."""
    return moment.astimezone(UTC).strftime("%Y-%m")


class CommissionService:
    def __init__(self, session: AsyncSession, ctx: ServiceContext | None = None) -> None:
        self._ctx = ctx or ServiceContext()
        self._rule_repo = CommissionRuleRepository(session)
        self._counter_repo = PeriodCounterRepository(session)

    async def resolve_tier(self, provider_id: str) -> str:
        tier = await self._rule_repo.active_tier(provider_id, self._ctx.now())
        return tier or self._ctx.settings.default_subscription_tier

    async def resolve(
        self,
        amount_xaf: int,
        provider_id: str,
        country_code: str | None = None,
        tier: str | None = None,
    ) -> CommissionQuote:
        """Return the commission quote for a new transaction of `amount_xaf`.

        Nothing is booked; the next `charge` may see a different headroom.

        Raises:
            ValidationError: If the amount is not a positive integer.
            CommissionRuleError: If zero or several rules match.
        """
        rule = await self._match_rule(amount_xaf, provider_id, country_code, tier)
        month_to_date = 0
        if rule.monthly_cap_xaf is not None:
            counter = await self._counter_repo.get(
                provider_id, CounterName.COMMISSION_XAF, month_key(self._ctx.now())
            )
            month_to_date = counter.value if counter else 0
        return self._quote(rule, amount_xaf, provider_id, month_to_date)

    async def charge(
        self,
        amount_xaf: int,
        provider_id: str,
        country_code: str | None = None,
        tier: str | None = None,
    ) -> CommissionQuote:
        """Quote and add the commission to the provider's monthly counter.

        The counter is kept for uncapped rules too, so a cap introduced
        mid-month sees what was already charged.

        Raises:
            ValidationError: If the amount is not a positive integer.
            CommissionRuleError: If zero or several rules match.
            ConcurrencyConflictError: If another charge moved the counter first.
        """
        rule = await self._match_rule(amount_xaf, provider_id, country_code, tier)
        now = self._ctx.now()
        counter = await self._counter_repo.lock(
            provider_id, CounterName.COMMISSION_XAF, month_key(now), now
        )
        quote = self._quote(rule, amount_xaf, provider_id, counter.value)

        counter.value += quote.commission_xaf
        counter.updated_at = now
        await self._counter_repo.save(counter)
        return quote

    async def give_back(self, transaction: EscrowTransaction) -> None:
        """Return a refunded transaction's commission to the month it was charged in."""
        if transaction.commission_xaf == 0:
            return
        now = self._ctx.now()
        counter = await self._counter_repo.lock(
            transaction.provider_id,
            CounterName.COMMISSION_XAF,
            month_key(transaction.created_at),
            now,
        )
        counter.value = max(counter.value - transaction.commission_xaf, 0)
        counter.updated_at = now
        await self._counter_repo.save(counter)
        logger.info(
            "commission.given_back",
            provider_id=transaction.provider_id,
            period=counter.period_key,
            commission=transaction.commission_xaf,
            month_to_date=counter.value,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _match_rule(
        self,
        amount_xaf: int,
        provider_id: str,
        country_code: str | None,
        tier: str | None,
    ) -> CommissionRule:
        if amount_xaf <= 0:
            raise ValidationError(f"Amount must be positive, got {amount_xaf}")

        country = (country_code or self._ctx.settings.default_country_code).upper()
        tier = tier or await self.resolve_tier(provider_id)

        rules = await self._rule_repo.matching(country, tier, amount_xaf)
        if len(rules) != 1:
            logger.error(
                "commission.rule_mismatch",
                country=country,
                tier=tier,
                amount=amount_xaf,
                matches=len(rules),
            )
            raise CommissionRuleError(country, tier, amount_xaf, len(rules))
        return rules[0]

    def _quote(
        self,
        rule: CommissionRule,
        amount_xaf: int,
        provider_id: str,
        month_to_date: int,
    ) -> CommissionQuote:
        quote = build_quote(
            amount_xaf=amount_xaf,
            percent=rule.commission_percent,
            month_to_date_xaf=month_to_date,
            monthly_cap_xaf=rule.monthly_cap_xaf,
        )
        logger.info(
            "commission.resolved",
            provider_id=provider_id,
            country=rule.country_code,
            tier=rule.subscription_tier,
            amount=amount_xaf,
            rate=str(quote.commission_rate),
            commission=quote.commission_xaf,
            capped=quote.capped,
        )
        return quote
