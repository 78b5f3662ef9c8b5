"""Tests for CommissionService rule lookup, tiers and the monthly cap."""

from __future__ import annotations

import pytest

from trust_settlement.domain.exceptions import CommissionRuleError, ValidationError


class TestRuleLookup:
    @pytest.mark.asyncio
    async def test_single_rule(self, commission, make_rule) -> None:
        await make_rule(percent="10")
        quote = await commission.resolve(100_000, "provider-1")
        assert quote.commission_xaf == 10_000
        assert quote.net_amount_xaf == 90_000

    @pytest.mark.asyncio
    async def test_no_rule(self, commission) -> None:
        with pytest.raises(CommissionRuleError) as exc_info:
            await commission.resolve(100_000, "provider-1")
        assert exc_info.value.matches == 0

    @pytest.mark.asyncio
    async def test_overlapping_rules(self, commission, make_rule) -> None:
        await make_rule(percent="10")
        await make_rule(percent="8", min_amount=50_000)
        with pytest.raises(CommissionRuleError) as exc_info:
            await commission.resolve(100_000, "provider-1")
        assert exc_info.value.matches == 2

    @pytest.mark.asyncio
    async def test_amount_ranges(self, commission, make_rule) -> None:
        await make_rule(percent="10", max_amount=99_999)
        await make_rule(percent="7", min_amount=100_000)
        small = await commission.resolve(50_000, "provider-1")
        large = await commission.resolve(200_000, "provider-1")
        assert small.commission_xaf == 5_000
        assert large.commission_xaf == 14_000

    @pytest.mark.asyncio
    async def test_inactive_rule_ignored(self, commission, make_rule) -> None:
        await make_rule(percent="10")
        await make_rule(percent="3", is_active=False)
        quote = await commission.resolve(100_000, "provider-1")
        assert quote.commission_xaf == 10_000

    @pytest.mark.asyncio
    async def test_country_is_case_insensitive(self, commission, make_rule) -> None:
        await make_rule(percent="12", country_code="SN")
        quote = await commission.resolve(10_000, "provider-1", country_code="sn")
        assert quote.commission_xaf == 1_200

    @pytest.mark.asyncio
    async def test_non_positive_amount(self, commission) -> None:
        with pytest.raises(ValidationError):
            await commission.resolve(0, "provider-1")


class TestTiers:
    @pytest.mark.asyncio
    async def test_default_tier(self, commission) -> None:
        assert await commission.resolve_tier("provider-1") == "free"

    @pytest.mark.asyncio
    async def test_subscription_tier(self, commission, make_rule, make_subscription) -> None:
        await make_rule(percent="10", tier="free")
        await make_rule(percent="5", tier="pro")
        await make_subscription("provider-1", "pro", ends_in_days=30)

        quote = await commission.resolve(100_000, "provider-1")
        assert quote.commission_xaf == 5_000

    @pytest.mark.asyncio
    async def test_expired_subscription_falls_back(
        self, commission, make_subscription
    ) -> None:
        await make_subscription("provider-1", "premium", ends_in_days=-1)
        assert await commission.resolve_tier("provider-1") == "free"

    @pytest.mark.asyncio
    async def test_unknown_tier_falls_back(self, commission, make_subscription) -> None:
        await make_subscription("provider-1", "platinum")
        assert await commission.resolve_tier("provider-1") == "free"


class TestMonthlyCap:
    @pytest.mark.asyncio
    async def test_cap_spans_transactions(
        self, escrow, make_quote, make_rule, verify_level_1
    ) -> None:
        await make_rule(percent="10", monthly_cap_xaf=15_000)
        await verify_level_1("provider-1")

        amounts = []
        for _ in range(3):
            quote = await make_quote(amount_xaf=100_000)
            tx = await escrow.create_transaction(quote.id)
            amounts.append((tx.commission_xaf, tx.net_amount_xaf))

        assert amounts == [(10_000, 90_000), (5_000, 95_000), (0, 100_000)]

    @pytest.mark.asyncio
    async def test_refunds_release_headroom(
        self, escrow, make_quote, make_rule, verify_level_1
    ) -> None:
        await make_rule(percent="10", monthly_cap_xaf=15_000)
        await verify_level_1("provider-1")

        first = await escrow.create_transaction((await make_quote()).id)
        await escrow.fund(first.id, "MOMO-REF-1")
        await escrow.refund(first.id, reason="cancelled", actor_id="admin-1")

        second = await escrow.create_transaction((await make_quote()).id)
        assert second.commission_xaf == 10_000

    @pytest.mark.asyncio
    async def test_cap_resets_each_month(
        self, escrow, make_quote, make_rule, verify_level_1, clock
    ) -> None:
        await make_rule(percent="10", monthly_cap_xaf=10_000)
        await verify_level_1("provider-1")

        await escrow.create_transaction((await make_quote()).id)
        capped = await escrow.create_transaction((await make_quote()).id)
        assert capped.commission_xaf == 0

        clock.advance(days=30)
        fresh = await escrow.create_transaction((await make_quote()).id)
        assert fresh.commission_xaf == 10_000
