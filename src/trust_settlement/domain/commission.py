"""Commission arithmetic.

All amounts are whole XAF. The commission is rounded half up once, and the
same rounded value is used for both the platform's cut and the provider's
net amount, so `commission + net == amount` holds exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal


@dataclass(frozen=True)
class CommissionQuote:
    amount_xaf: int
    commission_rate: Decimal
    commission_xaf: int
    net_amount_xaf: int
    capped: bool = False


def round_commission(amount_xaf: int, percent: Decimal) -> int:
    """Return `amount * percent / 100` rounded half up to the currency unit."""
    raw = Decimal(amount_xaf) * Decimal(percent) / Decimal(100)
    return int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def apply_monthly_cap(
    commission_xaf: int,
    month_to_date_xaf: int,
    monthly_cap_xaf: int | None,
) -> tuple[int, bool]:
    """Reduce a commission so the month's cumulative total never exceeds the cap.

    Returns the (possibly reduced) commission and whether the cap applied.
    """
    if monthly_cap_xaf is None:
        return commission_xaf, False
    headroom = max(monthly_cap_xaf - month_to_date_xaf, 0)
    if commission_xaf <= headroom:
        return commission_xaf, False
    return headroom, True


def build_quote(
    amount_xaf: int,
    percent: Decimal,
    month_to_date_xaf: int = 0,
    monthly_cap_xaf: int | None = None,
) -> CommissionQuote:
    if amount_xaf <= 0:
        raise ValueError("amount_xaf must be positive")
    commission = round_commission(amount_xaf, percent)
    commission, capped = apply_monthly_cap(commission, month_to_date_xaf, monthly_cap_xaf)
    return CommissionQuote(
        amount_xaf=amount_xaf,
        commission_rate=Decimal(percent),
        commission_xaf=commission,
        net_amount_xaf=amount_xaf - commission,
        capped=capped,
    )
