"""Trust score calculator.

    score = base
          + (level 1 approved ? L1_BONUS : 0)
          + positive_reviews * POS_WEIGHT
          - negative_reviews * NEG_WEIGHT
          - validated_reports * REPORT_WEIGHT
          + floor(response_rate / RESPONSE_DIVISOR)

The function is pure: the same inputs always give the same score, so a
recomputation never accumulates. The raw value may go negative; the stored
value is clamped to the configured floor.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from trust_settlement.config import Settings


@dataclass(frozen=True)
class TrustWeights:
    base: int = 0
    l1_bonus: int = 30
    pos_weight: int = 5
    neg_weight: int = 10
    report_weight: int = 15
    response_divisor: int = 5
    floor: int = 0
    suspension_threshold: int = 10

    @classmethod
    def from_settings(cls, settings: Settings) -> TrustWeights:
        return cls(
            base=settings.trust_base,
            l1_bonus=settings.trust_l1_bonus,
            pos_weight=settings.trust_pos_weight,
            neg_weight=settings.trust_neg_weight,
            report_weight=settings.trust_report_weight,
            response_divisor=settings.trust_response_divisor,
            floor=settings.trust_score_floor,
            suspension_threshold=settings.trust_suspension_threshold,
        )


@dataclass(frozen=True)
class TrustInputs:
    level_1_approved: bool
    positive_reviews_count: int = 0
    negative_reviews_count: int = 0
    validated_reports_count: int = 0
    response_rate: int = 0


@dataclass(frozen=True)
class TrustScore:
    raw: int
    clamped: int


def compute_trust_score(inputs: TrustInputs, weights: TrustWeights) -> TrustScore:
    """Compute the raw and clamped trust score for one account."""
    if weights.response_divisor <= 0:
        raise ValueError("response_divisor must be positive")

    raw = weights.base
    if inputs.level_1_approved:
        raw += weights.l1_bonus
    raw += inputs.positive_reviews_count * weights.pos_weight
    raw -= inputs.negative_reviews_count * weights.neg_weight
    raw -= inputs.validated_reports_count * weights.report_weight
    raw += inputs.response_rate // weights.response_divisor

    return TrustScore(raw=raw, clamped=max(raw, weights.floor))


def propose_suspension(
    inputs: TrustInputs,
    score: TrustScore,
    weights: TrustWeights,
) -> str | None:
    """Return a suspension reason when the clamped score is below the threshold.

    Which input pulled the score down does not matter. The calculator never
    proposes reinstatement.
    """
    if score.clamped >= weights.suspension_threshold:
        return None
    return (
        f"Trust score {score.clamped} fell below threshold "
        f"{weights.suspension_threshold} "
        f"({inputs.negative_reviews_count} negative reviews, "
        f"{inputs.validated_reports_count} validated reports, "
        f"response rate {inputs.response_rate})"
    )
