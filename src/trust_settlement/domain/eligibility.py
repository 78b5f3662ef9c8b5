"""Verification level policy: eligibility, requirements, cooling periods.

A stored `level_N_eligible_at` column is NULL until the previous level is
approved. In code that nullable timestamp is lifted into an explicit
`NotEligible | EligibleAt(at)` value so "not computed yet" and "eligible
from a given moment" are never confused.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from trust_settlement.domain.enums import DocumentType, LevelStatus, UserType

LEVELS = (1, 2, 3, 4)


@dataclass(frozen=True)
class NotEligible:
    """The previous level has not been approved yet."""

    def is_open(self, now: datetime) -> bool:  # noqa: ARG002
        return False

    def as_timestamp(self) -> datetime | None:
        return None


@dataclass(frozen=True)
class EligibleAt:
    """The level may be requested from `at` onwards."""

    at: datetime

    def is_open(self, now: datetime) -> bool:
        return now >= self.at

    def as_timestamp(self) -> datetime | None:
        return self.at


Eligibility = NotEligible | EligibleAt


def eligibility_from_column(value: datetime | None) -> Eligibility:
    """Lift a nullable `level_N_eligible_at` column into an Eligibility."""
    return NotEligible() if value is None else EligibleAt(value)


# Each level is satisfied when every group has at least one approved document.
# A group lists interchangeable document types (e.g. ID card OR passport).
LEVEL_REQUIREMENTS: dict[int, tuple[frozenset[DocumentType], ...]] = {
    1: (frozenset({DocumentType.PROFILE_PHOTO}),),
    2: (
        frozenset({DocumentType.ID_CARD, DocumentType.PASSPORT}),
        frozenset({DocumentType.SELFIE_WITH_ID}),
        frozenset({DocumentType.DIGITAL_SIGNATURE}),
    ),
    3: (
        frozenset({DocumentType.PROPERTY_PHOTO}),
        frozenset({DocumentType.PROPERTY_VIDEO, DocumentType.UTILITY_BILL}),
    ),
    4: (
        frozenset(
            {
                DocumentType.BUSINESS_REGISTER,
                DocumentType.MANAGEMENT_MANDATE,
                DocumentType.OTHER,
            }
        ),
    ),
}


def requirements_met(level: int, approved_types: set[str]) -> bool:
    """Return True when the approved document types cover every group of a level."""
    return all(
        any(doc_type.value in approved_types for doc_type in group)
        for group in LEVEL_REQUIREMENTS[level]
    )


def cooling_period(level: int, cooling_days: dict[int, int]) -> timedelta:
    """Delay between approving `level` and being allowed to request `level + 1`."""
    return timedelta(days=cooling_days.get(level, 0))


def max_level_for(user_type: str, seeker_max_level: int) -> int:
    """Highest level an account of this user type may ever request."""
    if user_type == UserType.SEEKER:
        return seeker_max_level
    return LEVELS[-1]


@dataclass(frozen=True)
class LevelEligibility:
    """Read model returned by the eligibility check for one level."""

    level: int
    status: str | None
    eligibility: Eligibility
    requestable: bool
    reason: str | None = None


def evaluate_level(
    level: int,
    statuses: dict[int, str | None],
    eligible_at: dict[int, datetime | None],
    user_type: str,
    seeker_max_level: int,
    now: datetime,
) -> LevelEligibility:
    """Decide whether `level` may be started (or resumed) now.

    Level N is requestable iff level N-1 is approved, `now >= eligible_at`,
    level N is not itself approved, and the user type allows level N.
    """
    status = statuses.get(level)
    elig = eligibility_from_column(eligible_at.get(level))

    reason: str | None = None
    if status == LevelStatus.APPROVED:
        reason = "already approved"
    elif level > max_level_for(user_type, seeker_max_level):
        reason = f"not available to {user_type} accounts"
    elif level > 1 and statuses.get(level - 1) != LevelStatus.APPROVED:
        reason = f"level {level - 1} is not approved"
    elif not elig.is_open(now):
        if isinstance(elig, EligibleAt):
            reason = f"cooling period ends at {elig.at.isoformat()}"
        else:
            reason = "no eligibility date has been computed"

    return LevelEligibility(
        level=level,
        status=status,
        eligibility=elig,
        requestable=reason is None,
        reason=reason,
    )
