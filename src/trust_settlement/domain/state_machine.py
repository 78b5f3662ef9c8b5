"""State machine guards for escrow transactions and verification levels.

Uses python-statemachine to enforce legal state transitions at the domain
level. No matter what the API or the sweep job does, an illegal transition
(e.g., pending -> released) raises before the ORM row is touched.

Escrow transition table:
    pending   -> funded     (fund)
    funded    -> released   (release)
    funded    -> refunded   (refund)
    funded    -> disputed   (raise_dispute)
    disputed  -> released   (release / resolve_release)
    disputed  -> refunded   (refund / resolve_refund)

Verification level transition table:
    unstarted -> pending    (submit)
    rejected  -> pending    (submit, resubmission)
    expired   -> pending    (submit)
    pending   -> pending    (submit, additional document)
    pending   -> approved   (approve)
    pending   -> rejected   (reject)
    pending   -> expired    (expire)
"""

from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from trust_settlement.domain.enums import EscrowStatus
from trust_settlement.domain.exceptions import (
    AlreadyTerminalError,
    InvalidStateTransitionError,
)

UNSTARTED = "unstarted"


class _GuardMixin:
    """Shared helpers for machines that are rebuilt from a stored status."""

    def _validate_start(self, current_status: str) -> None:
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )

    @property
    def status(self) -> str:
        """Return the current state value as a string."""
        return str(self.current_state_value)

    def get_allowed_events(self) -> list[str]:
        """Return the ids of the events that can fire from the current state."""
        return [event.id for event in self.allowed_events]


class EscrowStateMachine(_GuardMixin, StateMachine):
    """State machine that guards the escrow transaction lifecycle.

    Usage:
        sm = EscrowStateMachine(current_status="funded")
        sm.release()   # transitions to released
        sm.status      # "released"
    """

    # --- States ---
    PENDING = State("Pending", value="pending", initial=True)
    FUNDED = State("Funded", value="funded")
    DISPUTED = State("Disputed", value="disputed")
    RELEASED = State("Released", value="released", final=True)
    REFUNDED = State("Refunded", value="refunded", final=True)

    # --- Events / Transitions ---
    fund = PENDING.to(FUNDED)
    release = FUNDED.to(RELEASED) | DISPUTED.to(RELEASED)
    refund = FUNDED.to(REFUNDED) | DISPUTED.to(REFUNDED)
    raise_dispute = FUNDED.to(DISPUTED)

    def __init__(self, current_status: str = "pending") -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: The current EscrowStatus value (e.g., "funded").
        """
        self._validate_start(current_status)
        super().__init__(start_value=current_status)


class LevelStateMachine(_GuardMixin, StateMachine):
    """State machine for a single verification level.

    A NULL stored status maps to the "unstarted" state.
    """

    UNSTARTED = State("Unstarted", value=UNSTARTED, initial=True)
    PENDING = State("Pending", value="pending")
    REJECTED = State("Rejected", value="rejected")
    EXPIRED = State("Expired", value="expired")
    APPROVED = State("Approved", value="approved", final=True)

    submit = (
        UNSTARTED.to(PENDING)
        | REJECTED.to(PENDING)
        | EXPIRED.to(PENDING)
        | PENDING.to.itself()
    )
    approve = PENDING.to(APPROVED)
    reject = PENDING.to(REJECTED)
    expire = PENDING.to(EXPIRED)

    def __init__(self, current_status: str | None = None) -> None:
        current_status = current_status or UNSTARTED
        self._validate_start(current_status)
        super().__init__(start_value=current_status)


_TERMINAL_ESCROW = {EscrowStatus.RELEASED.value, EscrowStatus.REFUNDED.value}


def validate_transition(current_status: str, event_name: str) -> str:
    """Validate an escrow transition and return the new status.

    Creates a temporary state machine, fires the named event, and returns
    the resulting status string.

    Raises:
        AlreadyTerminalError: If the transaction is released or refunded.
        InvalidStateTransitionError: If the transition is otherwise illegal.
        ValueError: If the status or event name is unknown.
    """
    sm = EscrowStateMachine(current_status=current_status)
    return _fire(sm, current_status, event_name, terminal=_TERMINAL_ESCROW)


def validate_level_transition(current_status: str | None, event_name: str) -> str:
    """Validate a verification level transition and return the new status."""
    sm = LevelStateMachine(current_status=current_status)
    return _fire(sm, current_status or UNSTARTED, event_name, terminal=set())


def _fire(
    sm: _GuardMixin,
    current_status: str,
    event_name: str,
    terminal: set[str],
) -> str:
    event_method = getattr(sm, event_name, None)
    if event_method is None or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )
    try:
        event_method()
    except TransitionNotAllowed as err:
        if current_status in terminal:
            raise AlreadyTerminalError(current_status, event_name) from err
        raise InvalidStateTransitionError(current_status, event_name) from err
    return sm.status
