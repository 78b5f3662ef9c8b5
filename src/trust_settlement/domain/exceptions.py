"""Domain exceptions for the Trust & Settlement core.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware.

Families:
    ValidationError        — malformed input, rejected before any mutation.
    SequenceError          — level-order or terminal-state violation, no partial writes.
    ConcurrencyConflictError — optimistic lock lost, caller retries.
    DependencyFailureError — collaborator unreachable, retryable, nothing mutated.
    NotFoundError          — unknown identifier.
"""


class TrustCoreError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "TRUST_CORE_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Families ---


class ValidationError(TrustCoreError):
    """Raised when input is malformed. Nothing has been written."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR") -> None:
        super().__init__(message=message, code=code)


class SequenceError(TrustCoreError):
    """Raised when an operation is out of order for the current state."""

    def __init__(self, message: str, code: str = "SEQUENCE_ERROR") -> None:
        super().__init__(message=message, code=code)


class ConcurrencyConflictError(TrustCoreError):
    """Raised when a concurrent writer changed the row first. Safe to retry."""

    def __init__(self, subject: str) -> None:
        super().__init__(
            message=f"Concurrent update detected on {subject}; retry the operation",
            code="CONCURRENCY_CONFLICT",
        )
        self.subject = subject


class DependencyFailureError(TrustCoreError):
    """Raised when an external collaborator is unreachable or times out."""

    def __init__(self, dependency: str, detail: str = "") -> None:
        message = f"Dependency unavailable: {dependency}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message=message, code="DEPENDENCY_FAILURE")
        self.dependency = dependency
        self.retryable = True


class NotFoundError(TrustCoreError):
    """Raised when an identifier does not exist."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(
            message=f"{kind} not found: {identifier}",
            code="NOT_FOUND",
        )
        self.kind = kind
        self.identifier = identifier


# --- Sequence Errors ---


class InvalidStateTransitionError(SequenceError):
    """Raised when an attempted state transition is not allowed.

    Example: pending -> released (must be funded first).
    """

    def __init__(self, current_state: str, attempted_event: str) -> None:
        super().__init__(
            message=f"Invalid state transition: {attempted_event} from {current_state}",
            code="INVALID_STATE_TRANSITION",
        )
        self.current_state = current_state
        self.attempted_state = attempted_event


class AlreadyTerminalError(InvalidStateTransitionError):
    """Raised when a released or refunded transaction is asked to move again."""

    def __init__(self, current_state: str, attempted_event: str) -> None:
        super().__init__(current_state, attempted_event)
        self.message = f"Transaction is already {current_state}; cannot {attempted_event}"
        self.code = "ALREADY_TERMINAL"
        self.args = (self.message,)


class InvalidLevelOrderError(SequenceError):
    """Raised when a document targets a level the account cannot start yet."""

    def __init__(self, level: int, detail: str) -> None:
        super().__init__(
            message=f"Level {level} cannot be requested: {detail}",
            code="INVALID_LEVEL_ORDER",
        )
        self.level = level


class DocumentAlreadyDecidedError(SequenceError):
    """Raised when a reviewer tries to decide a document twice."""

    def __init__(self, document_id: str, status: str) -> None:
        super().__init__(
            message=f"Document {document_id} is already {status}",
            code="DOCUMENT_ALREADY_DECIDED",
        )


class NotEligibleError(SequenceError):
    """Raised when an account's trust state does not allow the operation."""

    def __init__(self, account_id: str, reason: str) -> None:
        super().__init__(
            message=f"Account {account_id} is not eligible: {reason}",
            code="NOT_ELIGIBLE",
        )
        self.account_id = account_id


# --- Validation Errors ---


class SelfVoteError(ValidationError):
    """Raised when an account tries to vote on itself."""

    def __init__(self, account_id: str) -> None:
        super().__init__(
            message=f"Account {account_id} cannot vote on itself",
            code="SELF_VOTE",
        )


class VoteLimitExceededError(ValidationError):
    """Raised when a voter exceeds the daily vote allowance."""

    def __init__(self, voter_id: str, limit: int) -> None:
        super().__init__(
            message=f"Voter {voter_id} reached the daily limit of {limit} votes",
            code="VOTE_LIMIT_EXCEEDED",
        )


class PaymentDeclinedError(ValidationError):
    """Raised when the payment collector reports that funding did not succeed."""

    def __init__(self, payment_reference: str) -> None:
        super().__init__(
            message=f"Payment not confirmed for reference {payment_reference}",
            code="PAYMENT_DECLINED",
        )
        self.payment_reference = payment_reference


# --- Configuration Errors ---


class CommissionRuleError(TrustCoreError):
    """Raised when the commission table yields zero or several matching rules."""

    def __init__(self, country_code: str, tier: str, amount: int, matches: int) -> None:
        super().__init__(
            message=(
                f"Expected exactly one commission rule for {country_code}/{tier} "
                f"at {amount} XAF, found {matches}"
            ),
            code="COMMISSION_RULE_ERROR",
        )
        self.matches = matches

