"""External collaborator protocols.

Defines the interfaces the core expects from the document store, the
payment collector and the notifier. These are Protocols (structural
subtyping) so concrete adapters don't need to inherit from a base class.

The domain layer has ZERO imports from httpx or any gateway SDK.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class FundingConfirmation:
    """Answer from the payment collector for one payment reference.

    Attributes:
        reference: The payment reference that was checked.
        success: Whether the client's money was actually collected.
        details: Free-form gateway message, kept for the audit trail.
    """

    reference: str
    success: bool
    details: str = ""


@dataclass(frozen=True)
class Notification:
    """A fire-and-forget event for the notifier."""

    kind: str
    recipient_id: str
    payload: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "recipient_id": self.recipient_id,
            "payload": self.payload,
        }


@runtime_checkable
class DocumentStorage(Protocol):
    """Opaque blob store reachable by URL. The core only persists the URL."""

    async def store(self, content: bytes, file_name: str) -> str:
        ...

    async def fetch(self, url: str) -> bytes:
        ...


@runtime_checkable
class PaymentCollector(Protocol):
    """Reports whether a client payment for an escrow has succeeded."""

    async def confirm_funding(self, reference: str) -> FundingConfirmation:
        ...


@runtime_checkable
class Notifier(Protocol):
    """Delivers notifications. Failures must never roll back core state."""

    async def notify(self, notification: Notification) -> None:
        ...
