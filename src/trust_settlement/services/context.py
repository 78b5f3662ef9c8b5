"""Shared wiring for the service layer: settings, collaborators and the clock."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from trust_settlement.config import Settings, get_settings
from trust_settlement.domain.collaborators import Notification
from trust_settlement.domain.exceptions import DependencyFailureError
from trust_settlement.infrastructure.collaborators import (
    Collaborators,
    build_collaborators,
    call_dependency,
)
from trust_settlement.infrastructure.database.engine import after_commit
from trust_settlement.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from trust_settlement.domain.enums import NotificationKind

logger = get_logger(__name__)


def system_clock() -> datetime:
    return datetime.now(UTC)


@dataclass
class ServiceContext:
    """Everything a service needs besides its AsyncSession.

    Tests swap the clock and the collaborators; production builds the
    context once from settings.
    """

    settings: Settings = field(default_factory=get_settings)
    collaborators: Collaborators = field(default_factory=Collaborators)
    clock: Callable[[], datetime] = system_clock

    @classmethod
    def from_settings(cls, settings: Settings) -> ServiceContext:
        return cls(settings=settings, collaborators=build_collaborators(settings))

    def now(self) -> datetime:
        return self.clock()


async def notify_safely(
    ctx: ServiceContext,
    kind: NotificationKind,
    recipient_id: str,
    **payload: object,
) -> None:
    """Hand a notification to the notifier. Delivery failures are only logged."""
    notification = Notification(kind=kind.value, recipient_id=recipient_id, payload=payload)
    try:
        await call_dependency(
            "notifier",
            ctx.collaborators.notifier.notify(notification),
            ctx.settings.dependency_timeout_seconds,
        )
    except DependencyFailureError as exc:
        logger.warning(
            "notify.failed",
            kind=notification.kind,
            recipient=recipient_id,
            error=exc.message,
        )


def defer_notification(
    session: AsyncSession,
    ctx: ServiceContext,
    kind: NotificationKind,
    recipient_id: str,
    **payload: object,
) -> None:
    """Send a notification once the session commits; a rollback drops it."""

    async def send() -> None:
        await notify_safely(ctx, kind, recipient_id, **payload)

    after_commit(session, send)
