"""Auto-release sweep — releases funded escrows whose window has expired.

Invoked periodically by cron:

    python -m trust_settlement.jobs.auto_release [--batch-size N]

Each candidate is claimed and released in its own session and transaction,
so one bad row never aborts the sweep and a committed release is never
undone by a later failure. Overlapping sweeps are safe: the conditional
claim lets exactly one of them win each transaction.
"""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from trust_settlement.config import get_settings
from trust_settlement.infrastructure.database.engine import (
    close_db,
    get_session_factory,
    session_scope,
)
from trust_settlement.infrastructure.database.repositories import EscrowRepository
from trust_settlement.logging_config import get_logger, setup_logging
from trust_settlement.services.context import ServiceContext
from trust_settlement.services.escrow_service import EscrowService

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


@dataclass
class SweepReport:
    candidates: int = 0
    released: int = 0
    skipped: int = 0
    failed: int = 0
    failures: dict[str, str] = field(default_factory=dict)


class AutoReleaseSweep:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        ctx: ServiceContext | None = None,
        batch_size: int = 500,
    ) -> None:
        self._factory = session_factory or get_session_factory()
        self._ctx = ctx or ServiceContext()
        self._batch_size = batch_size

    async def run(self) -> SweepReport:
        report = SweepReport()
        now = self._ctx.now()

        async with session_scope(self._factory) as session:
            candidates = await EscrowRepository(session).due_for_release(
                now, limit=self._batch_size
            )
        report.candidates = len(candidates)
        logger.info("auto_release.started", candidates=report.candidates, now=now.isoformat())

        for transaction_id in candidates:
            try:
                released = await self._release_one(transaction_id)
            except Exception as exc:
                report.failed += 1
                report.failures[str(transaction_id)] = str(exc)
                logger.exception("auto_release.failed", transaction_id=str(transaction_id))
                continue
            if released:
                report.released += 1
            else:
                report.skipped += 1

        logger.info(
            "auto_release.finished",
            candidates=report.candidates,
            released=report.released,
            skipped=report.skipped,
            failed=report.failed,
        )
        return report

    async def _release_one(self, transaction_id: uuid.UUID) -> bool:
        async with session_scope(self._factory) as session:
            return await EscrowService(session, self._ctx).auto_release_one(transaction_id)


async def _main(batch_size: int) -> SweepReport:
    settings = get_settings()
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
        component="auto_release",
    )
    try:
        return await AutoReleaseSweep(
            ctx=ServiceContext.from_settings(settings), batch_size=batch_size
        ).run()
    finally:
        await close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description="Release funded escrows past their window.")
    parser.add_argument("--batch-size", type=int, default=500)
    args = parser.parse_args()
    report = asyncio.run(_main(args.batch_size))
    raise SystemExit(1 if report.failed else 0)


if __name__ == "__main__":
    main()
