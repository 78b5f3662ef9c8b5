"""Shared test fixtures for the Trust & Settlement test suite.

Provides:
    - An in-memory SQLite database (aiosqlite + StaticPool) per test
    - A controllable clock and recording fakes for the collaborators
    - Services wired to one session, plus factories for quotes, rules and
      verified accounts
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from trust_settlement.config import Settings
from trust_settlement.domain.collaborators import FundingConfirmation, Notification
from trust_settlement.infrastructure.collaborators import Collaborators, SimulatedDocumentStorage
from trust_settlement.infrastructure.database.engine import run_after_commit
from trust_settlement.infrastructure.database.orm_models import (
    Base,
    CommissionRule,
    ProviderSubscription,
    ServiceQuote,
)
from trust_settlement.infrastructure.database.repositories import VerificationRepository
from trust_settlement.services import (
    CommissionService,
    EscrowService,
    ReputationService,
    ServiceContext,
    TrustService,
    VerificationService,
)

START = datetime(2024, 6, 10, 9, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Clock and collaborator fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock the tests move forward explicitly."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def notify(self, notification: Notification) -> None:
        self.sent.append(notification)

    def kinds(self) -> list[str]:
        return [n.kind for n in self.sent]


class FailingNotifier:
    async def notify(self, notification: Notification) -> None:
        raise ConnectionError("notifier down")


class FakePaymentCollector:
    """Answers per reference: 'ok' by default, or decline / hang / error."""

    def __init__(self) -> None:
        self.mode = "ok"
        self.calls: list[str] = []

    async def confirm_funding(self, reference: str) -> FundingConfirmation:
        self.calls.append(reference)
        if self.mode == "hang":
            await asyncio.sleep(5)
        if self.mode == "error":
            raise ConnectionError("collector unreachable")
        return FundingConfirmation(
            reference=reference,
            success=self.mode == "ok",
            details="" if self.mode == "ok" else "insufficient funds",
        )


class FailingStorage(SimulatedDocumentStorage):
    async def store(self, content: bytes, file_name: str) -> str:
        raise ConnectionError("storage unreachable")


# ---------------------------------------------------------------------------
# Settings and context
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        app_env="development",
        database_url="sqlite+aiosqlite://",
        dependency_timeout_seconds=0.2,
        reputation_badge_thresholds=[3, 5],
        reputation_max_votes_per_day=10,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def payments() -> FakePaymentCollector:
    return FakePaymentCollector()


@pytest.fixture
def storage() -> SimulatedDocumentStorage:
    return SimulatedDocumentStorage()


@pytest.fixture
def ctx(
    settings: Settings,
    clock: FakeClock,
    notifier: RecordingNotifier,
    payments: FakePaymentCollector,
    storage: SimulatedDocumentStorage,
) -> ServiceContext:
    return ServiceContext(
        settings=settings,
        collaborators=Collaborators(storage=storage, payments=payments, notifier=notifier),
        clock=clock,
    )


@pytest.fixture
def failing_storage() -> FailingStorage:
    return FailingStorage()


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    return FailingNotifier()


@pytest.fixture
def make_ctx(settings, clock, notifier, payments, storage):
    """Build a context with some collaborators swapped for failing fakes."""

    def _make(**overrides: object) -> ServiceContext:
        parts = {"storage": storage, "payments": payments, "notifier": notifier, **overrides}
        return ServiceContext(
            settings=settings, collaborators=Collaborators(**parts), clock=clock
        )

    return _make


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def commit(session):
    """Commit the test session and run its queued after-commit hooks."""

    async def _commit() -> None:
        await session.commit()
        await run_after_commit(session)

    return _commit


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def verification(session, ctx) -> VerificationService:
    return VerificationService(session, ctx)


@pytest.fixture
def reputation(session, ctx) -> ReputationService:
    return ReputationService(session, ctx)


@pytest.fixture
def trust(session, ctx) -> TrustService:
    return TrustService(session, ctx)


@pytest.fixture
def commission(session, ctx) -> CommissionService:
    return CommissionService(session, ctx)


@pytest.fixture
def escrow(session, ctx) -> EscrowService:
    return EscrowService(session, ctx)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_quote(session):
    async def _make(
        amount_xaf: int = 100_000,
        client_id: str = "client-1",
        provider_id: str = "provider-1",
        status: str = "accepted",
    ) -> ServiceQuote:
        quote = ServiceQuote(
            request_id=uuid.uuid4(),
            client_id=client_id,
            provider_id=provider_id,
            amount_xaf=amount_xaf,
            status=status,
        )
        session.add(quote)
        await session.flush()
        return quote

    return _make


@pytest.fixture
def make_rule(session):
    async def _make(
        percent: str = "10",
        country_code: str = "CM",
        tier: str = "free",
        min_amount: int = 0,
        max_amount: int | None = None,
        monthly_cap_xaf: int | None = None,
        is_active: bool = True,
    ) -> CommissionRule:
        rule = CommissionRule(
            country_code=country_code,
            subscription_tier=tier,
            min_amount=min_amount,
            max_amount=max_amount,
            commission_percent=Decimal(percent),
            monthly_cap_xaf=monthly_cap_xaf,
            is_active=is_active,
        )
        session.add(rule)
        await session.flush()
        return rule

    return _make


@pytest.fixture
def make_subscription(session, clock):
    async def _make(user_id: str, tier: str, ends_in_days: int | None = None) -> None:
        ends_at = clock() + timedelta(days=ends_in_days) if ends_in_days is not None else None
        session.add(
            ProviderSubscription(
                user_id=user_id,
                subscription_tier=tier,
                is_active=True,
                starts_at=clock() - timedelta(days=1),
                ends_at=ends_at,
            )
        )
        await session.flush()

    return _make


@pytest.fixture
def verify_level_1(verification):
    """Create a record and get level 1 approved through the normal review flow."""

    async def _verify(account_id: str, user_type: str = "owner"):
        await verification.get_or_create_record(account_id, user_type=user_type)
        document = await verification.submit_document(
            account_id, "profile_photo", 1, f"sim://documents/{account_id}/photo.jpg"
        )
        await verification.decide_document(document.id, "approved", reviewer_id="reviewer-1")
        return await verification.get_record(account_id)

    return _verify


@pytest.fixture
def funded_transaction(session, escrow, make_quote, make_rule, verify_level_1):
    """An escrow of 100,000 XAF at 10%, funded at the current clock time."""
    rule_created = False

    async def _make(amount_xaf: int = 100_000, provider_id: str = "provider-1"):
        nonlocal rule_created
        if not rule_created:
            await make_rule(percent="10")
            rule_created = True
        if await VerificationRepository(session).get_by_account(provider_id) is None:
            await verify_level_1(provider_id)
        quote = await make_quote(amount_xaf=amount_xaf, provider_id=provider_id)
        transaction = await escrow.create_transaction(quote.id)
        return await escrow.fund(transaction.id, "MOMO-REF-1")

    return _make
