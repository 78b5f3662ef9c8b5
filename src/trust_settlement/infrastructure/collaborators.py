"""Adapters for the external collaborators: document storage, payments, notifier.

Two families are provided and selected by `COLLABORATOR_MODE`:

    simulated — in-process fakes for development and tests. No network.
    http      — thin httpx clients with tenacity backoff on transport errors.

Services never call an adapter directly; they go through `call_dependency`,
which bounds the call by `DEPENDENCY_TIMEOUT_SECONDS` and turns any failure
into a DependencyFailureError before a single row has been touched.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from trust_settlement.domain.collaborators import (
    DocumentStorage,
    FundingConfirmation,
    Notification,
    Notifier,
    PaymentCollector,
)
from trust_settlement.domain.exceptions import DependencyFailureError
from trust_settlement.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from trust_settlement.config import Settings

logger = get_logger(__name__)

T = TypeVar("T")


async def call_dependency(name: str, awaitable: Awaitable[T], timeout: float) -> T:
    """Await a collaborator call, bounded by `timeout` seconds.

    Raises:
        DependencyFailureError: On timeout or any exception from the adapter.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except TimeoutError as exc:
        logger.warning("dependency.timeout", dependency=name, timeout=timeout)
        raise DependencyFailureError(name, f"timed out after {timeout}s") from exc
    except DependencyFailureError:
        raise
    except Exception as exc:
        logger.warning("dependency.failed", dependency=name, error=str(exc))
        raise DependencyFailureError(name, str(exc)) from exc


# ---------------------------------------------------------------------------
# Simulated adapters
# ---------------------------------------------------------------------------


class SimulatedDocumentStorage:
    """Keeps uploaded blobs in memory and hands back `sim://` URLs."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    async def store(self, content: bytes, file_name: str) -> str:
        url = f"sim://documents/{uuid.uuid4().hex}/{file_name}"
        self._blobs[url] = content
        logger.info("storage.stored", url=url, size=len(content), simulated=True)
        return url

    async def fetch(self, url: str) -> bytes:
        if url not in self._blobs:
            raise KeyError(url)
        return self._blobs[url]


class SimulatedPaymentCollector:
    """Confirms every reference except those starting with `declined`."""

    async def confirm_funding(self, reference: str) -> FundingConfirmation:
        success = not reference.lower().startswith("declined")
        logger.info(
            "payment.confirmation_simulated",
            reference=reference,
            success=success,
        )
        return FundingConfirmation(
            reference=reference,
            success=success,
            details="simulated" if success else "simulated decline",
        )


class LoggingNotifier:
    """Writes notifications to the structured log instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def notify(self, notification: Notification) -> None:
        self.sent.append(notification)
        logger.info(
            "notify.simulated",
            kind=notification.kind,
            recipient=notification.recipient_id,
        )


# ---------------------------------------------------------------------------
# HTTP adapters
# ---------------------------------------------------------------------------


class _HttpAdapter:
    """Shared httpx plumbing with exponential backoff on transport errors."""

    def __init__(self, base_url: str, timeout: float, max_attempts: int) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_attempts = max_attempts

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                async with httpx.AsyncClient(
                    base_url=self._base_url, timeout=self._timeout
                ) as client:
                    response = await client.request(method, path, **kwargs)
                    response.raise_for_status()
                    return response
        raise RuntimeError("unreachable")  # pragma: no cover


class HttpDocumentStorage(_HttpAdapter):
    async def store(self, content: bytes, file_name: str) -> str:
        response = await self._request(
            "POST", "/documents", files={"file": (file_name, content)}
        )
        return str(response.json()["url"])

    async def fetch(self, url: str) -> bytes:
        response = await self._request("GET", url)
        return response.content


class HttpPaymentCollector(_HttpAdapter):
    async def confirm_funding(self, reference: str) -> FundingConfirmation:
        response = await self._request("GET", f"/payments/{reference}")
        body = response.json()
        return FundingConfirmation(
            reference=reference,
            success=body.get("status") == "succeeded",
            details=str(body.get("message", "")),
        )


class HttpNotifier(_HttpAdapter):
    async def notify(self, notification: Notification) -> None:
        await self._request("POST", "/notifications", json=notification.to_dict())


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@dataclass
class Collaborators:
    """The three collaborators one service graph is wired with."""

    storage: DocumentStorage = field(default_factory=SimulatedDocumentStorage)
    payments: PaymentCollector = field(default_factory=SimulatedPaymentCollector)
    notifier: Notifier = field(default_factory=LoggingNotifier)


def build_collaborators(settings: Settings) -> Collaborators:
    """Build adapters for the configured collaborator mode."""
    if settings.collaborator_mode == "simulated":
        return Collaborators()

    timeout = settings.dependency_timeout_seconds
    attempts = settings.dependency_max_attempts
    return Collaborators(
        storage=HttpDocumentStorage(settings.document_storage_url, timeout, attempts),
        payments=HttpPaymentCollector(settings.payment_collector_url, timeout, attempts),
        notifier=HttpNotifier(settings.notifier_url, timeout, attempts),
    )
