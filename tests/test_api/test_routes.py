"""End-to-end tests of the REST API over an in-memory database.

The app runs without its lifespan: the session dependency is pointed at the
test engine, Redis is absent and the service context uses the test fakes.
"""

from __future__ import annotations

import base64

import httpx
import pytest
import pytest_asyncio

from trust_settlement.api.deps import get_db_session, get_redis_client
from trust_settlement.infrastructure.database.engine import session_scope
from trust_settlement.main import create_app

pytestmark = pytest.mark.integration


@pytest_asyncio.fixture
async def client(session_factory, ctx):
    app = create_app()
    app.state.service_context = ctx

    async def _session():
        async with session_scope(session_factory) as session:
            yield session

    app.dependency_overrides[get_db_session] = _session
    app.dependency_overrides[get_redis_client] = lambda: None

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


async def _verify_owner(client: httpx.AsyncClient, account_id: str) -> None:
    response = await client.post(
        "/api/v1/verification/records", json={"account_id": account_id, "user_type": "owner"}
    )
    assert response.status_code == 201
    response = await client.post(
        f"/api/v1/verification/records/{account_id}/uploads",
        json={
            "document_type": "profile_photo",
            "level": 1,
            "file_name": "me.jpg",
            "content_base64": base64.b64encode(b"jpeg-bytes").decode(),
        },
    )
    assert response.status_code == 201
    document_id = response.json()["id"]
    response = await client.post(
        f"/api/v1/admin/documents/{document_id}/decision",
        json={"decision": "approved", "reviewer_id": "reviewer-1"},
    )
    assert response.status_code == 200


class TestVerificationRoutes:
    @pytest.mark.asyncio
    async def test_level_1_flow(self, client) -> None:
        await _verify_owner(client, "owner-1")

        response = await client.get("/api/v1/verification/records/owner-1/summary")
        assert response.status_code == 200
        body = response.json()
        assert body["record"]["level_1_status"] == "approved"
        assert body["badges"] == ["account_confirmed"]
        assert body["displayed_trust_score"] == 30

    @pytest.mark.asyncio
    async def test_out_of_order_level_is_conflict(self, client) -> None:
        await _verify_owner(client, "owner-1")
        response = await client.post(
            "/api/v1/verification/records/owner-1/documents",
            json={"document_type": "property_photo", "level": 3, "file_url": "sim://p"},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "INVALID_LEVEL_ORDER"

    @pytest.mark.asyncio
    async def test_bad_base64(self, client) -> None:
        response = await client.post(
            "/api/v1/verification/records/owner-1/uploads",
            json={
                "document_type": "profile_photo",
                "level": 1,
                "file_name": "me.jpg",
                "content_base64": "***",
            },
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_record(self, client) -> None:
        response = await client.get("/api/v1/verification/records/nobody")
        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"


class TestReputationRoutes:
    @pytest.mark.asyncio
    async def test_vote_and_stats(self, client) -> None:
        response = await client.post(
            "/api/v1/reputation/votes",
            json={"voter_id": "user-1", "target_user_id": "user-2", "vote_type": "up"},
        )
        assert response.status_code == 200
        assert response.json()["changed"] is True

        response = await client.get("/api/v1/reputation/users/user-2/stats")
        assert response.json()["total_points"] == 1

    @pytest.mark.asyncio
    async def test_self_vote(self, client) -> None:
        response = await client.post(
            "/api/v1/reputation/votes",
            json={"voter_id": "user-1", "target_user_id": "user-1", "vote_type": "up"},
        )
        assert response.status_code == 422
        assert response.json()["error"] == "SELF_VOTE"


class TestEscrowRoutes:
    @pytest.mark.asyncio
    async def test_settlement_flow(self, client, session, make_quote, make_rule) -> None:
        await make_rule(percent="10")
        quote = await make_quote()
        await session.commit()
        await _verify_owner(client, "provider-1")

        response = await client.post("/api/v1/escrow", json={"quote_id": str(quote.id)})
        assert response.status_code == 201
        transaction = response.json()
        assert transaction["commission_xaf"] == 10_000
        assert transaction["net_amount_xaf"] == 90_000

        tx_id = transaction["id"]
        response = await client.post(
            f"/api/v1/escrow/{tx_id}/fund", json={"payment_reference": "MOMO-REF-1"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "funded"

        response = await client.post(
            f"/api/v1/escrow/{tx_id}/release", json={"actor_id": "provider-1"}
        )
        assert response.status_code == 422

        response = await client.post(
            f"/api/v1/escrow/{tx_id}/release", json={"actor_id": "client-1"}
        )
        assert response.json()["status"] == "released"

        response = await client.post(
            f"/api/v1/escrow/{tx_id}/release", json={"actor_id": "client-1"}
        )
        assert response.status_code == 409
        assert response.json()["error"] == "ALREADY_TERMINAL"

        response = await client.get(f"/api/v1/escrow/{tx_id}/payout")
        assert response.json()["amount_xaf"] == 90_000

    @pytest.mark.asyncio
    async def test_declined_payment(self, client, session, make_quote, make_rule, payments) -> None:
        await make_rule(percent="10")
        quote = await make_quote()
        await session.commit()
        await _verify_owner(client, "provider-1")
        tx_id = (await client.post("/api/v1/escrow", json={"quote_id": str(quote.id)})).json()[
            "id"
        ]

        payments.mode = "declined"
        response = await client.post(
            f"/api/v1/escrow/{tx_id}/fund", json={"payment_reference": "MOMO-REF-1"}
        )
        assert response.status_code == 422
        assert response.json()["error"] == "PAYMENT_DECLINED"

        payments.mode = "error"
        response = await client.post(
            f"/api/v1/escrow/{tx_id}/fund", json={"payment_reference": "MOMO-REF-1"}
        )
        assert response.status_code == 503
        assert response.json()["retryable"] is True

        status = (await client.get(f"/api/v1/escrow/{tx_id}/status")).json()
        assert status["status"] == "pending"


class TestHealthRoute:
    @pytest.mark.asyncio
    async def test_degraded_without_redis(self, client, session_factory, monkeypatch) -> None:
        from trust_settlement.api.routes import health

        monkeypatch.setattr(health, "session_scope", lambda: session_scope(session_factory))
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert body["database"] == "healthy"
        assert body["collaborators"] == "simulated"
        assert body["auto_release_backlog"] == 0
