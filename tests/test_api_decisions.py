"""Tests for decision API endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from sweetfeed.api.dependencies import get_decision_store
from sweetfeed.db.database import get_session_factory
from sweetfeed.main import app
from sweetfeed.models.failure import PersistenceError


@pytest.fixture
async def client(session_factory):
    """Provide an async test client backed by the SQLite session factory."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def seeded_db(seed_restaurants, restaurant_factory):
    await seed_restaurants(*[restaurant_factory(f"r-{i}", rating=4.0) for i in range(3)])


class TestRecordDecision:
    async def test_right_swipe_saves(self, client: AsyncClient, seeded_db) -> None:
        response = await client.post(
            "/decisions",
            json={"user_id": "u1", "restaurant_id": "r-0", "verdict": "accepted"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["verdict"] == "accepted"
        assert data["saved"] is True

        saved = await client.get("/users/u1/saved")
        assert saved.json()["data"]["restaurant_ids"] == ["r-0"]

    async def test_left_swipe_not_saved(self, client: AsyncClient, seeded_db) -> None:
        response = await client.post(
            "/decisions",
            json={"user_id": "u1", "restaurant_id": "r-1", "verdict": "rejected"},
        )

        assert response.json()["data"]["saved"] is False
        saved = await client.get("/users/u1/saved")
        assert saved.json()["data"]["count"] == 0

    async def test_repeat_is_idempotent(self, client: AsyncClient, seeded_db) -> None:
        """Posting the same swipe twice succeeds and hides the restaurant once."""
        body = {"user_id": "u1", "restaurant_id": "r-0", "verdict": "rejected"}

        first = await client.post("/decisions", json=body)
        second = await client.post("/decisions", json=body)

        assert first.status_code == second.status_code == 200
        feed = await client.get("/feed/u1")
        assert [r["id"] for r in feed.json()["data"]["restaurants"]] == ["r-1", "r-2"]

    async def test_accept_after_reject_keeps_rejection(
        self, client: AsyncClient, seeded_db
    ) -> None:
        """A later right swipe reports the first verdict and saves nothing."""
        await client.post(
            "/decisions",
            json={"user_id": "u1", "restaurant_id": "r-0", "verdict": "rejected"},
        )

        response = await client.post(
            "/decisions",
            json={"user_id": "u1", "restaurant_id": "r-0", "verdict": "accepted"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["verdict"] == "rejected"
        assert data["saved"] is False
        saved = await client.get("/users/u1/saved")
        assert saved.json()["data"]["restaurant_ids"] == []

    async def test_unknown_verdict_rejected(self, client: AsyncClient, seeded_db) -> None:
        response = await client.post(
            "/decisions",
            json={"user_id": "u1", "restaurant_id": "r-0", "verdict": "maybe"},
        )

        assert response.status_code == 422

    async def test_unknown_restaurant_is_persistence_failure(
        self, client: AsyncClient, seeded_db
    ) -> None:
        response = await client.post(
            "/decisions",
            json={"user_id": "u1", "restaurant_id": "ghost", "verdict": "rejected"},
        )

        assert response.status_code == 503
        failure = response.json()["failure"]
        assert failure["kind"] == "persistence_failed"
        assert failure["retryable"] is True

    async def test_store_failure_is_503(self, decision_store) -> None:
        decision_store.record_error = PersistenceError("u1", "r-0", "connection reset")
        app.dependency_overrides[get_decision_store] = lambda: decision_store

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post(
                "/decisions",
                json={"user_id": "u1", "restaurant_id": "r-0", "verdict": "accepted"},
            )

        app.dependency_overrides.clear()

        assert response.status_code == 503
        data = response.json()
        assert data["outcome"] == "known_failure"
        assert data["failure"]["message"] == "Your swipe wasn't saved. Please try again."


class TestListSaved:
    async def test_newest_first_with_limit(self, client: AsyncClient, seeded_db) -> None:
        for restaurant_id in ("r-0", "r-1", "r-2"):
            await client.post(
                "/decisions",
                json={"user_id": "u1", "restaurant_id": restaurant_id, "verdict": "accepted"},
            )

        response = await client.get("/users/u1/saved", params={"limit": 2})

        data = response.json()["data"]
        assert data["restaurant_ids"] == ["r-2", "r-1"]
        assert data["count"] == 2

    async def test_limit_bounds(self, client: AsyncClient) -> None:
        response = await client.get("/users/u1/saved", params={"limit": 0})

        assert response.status_code == 422
