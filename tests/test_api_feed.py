"""Tests for feed API endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from sweetfeed.api.dependencies import get_feed_filter
from sweetfeed.db.database import get_session_factory
from sweetfeed.feed.filter import FeedFilter
from sweetfeed.main import app
from sweetfeed.models.decision import Verdict
from sweetfeed.models.failure import FormatError, TransientFetchError
from sweetfeed.sources.sql import SqlDecisionStore


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
    """Seed five Seattle spots and one in New York."""
    await seed_restaurants(
        *[
            restaurant_factory(
                f"sea-{i}",
                rating=5.0 - i * 0.5,
                latitude=47.6 + i * 0.01,
                longitude=-122.3,
                cuisine_type="bakery",
            )
            for i in range(5)
        ],
        restaurant_factory("nyc-0", rating=4.9, latitude=40.71, longitude=-74.0),
    )


@pytest.fixture
async def failing_client(candidate_source, decision_store):
    """Client whose feed filter runs on the in-memory fakes."""
    app.dependency_overrides[get_feed_filter] = lambda: FeedFilter(candidate_source, decision_store)

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


class TestGetFeed:
    async def test_returns_ranked_page(self, client: AsyncClient, seeded_db) -> None:
        response = await client.get("/feed/u1", params={"limit": 3})

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "success"
        page = data["data"]
        assert [r["id"] for r in page["restaurants"]] == ["sea-0", "nyc-0", "sea-1"]
        assert page["count"] == 3
        assert page["exhausted"] is False

    async def test_excludes_swiped(self, client: AsyncClient, session_factory, seeded_db) -> None:
        store = SqlDecisionStore(session_factory)
        await store.record_decision("u1", "sea-0", Verdict.REJECTED)
        await store.record_decision("u1", "nyc-0", Verdict.ACCEPTED)

        response = await client.get("/feed/u1", params={"limit": 10})

        ids = [r["id"] for r in response.json()["data"]["restaurants"]]
        assert ids == ["sea-1", "sea-2", "sea-3", "sea-4"]
        assert response.json()["data"]["exhausted"] is True

    async def test_filters_by_location(self, client: AsyncClient, seeded_db) -> None:
        response = await client.get("/feed/u1", params={"lat": 40.7, "lon": -74.0})

        restaurants = response.json()["data"]["restaurants"]
        assert [r["id"] for r in restaurants] == ["nyc-0"]
        assert restaurants[0]["latitude"] == 40.71

    async def test_includes_display_fields(self, client: AsyncClient, seeded_db) -> None:
        response = await client.get("/feed/u1", params={"limit": 1})

        restaurant = response.json()["data"]["restaurants"][0]
        assert restaurant["name"] == "Treat sea-0"
        assert restaurant["cuisine_type"] == "bakery"

    async def test_empty_feed(self, client: AsyncClient) -> None:
        response = await client.get("/feed/u1")

        assert response.status_code == 200
        assert response.json()["data"]["count"] == 0
        assert response.json()["data"]["exhausted"] is True

    async def test_requires_both_coordinates(self, client: AsyncClient) -> None:
        response = await client.get("/feed/u1", params={"lat": 47.6})

        assert response.status_code == 400

    async def test_rejects_oversized_limit(self, client: AsyncClient) -> None:
        response = await client.get("/feed/u1", params={"limit": 1000})

        assert response.status_code == 422


class TestFeedErrors:
    async def test_transient_failure_is_503(
        self, failing_client: AsyncClient, candidate_source
    ) -> None:
        candidate_source.error = TransientFetchError("fetch_page", "timeout")

        response = await failing_client.get("/feed/u1")

        assert response.status_code == 503
        data = response.json()
        assert data["outcome"] == "known_failure"
        assert data["failure"]["kind"] == "service_unavailable"
        assert data["failure"]["retryable"] is True

    async def test_format_failure_is_502(
        self, failing_client: AsyncClient, candidate_source
    ) -> None:
        candidate_source.error = FormatError("fetch_page", "not a list")

        response = await failing_client.get("/feed/u1")

        assert response.status_code == 502
        data = response.json()
        assert data["failure"]["kind"] == "external_api_error"
        assert data["failure"]["retryable"] is False

    async def test_unexpected_failure_is_unknown(
        self, failing_client: AsyncClient, candidate_source
    ) -> None:
        candidate_source.error = RuntimeError("boom")

        response = await failing_client.get("/feed/u1")

        assert response.status_code == 500
        data = response.json()
        assert data["outcome"] == "unknown_failure"
        assert data["failure"]["detail"] == "RuntimeError"
