import asyncio
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from sweetfeed.db.database import build_session_factory, drop_db, init_db
from sweetfeed.models.candidate import BoundingBox, Candidate, Coordinate
from sweetfeed.models.db import RestaurantDB
from sweetfeed.models.decision import Verdict

BASE_TIME = datetime(2025, 1, 1, tzinfo=UTC)


def _source_order(candidate: Candidate) -> tuple[bool, float, float, str]:
    created = candidate.created_at.timestamp() if candidate.created_at else 0.0
    return (candidate.rating is None, -(candidate.rating or 0.0), -created, candidate.id)


class FakeCandidateSource:
    """In-memory candidate source with the same ordering as the real ones."""

    def __init__(self, candidates: Iterable[Candidate], bounding_box_delta: float = 0.45) -> None:
        self.candidates = sorted(candidates, key=_source_order)
        self.bounding_box_delta = bounding_box_delta
        self.calls: list[tuple[Coordinate | None, int, int]] = []
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def fetch_page(
        self, location: Coordinate | None, page_size: int, offset: int
    ) -> list[Candidate]:
        self.calls.append((location, page_size, offset))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

        rows = self.candidates
        if location is not None:
            box = BoundingBox.around(location, self.bounding_box_delta)
            rows = [c for c in rows if c.location is not None and box.contains(c.location)]
        return rows[offset : offset + page_size]


class FakeDecisionStore:
    """In-memory decision store enforcing one decision per (user, candidate)."""

    def __init__(self) -> None:
        self.decisions: dict[tuple[str, str], Verdict] = {}
        self.saved: list[tuple[str, str]] = []
        self.record_calls: list[tuple[str, str, Verdict]] = []
        self.decided_calls = 0
        self.record_error: Exception | None = None
        self.decided_error: Exception | None = None
        self.write_gate: asyncio.Event | None = None

    def decide(self, user_id: str, candidate_ids: Iterable[str], verdict: Verdict) -> None:
        for candidate_id in candidate_ids:
            self.decisions[(user_id, candidate_id)] = verdict

    async def record_decision(self, user_id: str, candidate_id: str, verdict: Verdict) -> Verdict:
        self.record_calls.append((user_id, candidate_id, verdict))
        if self.write_gate is not None:
            await self.write_gate.wait()
        if self.record_error is not None:
            raise self.record_error

        key = (user_id, candidate_id)
        if key in self.decisions:
            return self.decisions[key]
        self.decisions[key] = verdict
        if verdict is Verdict.ACCEPTED:
            self.saved.append(key)
        return verdict

    async def fetch_decided_set(self, user_id: str) -> frozenset[str]:
        self.decided_calls += 1
        if self.decided_error is not None:
            raise self.decided_error
        return frozenset(cid for (uid, cid) in self.decisions if uid == user_id)

    async def fetch_saved(self, user_id: str, limit: int = 50) -> list[str]:
        return [cid for (uid, cid) in reversed(self.saved) if uid == user_id][:limit]


def make_candidate(
    candidate_id: str,
    rating: float | None = None,
    age_minutes: int = 0,
    location: Coordinate | None = None,
) -> Candidate:
    """Build a candidate; higher age_minutes means created earlier."""
    return Candidate(
        id=candidate_id,
        name=f"Treat {candidate_id}",
        rating=rating,
        created_at=BASE_TIME - timedelta(minutes=age_minutes),
        location=location,
    )


@pytest.fixture
def candidate_factory() -> Callable[..., Candidate]:
    return make_candidate


@pytest.fixture
def source_factory() -> Callable[..., FakeCandidateSource]:
    return FakeCandidateSource


@pytest.fixture
def decision_store() -> FakeDecisionStore:
    return FakeDecisionStore()


@pytest.fixture
def ranked_candidates() -> list[Candidate]:
    """50 candidates, ids c00..c49, already in source order."""
    return [make_candidate(f"c{i:02d}", rating=5.0 - i * 0.05, age_minutes=i) for i in range(50)]


@pytest.fixture
def candidate_source(ranked_candidates: list[Candidate]) -> FakeCandidateSource:
    return FakeCandidateSource(ranked_candidates)


@pytest.fixture
async def sql_engine(tmp_path):
    """File-backed SQLite engine; every session gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sweetfeed.db'}", echo=False)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    await init_db(engine)
    yield engine
    await drop_db(engine)
    await engine.dispose()


@pytest.fixture
def session_factory(sql_engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(sql_engine)


@pytest.fixture
def seed_restaurants(session_factory):
    """Insert restaurants; returns the ids in insertion order."""

    async def seed(*restaurants: RestaurantDB) -> list[str]:
        async with session_factory() as session, session.begin():
            session.add_all(restaurants)
        return [r.id for r in restaurants]

    return seed


def make_restaurant(
    restaurant_id: str,
    rating: float | None = None,
    age_minutes: int = 0,
    latitude: float | None = None,
    longitude: float | None = None,
    **extra,
) -> RestaurantDB:
    return RestaurantDB(
        id=restaurant_id,
        name=f"Treat {restaurant_id}",
        rating=rating,
        created_at=BASE_TIME - timedelta(minutes=age_minutes),
        latitude=latitude,
        longitude=longitude,
        **extra,
    )


@pytest.fixture
def restaurant_factory() -> Callable[..., RestaurantDB]:
    return make_restaurant
