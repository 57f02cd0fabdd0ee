"""
SQL-backed feed sources.

Direct Postgres access through SQLAlchemy, for server-side use. Every call
opens its own short session so a refill can run its page fetch and its
decided-set fetch concurrently.
"""

import logging

from sqlalchemy import Select, select
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sweetfeed.config import settings
from sweetfeed.models.candidate import DISPLAY_FIELDS, BoundingBox, Candidate, Coordinate
from sweetfeed.models.db import RestaurantDB, SavedRestaurantDB, SwipeHistoryDB
from sweetfeed.models.decision import Verdict
from sweetfeed.models.failure import FeedError, FormatError, PersistenceError, TransientFetchError

logger = logging.getLogger(__name__)


def restaurant_to_candidate(restaurant: RestaurantDB) -> Candidate:
    """Convert a database restaurant to a feed candidate."""
    location = None
    if restaurant.latitude is not None and restaurant.longitude is not None:
        location = Coordinate(latitude=restaurant.latitude, longitude=restaurant.longitude)

    metadata = {}
    for key in DISPLAY_FIELDS:
        value = getattr(restaurant, key)
        if value is not None:
            metadata[key] = value

    return Candidate(
        id=restaurant.id,
        name=restaurant.name,
        rating=restaurant.rating,
        created_at=restaurant.created_at,
        location=location,
        metadata=metadata,
    )


def _read_error(operation: str, error: SQLAlchemyError) -> FeedError:
    """Classify a database failure on a read."""
    if isinstance(error, OperationalError | InterfaceError | PoolTimeoutError):
        return TransientFetchError(operation, type(error).__name__)
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return TransientFetchError(operation, "connection invalidated")
    return FormatError(operation, type(error).__name__)


class SqlCandidateSource:
    """Candidate source reading the restaurants table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        bounding_box_delta: float | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.bounding_box_delta = (
            bounding_box_delta if bounding_box_delta is not None else settings.bounding_box_delta
        )

    def _page_query(
        self, location: Coordinate | None, page_size: int, offset: int
    ) -> Select[tuple[RestaurantDB]]:
        query = select(RestaurantDB)
        if location is not None:
            box = BoundingBox.around(location, self.bounding_box_delta)
            query = query.where(
                RestaurantDB.latitude.between(box.min_latitude, box.max_latitude),
                RestaurantDB.longitude.between(box.min_longitude, box.max_longitude),
            )
        return (
            query.order_by(
                RestaurantDB.rating.desc().nulls_last(),
                RestaurantDB.created_at.desc(),
                RestaurantDB.id.asc(),
            )
            .limit(page_size)
            .offset(offset)
        )

    async def fetch_page(
        self,
        location: Coordinate | None,
        page_size: int,
        offset: int,
    ) -> list[Candidate]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(self._page_query(location, page_size, offset))
                restaurants = list(result.scalars().all())
        except SQLAlchemyError as e:
            raise _read_error("fetch_page", e) from e

        return [restaurant_to_candidate(r) for r in restaurants]


class SqlDecisionStore:
    """Decision store over swipe_history and saved_restaurants."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def _exists(
        self, model: type[SwipeHistoryDB] | type[SavedRestaurantDB], user_id: str, candidate_id: str
    ) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(model.id).where(
                    model.user_id == user_id,
                    model.restaurant_id == candidate_id,
                )
            )
            return result.first() is not None

    async def _insert(self, row: SwipeHistoryDB | SavedRestaurantDB) -> bool:
        """
        Insert one row in its own transaction. Returns False if it already existed.

        An IntegrityError only counts as a duplicate if the row is really
        there; anything else (e.g. an unknown restaurant) is a failure.
        """
        user_id, candidate_id = row.user_id, row.restaurant_id
        try:
            async with self.session_factory() as session, session.begin():
                session.add(row)
        except IntegrityError as e:
            try:
                duplicate = await self._exists(type(row), user_id, candidate_id)
            except SQLAlchemyError as lookup_error:
                raise PersistenceError(user_id, candidate_id, str(lookup_error)) from e
            if duplicate:
                return False
            raise PersistenceError(user_id, candidate_id, "integrity error") from e
        except SQLAlchemyError as e:
            raise PersistenceError(user_id, candidate_id, type(e).__name__) from e
        return True

    async def _recorded_verdict(self, user_id: str, candidate_id: str) -> Verdict:
        """Read back the verdict already stored for a duplicate swipe."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(SwipeHistoryDB.action).where(
                        SwipeHistoryDB.user_id == user_id,
                        SwipeHistoryDB.restaurant_id == candidate_id,
                    )
                )
                action = result.scalar_one()
            return Verdict.from_swipe_action(action)
        except (SQLAlchemyError, ValueError) as e:
            raise PersistenceError(user_id, candidate_id, str(e)) from e

    async def record_decision(self, user_id: str, candidate_id: str, verdict: Verdict) -> Verdict:
        created = await self._insert(
            SwipeHistoryDB(user_id=user_id, restaurant_id=candidate_id, action=verdict.swipe_action)
        )
        if created:
            recorded = verdict
            logger.info(
                "decision_recorded",
                extra={"user_id": user_id, "candidate_id": candidate_id, "verdict": verdict.value},
            )
        else:
            recorded = await self._recorded_verdict(user_id, candidate_id)
            logger.warning(
                "duplicate_decision_ignored",
                extra={"user_id": user_id, "candidate_id": candidate_id, "kept": recorded.value},
            )

        # Duplicate right swipes re-save; the insert is idempotent
        if recorded is Verdict.ACCEPTED:
            await self._insert(SavedRestaurantDB(user_id=user_id, restaurant_id=candidate_id))
        return recorded

    async def fetch_decided_set(self, user_id: str) -> frozenset[str]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(SwipeHistoryDB.restaurant_id).where(SwipeHistoryDB.user_id == user_id)
                )
                return frozenset(result.scalars().all())
        except SQLAlchemyError as e:
            raise _read_error("fetch_decided_set", e) from e

    async def fetch_saved(self, user_id: str, limit: int = 50) -> list[str]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(SavedRestaurantDB.restaurant_id)
                    .where(SavedRestaurantDB.user_id == user_id)
                    .order_by(SavedRestaurantDB.created_at.desc(), SavedRestaurantDB.id.desc())
                    .limit(limit)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise _read_error("fetch_saved", e) from e
