"""
PostgREST-backed feed sources.

Talks to the hosted backend's REST interface (the same tables the mobile
client used directly): restaurants, swipe_history and saved_restaurants.

Idempotency relies on the backend's unique (user_id, restaurant_id)
constraints: an insert that violates one comes back with Postgres code
23505 in the error body, which is treated as success. Any other conflict
(e.g. 23503 for an unknown restaurant) is a failure.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import httpx

from sweetfeed.config import settings
from sweetfeed.models.candidate import DISPLAY_FIELDS, BoundingBox, Candidate, Coordinate
from sweetfeed.models.decision import Verdict
from sweetfeed.models.failure import FeedError, FormatError, PersistenceError, TransientFetchError

logger = logging.getLogger(__name__)

REST_PREFIX = "/rest/v1"

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"

# Statuses worth retrying on a read
RETRYABLE_STATUSES = frozenset({408, 425, 429})

# Rows per request when paging through a user's swipe history
DECIDED_SET_PAGE_SIZE = 1000

CANDIDATE_ORDER = "rating.desc.nullslast,created_at.desc,id.asc"


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"created_at is not a string: {value!r}")
    return datetime.fromisoformat(value)


def _parse_float(value: Any, field_name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValueError(f"{field_name} is not numeric: {value!r}")
    return float(value)


def candidate_from_row(row: Mapping[str, Any]) -> Candidate:
    """
    Build a Candidate from a restaurants row.

    Raises:
        ValueError: If required fields are missing or mistyped
    """
    candidate_id = row.get("id")
    name = row.get("name")
    if not isinstance(candidate_id, str) or not candidate_id:
        raise ValueError(f"row has no usable id: {row!r}")
    if not isinstance(name, str):
        raise ValueError(f"row {candidate_id} has no name")

    latitude = _parse_float(row.get("latitude"), "latitude")
    longitude = _parse_float(row.get("longitude"), "longitude")
    location = None
    if latitude is not None and longitude is not None:
        location = Coordinate(latitude=latitude, longitude=longitude)

    return Candidate(
        id=candidate_id,
        name=name,
        rating=_parse_float(row.get("rating"), "rating"),
        created_at=_parse_timestamp(row.get("created_at")),
        location=location,
        metadata={key: row[key] for key in DISPLAY_FIELDS if row.get(key) is not None},
    )


def _is_unique_violation(response: httpx.Response) -> bool:
    try:
        body = response.json()
    except ValueError:
        return False
    return isinstance(body, dict) and body.get("code") == UNIQUE_VIOLATION


class PostgrestClient:
    """
    Shared HTTP plumbing for the PostgREST sources.

    Maps transport failures on reads into TransientFetchError / FormatError.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        access_token: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Backend base URL. Defaults to settings.backend_url.
            api_key: Project API key. Defaults to settings.backend_api_key.
            access_token: Signed-in user's token; row-level security keys off it.
            timeout: Request timeout in seconds.
            client: Optional httpx client for connection reuse
        """
        self.base_url = (base_url or settings.backend_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.backend_api_key
        self.access_token = access_token
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self._client = client

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
        bearer = self.access_token or self.api_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    def url(self, table: str) -> str:
        return f"{self.base_url}{REST_PREFIX}/{table}"

    async def send(self, method: str, table: str, **kwargs: Any) -> httpx.Response:
        """Send a request, reusing the injected client when there is one."""
        headers = {**self.headers, **kwargs.pop("headers", {})}
        if self._client is not None:
            return await self._client.request(method, self.url(table), headers=headers, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(method, self.url(table), headers=headers, **kwargs)

    async def read_rows(
        self,
        operation: str,
        table: str,
        params: list[tuple[str, str | int]],
    ) -> list[dict[str, Any]]:
        """
        GET rows from a table.

        Raises:
            TransientFetchError: Timeout, connection failure, 5xx/408/429
            FormatError: Any other HTTP error or a body that is not a list of objects
        """
        try:
            response = await self.send("GET", table, params=params)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            raise TransientFetchError(operation, "request timed out") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status >= 500 or status in RETRYABLE_STATUSES:
                raise TransientFetchError(operation, f"HTTP {status}") from e
            raise FormatError(operation, f"HTTP {status}") from e
        except httpx.RequestError as e:
            raise TransientFetchError(operation, str(e)) from e
        except ValueError as e:
            raise FormatError(operation, "response is not JSON") from e

        if not isinstance(body, list) or not all(isinstance(row, dict) for row in body):
            raise FormatError(operation, "expected a list of rows")
        return body


class PostgrestCandidateSource:
    """Candidate source reading the restaurants table."""

    def __init__(self, client: PostgrestClient, bounding_box_delta: float | None = None) -> None:
        self.client = client
        self.bounding_box_delta = (
            bounding_box_delta if bounding_box_delta is not None else settings.bounding_box_delta
        )

    async def fetch_page(
        self,
        location: Coordinate | None,
        page_size: int,
        offset: int,
    ) -> list[Candidate]:
        params: list[tuple[str, str | int]] = [("select", "*")]
        if location is not None:
            box = BoundingBox.around(location, self.bounding_box_delta)
            params += [
                ("latitude", f"gte.{box.min_latitude}"),
                ("latitude", f"lte.{box.max_latitude}"),
                ("longitude", f"gte.{box.min_longitude}"),
                ("longitude", f"lte.{box.max_longitude}"),
            ]
        params += [("order", CANDIDATE_ORDER), ("limit", page_size), ("offset", offset)]

        rows = await self.client.read_rows("fetch_page", "restaurants", params)
        try:
            candidates = [candidate_from_row(row) for row in rows]
        except ValueError as e:
            raise FormatError("fetch_page", str(e)) from e

        logger.debug(
            "candidate_page_fetched",
            extra={"offset": offset, "requested": page_size, "returned": len(candidates)},
        )
        return candidates


class PostgrestDecisionStore:
    """Decision store over swipe_history and saved_restaurants."""

    def __init__(self, client: PostgrestClient) -> None:
        self.client = client

    async def _insert(self, table: str, payload: dict[str, str], user_id: str) -> bool:
        """
        Insert one row. Returns False if it already existed.

        Raises:
            PersistenceError: Any failure other than a uniqueness conflict
        """
        candidate_id = payload["restaurant_id"]
        try:
            response = await self.client.send(
                "POST",
                table,
                json=payload,
                headers={"Prefer": "return=minimal"},
            )
        except httpx.HTTPError as e:
            raise PersistenceError(user_id, candidate_id, f"{table}: {e}") from e

        if response.is_success:
            return True
        if _is_unique_violation(response):
            return False
        raise PersistenceError(user_id, candidate_id, f"{table}: HTTP {response.status_code}")

    async def _recorded_verdict(self, user_id: str, candidate_id: str) -> Verdict:
        """Read back the verdict already stored for a duplicate swipe."""
        try:
            rows = await self.client.read_rows(
                "record_decision",
                "swipe_history",
                [
                    ("select", "action"),
                    ("user_id", f"eq.{user_id}"),
                    ("restaurant_id", f"eq.{candidate_id}"),
                    ("limit", 1),
                ],
            )
        except FeedError as e:
            raise PersistenceError(user_id, candidate_id, e.detail) from e
        if not rows:
            raise PersistenceError(user_id, candidate_id, "swipe_history: conflicting row missing")
        try:
            return Verdict.from_swipe_action(rows[0].get("action"))
        except ValueError as e:
            raise PersistenceError(user_id, candidate_id, str(e)) from e

    async def record_decision(self, user_id: str, candidate_id: str, verdict: Verdict) -> Verdict:
        created = await self._insert(
            "swipe_history",
            {"user_id": user_id, "restaurant_id": candidate_id, "action": verdict.swipe_action},
            user_id,
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
            await self._insert(
                "saved_restaurants",
                {"user_id": user_id, "restaurant_id": candidate_id},
                user_id,
            )
        return recorded

    async def fetch_decided_set(self, user_id: str) -> frozenset[str]:
        decided: set[str] = set()
        offset = 0
        while True:
            rows = await self.client.read_rows(
                "fetch_decided_set",
                "swipe_history",
                [
                    ("select", "restaurant_id"),
                    ("user_id", f"eq.{user_id}"),
                    ("order", "id.asc"),
                    ("limit", DECIDED_SET_PAGE_SIZE),
                    ("offset", offset),
                ],
            )
            for row in rows:
                restaurant_id = row.get("restaurant_id")
                if not isinstance(restaurant_id, str):
                    raise FormatError("fetch_decided_set", f"bad restaurant_id: {restaurant_id!r}")
                decided.add(restaurant_id)

            if len(rows) < DECIDED_SET_PAGE_SIZE:
                return frozenset(decided)
            offset += len(rows)

    async def fetch_saved(self, user_id: str, limit: int = 50) -> list[str]:
        rows = await self.client.read_rows(
            "fetch_saved",
            "saved_restaurants",
            [
                ("select", "restaurant_id"),
                ("user_id", f"eq.{user_id}"),
                ("order", "created_at.desc"),
                ("limit", limit),
            ],
        )
        saved: list[str] = []
        for row in rows:
            restaurant_id = row.get("restaurant_id")
            if not isinstance(restaurant_id, str):
                raise FormatError("fetch_saved", f"bad restaurant_id: {restaurant_id!r}")
            saved.append(restaurant_id)
        return saved
