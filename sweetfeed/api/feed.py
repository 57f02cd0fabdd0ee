"""
Feed API endpoints.

Serves one page of restaurants the user has not swiped on yet.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from sweetfeed.api.dependencies import get_feed_filter
from sweetfeed.config import MAX_PAGE_SIZE, settings
from sweetfeed.feed.filter import FeedFilter
from sweetfeed.models.candidate import Candidate, Coordinate
from sweetfeed.models.failure import ApiResponse
from sweetfeed.models.feed_queue import FeedQueue

router = APIRouter(prefix="/feed", tags=["feed"])


class RestaurantResponse(BaseModel):
    """Response model for a single restaurant."""

    id: str
    name: str
    rating: float | None = None
    created_at: datetime | None = None
    latitude: float | None = None
    longitude: float | None = None
    address: str | None = None
    cuisine_type: str | None = None
    price_range: str | None = None
    image_url: str | None = None
    yelp_place_id: str | None = None

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "RestaurantResponse":
        return cls.model_validate(candidate.to_dict())


class FeedPageResponse(BaseModel):
    """Response model for a feed page."""

    user_id: str
    restaurants: list[RestaurantResponse]
    count: int
    exhausted: bool


@router.get("/{user_id}", response_model=ApiResponse[FeedPageResponse])
async def get_feed_page(
    user_id: str,
    feed_filter: Annotated[FeedFilter, Depends(get_feed_filter)],
    lat: Annotated[float | None, Query(ge=-90, le=90)] = None,
    lon: Annotated[float | None, Query(ge=-180, le=180)] = None,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = settings.page_size,
) -> ApiResponse[FeedPageResponse]:
    """
    Get restaurants the user hasn't swiped on yet.

    Optionally restricted to a bounding box around (lat, lon). Ordered by
    rating, best first.
    """
    if (lat is None) != (lon is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="lat and lon must be given together",
        )

    location = None
    if lat is not None and lon is not None:
        location = Coordinate(latitude=lat, longitude=lon)
    queue = await feed_filter.refill(user_id, location, FeedQueue(), target_size=limit)

    restaurants = [RestaurantResponse.from_candidate(c) for c in queue.items]
    return ApiResponse[FeedPageResponse].success(
        FeedPageResponse(
            user_id=user_id,
            restaurants=restaurants,
            count=len(restaurants),
            exhausted=queue.exhausted,
        )
    )
