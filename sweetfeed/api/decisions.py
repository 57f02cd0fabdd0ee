"""
Decision API endpoints.

Records swipes and lists saved restaurants. Recording is idempotent: posting
the same (user, restaurant) twice succeeds both times and keeps the first
verdict.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from sweetfeed.api.dependencies import get_decision_store
from sweetfeed.models.decision import Verdict
from sweetfeed.models.failure import ApiResponse
from sweetfeed.sources.base import DecisionStore

router = APIRouter(tags=["decisions"])


class DecisionRequest(BaseModel):
    """Request model for recording a swipe."""

    user_id: str = Field(..., min_length=1)
    restaurant_id: str = Field(..., min_length=1)
    verdict: Verdict


class DecisionResponse(BaseModel):
    """Response model for a recorded swipe."""

    user_id: str
    restaurant_id: str
    verdict: Verdict
    saved: bool


class SavedListResponse(BaseModel):
    """Response model for a user's saved restaurants."""

    user_id: str
    restaurant_ids: list[str]
    count: int


@router.post("/decisions", response_model=ApiResponse[DecisionResponse])
async def record_decision(
    request: DecisionRequest,
    store: Annotated[DecisionStore, Depends(get_decision_store)],
) -> ApiResponse[DecisionResponse]:
    """
    Record a swipe. Right swipes also save the restaurant.

    A repeat returns the verdict recorded first, not the one just posted.
    """
    recorded = await store.record_decision(request.user_id, request.restaurant_id, request.verdict)
    return ApiResponse[DecisionResponse].success(
        DecisionResponse(
            user_id=request.user_id,
            restaurant_id=request.restaurant_id,
            verdict=recorded,
            saved=recorded is Verdict.ACCEPTED,
        )
    )


@router.get("/users/{user_id}/saved", response_model=ApiResponse[SavedListResponse])
async def list_saved(
    user_id: str,
    store: Annotated[DecisionStore, Depends(get_decision_store)],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> ApiResponse[SavedListResponse]:
    """List restaurants the user saved, newest first."""
    restaurant_ids = await store.fetch_saved(user_id, limit=limit)
    return ApiResponse[SavedListResponse].success(
        SavedListResponse(user_id=user_id, restaurant_ids=restaurant_ids, count=len(restaurant_ids))
    )
