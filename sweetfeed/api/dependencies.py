"""
FastAPI dependencies wiring the SQL-backed feed sources.

Tests override these to swap in other sources.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sweetfeed.config import FeedConfig, settings
from sweetfeed.db.database import get_session_factory
from sweetfeed.feed.filter import FeedFilter
from sweetfeed.sources.base import CandidateSource, DecisionStore
from sweetfeed.sources.sql import SqlCandidateSource, SqlDecisionStore

SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


def get_candidate_source(session_factory: SessionFactory) -> CandidateSource:
    return SqlCandidateSource(session_factory, bounding_box_delta=settings.bounding_box_delta)


def get_decision_store(session_factory: SessionFactory) -> DecisionStore:
    return SqlDecisionStore(session_factory)


def get_feed_filter(
    source: Annotated[CandidateSource, Depends(get_candidate_source)],
    store: Annotated[DecisionStore, Depends(get_decision_store)],
) -> FeedFilter:
    return FeedFilter.from_config(source, store, FeedConfig.from_settings())
