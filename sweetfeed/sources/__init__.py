"""
Remote collaborators of the feed engine.

Two interchangeable backends implement the same contracts:
- PostgREST over HTTP (hosted backend, client-side use)
- SQLAlchemy over a direct Postgres connection (server-side use)
"""

from sweetfeed.sources.base import CandidateSource, DecisionStore
from sweetfeed.sources.postgrest import (
    PostgrestCandidateSource,
    PostgrestClient,
    PostgrestDecisionStore,
    candidate_from_row,
)
from sweetfeed.sources.sql import SqlCandidateSource, SqlDecisionStore, restaurant_to_candidate

__all__ = [
    "CandidateSource",
    "DecisionStore",
    "PostgrestCandidateSource",
    "PostgrestClient",
    "PostgrestDecisionStore",
    "SqlCandidateSource",
    "SqlDecisionStore",
    "candidate_from_row",
    "restaurant_to_candidate",
]
