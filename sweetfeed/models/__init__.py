from sweetfeed.models.candidate import BoundingBox, Candidate, Coordinate
from sweetfeed.models.decision import Decision, Verdict
from sweetfeed.models.failure import (
    ApiResponse,
    FailureDetail,
    FailureKind,
    FeedError,
    FormatError,
    KnownError,
    OutcomeType,
    PersistenceError,
    TransientFetchError,
)
from sweetfeed.models.feed_queue import FeedQueue

__all__ = [
    "ApiResponse",
    "BoundingBox",
    "Candidate",
    "Coordinate",
    "Decision",
    "FailureDetail",
    "FailureKind",
    "FeedError",
    "FeedQueue",
    "FormatError",
    "KnownError",
    "OutcomeType",
    "PersistenceError",
    "TransientFetchError",
    "Verdict",
]
