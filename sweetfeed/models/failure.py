"""
Failure taxonomy and response envelope.

Remote-call failures are caught at the client boundary and re-raised as one
of three feed errors. Nothing above the clients sees a transport exception.

- TransientFetchError: a read failed for network/timeout reasons, retryable
- FormatError: the remote answered with something malformed, not retryable
- PersistenceError: a decision failed to record for a non-duplicate reason

A duplicate decision is NOT a failure.

HTTP endpoints wrap every result in ApiResponse so the client always gets a
classified outcome.
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"

    # Remote failures
    SERVICE_UNAVAILABLE = "service_unavailable"
    EXTERNAL_API_ERROR = "external_api_error"
    PERSISTENCE_FAILED = "persistence_failed"

    # Unknown
    UNKNOWN = "unknown"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    SUCCESS = "success"
    KNOWN_FAILURE = "known_failure"
    UNKNOWN_FAILURE = "unknown_failure"


T = TypeVar("T")


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )
    retryable: bool = Field(
        default=False,
        description="Whether retrying the same request may succeed",
    )


class ApiResponse(BaseModel, Generic[T]):
    """Response envelope for all feed endpoints."""

    outcome: OutcomeType = Field(
        ...,
        description="High-level classification of the result",
    )
    data: T | None = Field(
        default=None,
        description="Response data (present on success)",
    )
    failure: FailureDetail | None = Field(
        default=None,
        description="Failure details (present on non-success)",
    )

    @classmethod
    def success(cls, data: T) -> "ApiResponse[T]":
        """Create a success response."""
        return cls(outcome=OutcomeType.SUCCESS, data=data)

    @classmethod
    def known_failure(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        retryable: bool = False,
    ) -> "ApiResponse[Any]":
        """Create a known failure response."""
        return cls(
            outcome=OutcomeType.KNOWN_FAILURE,
            failure=FailureDetail(
                kind=kind,
                message=message,
                detail=detail,
                suggestion=suggestion,
                retryable=retryable,
            ),
        )

    @classmethod
    def unknown_failure(cls, exception: Exception) -> "ApiResponse[Any]":
        """Create an unknown failure response. The message is fixed."""
        return cls(
            outcome=OutcomeType.UNKNOWN_FAILURE,
            failure=FailureDetail(
                kind=FailureKind.UNKNOWN,
                message="Something went wrong while loading treats. Please try again.",
                detail=type(exception).__name__,
                suggestion="If this persists, please report the issue.",
            ),
        )


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    retryable: bool = False

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ApiResponse[Any]:
        """Convert to an ApiResponse."""
        return ApiResponse.known_failure(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
            retryable=self.retryable,
        )


class FeedError(KnownError):
    """Base class for errors raised by candidate sources and decision stores."""


class TransientFetchError(FeedError):
    """
    A remote read failed for a network or timeout reason.

    Recoverable by retrying. The navigator keeps its queue contents.
    """

    retryable = True

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        super().__init__(
            kind=FailureKind.SERVICE_UNAVAILABLE,
            message="Couldn't reach the treat service. Please try again.",
            detail=f"{operation}: {detail}" if detail else operation,
            suggestion="Check your connection and retry.",
            status_code=503,
        )


class FormatError(FeedError):
    """
    The remote store answered with a malformed response.

    Not retryable. Fatal for the operation that hit it only.
    """

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        super().__init__(
            kind=FailureKind.EXTERNAL_API_ERROR,
            message="The treat service sent something we couldn't read.",
            detail=f"{operation}: {detail}" if detail else operation,
            suggestion="If this persists, please report the issue.",
            status_code=502,
        )


class PersistenceError(FeedError):
    """
    A swipe decision failed to record for a reason other than duplication.

    The write may be partial; the caller must retry or report it.
    """

    retryable = True

    def __init__(self, user_id: str, candidate_id: str, detail: str | None = None):
        self.user_id = user_id
        self.candidate_id = candidate_id
        super().__init__(
            kind=FailureKind.PERSISTENCE_FAILED,
            message="Your swipe wasn't saved. Please try again.",
            detail=detail,
            suggestion="Retry the swipe; repeating it is safe.",
            status_code=503,
        )
