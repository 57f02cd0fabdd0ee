"""
Contracts between the feed engine and its remote collaborators.

Implementations translate every transport failure into the feed error
taxonomy (TransientFetchError, FormatError, PersistenceError) before it
leaves the client.
"""

from typing import Protocol, runtime_checkable

from sweetfeed.models.candidate import Candidate, Coordinate
from sweetfeed.models.decision import Verdict


@runtime_checkable
class CandidateSource(Protocol):
    async def fetch_page(
        self,
        location: Coordinate | None,
        page_size: int,
        offset: int,
    ) -> list[Candidate]:
        """
        Fetch one page of candidates, best rated first.

        Ties on rating are broken by newest creation time, then id, so page
        boundaries are stable. With a location, only candidates inside the
        bounding box around it are returned.

        Raises:
            TransientFetchError: Network or timeout failure
            FormatError: Malformed response
        """
        ...


@runtime_checkable
class DecisionStore(Protocol):
    async def record_decision(self, user_id: str, candidate_id: str, verdict: Verdict) -> Verdict:
        """
        Record a verdict once. A duplicate is success.

        The first verdict wins: a later call for the same (user, candidate)
        changes nothing and returns the verdict already stored. Accepted
        verdicts also save the candidate.

        Returns:
            The verdict in effect after the call

        Raises:
            PersistenceError: The decision could not be stored
        """
        ...

    async def fetch_decided_set(self, user_id: str) -> frozenset[str]:
        """
        Ids of every candidate the user has already decided on.

        Raises:
            TransientFetchError: Network or timeout failure
            FormatError: Malformed response
        """
        ...

    async def fetch_saved(self, user_id: str, limit: int = 50) -> list[str]:
        """Ids of candidates the user accepted, newest first."""
        ...
