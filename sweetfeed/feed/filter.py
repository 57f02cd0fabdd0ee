"""
Feed Filter: Over-fetching Candidate Exclusion.

Fills a FeedQueue with candidates the user has not decided on yet. The
number of already-decided rows in any page is unknown, so each refill
over-fetches and grows the request geometrically until it has enough.

INVARIANTS:
- No candidate in the decided-set is ever appended
- No candidate id is appended to a queue twice
- Source order is preserved within and across refills
- A closed queue is never touched, even if its refill completes
- An exhausted queue is never refilled without an explicit reopen()
"""

import asyncio
import logging
from dataclasses import dataclass

from sweetfeed.config import FeedConfig
from sweetfeed.models.candidate import Candidate, Coordinate
from sweetfeed.models.failure import FeedError, FormatError
from sweetfeed.models.feed_queue import FeedQueue
from sweetfeed.sources.base import CandidateSource, DecisionStore

logger = logging.getLogger(__name__)


@dataclass
class RefillMetrics:
    """Metrics recorded per refill."""

    target_size: int = 0
    attempts: int = 0
    rows_scanned: int = 0
    excluded_decided: int = 0
    excluded_duplicate: int = 0
    appended: int = 0
    exhausted: bool = False
    stale_decided_set: bool = False


class FeedFilter:
    """
    Combines a candidate source and a decision store into undecided batches.

    Keeps the last decided-set seen per user so that a refill can still go
    ahead when only the decided-set fetch fails.
    """

    def __init__(
        self,
        source: CandidateSource,
        store: DecisionStore,
        over_fetch_multiplier: int = 3,
        max_fetch_attempts: int = 5,
    ) -> None:
        if over_fetch_multiplier < 1:
            raise ValueError("over_fetch_multiplier must be at least 1")
        if max_fetch_attempts < 1:
            raise ValueError("max_fetch_attempts must be at least 1")
        self.source = source
        self.store = store
        self.over_fetch_multiplier = over_fetch_multiplier
        self.max_fetch_attempts = max_fetch_attempts
        self.last_metrics: RefillMetrics | None = None
        self._decided_snapshots: dict[str, set[str]] = {}

    @classmethod
    def from_config(
        cls, source: CandidateSource, store: DecisionStore, config: FeedConfig
    ) -> "FeedFilter":
        return cls(
            source,
            store,
            over_fetch_multiplier=config.over_fetch_multiplier,
            max_fetch_attempts=config.max_fetch_attempts,
        )

    def remember_decision(self, user_id: str, candidate_id: str) -> None:
        """Fold a just-recorded decision into the user's snapshot."""
        snapshot = self._decided_snapshots.get(user_id)
        if snapshot is not None:
            snapshot.add(candidate_id)

    async def _first_fetch(
        self,
        user_id: str,
        location: Coordinate | None,
        request_size: int,
        offset: int,
        metrics: RefillMetrics,
    ) -> tuple[list[Candidate], frozenset[str]]:
        """
        Fetch the first page and the decided-set concurrently.

        A failed page fetch always fails the refill. A failed decided-set
        fetch (transient only) falls back to the previous snapshot for this
        user, if there is one.
        """
        page_result, decided_result = await asyncio.gather(
            self.source.fetch_page(location, request_size, offset),
            self.store.fetch_decided_set(user_id),
            return_exceptions=True,
        )

        for result in (page_result, decided_result):
            if isinstance(result, BaseException) and not isinstance(result, FeedError):
                raise result

        if isinstance(page_result, BaseException):
            raise page_result

        if isinstance(decided_result, BaseException):
            snapshot = self._decided_snapshots.get(user_id)
            if isinstance(decided_result, FormatError) or snapshot is None:
                raise decided_result
            logger.warning(
                "decided_set_stale",
                extra={"user_id": user_id, "snapshot_size": len(snapshot)},
            )
            metrics.stale_decided_set = True
            return page_result, frozenset(snapshot)

        self._decided_snapshots[user_id] = set(decided_result)
        return page_result, decided_result

    async def refill(
        self,
        user_id: str,
        location: Coordinate | None,
        queue: FeedQueue,
        target_size: int,
    ) -> FeedQueue:
        """
        Append up to `target_size` undecided candidates to `queue`.

        Attempt i requests need * multiplier * 2**i rows starting at the
        queue's source offset, where need is what is still missing. Stops
        early when the batch is full or the source runs dry.

        Args:
            user_id: Whose decisions to exclude
            location: Optional center for the bounding-box filter
            queue: Queue to extend in place
            target_size: Candidates wanted from this refill

        Returns:
            The same queue

        Raises:
            TransientFetchError: The page fetch failed, or the decided-set
                fetch failed with no earlier snapshot to fall back on
            FormatError: A remote response was malformed
        """
        if target_size <= 0:
            raise ValueError(f"target_size must be positive, got {target_size}")
        if queue.closed or queue.exhausted:
            return queue

        metrics = RefillMetrics(target_size=target_size)
        batch: list[Candidate] = []
        batch_ids: set[str] = set()
        offset = queue.source_offset
        decided: frozenset[str] = frozenset()

        for attempt in range(self.max_fetch_attempts):
            need = target_size - len(batch)
            request_size = need * self.over_fetch_multiplier * 2**attempt

            if attempt == 0:
                page, decided = await self._first_fetch(
                    user_id, location, request_size, offset, metrics
                )
            else:
                page = await self.source.fetch_page(location, request_size, offset)

            metrics.attempts += 1
            metrics.rows_scanned += len(page)

            consumed = 0
            for candidate in page:
                consumed += 1
                if candidate.id in decided:
                    metrics.excluded_decided += 1
                    continue
                if candidate.id in queue or candidate.id in batch_ids:
                    metrics.excluded_duplicate += 1
                    continue
                batch.append(candidate)
                batch_ids.add(candidate.id)
                if len(batch) == target_size:
                    break

            # Rows after the last taken one stay unconsumed for the next refill
            offset += consumed

            if len(page) < request_size and consumed == len(page):
                metrics.exhausted = True
                break
            if len(batch) == target_size:
                break

        if queue.closed:
            logger.debug("refill_discarded", extra={"user_id": user_id})
            return queue

        queue.source_offset = offset
        queue.exhausted = metrics.exhausted
        metrics.appended = queue.extend(batch)
        self.last_metrics = metrics

        logger.info(
            "feed_refilled",
            extra={
                "user_id": user_id,
                "target": metrics.target_size,
                "attempts": metrics.attempts,
                "scanned": metrics.rows_scanned,
                "excluded_decided": metrics.excluded_decided,
                "appended": metrics.appended,
                "exhausted": metrics.exhausted,
                "stale_decided_set": metrics.stale_decided_set,
            },
        )

        return queue
