"""
Swipe Navigator: client-side feed state machine.

    IDLE --start--> LOADING --ok--> READY <--advance/retreat--> READY
                       |                 \\--last K items--> LOADING (background)
                       \\--error--> ERROR --retry--> LOADING
    READY --drained + exhausted--> EXHAUSTED
    any --dispose--> DISPOSED

Decision policy is block-then-advance: the cursor only moves after the
decision store has accepted the write. A PersistenceError leaves the cursor
on the same candidate and reaches the caller, so a swipe is never silently
lost. Retreat is view-only and never touches recorded decisions.
"""

import asyncio
import logging
from enum import Enum

from sweetfeed.config import FeedConfig
from sweetfeed.feed.filter import FeedFilter
from sweetfeed.feed.gestures import Axis, Vector2, map_gesture
from sweetfeed.models.candidate import Candidate, Coordinate
from sweetfeed.models.decision import Decision, Verdict
from sweetfeed.models.failure import FeedError
from sweetfeed.models.feed_queue import FeedQueue
from sweetfeed.sources.base import DecisionStore

logger = logging.getLogger(__name__)


class NavigatorState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    EXHAUSTED = "exhausted"
    DISPOSED = "disposed"


class NavigatorDisposedError(RuntimeError):
    """Raised when a disposed navigator is used."""


class SwipeNavigator:
    """
    Walks one user through their feed.

    Owns its FeedQueue exclusively. Not shared across users or sessions.
    """

    def __init__(
        self,
        feed_filter: FeedFilter,
        store: DecisionStore,
        config: FeedConfig | None = None,
        axis: Axis = Axis.HORIZONTAL,
    ) -> None:
        self.filter = feed_filter
        self.store = store
        self.config = config or FeedConfig()
        self.axis = axis
        self.user_id: str | None = None
        self.location: Coordinate | None = None
        self.queue: FeedQueue | None = None
        self.last_error: FeedError | None = None
        self._loading = False
        self._disposed = False
        self._refill_task: asyncio.Task[None] | None = None
        self._pending_writes: set[asyncio.Task[Verdict]] = set()
        self._advance_lock = asyncio.Lock()

    # --- State ---

    @property
    def state(self) -> NavigatorState:
        if self._disposed:
            return NavigatorState.DISPOSED
        if self.queue is None:
            return NavigatorState.IDLE
        if self._loading:
            return NavigatorState.LOADING
        if self.last_error is not None:
            return NavigatorState.ERROR
        if self.queue.is_drained and self.queue.exhausted:
            return NavigatorState.EXHAUSTED
        return NavigatorState.READY

    @property
    def cursor(self) -> int:
        return self.queue.cursor if self.queue else 0

    @property
    def pending_writes(self) -> int:
        """Decision writes dispatched but not yet finished."""
        return len(self._pending_writes)

    def _require_queue(self) -> FeedQueue:
        if self._disposed:
            raise NavigatorDisposedError("navigator has been disposed")
        if self.queue is None or self.user_id is None:
            raise RuntimeError("navigator has not been started")
        return self.queue

    # --- Inbound operations ---

    async def start(self, user_id: str, location: Coordinate | None = None) -> NavigatorState:
        """Create the queue and load the first page."""
        if self._disposed:
            raise NavigatorDisposedError("navigator has been disposed")
        if self.queue is not None:
            raise RuntimeError("navigator already started")

        self.user_id = user_id
        self.location = location
        self.queue = FeedQueue()
        await self._refill()
        return self.state

    def current(self) -> Candidate | None:
        if self.queue is None or self._disposed:
            return None
        return self.queue.current()

    def peek_next(self) -> Candidate | None:
        if self.queue is None or self._disposed:
            return None
        return self.queue.peek_next()

    async def advance(self, verdict: Verdict) -> Decision | None:
        """
        Record a verdict for the current candidate, then move past it.

        Calls are serialized. A call that was made for a candidate which is
        no longer current by the time it runs collapses into the earlier
        call and records nothing.

        Returns:
            The decision in effect, carrying the first verdict on a re-swipe,
            or None if nothing was recorded

        Raises:
            PersistenceError: The write failed; the cursor did not move
        """
        queue = self._require_queue()
        target = queue.current()
        if target is None:
            return None

        async with self._advance_lock:
            if self._disposed or queue.current() is not target:
                logger.debug("advance_collapsed", extra={"candidate_id": target.id})
                return None

            decision = Decision(user_id=self.user_id, candidate_id=target.id, verdict=verdict)
            recorded = await asyncio.shield(self._dispatch(decision))
            if recorded is not verdict:
                decision = Decision(decision.user_id, decision.candidate_id, recorded)

            self.filter.remember_decision(decision.user_id, decision.candidate_id)
            if queue.closed:
                return decision
            queue.advance()
            queue.trim(self.config.retention_window)
            self._maybe_schedule_refill()
            return decision

    def retreat(self) -> bool:
        """Step back to the previous candidate. Returns False at the front."""
        if self.queue is None or self._disposed:
            return False
        return self.queue.retreat()

    async def handle_gesture(
        self, translation: Vector2, velocity: Vector2 | None = None
    ) -> Decision | None:
        """Turn a finished drag into a decision; a short drag records nothing."""
        outcome = map_gesture(translation, velocity, self.config.axis_threshold, self.axis)
        if outcome.verdict is None:
            return None
        return await self.advance(outcome.verdict)

    async def retry(self) -> NavigatorState:
        """Re-run a failed refill, or wait for the one in flight."""
        self._require_queue()
        if self._refill_task is not None and not self._refill_task.done():
            await self._refill_task
        else:
            await self._refill()
        return self.state

    async def refresh(self) -> NavigatorState:
        """Look for new candidates after the feed was exhausted."""
        queue = self._require_queue()
        queue.reopen()
        return await self.retry()

    async def dispose(self) -> None:
        """
        Tear down the navigator.

        In-flight refills are cancelled and their results dropped.
        Dispatched decision writes keep running.
        """
        if self._disposed:
            return
        self._disposed = True
        if self.queue is not None:
            self.queue.close()

        task = self._refill_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def wait_for_writes(self) -> None:
        """Wait until every dispatched decision write has finished."""
        if self._pending_writes:
            await asyncio.gather(*self._pending_writes, return_exceptions=True)

    # --- Internals ---

    def _dispatch(self, decision: Decision) -> asyncio.Task[Verdict]:
        write = asyncio.create_task(
            self.store.record_decision(decision.user_id, decision.candidate_id, decision.verdict)
        )
        self._pending_writes.add(write)
        write.add_done_callback(self._write_finished)
        return write

    def _write_finished(self, write: asyncio.Task[Verdict]) -> None:
        self._pending_writes.discard(write)
        if write.cancelled():
            return
        error = write.exception()
        if error is not None:
            logger.error("decision_write_failed", extra={"error": str(error)})

    def _maybe_schedule_refill(self) -> None:
        queue = self.queue
        if queue is None or queue.closed or queue.exhausted:
            return
        if self.last_error is not None or self._loading:
            return
        if queue.remaining > self.config.refill_threshold:
            return
        self._refill_task = asyncio.create_task(self._background_refill())

    async def _background_refill(self) -> None:
        try:
            await self._refill()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("background_refill_crashed", extra={"user_id": self.user_id})

    async def _refill(self) -> None:
        """
        Refill until there is a current candidate or the source is exhausted.

        Feed errors put the navigator in ERROR and keep the queue as it was.
        """
        queue = self._require_queue()
        self._loading = True
        self.last_error = None
        try:
            while not queue.closed and not queue.exhausted:
                offset_before = queue.source_offset
                await self.filter.refill(self.user_id, self.location, queue, self.config.page_size)
                if not queue.is_drained or queue.source_offset == offset_before:
                    break
        except FeedError as e:
            if not queue.closed:
                self.last_error = e
                logger.warning(
                    "refill_failed",
                    extra={"user_id": self.user_id, "kind": e.kind.value, "detail": e.detail},
                )
        finally:
            self._loading = False
