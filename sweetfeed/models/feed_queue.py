"""
Feed Queue: in-memory buffer of undecided candidates.

INVARIANTS:
- 0 <= cursor <= len(items)
- A candidate id is appended at most once per queue, even after trimming
- A closed queue is never mutated again
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from sweetfeed.models.candidate import Candidate


@dataclass
class FeedQueue:
    """
    Ordered candidates plus a cursor.

    Attributes:
        items: Retained candidates in presentation order
        cursor: Index of the current candidate; == len(items) when drained
        source_offset: Raw rows of the remote ordering already consumed
        exhausted: Remote source has nothing left beyond source_offset
        closed: Owner was torn down; late refill results must be dropped
    """

    items: list[Candidate] = field(default_factory=list)
    cursor: int = 0
    source_offset: int = 0
    exhausted: bool = False
    closed: bool = False
    _seen_ids: set[str] = field(default_factory=set, repr=False)

    def __len__(self) -> int:
        return len(self.items)

    def __contains__(self, candidate_id: object) -> bool:
        return candidate_id in self._seen_ids

    @property
    def remaining(self) -> int:
        """Candidates at or after the cursor."""
        return len(self.items) - self.cursor

    @property
    def is_drained(self) -> bool:
        return self.cursor >= len(self.items)

    def current(self) -> Candidate | None:
        if self.is_drained:
            return None
        return self.items[self.cursor]

    def peek_next(self) -> Candidate | None:
        index = self.cursor + 1
        if index >= len(self.items):
            return None
        return self.items[index]

    def extend(self, candidates: Iterable[Candidate]) -> int:
        """
        Append candidates not seen before.

        Returns:
            Number of candidates actually appended
        """
        if self.closed:
            return 0

        added = 0
        for candidate in candidates:
            if candidate.id in self._seen_ids:
                continue
            self._seen_ids.add(candidate.id)
            self.items.append(candidate)
            added += 1
        return added

    def advance(self) -> None:
        if self.cursor < len(self.items):
            self.cursor += 1

    def retreat(self) -> bool:
        """Step back one item. Returns False when already at the front."""
        if self.cursor == 0:
            return False
        self.cursor -= 1
        return True

    def trim(self, retention_window: int) -> int:
        """
        Drop items more than `retention_window` behind the cursor.

        Returns:
            Number of items dropped
        """
        overflow = self.cursor - retention_window
        if overflow <= 0:
            return 0
        del self.items[:overflow]
        self.cursor -= overflow
        return overflow

    def reopen(self) -> None:
        """
        Clear the exhausted flag so a caller can explicitly look for new candidates.

        Rescans the source from the top; seen ids keep earlier candidates out.
        """
        self.exhausted = False
        self.source_offset = 0

    def close(self) -> None:
        self.closed = True
