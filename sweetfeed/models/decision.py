from dataclasses import dataclass
from enum import Enum


class Verdict(str, Enum):
    """A user's call on a candidate."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @property
    def swipe_action(self) -> str:
        """Stored swipe direction: right saves, left skips."""
        return "right" if self is Verdict.ACCEPTED else "left"

    @classmethod
    def from_swipe_action(cls, action: str) -> "Verdict":
        if action == "right":
            return cls.ACCEPTED
        if action == "left":
            return cls.REJECTED
        raise ValueError(f"Unknown swipe action: {action!r}")


@dataclass(frozen=True, slots=True)
class Decision:
    """
    A recorded verdict for one candidate by one user.

    At most one exists per (user_id, candidate_id); decisions are never
    updated or deleted.
    """

    user_id: str
    candidate_id: str
    verdict: Verdict
