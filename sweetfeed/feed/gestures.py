"""
Gesture-to-decision mapping.

Classification looks only at how far the card was dragged along its primary
axis. Velocity is accepted for animation easing but never changes the
outcome.
"""

from enum import Enum
from typing import NamedTuple

from sweetfeed.models.decision import Verdict


class Vector2(NamedTuple):
    """A 2D vector in screen points (x right, y down)."""

    x: float
    y: float


class Axis(str, Enum):
    """Primary axis of a swipe surface."""

    HORIZONTAL = "horizontal"  # swipe cards
    VERTICAL = "vertical"  # reel-style feeds


class GestureOutcome(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    CANCEL = "cancel"

    @property
    def verdict(self) -> Verdict | None:
        """The decision to record, or None for a snap-back."""
        if self is GestureOutcome.ACCEPT:
            return Verdict.ACCEPTED
        if self is GestureOutcome.REJECT:
            return Verdict.REJECTED
        return None


def map_gesture(
    translation: Vector2,
    velocity: Vector2 | None,  # noqa: ARG001
    axis_threshold: float,
    axis: Axis = Axis.HORIZONTAL,
) -> GestureOutcome:
    """
    Classify a finished drag.

    Past the threshold, a positive primary component accepts and a negative
    one rejects. Anything shorter cancels (the card snaps back).

    Args:
        translation: Total drag offset when the finger lifted
        velocity: Release velocity; advisory only
        axis_threshold: Distance that must be exceeded to commit
        axis: Which component of the translation counts

    Returns:
        ACCEPT, REJECT or CANCEL
    """
    if axis_threshold <= 0:
        raise ValueError(f"axis_threshold must be positive, got {axis_threshold}")

    primary = translation.x if axis is Axis.HORIZONTAL else translation.y
    if abs(primary) <= axis_threshold:
        return GestureOutcome.CANCEL
    return GestureOutcome.ACCEPT if primary > 0 else GestureOutcome.REJECT
