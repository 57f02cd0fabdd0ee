"""
Candidate-exclusion feed engine.

Serves a user an unseen-restaurant feed one screenful at a time:
- FeedFilter: over-fetch, exclude decided and duplicate candidates
- SwipeNavigator: cursor state machine with background refill
- map_gesture: drag distance to accept / reject / cancel
"""

from sweetfeed.feed.filter import FeedFilter, RefillMetrics
from sweetfeed.feed.gestures import Axis, GestureOutcome, Vector2, map_gesture
from sweetfeed.feed.navigator import NavigatorDisposedError, NavigatorState, SwipeNavigator

__all__ = [
    "Axis",
    "FeedFilter",
    "GestureOutcome",
    "NavigatorDisposedError",
    "NavigatorState",
    "RefillMetrics",
    "SwipeNavigator",
    "Vector2",
    "map_gesture",
]
