from sweetfeed.api.decisions import router as decisions_router
from sweetfeed.api.feed import router as feed_router
from sweetfeed.api.health import router as health_router

__all__ = [
    "decisions_router",
    "feed_router",
    "health_router",
]
