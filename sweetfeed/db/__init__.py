from sweetfeed.db.database import (
    build_session_factory,
    drop_db,
    get_session,
    get_session_factory,
    init_db,
)

__all__ = [
    "build_session_factory",
    "drop_db",
    "get_session",
    "get_session_factory",
    "init_db",
]
