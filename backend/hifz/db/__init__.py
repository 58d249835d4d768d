"""Database package."""

from hifz.db.base import (
    Base,
    async_session_maker,
    engine,
    get_db,
    get_session_factory,
    init_db,
)

__all__ = [
    "engine",
    "async_session_maker",
    "Base",
    "get_db",
    "get_session_factory",
    "init_db",
]
