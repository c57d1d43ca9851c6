"""Database utilities - engine and sessions."""

from src.tapcards.core.db.engine import dispose_engine, get_engine, set_engine
from src.tapcards.core.db.session import get_isolated_session, get_session

__all__ = [
    # Engine
    "dispose_engine",
    "get_engine",
    "set_engine",
    # Session
    "get_isolated_session",
    "get_session",
]
