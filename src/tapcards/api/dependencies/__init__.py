"""FastAPI dependency injection definitions."""

from src.tapcards.api.dependencies.auth import CurrentActor, actor_from_token, get_current_actor
from src.tapcards.api.dependencies.db import DBSession, get_db_session
from src.tapcards.api.dependencies.services import EngineDep, get_engine_service

__all__ = [
    # Auth
    "CurrentActor",
    "actor_from_token",
    "get_current_actor",
    # Database
    "DBSession",
    "get_db_session",
    # Services
    "EngineDep",
    "get_engine_service",
]
