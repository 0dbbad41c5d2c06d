"""Version 1 API endpoints."""

from .endpoints import (
    confessions_router,
    matchmaker_router,
    search_router,
    session_router,
    system_router,
)

__all__ = [
    "confessions_router",
    "matchmaker_router",
    "search_router",
    "session_router",
    "system_router",
]
