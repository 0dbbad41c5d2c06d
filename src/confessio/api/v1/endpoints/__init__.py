"""API endpoint modules for version 1."""

from .confessions import router as confessions_router
from .matchmaker import router as matchmaker_router
from .search import router as search_router
from .session import router as session_router
from .system import router as system_router

__all__ = [
    "confessions_router",
    "matchmaker_router",
    "search_router",
    "session_router",
    "system_router",
]
