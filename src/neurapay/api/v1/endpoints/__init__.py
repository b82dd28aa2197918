"""API endpoint modules for version 1."""

from .access import router as access_router
from .chat import router as chat_router
from .leaderboard import router as leaderboard_router
from .services import router as services_router
from .system import router as system_router

__all__ = [
    "access_router",
    "chat_router",
    "leaderboard_router",
    "services_router",
    "system_router",
]
