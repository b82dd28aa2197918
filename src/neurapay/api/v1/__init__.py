"""Version 1 API endpoints."""

from .endpoints import (
    access_router,
    chat_router,
    leaderboard_router,
    services_router,
    system_router,
)

__all__ = [
    "access_router",
    "chat_router",
    "leaderboard_router",
    "services_router",
    "system_router",
]
