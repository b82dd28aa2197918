"""
Pydantic schemas for API request/response models.

Field aliases keep the camelCase wire names used by the web client.
"""

from .access import (
    AccessGrantResponse,
    AccessHistoryResponse,
    CheckAccessResponse,
    TrackAccessRequest,
    TrackAccessResponse,
)
from .chat import ChatRequest, ChatResponse
from .leaderboard import LeaderboardEntryResponse, LeaderboardResponse
from .service import ServiceListResponse, ServiceResponse

__all__ = [
    "AccessGrantResponse", "AccessHistoryResponse",
    "CheckAccessResponse",
    "TrackAccessRequest", "TrackAccessResponse",
    "ChatRequest", "ChatResponse",
    "LeaderboardEntryResponse", "LeaderboardResponse",
    "ServiceListResponse", "ServiceResponse",
]
