# src/neurapay/models/__init__.py
"""SQLAlchemy models for the NeuraPay backend."""

from .access import AccessGrant
from .leaderboard import LeaderboardEntry

__all__ = [
    "AccessGrant",
    "LeaderboardEntry",
]
