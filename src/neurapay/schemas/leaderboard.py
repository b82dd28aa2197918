# src/neurapay/schemas/leaderboard.py
"""Leaderboard schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class LeaderboardEntryResponse(BaseModel):
    """One ranked wallet."""

    rank: int = Field(..., ge=1)
    wallet_address: str = Field(..., alias="walletAddress")
    total_spent: Decimal = Field(..., alias="totalSpent")
    services_used: int = Field(..., alias="servicesUsed")
    last_payment_at: datetime | None = Field(None, alias="lastPaymentAt")

    model_config = ConfigDict(populate_by_name=True)

    @field_serializer("total_spent")
    def _serialize_total(self, value: Decimal) -> str:
        # Drop the storage scale padding: 0.03000000 -> "0.03".
        return format(value.normalize(), "f")


class LeaderboardResponse(BaseModel):
    leaderboard: list[LeaderboardEntryResponse] = Field(default_factory=list)
