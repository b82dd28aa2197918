# src/neurapay/schemas/chat.py
"""AI relay schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Prompt for a gated AI service."""

    wallet_address: str = Field(..., alias="walletAddress", min_length=1)
    service_id: int = Field(..., alias="serviceId", ge=0)
    prompt: str = Field(..., min_length=1, max_length=4000)

    model_config = ConfigDict(populate_by_name=True)


class ChatResponse(BaseModel):
    response: str
    timestamp: datetime
    service: str
