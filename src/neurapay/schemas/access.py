# src/neurapay/schemas/access.py
"""Access tracking and checking schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TrackAccessRequest(BaseModel):
    """Payment notification sent by the client after on-chain confirmation."""

    wallet_address: str = Field(..., alias="walletAddress", min_length=1)
    service_id: int = Field(..., alias="serviceId", ge=0)
    price_in_avax: Decimal = Field(..., alias="priceInAVAX", gt=0)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("wallet_address")
    @classmethod
    def _strip_wallet(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("walletAddress must not be blank")
        return value


class TrackAccessResponse(BaseModel):
    """Result of recording a payment."""

    success: bool
    expires_at: datetime = Field(..., alias="expiresAt")
    message: str = "Access tracked successfully"

    model_config = ConfigDict(populate_by_name=True)


class CheckAccessResponse(BaseModel):
    """Current access status for one wallet and service."""

    has_access: bool = Field(..., alias="hasAccess")
    expired: bool = False
    expires_at: datetime | None = Field(None, alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)


class AccessGrantResponse(BaseModel):
    """A tracked grant as shown in the access history."""

    id: int
    wallet_address: str = Field(..., alias="walletAddress")
    service_id: int = Field(..., alias="serviceId")
    expires_at: datetime = Field(..., alias="expiresAt")
    created_at: datetime = Field(..., alias="createdAt")
    active: bool

    model_config = ConfigDict(populate_by_name=True)


class AccessHistoryResponse(BaseModel):
    access_history: list[AccessGrantResponse] = Field(
        default_factory=list, alias="accessHistory"
    )

    model_config = ConfigDict(populate_by_name=True)
