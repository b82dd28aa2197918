# src/neurapay/schemas/service.py
"""Service catalog schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ServiceResponse(BaseModel):
    """A catalog entry read from the payment contract."""

    id: int
    name: str
    category: str
    description: str
    price: str = Field(..., description="Price in the chain's native currency")
    provider_address: str = Field(..., alias="providerAddress")
    active: bool

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class ServiceListResponse(BaseModel):
    services: list[ServiceResponse] = Field(default_factory=list)
