"""Access tracking and checking endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from neurapay.core.errors import TrackingError
from neurapay.db.time import as_utc, utcnow
from neurapay.schemas.access import (
    AccessGrantResponse,
    AccessHistoryResponse,
    CheckAccessResponse,
    TrackAccessRequest,
    TrackAccessResponse,
)

from ..dependencies import AccessCheckerDep, AccessTrackerDep, SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/access", tags=["access"])

WalletQuery = Annotated[str, Query(alias="walletAddress", min_length=1)]


@router.post("/track", response_model=TrackAccessResponse)
async def track_access(
    payload: TrackAccessRequest,
    db: SessionDep,
    tracker: AccessTrackerDep,
) -> TrackAccessResponse | JSONResponse:
    """Record a confirmed payment and grant a fresh access window."""
    try:
        result = tracker.track(db, payload.wallet_address, payload.service_id, payload.price_in_avax)
    except TrackingError as exc:
        logger.error("Tracking failed for %s: %s", payload.wallet_address, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to track access"},
        )
    return TrackAccessResponse(success=True, expires_at=result.expires_at)


@router.get("/check", response_model=CheckAccessResponse, response_model_exclude_none=True)
def check_access(
    wallet_address: WalletQuery,
    service_id: Annotated[int, Query(alias="serviceId", ge=0)],
    db: SessionDep,
    checker: AccessCheckerDep,
) -> CheckAccessResponse:
    """Report whether the wallet can use the service right now.

    Declared sync because the on-chain fallback blocks.
    """
    result = checker.check(db, wallet_address, service_id)
    return CheckAccessResponse(
        has_access=result.has_access,
        expired=result.expired,
        expires_at=result.expires_at if result.has_access else None,
    )


@router.get("/history", response_model=AccessHistoryResponse)
async def get_access_history(
    wallet_address: WalletQuery,
    db: SessionDep,
    tracker: AccessTrackerDep,
) -> AccessHistoryResponse | JSONResponse:
    """List every grant recorded for a wallet, newest first."""
    try:
        grants = tracker.history(db, wallet_address)
    except SQLAlchemyError:
        logger.error("Failed to load access history for %s", wallet_address, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to fetch access history"},
        )

    now = utcnow()
    return AccessHistoryResponse(
        access_history=[
            AccessGrantResponse(
                id=grant.id,
                wallet_address=grant.wallet_address,
                service_id=grant.service_id,
                expires_at=grant.expires_at_utc,
                created_at=as_utc(grant.created_at),
                active=grant.is_active(now),
            )
            for grant in grants
        ]
    )
