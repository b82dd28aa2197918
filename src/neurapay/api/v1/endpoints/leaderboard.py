"""Leaderboard endpoint."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from neurapay.db.time import as_utc
from neurapay.schemas.leaderboard import LeaderboardEntryResponse, LeaderboardResponse

from ..dependencies import AccessTrackerDep, SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])


@router.get("", response_model=LeaderboardResponse)
async def get_leaderboard(
    db: SessionDep,
    tracker: AccessTrackerDep,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
) -> LeaderboardResponse | JSONResponse:
    """Return the top wallets ranked by total spend."""
    try:
        entries = tracker.leaderboard(db, limit)
    except SQLAlchemyError:
        logger.error("Failed to load leaderboard", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to fetch leaderboard"},
        )

    return LeaderboardResponse(
        leaderboard=[
            LeaderboardEntryResponse(
                rank=index,
                wallet_address=entry.wallet_address,
                total_spent=Decimal(entry.total_spent),
                services_used=entry.services_used,
                last_payment_at=as_utc(entry.last_payment_at) if entry.last_payment_at else None,
            )
            for index, entry in enumerate(entries, start=1)
        ]
    )
