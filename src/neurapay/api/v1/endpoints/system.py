"""System endpoints for the NeuraPay API."""

from __future__ import annotations

import time

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from neurapay.core.settings import settings

from ..dependencies import SessionDep

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets and connection strings; clients use it to find the
    contract and the network to pay on.
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "chain": {
            "chainId": settings.chain_id,
            "chainIdHex": hex(settings.chain_id),
            "name": settings.chain_name,
            "currencySymbol": settings.chain_currency_symbol,
            "rpcUrl": settings.chain_rpc_url,
            "explorerUrl": settings.chain_explorer_url,
            "contractAddress": settings.contract_address,
        },
        "access": {
            "durationSeconds": settings.access_duration_seconds,
            "leaderboardLimit": settings.leaderboard_limit,
        },
    }


@router.get("/health")
async def get_system_health(db: SessionDep) -> dict[str, object]:
    """Health check covering the database connection."""
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        db_status = f"unhealthy: {str(e)}"

    return {
        "status": "healthy" if db_status == "healthy" else "unhealthy",
        "timestamp": int(time.time()),
        "components": {
            "database": db_status,
        },
        "version": settings.app_version,
    }
