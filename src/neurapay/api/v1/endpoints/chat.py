"""Payment-gated AI endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from neurapay.core.errors import ChainReadError, ServiceNotAvailableError, WrongNetworkError
from neurapay.core.settings import settings
from neurapay.db.time import utcnow
from neurapay.schemas.chat import ChatRequest, ChatResponse

from ..dependencies import AccessCheckerDep, AIRelayDep, ChainReaderDep, SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


def _payment_required(error: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        content={"error": error, "message": message, **extra},
    )


@router.post("/chat", response_model=ChatResponse)
def chat(
    payload: ChatRequest,
    db: SessionDep,
    checker: AccessCheckerDep,
    relay: AIRelayDep,
) -> ChatResponse | JSONResponse:
    """Answer a prompt for wallets holding an active grant."""
    try:
        relay.integration_for(payload.service_id)
    except ServiceNotAvailableError:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "Service Not Available",
                "message": f"No AI integration exists for service {payload.service_id}",
            },
        )

    access = checker.check(db, payload.wallet_address, payload.service_id)
    if not access.has_access:
        if access.expired:
            logger.info("Expired access for %s service %s", payload.wallet_address, payload.service_id)
            return _payment_required("Access Expired", "Your access has expired. Please purchase again.")
        return _payment_required(
            "Payment Required", "You need to pay for access to use this service"
        )

    reply = relay.respond(payload.service_id, payload.prompt)
    return ChatResponse(response=reply.response, timestamp=reply.timestamp, service=reply.service)


@router.get("/service/{service_id}", response_model=None)
def gated_service(
    service_id: int,
    chain_reader: ChainReaderDep,
    relay: AIRelayDep,
    address: str | None = None,
) -> dict[str, Any] | JSONResponse:
    """Serve a mock model payload to wallets the contract reports as paid."""
    if not address:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing required parameter: address"},
        )

    try:
        has_access = chain_reader.has_access(address, service_id)
    except (ChainReadError, WrongNetworkError) as exc:
        logger.warning("On-chain access check failed for %s: %s", address, exc)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "Chain unavailable", "message": exc.user_message},
        )

    if not has_access:
        return _payment_required(
            "Payment Required",
            "You must pay to access this AI service",
            payment={
                "contract": settings.contract_address,
                "serviceId": service_id,
                "network": settings.chain_name,
                "chainId": settings.chain_id,
            },
        )

    return {
        "success": True,
        "serviceId": service_id,
        "response": relay.service_payload(service_id),
        "timestamp": utcnow().isoformat(),
    }
