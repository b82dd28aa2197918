"""Service catalog endpoints backed by the payment contract."""

from __future__ import annotations

import logging

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from neurapay.core.errors import ChainReadError, WrongNetworkError
from neurapay.schemas.service import ServiceListResponse, ServiceResponse
from neurapay.services.chain import ServiceListing, ServiceNotFoundError

from ..dependencies import ChainReaderDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["services"])


def _to_response(listing: ServiceListing) -> ServiceResponse:
    return ServiceResponse(
        id=listing.id,
        name=listing.name,
        category=listing.category,
        description=listing.description,
        price=listing.price_display,
        provider_address=listing.provider_address,
        active=listing.active,
    )


@router.get("", response_model=ServiceListResponse)
def list_services(chain_reader: ChainReaderDep) -> ServiceListResponse | JSONResponse:
    """List the active services registered on the contract."""
    try:
        listings = chain_reader.get_service_catalog()
    except (ChainReadError, WrongNetworkError) as exc:
        logger.warning("Failed to read service catalog: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "Failed to fetch services", "message": exc.user_message},
        )
    return ServiceListResponse(services=[_to_response(listing) for listing in listings])


@router.get("/{service_id}", response_model=ServiceResponse)
def get_service(service_id: int, chain_reader: ChainReaderDep) -> ServiceResponse | JSONResponse:
    try:
        listing = chain_reader.get_service(service_id)
    except ServiceNotFoundError:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "Service not found"},
        )
    except (ChainReadError, WrongNetworkError) as exc:
        logger.warning("Failed to read service %s: %s", service_id, exc)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "Failed to fetch service", "message": exc.user_message},
        )
    return _to_response(listing)
