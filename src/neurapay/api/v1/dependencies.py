"""Shared API dependencies."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from neurapay.db.session import get_db
from neurapay.services.access_checker import AccessCheckerService
from neurapay.services.access_tracker import AccessTrackerService
from neurapay.services.ai_relay import AIRelayService
from neurapay.services.chain import ChainReader, get_chain_reader

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_chain_reader_dep() -> ChainReader:
    """Return the shared contract reader."""
    return get_chain_reader()


ChainReaderDep = Annotated[ChainReader, Depends(get_chain_reader_dep)]


def get_access_tracker_dep() -> AccessTrackerService:
    return AccessTrackerService()


def get_access_checker_dep(chain_reader: ChainReaderDep) -> AccessCheckerService:
    """Build an access checker that falls back to ``chain_reader``."""
    return AccessCheckerService(chain_reader=chain_reader)


def get_ai_relay_dep() -> AIRelayService:
    return AIRelayService()


AccessTrackerDep = Annotated[AccessTrackerService, Depends(get_access_tracker_dep)]
AccessCheckerDep = Annotated[AccessCheckerService, Depends(get_access_checker_dep)]
AIRelayDep = Annotated[AIRelayService, Depends(get_ai_relay_dep)]
