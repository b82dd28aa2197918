"""Answer "does this wallet currently have access to this service?".

The tracked grant row is consulted first. When there is no row, or the
store cannot be queried, the contract is asked instead. Checking never
raises: anything that cannot be verified is reported as no access.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from neurapay.core.errors import NeuraPayError
from neurapay.db.time import from_timestamp, utcnow
from neurapay.models import AccessGrant
from neurapay.services.access_tracker import normalize_wallet
from neurapay.services.chain import ChainReader

logger = logging.getLogger(__name__)

SOURCE_TRACKER = "tracker"
SOURCE_CHAIN = "chain"
SOURCE_NONE = "none"


@dataclass(frozen=True)
class AccessStatus:
    """Result of an access check."""

    has_access: bool
    expires_at: datetime | None = None
    expired: bool = False
    source: str = SOURCE_NONE


NO_ACCESS = AccessStatus(has_access=False)


def chain_access_status(
    chain_reader: ChainReader | None,
    wallet: str,
    service_id: int,
    now: datetime,
) -> AccessStatus:
    """Derive access from the contract, failing closed on any read error."""
    if chain_reader is None:
        return NO_ACCESS
    try:
        if not chain_reader.has_access(wallet, service_id):
            return AccessStatus(has_access=False, source=SOURCE_CHAIN)
        expiry = chain_reader.get_access_expiry(wallet, service_id)
        if expiry <= 0:
            # Contract confirms access but exposes no expiry.
            return AccessStatus(has_access=True, source=SOURCE_CHAIN)
        expires_at = from_timestamp(expiry)
    except (NeuraPayError, ValueError) as exc:
        logger.warning("Chain access check failed for %s service %s: %s", wallet, service_id, exc)
        return NO_ACCESS

    if expires_at <= now:
        return AccessStatus(has_access=False, expired=True, source=SOURCE_CHAIN)
    return AccessStatus(has_access=True, expires_at=expires_at, source=SOURCE_CHAIN)


class AccessCheckerService:
    """Checks access against tracked grants with an on-chain fallback."""

    def __init__(
        self,
        chain_reader: ChainReader | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.chain_reader = chain_reader
        self._clock = clock

    def check(self, db: Session, wallet: str, service_id: int) -> AccessStatus:
        wallet = normalize_wallet(wallet)
        now = self._clock()
        if not wallet or service_id < 0:
            return NO_ACCESS

        try:
            grant = db.scalars(
                select(AccessGrant).where(
                    AccessGrant.wallet_address == wallet,
                    AccessGrant.service_id == service_id,
                )
            ).first()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Grant lookup failed, falling back to chain: %s", exc)
            grant = None

        if grant is not None:
            if grant.is_active(now):
                return AccessStatus(
                    has_access=True, expires_at=grant.expires_at_utc, source=SOURCE_TRACKER
                )
            return AccessStatus(has_access=False, expired=True, source=SOURCE_TRACKER)

        return chain_access_status(self.chain_reader, wallet, service_id, now)
