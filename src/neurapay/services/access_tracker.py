"""Backend bookkeeping for confirmed payments.

A payment event touches two rows: the wallet's grant for the service and the
wallet's leaderboard totals. They are committed separately, so a failure of
one never undoes the other.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from neurapay.core.errors import TrackingError
from neurapay.core.settings import settings
from neurapay.db.time import utcnow
from neurapay.models import AccessGrant, LeaderboardEntry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def normalize_wallet(wallet: str) -> str:
    """Return the canonical (trimmed, lowercase) form of a wallet address."""
    return wallet.strip().lower()


@dataclass(frozen=True)
class TrackResult:
    """Outcome of recording one payment."""

    expires_at: datetime
    leaderboard_updated: bool = True


class AccessTrackerService:
    """Records grants and leaderboard totals for confirmed payments."""

    def __init__(self, duration: timedelta | None = None, clock: Clock = utcnow) -> None:
        self.duration = duration if duration is not None else settings.access_duration
        if self.duration <= timedelta(0):
            raise ValueError("access duration must be positive")
        self._clock = clock

    def track(
        self,
        db: Session,
        wallet: str,
        service_id: int,
        price: Decimal,
    ) -> TrackResult:
        """Grant a fresh full window for ``(wallet, service_id)`` and update totals.

        A repeat payment resets the window to ``now + duration``; remaining time
        from an earlier payment is not carried over.

        Raises:
            TrackingError: If the grant could not be stored. The leaderboard
                update is still attempted first.
        """
        wallet = normalize_wallet(wallet)
        if not wallet:
            raise ValueError("wallet address must not be empty")
        if service_id < 0:
            raise ValueError("service id must be non-negative")

        now = self._clock()
        expires_at = now + self.duration

        grant_error: SQLAlchemyError | None = None
        try:
            self._upsert_grant(db, wallet, service_id, expires_at)
        except SQLAlchemyError as exc:
            db.rollback()
            grant_error = exc
            logger.error(
                "Failed to store access grant for %s service %s", wallet, service_id, exc_info=True
            )

        leaderboard_updated = True
        try:
            self._upsert_leaderboard(db, wallet, Decimal(price), now)
        except SQLAlchemyError:
            db.rollback()
            leaderboard_updated = False
            logger.error("Failed to update leaderboard for %s", wallet, exc_info=True)

        if grant_error is not None:
            raise TrackingError(f"could not store access grant: {grant_error}") from grant_error

        logger.info(
            "Tracked access for %s service %s until %s", wallet, service_id, expires_at.isoformat()
        )
        return TrackResult(expires_at=expires_at, leaderboard_updated=leaderboard_updated)

    def _update_grant(self, db: Session, wallet: str, service_id: int, expires_at: datetime) -> int:
        result = db.execute(
            update(AccessGrant)
            .where(
                AccessGrant.wallet_address == wallet,
                AccessGrant.service_id == service_id,
            )
            .values(expires_at=expires_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def _upsert_grant(self, db: Session, wallet: str, service_id: int, expires_at: datetime) -> None:
        """Overwrite the pair's expiry, inserting the row on first payment.

        Concurrent first payments race on the unique constraint; the loser
        retries as an update, so the last write wins.
        """
        if self._update_grant(db, wallet, service_id, expires_at) == 0:
            db.add(AccessGrant(wallet_address=wallet, service_id=service_id, expires_at=expires_at))
            try:
                db.commit()
                return
            except IntegrityError:
                db.rollback()
                logger.info("Grant for %s service %s created concurrently; updating", wallet, service_id)
                self._update_grant(db, wallet, service_id, expires_at)
        self._commit_statement(db)

    @staticmethod
    def _commit_statement(db: Session) -> None:
        # Bulk updates bypass the identity map; reload rows on next access.
        db.commit()
        db.expire_all()

    def _increment_leaderboard(self, db: Session, wallet: str, price: Decimal, now: datetime) -> int:
        # Computed in SQL: concurrent payments must each count once.
        result = db.execute(
            update(LeaderboardEntry)
            .where(LeaderboardEntry.wallet_address == wallet)
            .values(
                total_spent=LeaderboardEntry.total_spent + price,
                services_used=LeaderboardEntry.services_used + 1,
                last_payment_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def _upsert_leaderboard(self, db: Session, wallet: str, price: Decimal, now: datetime) -> None:
        if self._increment_leaderboard(db, wallet, price, now) == 0:
            db.add(
                LeaderboardEntry(
                    wallet_address=wallet,
                    total_spent=price,
                    services_used=1,
                    last_payment_at=now,
                )
            )
            try:
                db.commit()
                return
            except IntegrityError:
                db.rollback()
                self._increment_leaderboard(db, wallet, price, now)
        self._commit_statement(db)

    def history(self, db: Session, wallet: str) -> Sequence[AccessGrant]:
        """Return every grant recorded for ``wallet``, newest first."""
        return db.scalars(
            select(AccessGrant)
            .where(AccessGrant.wallet_address == normalize_wallet(wallet))
            .order_by(AccessGrant.created_at.desc(), AccessGrant.id.desc())
        ).all()

    def leaderboard(self, db: Session, limit: int | None = None) -> Sequence[LeaderboardEntry]:
        """Return the top wallets by total spend."""
        limit = limit if limit is not None else settings.leaderboard_limit
        return db.scalars(
            select(LeaderboardEntry)
            .order_by(
                LeaderboardEntry.total_spent.desc(),
                LeaderboardEntry.services_used.desc(),
                LeaderboardEntry.wallet_address,
            )
            .limit(limit)
        ).all()
