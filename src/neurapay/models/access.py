# src/neurapay/models/access.py
"""Models recording time-limited access grants."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from neurapay.db.session import Base
from neurapay.db.time import as_utc, utcnow


class AccessGrant(Base):
    """One wallet's temporary right to use one service.

    At most one row exists per ``(wallet_address, service_id)``; a later payment
    overwrites ``expires_at`` instead of appending history.
    """

    __tablename__ = "access_grant"
    __table_args__ = (
        UniqueConstraint("wallet_address", "service_id", name="uq_access_grant_wallet_service"),
        CheckConstraint("service_id >= 0", name="ck_access_grant_service_id"),
        Index("ix_access_grant_wallet_address", "wallet_address"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Always stored lowercase.
    wallet_address: Mapped[str] = mapped_column(String(64), nullable=False)
    service_id: Mapped[int] = mapped_column(Integer, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def expires_at_utc(self) -> datetime:
        """Return the expiry as an aware UTC datetime regardless of backend."""
        return as_utc(self.expires_at)

    def is_active(self, now: datetime) -> bool:
        """Return True while the grant's window is still open."""
        return self.expires_at_utc > now
