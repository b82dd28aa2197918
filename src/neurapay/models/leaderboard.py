# src/neurapay/models/leaderboard.py
"""Aggregate spend and usage per wallet."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from neurapay.db.session import Base
from neurapay.db.time import utcnow

# Eight decimal places keep sub-cent prices exact on every backend.
SPEND_SCALE = 8


class LeaderboardEntry(Base):
    """Per-wallet totals; both counters only ever increase."""

    __tablename__ = "leaderboard_entry"

    wallet_address: Mapped[str] = mapped_column(String(64), primary_key=True)
    total_spent: Mapped[Decimal] = mapped_column(
        Numeric(30, SPEND_SCALE), nullable=False, default=Decimal("0")
    )
    services_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_payment_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
