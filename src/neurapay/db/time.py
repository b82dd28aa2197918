# src/neurapay/db/time.py
"""Time utilities for database models."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; those are stored in UTC, so they are tagged rather than shifted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def from_timestamp(seconds: int | float) -> datetime:
    """Convert a unix timestamp (as returned by the contract) to aware UTC.

    Raises:
        ValueError: If ``seconds`` is outside the range ``datetime`` can hold,
            e.g. a ``uint256`` sentinel such as ``2**256 - 1``.
    """
    try:
        return datetime.fromtimestamp(seconds, UTC)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError(f"timestamp out of range: {seconds}") from exc
