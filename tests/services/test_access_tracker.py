"""Tests for grant and leaderboard bookkeeping."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from neurapay.core.errors import TrackingError
from neurapay.models import AccessGrant, LeaderboardEntry
from neurapay.services.access_checker import AccessCheckerService
from neurapay.services.access_tracker import AccessTrackerService
from tests.conftest import WALLET, FixedClock, at


def _tracker(clock: FixedClock) -> AccessTrackerService:
    return AccessTrackerService(duration=timedelta(seconds=3600), clock=clock)


def test_track_grants_one_hour_window(db_session: Session, clock: FixedClock) -> None:
    tracker = _tracker(clock)

    result = tracker.track(db_session, WALLET, 1, Decimal("0.01"))

    assert result.expires_at == at(4600)
    assert result.leaderboard_updated is True
    checker = AccessCheckerService(clock=clock)
    clock.now = at(4599)
    assert checker.check(db_session, WALLET, 1).has_access is True
    clock.now = at(4601)
    status = checker.check(db_session, WALLET, 1)
    assert status.has_access is False
    assert status.expired is True


def test_repeat_payment_resets_window_and_accumulates(db_session: Session, clock: FixedClock) -> None:
    tracker = _tracker(clock)

    tracker.track(db_session, WALLET, 1, Decimal("0.01"))
    clock.now = at(2000)
    result = tracker.track(db_session, WALLET, 1, Decimal("0.02"))

    assert result.expires_at == at(5600)
    db_session.expire_all()
    grants = db_session.scalars(select(AccessGrant)).all()
    assert len(grants) == 1
    assert grants[0].expires_at_utc == at(5600)

    entry = db_session.get(LeaderboardEntry, WALLET)
    assert entry is not None
    assert entry.services_used == 2
    assert Decimal(entry.total_spent) == Decimal("0.03")


def test_wallet_is_normalized_to_lowercase(db_session: Session, clock: FixedClock) -> None:
    tracker = _tracker(clock)

    tracker.track(db_session, "  0xABC  ", 0, Decimal("1"))
    tracker.track(db_session, "0xabc", 0, Decimal("1"))

    grants = db_session.scalars(select(AccessGrant)).all()
    assert [grant.wallet_address for grant in grants] == ["0xabc"]
    entry = db_session.get(LeaderboardEntry, "0xabc")
    assert entry is not None and entry.services_used == 2


def test_separate_services_get_separate_grants(db_session: Session, clock: FixedClock) -> None:
    tracker = _tracker(clock)

    tracker.track(db_session, WALLET, 0, Decimal("0.01"))
    tracker.track(db_session, WALLET, 1, Decimal("0.01"))

    assert len(db_session.scalars(select(AccessGrant)).all()) == 2


def test_interleaved_sessions_never_lose_an_increment(
    engine: Engine, db_session: Session, clock: FixedClock
) -> None:
    tracker = _tracker(clock)
    tracker.track(db_session, WALLET, 1, Decimal("0.01"))
    assert db_session.get(LeaderboardEntry, WALLET) is not None

    other = sessionmaker(bind=engine, expire_on_commit=False)()
    try:
        tracker.track(other, WALLET, 2, Decimal("0.02"))
    finally:
        other.close()
    tracker.track(db_session, WALLET, 1, Decimal("0.04"))

    db_session.expire_all()
    entry = db_session.get(LeaderboardEntry, WALLET)
    assert entry is not None
    assert entry.services_used == 3
    assert Decimal(entry.total_spent) == Decimal("0.07")


def test_grant_inserted_concurrently_is_overwritten(
    engine: Engine, db_session: Session, clock: FixedClock, mocker
) -> None:
    tracker = _tracker(clock)
    other = sessionmaker(bind=engine, expire_on_commit=False)()
    try:
        other.add(AccessGrant(wallet_address=WALLET, service_id=1, expires_at=at(2000)))
        other.commit()
    finally:
        other.close()

    real_update = tracker._update_grant
    calls = []

    def update_missing_row_once(*args):
        # First update runs before the other writer's insert is visible.
        calls.append(args)
        return 0 if len(calls) == 1 else real_update(*args)

    mocker.patch.object(tracker, "_update_grant", side_effect=update_missing_row_once)

    result = tracker.track(db_session, WALLET, 1, Decimal("0.01"))

    assert result.expires_at == at(4600)
    assert len(calls) == 2
    db_session.expire_all()
    grants = db_session.scalars(select(AccessGrant)).all()
    assert len(grants) == 1
    assert grants[0].expires_at_utc == at(4600)


def test_leaderboard_failure_does_not_fail_tracking(
    db_session: Session, clock: FixedClock, mocker
) -> None:
    tracker = _tracker(clock)
    mocker.patch.object(
        tracker, "_upsert_leaderboard", side_effect=OperationalError("UPDATE", {}, Exception("locked"))
    )

    result = tracker.track(db_session, WALLET, 1, Decimal("0.01"))

    assert result.leaderboard_updated is False
    assert result.expires_at == at(4600)
    assert db_session.scalars(select(AccessGrant)).first() is not None


def test_grant_failure_raises_after_leaderboard_attempt(
    db_session: Session, clock: FixedClock, mocker
) -> None:
    tracker = _tracker(clock)
    mocker.patch.object(
        tracker, "_upsert_grant", side_effect=OperationalError("INSERT", {}, Exception("down"))
    )

    with pytest.raises(TrackingError):
        tracker.track(db_session, WALLET, 1, Decimal("0.01"))

    entry = db_session.get(LeaderboardEntry, WALLET)
    assert entry is not None
    assert entry.services_used == 1


def test_history_is_newest_first(db_session: Session, clock: FixedClock) -> None:
    db_session.add_all(
        [
            AccessGrant(wallet_address=WALLET, service_id=0, expires_at=at(4600), created_at=at(1000)),
            AccessGrant(wallet_address=WALLET, service_id=1, expires_at=at(5600), created_at=at(2000)),
            AccessGrant(wallet_address="0xother", service_id=1, expires_at=at(5600), created_at=at(3000)),
        ]
    )
    db_session.commit()

    history = _tracker(clock).history(db_session, WALLET.upper())

    assert [grant.service_id for grant in history] == [1, 0]


def test_leaderboard_orders_by_total_spent(db_session: Session, clock: FixedClock) -> None:
    tracker = _tracker(clock)
    tracker.track(db_session, "0xaaa", 0, Decimal("0.5"))
    tracker.track(db_session, "0xbbb", 0, Decimal("2"))
    tracker.track(db_session, "0xccc", 0, Decimal("1"))

    top = tracker.leaderboard(db_session, limit=2)

    assert [entry.wallet_address for entry in top] == ["0xbbb", "0xccc"]


def test_rejects_empty_wallet(db_session: Session, clock: FixedClock) -> None:
    with pytest.raises(ValueError):
        _tracker(clock).track(db_session, "   ", 0, Decimal("1"))


def test_rejects_non_positive_duration() -> None:
    with pytest.raises(ValueError):
        AccessTrackerService(duration=timedelta(0))
