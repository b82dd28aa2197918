"""Local countdown to the end of an access window.

The countdown never talks to the network: it only compares a known expiry
with the clock. The pure helpers are what the periodic task and the API use.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from neurapay.core.settings import settings
from neurapay.db.time import as_utc, utcnow

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 0.01


def remaining(expires_at: datetime, now: datetime) -> timedelta:
    """Time left until ``expires_at``, never negative."""
    delta = as_utc(expires_at) - as_utc(now)
    return delta if delta > timedelta(0) else timedelta(0)


def is_expired(expires_at: datetime, now: datetime) -> bool:
    """True from the instant ``now`` reaches ``expires_at``."""
    return as_utc(now) >= as_utc(expires_at)


def format_remaining(delta: timedelta) -> str:
    """Render a duration as ``HH:MM:SS``; hours are not wrapped at 24."""
    total = max(int(delta.total_seconds()), 0)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


@dataclass(frozen=True)
class CountdownState:
    """Snapshot produced by each tick."""

    expires_at: datetime
    remaining: timedelta
    has_access: bool

    @property
    def display(self) -> str:
        return format_remaining(self.remaining)


class AccessCountdown:
    """Recomputes the remaining time on an interval until the window closes.

    ``start`` is idempotent, ``stop`` is safe to call when not running, and
    ``reset`` stops the current timer before following a new expiry.
    """

    def __init__(
        self,
        expires_at: datetime,
        *,
        interval: float | None = None,
        clock: Callable[[], datetime] = utcnow,
        on_tick: Callable[[CountdownState], None] | None = None,
    ) -> None:
        self._expires_at = as_utc(expires_at)
        seconds = interval if interval is not None else settings.countdown_interval_seconds
        self.interval = max(MIN_INTERVAL_SECONDS, float(seconds))
        self._clock = clock
        self._on_tick = on_tick
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self.state = self._compute(self._clock())

    @property
    def expires_at(self) -> datetime:
        return self._expires_at

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _compute(self, now: datetime) -> CountdownState:
        return CountdownState(
            expires_at=self._expires_at,
            remaining=remaining(self._expires_at, now),
            has_access=not is_expired(self._expires_at, now),
        )

    def tick(self, now: datetime | None = None) -> CountdownState:
        """Recompute the state for ``now`` (default: the clock) and notify."""
        self.state = self._compute(now if now is not None else self._clock())
        if self._on_tick is not None:
            self._on_tick(self.state)
        return self.state

    async def start(self) -> None:
        """Start the background countdown loop."""
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background countdown loop."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None

    async def reset(self, expires_at: datetime) -> None:
        """Follow a new expiry, restarting the loop if it was running."""
        was_running = self.running
        await self.stop()
        self._expires_at = as_utc(expires_at)
        self.state = self._compute(self._clock())
        if was_running:
            await self.start()

    async def wait(self) -> CountdownState:
        """Wait for the loop to finish and return the last state."""
        if self._task is not None:
            await self._task
        return self.state

    async def _run(self) -> None:
        while not self._stopping.is_set():
            state = self.tick()
            if not state.has_access:
                logger.info("Access window ending %s has closed", self._expires_at.isoformat())
                return
            delay = min(self.interval, max(state.remaining.total_seconds(), MIN_INTERVAL_SECONDS))
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=delay)
            except TimeoutError:
                continue
