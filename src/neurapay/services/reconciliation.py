"""Client-side reconciliation of payment, tracked grant and on-chain state.

After a confirmed payment the chain is the truth, but the tracked grant row
is the quick way to learn the expiry. The orchestrator prefers the tracker,
falls back to the chain, and never turns a bookkeeping failure into a failed
payment.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from neurapay.core.errors import (
    ChainReadError,
    NeuraPayError,
    TrackingError,
    WalletNotConnectedError,
    WrongNetworkError,
)
from neurapay.db.time import from_timestamp, utcnow
from neurapay.services.access_checker import SOURCE_CHAIN, SOURCE_NONE, SOURCE_TRACKER
from neurapay.services.chain import ChainReader, ChainWriter, parse_price
from neurapay.services.countdown import AccessCountdown, CountdownState, is_expired
from neurapay.services.tracker_client import AccessTrackerClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessResolution:
    """What the client should believe about one wallet's access to one service.

    ``granted`` with ``expires_at=None`` means access is confirmed but its end
    is unknown.
    """

    granted: bool
    expires_at: datetime | None = None
    source: str = SOURCE_NONE
    tx_hash: str | None = None


DENIED = AccessResolution(granted=False)


class AccessOrchestrator:
    """Drives pay, track and check for a single client session."""

    def __init__(
        self,
        *,
        chain_reader: ChainReader,
        tracker: AccessTrackerClient,
        chain_writer: ChainWriter | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.chain_reader = chain_reader
        self.tracker = tracker
        self.chain_writer = chain_writer
        self._clock = clock
        self._countdowns: dict[tuple[str, int], AccessCountdown] = {}

    async def request_access(
        self, wallet: str, service_id: int, price: Decimal | str
    ) -> AccessResolution:
        """Pay for ``service_id`` and resolve the resulting expiry.

        Raises:
            WalletNotConnectedError: If no wallet address or writer is available.
            ValueError: If ``price`` is not a positive decimal.
            PaymentError: Any payment failure, unchanged.
        """
        wallet = (wallet or "").strip()
        if not wallet:
            raise WalletNotConnectedError("no wallet address supplied")
        amount = parse_price(price)
        if self.chain_writer is None:
            raise WalletNotConnectedError("no signing wallet configured")

        receipt = await asyncio.to_thread(self.chain_writer.pay, service_id, amount)
        logger.info(
            "Payment %s confirmed in block %s for %s service %s",
            receipt.tx_hash,
            receipt.block_number,
            wallet,
            service_id,
        )

        expires_at: datetime | None = None
        try:
            expires_at = await self.tracker.track(wallet, service_id, amount)
        except TrackingError as exc:
            logger.warning("Payment %s confirmed but tracking failed: %s", receipt.tx_hash, exc)

        if expires_at is not None:
            resolution = AccessResolution(
                granted=True, expires_at=expires_at, source=SOURCE_TRACKER, tx_hash=receipt.tx_hash
            )
        else:
            resolution = AccessResolution(
                granted=True,
                expires_at=await self._chain_expiry(wallet, service_id),
                source=SOURCE_CHAIN,
                tx_hash=receipt.tx_hash,
            )

        await self._observe(wallet, service_id, resolution)
        return resolution

    async def _chain_expiry(self, wallet: str, service_id: int) -> datetime | None:
        try:
            expiry = await asyncio.to_thread(self.chain_reader.get_access_expiry, wallet, service_id)
            return from_timestamp(expiry) if expiry > 0 else None
        except (ChainReadError, WrongNetworkError, ValueError) as exc:
            # Payment or has_access already confirmed access; only its end is unknown.
            logger.warning("Could not read on-chain expiry for %s service %s: %s", wallet, service_id, exc)
            return None

    async def check_access(self, wallet: str, service_id: int) -> AccessResolution:
        """Resolve current access; any failure is reported as no access."""
        wallet = (wallet or "").strip()
        if not wallet:
            return DENIED
        try:
            resolution = await self._check(wallet, service_id)
        except Exception as exc:
            logger.warning("Access check failed for %s service %s: %s", wallet, service_id, exc)
            return DENIED
        await self._observe(wallet, service_id, resolution)
        return resolution

    async def _check(self, wallet: str, service_id: int) -> AccessResolution:
        try:
            status = await self.tracker.check(wallet, service_id)
        except TrackingError as exc:
            logger.warning("Tracker unavailable, checking chain: %s", exc)
        else:
            if status.has_access:
                return AccessResolution(granted=True, expires_at=status.expires_at, source=SOURCE_TRACKER)
            return DENIED

        try:
            has_access = await asyncio.to_thread(self.chain_reader.has_access, wallet, service_id)
        except NeuraPayError as exc:
            logger.warning("Chain access check failed for %s service %s: %s", wallet, service_id, exc)
            return DENIED
        if not has_access:
            return DENIED

        expires_at = await self._chain_expiry(wallet, service_id)
        if expires_at is not None and is_expired(expires_at, self._clock()):
            return DENIED
        return AccessResolution(granted=True, expires_at=expires_at, source=SOURCE_CHAIN)

    def countdown(self, wallet: str, service_id: int) -> AccessCountdown | None:
        return self._countdowns.get((wallet.strip().lower(), service_id))

    async def watch(
        self,
        wallet: str,
        service_id: int,
        expires_at: datetime,
        *,
        on_tick: Callable[[CountdownState], None] | None = None,
        interval: float | None = None,
    ) -> AccessCountdown:
        """Start (or restart) the local countdown for a grant."""
        key = (wallet.strip().lower(), service_id)
        existing = self._countdowns.pop(key, None)
        if existing is not None:
            await existing.stop()
        countdown = AccessCountdown(expires_at, interval=interval, clock=self._clock, on_tick=on_tick)
        self._countdowns[key] = countdown
        await countdown.start()
        return countdown

    async def _observe(self, wallet: str, service_id: int, resolution: AccessResolution) -> None:
        countdown = self.countdown(wallet, service_id)
        if countdown is None:
            return
        if not resolution.granted or resolution.expires_at is None:
            await countdown.stop()
            self._countdowns.pop((wallet.strip().lower(), service_id), None)
        elif resolution.expires_at != countdown.expires_at:
            await countdown.reset(resolution.expires_at)

    async def close(self) -> None:
        """Stop every countdown and release the tracker connection."""
        for countdown in list(self._countdowns.values()):
            await countdown.stop()
        self._countdowns.clear()
        await self.tracker.close()
