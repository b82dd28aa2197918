"""HTTP client for the access tracking backend."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx

from neurapay.core.errors import TrackingError
from neurapay.core.settings import settings
from neurapay.db.time import as_utc
from neurapay.services.access_checker import SOURCE_TRACKER, AccessStatus

logger = logging.getLogger(__name__)

HTTP_OK = 200
API_PREFIX = "/api/v1"


@dataclass(frozen=True)
class TrackerConfig:
    """Immutable configuration for the tracker client."""

    base_url: str
    timeout_seconds: float


def load_tracker_config() -> TrackerConfig:
    return TrackerConfig(
        base_url=settings.tracker_base_url,
        timeout_seconds=float(settings.tracker_http_timeout_seconds),
    )


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


class AccessTrackerClient:
    """Async wrapper around the ``/access`` routes of the backend.

    Every failure (network, non-200 status, malformed body) surfaces as
    ``TrackingError`` so callers have a single exception to recover from.
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_tracker_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url.rstrip("/"),
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_data: Any | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        client = await self._ensure_client()
        try:
            response = await client.request(method, f"{API_PREFIX}{path}", json=json_data, params=params)
        except httpx.HTTPError as exc:
            raise TrackingError(f"tracker request failed: {exc}") from exc

        if response.status_code != HTTP_OK:
            raise TrackingError(f"tracker responded with {response.status_code} for {method} {path}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise TrackingError("tracker returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise TrackingError("tracker returned an unexpected body")
        return payload

    async def track(self, wallet: str, service_id: int, price: Decimal | str) -> datetime | None:
        """Report a confirmed payment; return the expiry the backend recorded."""
        payload = await self._request(
            "POST",
            "/access/track",
            json_data={
                "walletAddress": wallet,
                "serviceId": service_id,
                "priceInAVAX": str(price),
            },
        )
        if not payload.get("success", False):
            raise TrackingError("tracker did not confirm the grant")
        try:
            return _parse_datetime(payload.get("expiresAt"))
        except ValueError as exc:
            raise TrackingError(f"tracker returned a malformed expiry: {exc}") from exc

    async def check(self, wallet: str, service_id: int) -> AccessStatus:
        payload = await self._request(
            "GET",
            "/access/check",
            params={"walletAddress": wallet, "serviceId": service_id},
        )
        try:
            expires_at = _parse_datetime(payload.get("expiresAt"))
        except ValueError as exc:
            raise TrackingError(f"tracker returned a malformed expiry: {exc}") from exc
        return AccessStatus(
            has_access=bool(payload.get("hasAccess", False)),
            expires_at=expires_at,
            expired=bool(payload.get("expired", False)),
            source=SOURCE_TRACKER,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
