from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

logger = structlog.get_logger()

FlavorMap = dict[str, dict[str, Any]]


class FlavorCache:
    """
    Read-through cache of one account's flavor catalog.

    Expiry is checked lazily on read against the injected clock; a hit never
    extends the window, so the catalog is refetched at most once per TTL.
    """

    def __init__(
        self,
        account_id: str,
        fetch: Callable[[], Awaitable[list[dict[str, Any]]]],
        *,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time,
    ):
        self._account_id = account_id
        self._fetch = fetch
        self._ttl = ttl_seconds
        self._clock = clock
        self._flavors: FlavorMap | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    def _fresh(self) -> FlavorMap | None:
        if self._flavors is not None and self._clock() < self._expires_at:
            return self._flavors
        return None

    async def get_flavor_map(self) -> FlavorMap:
        flavors = self._fresh()
        if flavors is None:
            async with self._lock:
                flavors = self._fresh()
                if flavors is None:
                    flavors = await self._refresh()
        return {flavor_id: dict(detail) for flavor_id, detail in flavors.items()}

    async def get_flavor_list(self) -> list[dict[str, Any]]:
        flavors = await self.get_flavor_map()
        return [{**f, "account_id": self._account_id} for f in flavors.values()]

    def invalidate(self) -> None:
        self._flavors = None
        self._expires_at = 0.0

    async def _refresh(self) -> FlavorMap:
        entries = await self._fetch()
        flavors = {
            str(f["id"]): f for f in entries if isinstance(f, dict) and f.get("id")
        }
        self._flavors = flavors
        self._expires_at = self._clock() + self._ttl
        logger.debug(
            "flavor_cache_refreshed",
            account_id=self._account_id,
            flavors=len(flavors),
        )
        return flavors
