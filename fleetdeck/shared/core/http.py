"""
Async HTTP Client Shared Infrastructure

One httpx.AsyncClient is shared by every account client so that connection
pools are reused across the fan-out instead of opened per account.
"""

from typing import Optional

import httpx
import structlog

from fleetdeck.shared.core.config import get_settings

logger = structlog.get_logger()

_client: Optional[httpx.AsyncClient] = None


def _build_client() -> httpx.AsyncClient:
    settings = get_settings()
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            settings.HTTP_TIMEOUT_SECONDS, connect=settings.HTTP_CONNECT_TIMEOUT_SECONDS
        ),
        limits=httpx.Limits(
            max_connections=100,
            max_keepalive_connections=20,
            keepalive_expiry=30.0,
        ),
        headers={"User-Agent": settings.USER_AGENT or f"FleetDeck/{settings.VERSION}"},
    )


def get_http_client() -> httpx.AsyncClient:
    """
    Returns the global shared httpx.AsyncClient, creating it on first use.
    """
    global _client
    if _client is None or _client.is_closed:
        logger.warning("http_client_lazy_initialized")
        _client = _build_client()
    return _client


async def init_http_client() -> None:
    global _client
    if _client is not None and not _client.is_closed:
        logger.warning("http_client_already_initialized")
        return

    _client = _build_client()
    logger.info("http_client_initialized", timeout=_client.timeout.read)


async def close_http_client() -> None:
    """
    Gracefully shuts down the global client, flushing its connection pool.
    """
    global _client
    if _client is None:
        return
    await _client.aclose()
    _client = None
    logger.info("http_client_closed")
