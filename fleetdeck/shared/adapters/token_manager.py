from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx
import structlog

from fleetdeck.shared.adapters.base import IdentityProtocol
from fleetdeck.shared.core.config import get_settings
from fleetdeck.shared.core.credentials import AccountDescriptor
from fleetdeck.shared.core.exceptions import AuthenticationError

logger = structlog.get_logger()


@dataclass(frozen=True)
class CachedToken:
    value: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class TokenManager:
    """
    Owns the single cached bearer token for one account.

    `expires_at` is issue time plus the configured lifetime minus the safety
    margin, so a cached token is always dropped before the identity service
    would reject it.
    """

    def __init__(
        self,
        account: AccountDescriptor,
        protocol: IdentityProtocol,
        http_client: httpx.AsyncClient,
        *,
        token_ttl_seconds: float | None = None,
        domain_id: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        settings = get_settings()
        self._account = account
        self._protocol = protocol
        self._http = http_client
        self._ttl = (
            token_ttl_seconds
            if token_ttl_seconds is not None
            else settings.token_ttl_seconds
        )
        self._domain_id = domain_id or settings.IDENTITY_DOMAIN_ID
        self._clock = clock
        self._cached: CachedToken | None = None
        self._lock = asyncio.Lock()

    @property
    def account_id(self) -> str:
        return self._account.account_id

    @property
    def cached(self) -> CachedToken | None:
        return self._cached

    async def get_token(self) -> str:
        cached = self._cached
        if cached is not None and cached.is_valid(self._clock()):
            return cached.value

        # Concurrent callers wait for one refresh instead of each authenticating.
        async with self._lock:
            cached = self._cached
            if cached is not None and cached.is_valid(self._clock()):
                return cached.value
            return await self._authenticate()

    def invalidate(self) -> None:
        if self._cached is not None:
            logger.info("token_invalidated", account_id=self.account_id)
        self._cached = None

    async def _authenticate(self) -> str:
        url, body = self._protocol.build_auth_request(
            self._account, domain_id=self._domain_id
        )
        try:
            response = await self._http.post(
                url, json=body, headers={"Accept": "application/json"}
            )
        except httpx.HTTPError as exc:
            logger.error(
                "token_request_transport_failed",
                account_id=self.account_id,
                error=str(exc),
            )
            raise AuthenticationError(
                f"Identity request failed: {exc}", account_id=self.account_id
            ) from exc

        if not response.is_success:
            logger.error(
                "token_request_rejected",
                account_id=self.account_id,
                status_code=response.status_code,
            )
            raise AuthenticationError(
                f"Token request failed with status {response.status_code}",
                account_id=self.account_id,
                status_code=response.status_code,
                body=response.text,
            )

        token = self._protocol.extract_token(response)
        if not token:
            raise AuthenticationError(
                "Identity response did not include a token",
                account_id=self.account_id,
                status_code=response.status_code,
                body=response.text,
            )

        self._cached = CachedToken(value=token, expires_at=self._clock() + self._ttl)
        logger.info(
            "token_issued",
            account_id=self.account_id,
            version=self._protocol.version.value,
            expires_at=self._cached.expires_at,
        )
        return token
