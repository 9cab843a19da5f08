from __future__ import annotations

from typing import Any

import httpx
import structlog

from fleetdeck.shared.adapters.token_manager import TokenManager
from fleetdeck.shared.core.exceptions import ApiError

logger = structlog.get_logger()

_EMPTY_BODY_STATUS_CODES = {202, 204}


class ApiGateway:
    """
    Executes authenticated calls for one account.

    A 401 invalidates the cached token and replays the identical call once
    with a fresh token. Anything else that is not 2xx is raised as ApiError
    tagged with the account id; there is no other retry.
    """

    def __init__(self, tokens: TokenManager, http_client: httpx.AsyncClient):
        self._tokens = tokens
        self._http = http_client

    @property
    def account_id(self) -> str:
        return self._tokens.account_id

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        token = await self._tokens.get_token()
        response = await self._send(method, url, token, json=json, params=params)

        if response.status_code == 401:
            logger.info(
                "api_token_rejected_retrying",
                account_id=self.account_id,
                method=method,
                url=url,
            )
            self._tokens.invalidate()
            token = await self._tokens.get_token()
            response = await self._send(method, url, token, json=json, params=params)

        if not response.is_success:
            logger.warning(
                "api_request_failed",
                account_id=self.account_id,
                method=method,
                url=url,
                status_code=response.status_code,
            )
            raise ApiError(
                f"{method} {url} failed with status {response.status_code}",
                account_id=self.account_id,
                status_code=response.status_code,
                body=response.text,
            )
        return self._decode(method, url, response)

    async def get(self, url: str, *, params: dict[str, str] | None = None) -> Any:
        return await self.request("GET", url, params=params)

    async def post(self, url: str, *, json: Any = None) -> Any:
        return await self.request("POST", url, json=json)

    async def put(self, url: str, *, json: Any = None) -> Any:
        return await self.request("PUT", url, json=json)

    async def _send(
        self,
        method: str,
        url: str,
        token: str,
        *,
        json: Any,
        params: dict[str, str] | None,
    ) -> httpx.Response:
        headers = {"Accept": "application/json", "X-Auth-Token": token}
        try:
            return await self._http.request(
                method, url, json=json, params=params, headers=headers
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "api_request_transport_failed",
                account_id=self.account_id,
                method=method,
                url=url,
                error=str(exc),
            )
            raise ApiError(
                f"{method} {url} failed: {exc}", account_id=self.account_id
            ) from exc

    def _decode(self, method: str, url: str, response: httpx.Response) -> Any:
        if response.status_code in _EMPTY_BODY_STATUS_CODES or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                f"{method} {url} returned invalid JSON payload",
                account_id=self.account_id,
                status_code=response.status_code,
                body=response.text,
            ) from exc
