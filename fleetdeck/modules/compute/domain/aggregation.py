from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Union

import structlog

from fleetdeck.modules.compute.domain.client import AccountClient
from fleetdeck.modules.compute.domain.models import AccountFailure, AggregateResult
from fleetdeck.modules.compute.domain.registry import ClientRegistry
from fleetdeck.shared.core.config import get_settings

logger = structlog.get_logger()

AccountCall = Callable[[AccountClient], Awaitable[list[dict[str, Any]]]]


class AggregationService:
    """
    Cross-account read views.

    Every account is queried in parallel and bounded by its own timeout; a
    failing or hung account is reported in `failures` and never fails the
    aggregate.
    """

    def __init__(
        self, registry: ClientRegistry, *, account_timeout_seconds: float | None = None
    ):
        self._registry = registry
        self._timeout = (
            account_timeout_seconds
            if account_timeout_seconds is not None
            else get_settings().ACCOUNT_FANOUT_TIMEOUT_SECONDS
        )

    async def get_all_servers(self) -> AggregateResult[dict[str, Any]]:
        return await self._fan_out("servers", lambda c: c.get_servers())

    async def get_all_flavors(self) -> AggregateResult[dict[str, Any]]:
        return await self._fan_out("flavors", lambda c: c.get_flavor_list())

    async def get_all_security_groups(self) -> AggregateResult[dict[str, Any]]:
        return await self._fan_out(
            "security_groups", lambda c: c.get_security_groups()
        )

    async def _settle(
        self, view: str, client: AccountClient, call: AccountCall
    ) -> Union[list[dict[str, Any]], AccountFailure]:
        try:
            if self._timeout > 0:
                return await asyncio.wait_for(call(client), timeout=self._timeout)
            return await call(client)
        except asyncio.TimeoutError as exc:
            logger.error(
                "aggregate_account_timeout",
                view=view,
                account_id=client.account_id,
                timeout_seconds=self._timeout,
            )
            return AccountFailure(client.account_id, exc)
        except Exception as exc:
            logger.error(
                "aggregate_account_failed",
                view=view,
                account_id=client.account_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return AccountFailure(client.account_id, exc)

    async def _fan_out(
        self, view: str, call: AccountCall
    ) -> AggregateResult[dict[str, Any]]:
        clients = self._registry.all()
        outcomes = await asyncio.gather(
            *(self._settle(view, client, call) for client in clients)
        )

        result: AggregateResult[dict[str, Any]] = AggregateResult()
        for client, outcome in zip(clients, outcomes):
            if isinstance(outcome, AccountFailure):
                result.failures.append(outcome)
            else:
                result.items.extend(outcome)
                result.succeeded.append(client.account_id)

        if result.is_partial:
            logger.warning(
                "aggregate_partial_result",
                view=view,
                failed_accounts=[f.account_id for f in result.failures],
                items=len(result.items),
            )
        return result
