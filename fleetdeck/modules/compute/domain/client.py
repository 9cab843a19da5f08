"""
Per-account compute client.

Composes the token manager, the authenticated gateway and the flavor cache
for one configured account and exposes every server-level operation the
dashboard performs: enriched listings, power actions, consoles, resize,
security-group edits and telemetry graphs.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from typing import Any

import httpx
import structlog

from fleetdeck.modules.compute.domain.flavor_cache import FlavorCache, FlavorMap
from fleetdeck.modules.compute.domain.models import (
    ACTION_BODIES,
    ENRICHABLE_FLAVOR_FIELDS,
    VOLUMES_ATTACHED_KEY,
    GraphKind,
    GraphQuery,
    GraphSeries,
    Port,
    ServerAction,
)
from fleetdeck.shared.adapters.base import IdentityProtocol
from fleetdeck.shared.adapters.gateway import ApiGateway
from fleetdeck.shared.adapters.openstack import get_identity_protocol
from fleetdeck.shared.adapters.token_manager import TokenManager
from fleetdeck.shared.core.config import get_settings
from fleetdeck.shared.core.credentials import AccountDescriptor
from fleetdeck.shared.core.exceptions import ApiError, ResourceUnavailable

logger = structlog.get_logger()


def _entries(payload: Any, key: str, account_id: str) -> list[dict[str, Any]]:
    items = payload.get(key) if isinstance(payload, dict) else None
    if not isinstance(items, list):
        raise ApiError(
            f"Listing response is missing a '{key}' list", account_id=account_id
        )
    return [item for item in items if isinstance(item, dict)]


def enrich_server(
    server: dict[str, Any],
    flavors: FlavorMap,
    volumes: dict[str, dict[str, Any]],
    account_id: str,
) -> dict[str, Any]:
    """
    Join one raw server with its flavor detail and attached volumes.

    Unknown flavors keep the raw flavor sub-object; unknown volume ids are
    dropped. Neither fails the listing.
    """
    enriched = dict(server)
    flavor = enriched.get("flavor")
    if isinstance(flavor, dict):
        detail = flavors.get(str(flavor.get("id")))
        if detail is not None:
            enriched["flavor"] = {
                **flavor,
                **{k: detail[k] for k in ENRICHABLE_FLAVOR_FIELDS if k in detail},
            }

    attached = enriched.get(VOLUMES_ATTACHED_KEY) or []
    enriched["volumes"] = [
        volumes[v["id"]]
        for v in attached
        if isinstance(v, dict) and v.get("id") in volumes
    ]
    enriched["account_id"] = account_id
    return enriched


class AccountClient:
    def __init__(
        self,
        account: AccountDescriptor,
        http_client: httpx.AsyncClient,
        *,
        protocol: IdentityProtocol | None = None,
        flavor_ttl_seconds: float | None = None,
        token_ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        settings = get_settings()
        self.account = account
        self.protocol = protocol or get_identity_protocol(account.version)
        self.tokens = TokenManager(
            account,
            self.protocol,
            http_client,
            token_ttl_seconds=token_ttl_seconds,
            clock=clock,
        )
        self.gateway = ApiGateway(self.tokens, http_client)
        self.flavors = FlavorCache(
            account.account_id,
            self._fetch_flavors,
            ttl_seconds=(
                flavor_ttl_seconds
                if flavor_ttl_seconds is not None
                else settings.FLAVOR_CACHE_TTL_SECONDS
            ),
            clock=clock,
        )

    @property
    def account_id(self) -> str:
        return self.account.account_id

    @property
    def _compute(self) -> str:
        return self.account.endpoints.compute

    @property
    def _networking(self) -> str:
        return self.account.endpoints.networking

    def _server_url(self, server_id: str, suffix: str = "") -> str:
        return f"{self._compute}/servers/{server_id}{suffix}"

    # --- Listings ---

    async def _fetch_flavors(self) -> list[dict[str, Any]]:
        payload = await self.gateway.get(f"{self._compute}/flavors/detail")
        return _entries(payload, "flavors", self.account_id)

    async def get_flavor_map(self) -> FlavorMap:
        return await self.flavors.get_flavor_map()

    async def get_flavor_list(self) -> list[dict[str, Any]]:
        return await self.flavors.get_flavor_list()

    async def get_volume_map(self) -> dict[str, dict[str, Any]]:
        payload = await self.gateway.get(self.protocol.volumes_url(self.account))
        volumes = _entries(payload, "volumes", self.account_id)
        return {str(v["id"]): v for v in volumes if v.get("id")}

    async def get_servers(self) -> list[dict[str, Any]]:
        server_payload, flavors, volumes = await asyncio.gather(
            self.gateway.get(f"{self._compute}/servers/detail"),
            self.get_flavor_map(),
            self.get_volume_map(),
        )
        return [
            enrich_server(server, flavors, volumes, self.account_id)
            for server in _entries(server_payload, "servers", self.account_id)
        ]

    async def get_security_groups(self) -> list[dict[str, Any]]:
        payload = await self.gateway.get(f"{self._networking}/security-groups")
        return [
            {**sg, "account_id": self.account_id}
            for sg in _entries(payload, "security_groups", self.account_id)
        ]

    async def get_server_ports(self, server_id: str) -> list[Port]:
        payload = await self.gateway.get(
            f"{self._networking}/ports", params={"device_id": server_id}
        )
        ports = _entries(payload, "ports", self.account_id)
        return [Port.from_payload(p) for p in ports if p.get("id")]

    # --- Actions ---

    async def _server_action(self, server_id: str, body: dict[str, Any]) -> None:
        await self.gateway.post(self._server_url(server_id, "/action"), json=body)

    async def execute_server_action(self, server_id: str, action: ServerAction) -> None:
        await self._server_action(server_id, ACTION_BODIES[action])
        logger.info(
            "server_action_requested",
            account_id=self.account_id,
            server_id=server_id,
            action=action.value,
        )

    async def get_console_url(self, server_id: str) -> str:
        url, body = self.protocol.build_console_request(self.account, server_id)
        payload = await self.gateway.post(url, json=body)
        console_url = self.protocol.extract_console_url(payload)
        if not console_url:
            raise ApiError(
                "Console response did not include a URL",
                account_id=self.account_id,
            )
        return console_url

    # Resize lifecycle: ACTIVE -> RESIZE -> VERIFY_RESIZE -> ACTIVE.
    # State checks are left to the compute API.

    async def resize_server(self, server_id: str, flavor_id: str) -> None:
        await self._server_action(server_id, {"resize": {"flavorRef": flavor_id}})
        logger.info(
            "server_resize_requested",
            account_id=self.account_id,
            server_id=server_id,
            flavor_id=flavor_id,
        )

    async def confirm_resize(self, server_id: str) -> None:
        await self._server_action(server_id, {"confirmResize": None})

    async def revert_resize(self, server_id: str) -> None:
        await self._server_action(server_id, {"revertResize": None})

    # --- Security groups ---

    async def _put_port_security_groups(self, port: Port, groups: list[str]) -> None:
        await self.gateway.put(
            f"{self._networking}/ports/{port.id}",
            json={"port": {"security_groups": groups}},
        )

    async def add_security_group(self, server_id: str, sg_id: str) -> int:
        """Attach `sg_id` to every port of the server. Returns ports changed."""
        changed = 0
        for port in await self.get_server_ports(server_id):
            if sg_id in port.security_groups:
                continue
            await self._put_port_security_groups(port, [*port.security_groups, sg_id])
            changed += 1
        logger.info(
            "security_group_added",
            account_id=self.account_id,
            server_id=server_id,
            security_group_id=sg_id,
            ports_changed=changed,
        )
        return changed

    async def remove_security_group(self, server_id: str, sg_id: str) -> int:
        """Detach `sg_id` from every port of the server. Returns ports changed."""
        changed = 0
        for port in await self.get_server_ports(server_id):
            if sg_id not in port.security_groups:
                continue
            remaining = [g for g in port.security_groups if g != sg_id]
            await self._put_port_security_groups(port, remaining)
            changed += 1
        logger.info(
            "security_group_removed",
            account_id=self.account_id,
            server_id=server_id,
            security_group_id=sg_id,
            ports_changed=changed,
        )
        return changed

    # --- Telemetry ---

    async def _get_graph(
        self, server_id: str, kind: GraphKind, params: dict[str, str]
    ) -> GraphSeries:
        payload = await self.gateway.get(
            self._server_url(server_id, f"/rrd/{kind.value}"), params=params
        )
        series = payload.get(kind.value) if isinstance(payload, dict) else None
        if not isinstance(series, dict):
            raise ApiError(
                f"Telemetry response is missing '{kind.value}' data",
                account_id=self.account_id,
            )
        return GraphSeries.model_validate(series)

    async def get_cpu_graph(
        self, server_id: str, query: GraphQuery | None = None
    ) -> GraphSeries:
        return await self._get_graph(
            server_id, GraphKind.CPU, (query or GraphQuery()).to_params()
        )

    async def get_disk_graph(
        self,
        server_id: str,
        query: GraphQuery | None = None,
        device: str | None = None,
    ) -> GraphSeries:
        params: dict[str, str] = {}
        if device:
            params["device_name"] = device
        params.update((query or GraphQuery()).to_params())
        return await self._get_graph(server_id, GraphKind.DISK, params)

    async def get_network_graph(
        self,
        server_id: str,
        query: GraphQuery | None = None,
        port_id: str | None = None,
    ) -> GraphSeries:
        if port_id is None:
            ports = await self.get_server_ports(server_id)
            if not ports:
                raise ResourceUnavailable(
                    f"Server {server_id} has no network port",
                    account_id=self.account_id,
                    resource="port",
                )
            port_id = ports[0].id
        params = {"port_id": port_id, **(query or GraphQuery()).to_params()}
        return await self._get_graph(server_id, GraphKind.NETWORK, params)
