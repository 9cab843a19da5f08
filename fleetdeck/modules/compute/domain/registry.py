from __future__ import annotations

from collections.abc import Callable, Sequence
from threading import Lock

import httpx
import structlog

from fleetdeck.modules.compute.domain.client import AccountClient
from fleetdeck.shared.core.credentials import AccountDescriptor
from fleetdeck.shared.core.exceptions import AccountNotFoundError, ConfigurationError

logger = structlog.get_logger()

CatalogLoader = Callable[[], Sequence[AccountDescriptor]]
ClientFactory = Callable[[AccountDescriptor], AccountClient]


class ClientRegistry:
    """
    Process-wide lookup from account id to AccountClient.

    The catalog is loaded and the clients are built on first access, then
    the mapping is read-only for the life of the process.
    """

    def __init__(
        self,
        catalog_loader: CatalogLoader,
        http_client: httpx.AsyncClient | None = None,
        *,
        client_factory: ClientFactory | None = None,
    ):
        if client_factory is None and http_client is None:
            raise ConfigurationError(
                "ClientRegistry needs an http_client or a client_factory"
            )
        self._catalog_loader = catalog_loader
        self._http_client = http_client
        self._client_factory = client_factory or self._default_client
        self._clients: dict[str, AccountClient] | None = None
        self._build_lock = Lock()

    def _default_client(self, account: AccountDescriptor) -> AccountClient:
        if self._http_client is None:
            raise ConfigurationError("ClientRegistry has no http_client to build clients")
        return AccountClient(account, self._http_client)

    def _build(self) -> dict[str, AccountClient]:
        catalog = list(self._catalog_loader())
        if not catalog:
            raise ConfigurationError(
                "No cloud accounts configured; refusing to start with an empty registry"
            )

        clients: dict[str, AccountClient] = {}
        for account in catalog:
            if account.account_id in clients:
                raise ConfigurationError(
                    f"Duplicate account id: {account.account_id}",
                    details={"account_id": account.account_id},
                )
            clients[account.account_id] = self._client_factory(account)

        logger.info("client_registry_built", accounts=list(clients))
        return clients

    def _ensure_built(self) -> dict[str, AccountClient]:
        if self._clients is None:
            with self._build_lock:
                if self._clients is None:
                    self._clients = self._build()
        return self._clients

    def get(self, account_id: str) -> AccountClient:
        client = self._ensure_built().get(account_id)
        if client is None:
            raise AccountNotFoundError(account_id)
        return client

    def all(self) -> list[AccountClient]:
        return list(self._ensure_built().values())

    @property
    def account_ids(self) -> list[str]:
        return list(self._ensure_built())

    def __len__(self) -> int:
        return len(self._ensure_built())
