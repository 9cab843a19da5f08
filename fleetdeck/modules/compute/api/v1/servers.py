from typing import Annotated, Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from fleetdeck.modules.compute.domain.aggregation import AggregationService
from fleetdeck.modules.compute.domain.models import GraphKind, GraphQuery, ServerAction
from fleetdeck.modules.compute.domain.registry import ClientRegistry
from fleetdeck.shared.core.dependencies import get_aggregation, get_registry

router = APIRouter(tags=["Servers"])


# --- Schemas ---
class AccountScopedRequest(BaseModel):
    account_id: str = Field(..., min_length=1)


class ServerActionRequest(AccountScopedRequest):
    action: ServerAction


class ResizeRequest(AccountScopedRequest):
    flavor_id: str = Field(..., min_length=1)


class SecurityGroupEditRequest(AccountScopedRequest):
    sg_id: str = Field(..., min_length=1)


class SuccessResponse(BaseModel):
    success: bool = True


class SecurityGroupEditResponse(SuccessResponse):
    ports_changed: int


class ConsoleResponse(BaseModel):
    url: str


class ServerListResponse(BaseModel):
    servers: List[Dict[str, Any]]
    failed_accounts: List[Dict[str, Any]]


AccountIdQuery = Annotated[str, Query(min_length=1)]


def _graph_query(
    start: Optional[str] = Query(default=None),
    end: Optional[str] = Query(default=None),
    mode: Optional[str] = Query(default=None),
) -> GraphQuery:
    return GraphQuery(start=start, end=end, mode=mode)


# --- Endpoints ---


@router.get("/servers", response_model=ServerListResponse)
async def list_servers(
    aggregation: Annotated[AggregationService, Depends(get_aggregation)],
) -> Any:
    """
    List servers across every configured account.
    Accounts that fail are reported in `failed_accounts` instead of failing the call.
    """
    result = await aggregation.get_all_servers()
    return {
        "servers": result.items,
        "failed_accounts": [f.to_payload() for f in result.failures],
    }


@router.post("/servers/{server_id}/action", response_model=SuccessResponse)
async def server_action(
    server_id: str,
    body: ServerActionRequest,
    registry: Annotated[ClientRegistry, Depends(get_registry)],
) -> Any:
    await registry.get(body.account_id).execute_server_action(server_id, body.action)
    return SuccessResponse()


@router.post("/servers/{server_id}/console", response_model=ConsoleResponse)
async def server_console(
    server_id: str,
    body: AccountScopedRequest,
    registry: Annotated[ClientRegistry, Depends(get_registry)],
) -> Any:
    url = await registry.get(body.account_id).get_console_url(server_id)
    return ConsoleResponse(url=url)


@router.post("/servers/{server_id}/resize", response_model=SuccessResponse)
async def resize_server(
    server_id: str,
    body: ResizeRequest,
    registry: Annotated[ClientRegistry, Depends(get_registry)],
) -> Any:
    await registry.get(body.account_id).resize_server(server_id, body.flavor_id)
    return SuccessResponse()


@router.post("/servers/{server_id}/resize-confirm", response_model=SuccessResponse)
async def confirm_resize(
    server_id: str,
    account_id: AccountIdQuery,
    registry: Annotated[ClientRegistry, Depends(get_registry)],
) -> Any:
    await registry.get(account_id).confirm_resize(server_id)
    return SuccessResponse()


@router.delete("/servers/{server_id}/resize-confirm", response_model=SuccessResponse)
async def revert_resize(
    server_id: str,
    account_id: AccountIdQuery,
    registry: Annotated[ClientRegistry, Depends(get_registry)],
) -> Any:
    await registry.get(account_id).revert_resize(server_id)
    return SuccessResponse()


@router.post(
    "/servers/{server_id}/security-groups", response_model=SecurityGroupEditResponse
)
async def add_security_group(
    server_id: str,
    body: SecurityGroupEditRequest,
    registry: Annotated[ClientRegistry, Depends(get_registry)],
) -> Any:
    changed = await registry.get(body.account_id).add_security_group(
        server_id, body.sg_id
    )
    return SecurityGroupEditResponse(ports_changed=changed)


@router.delete(
    "/servers/{server_id}/security-groups", response_model=SecurityGroupEditResponse
)
async def remove_security_group(
    server_id: str,
    body: SecurityGroupEditRequest,
    registry: Annotated[ClientRegistry, Depends(get_registry)],
) -> Any:
    changed = await registry.get(body.account_id).remove_security_group(
        server_id, body.sg_id
    )
    return SecurityGroupEditResponse(ports_changed=changed)


@router.get("/servers/{server_id}/graphs/cpu")
async def cpu_graph(
    server_id: str,
    account_id: AccountIdQuery,
    query: Annotated[GraphQuery, Depends(_graph_query)],
    registry: Annotated[ClientRegistry, Depends(get_registry)],
) -> Any:
    series = await registry.get(account_id).get_cpu_graph(server_id, query)
    return {GraphKind.CPU.value: series.to_payload()}


@router.get("/servers/{server_id}/graphs/disk")
async def disk_graph(
    server_id: str,
    account_id: AccountIdQuery,
    query: Annotated[GraphQuery, Depends(_graph_query)],
    registry: Annotated[ClientRegistry, Depends(get_registry)],
    device: Optional[str] = Query(default=None),
) -> Any:
    series = await registry.get(account_id).get_disk_graph(
        server_id, query, device=device
    )
    return {GraphKind.DISK.value: series.to_payload()}


@router.get("/servers/{server_id}/graphs/network")
async def network_graph(
    server_id: str,
    account_id: AccountIdQuery,
    query: Annotated[GraphQuery, Depends(_graph_query)],
    registry: Annotated[ClientRegistry, Depends(get_registry)],
) -> Any:
    """Network traffic for the server's first port; 404 when it has none."""
    series = await registry.get(account_id).get_network_graph(server_id, query)
    return {GraphKind.NETWORK.value: series.to_payload()}
