from typing import Annotated, Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from fleetdeck.modules.compute.domain.aggregation import AggregationService
from fleetdeck.shared.core.dependencies import get_aggregation

router = APIRouter(tags=["Catalog"])


class FlavorListResponse(BaseModel):
    flavors: List[Dict[str, Any]]
    failed_accounts: List[Dict[str, Any]]


class SecurityGroupListResponse(BaseModel):
    security_groups: List[Dict[str, Any]]
    failed_accounts: List[Dict[str, Any]]


@router.get("/flavors", response_model=FlavorListResponse)
async def list_flavors(
    aggregation: Annotated[AggregationService, Depends(get_aggregation)],
) -> Any:
    result = await aggregation.get_all_flavors()
    return {
        "flavors": result.items,
        "failed_accounts": [f.to_payload() for f in result.failures],
    }


@router.get("/security-groups", response_model=SecurityGroupListResponse)
async def list_security_groups(
    aggregation: Annotated[AggregationService, Depends(get_aggregation)],
) -> Any:
    result = await aggregation.get_all_security_groups()
    return {
        "security_groups": result.items,
        "failed_accounts": [f.to_payload() for f in result.failures],
    }
