"""
FastAPI dependency providers.

The registry and aggregation service are created in the application lifespan
and attached to app.state; routes retrieve them here via Request injection.
"""

from fastapi import Request

from fleetdeck.modules.compute.domain.aggregation import AggregationService
from fleetdeck.modules.compute.domain.registry import ClientRegistry


def get_registry(request: Request) -> ClientRegistry:
    return request.app.state.registry  # type: ignore[no-any-return]


def get_aggregation(request: Request) -> AggregationService:
    return request.app.state.aggregation  # type: ignore[no-any-return]
