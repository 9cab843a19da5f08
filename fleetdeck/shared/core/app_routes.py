from typing import Annotated, Any

from fastapi import Depends, FastAPI

from fleetdeck.modules.compute.domain.registry import ClientRegistry
from fleetdeck.shared.core.dependencies import get_registry

_REQUIRED_API_PREFIXES = {"/api/v1"}


def _validate_router_registry(routes: list[tuple[Any, str]]) -> None:
    seen_prefixes: set[str] = set()
    for router, prefix in routes:
        route_list = getattr(router, "routes", None)
        if not isinstance(route_list, list) or not route_list:
            raise RuntimeError("Router registry includes an empty router definition")
        normalized_prefix = prefix.strip()
        if not normalized_prefix.startswith("/"):
            raise RuntimeError(f"Router prefix must start with '/': {prefix!r}")
        seen_prefixes.add(normalized_prefix)

    missing_prefixes = sorted(_REQUIRED_API_PREFIXES - seen_prefixes)
    if missing_prefixes:
        raise RuntimeError(
            "Router registry is missing required API prefixes: "
            + ", ".join(missing_prefixes)
        )


def register_lifecycle_routes(
    app: FastAPI,
    *,
    app_name: str,
    version: str,
) -> None:
    """Register lifecycle and health endpoints."""

    @app.get("/", tags=["Lifecycle"])
    async def root() -> dict[str, str]:
        """Root endpoint for basic reachability."""
        return {"status": "ok", "app": app_name, "version": version}

    @app.get("/health", tags=["Lifecycle"])
    async def health_check(
        registry: Annotated[ClientRegistry, Depends(get_registry)],
    ) -> dict[str, Any]:
        """Liveness plus the configured account ids (no upstream calls)."""
        return {"status": "healthy", "accounts": registry.account_ids}


def register_api_routers(app: FastAPI) -> None:
    """Register API route modules in one place to keep app entrypoint focused."""
    from fleetdeck.modules.compute.api.v1.catalog import router as catalog_router
    from fleetdeck.modules.compute.api.v1.servers import router as servers_router

    routes: list[tuple[Any, str]] = [
        (servers_router, "/api/v1"),
        (catalog_router, "/api/v1"),
    ]

    _validate_router_registry(routes)

    for router, prefix in routes:
        app.include_router(router, prefix=prefix)
