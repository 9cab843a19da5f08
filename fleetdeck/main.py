from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fleetdeck.modules.compute.domain.aggregation import AggregationService
from fleetdeck.modules.compute.domain.registry import CatalogLoader, ClientRegistry
from fleetdeck.shared.core.accounts import load_account_catalog
from fleetdeck.shared.core.app_routes import (
    register_api_routers,
    register_lifecycle_routes,
)
from fleetdeck.shared.core.config import get_settings, reload_settings_from_environment
from fleetdeck.shared.core.error_governance import handle_exception
from fleetdeck.shared.core.exceptions import FleetDeckException
from fleetdeck.shared.core.http import close_http_client, get_http_client, init_http_client
from fleetdeck.shared.core.logging import setup_logging

logger = structlog.get_logger()


def create_app(catalog_loader: Optional[CatalogLoader] = None) -> FastAPI:
    loader = catalog_loader or load_account_catalog

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        settings = reload_settings_from_environment()
        setup_logging()
        logger.info("app_starting", app_name=settings.APP_NAME)

        await init_http_client()
        registry = ClientRegistry(loader, get_http_client())
        try:
            # Build now so a missing or empty catalog stops startup.
            account_ids = registry.account_ids
        except FleetDeckException:
            await close_http_client()
            raise

        app.state.registry = registry
        app.state.aggregation = AggregationService(registry)
        logger.info("app_started", accounts=account_ids)

        try:
            yield
        finally:
            await close_http_client()
            logger.info("app_stopped")

    settings = get_settings()
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        lifespan=lifespan,
    )

    @app.exception_handler(FleetDeckException)
    async def fleetdeck_exception_handler(
        request: Request, exc: FleetDeckException
    ) -> JSONResponse:
        """Handle custom application exceptions."""
        return handle_exception(request, exc)

    register_lifecycle_routes(app, app_name=settings.APP_NAME, version=settings.VERSION)
    register_api_routers(app)
    return app


app = create_app()
