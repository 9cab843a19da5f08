"""
Unified Error Governance

Classifies exceptions raised behind the JSON boundary, logs them once with a
correlation id, and renders a standardized error body.
"""

from typing import Any, Dict, Optional
from uuid import uuid4

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

from fleetdeck.shared.core.config import get_settings
from fleetdeck.shared.core.exceptions import FleetDeckException

logger = structlog.get_logger()

# Messages for these codes are safe to show even in production.
_SAFE_CODES = {
    "auth_error",
    "not_found",
    "resource_unavailable",
    "upstream_error",
}


def handle_exception(
    request: Request, exc: Exception, error_id: Optional[str] = None
) -> JSONResponse:
    """
    Classifies and records exceptions, returning a standardized JSON response.
    """
    error_id = error_id or str(uuid4())
    is_prod = get_settings().is_deployed

    if isinstance(exc, FleetDeckException):
        app_exc = exc
    elif isinstance(exc, ValueError):
        app_exc = FleetDeckException(
            message=str(exc), code="value_error", status_code=400
        )
    else:
        app_exc = FleetDeckException(
            message=str(exc) or type(exc).__name__,
            code="internal_error",
            status_code=500,
        )

    log = logger.error if app_exc.status_code >= 500 else logger.warning
    log(
        "request_failed",
        error_id=error_id,
        path=request.url.path,
        method=request.method,
        code=app_exc.code,
        status_code=app_exc.status_code,
        message=app_exc.message,
        details=app_exc.details,
        exc_type=type(exc).__name__,
    )

    message = app_exc.message
    details: Dict[str, Any] = app_exc.details
    if is_prod and app_exc.code not in _SAFE_CODES:
        message = "An error occurred while processing your request"
        details = {}

    return JSONResponse(
        status_code=app_exc.status_code,
        content={
            "error": app_exc.code,
            "code": app_exc.code,
            "message": message,
            "details": details,
            "error_id": error_id,
        },
    )
