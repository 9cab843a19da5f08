import logging
import re
import sys
from typing import Any, cast

import structlog

from fleetdeck.shared.core.config import get_settings

_SECRET_FIELDS = {
    "password",
    "api_password",
    "token",
    "x_auth_token",
    "x_subject_token",
    "secret",
    "authorization",
    "credentials",
}
_SECRET_SUFFIXES = ("_token", "_secret", "_password")


def _is_secret_key(key: Any) -> bool:
    key_norm = str(key).lower().strip().replace("-", "_")
    if key_norm in _SECRET_FIELDS or key_norm.endswith(_SECRET_SUFFIXES):
        return True
    parts = [p for p in re.split(r"[^a-z0-9]+", key_norm) if p]
    return any(p in _SECRET_FIELDS for p in parts)


def secret_redactor(
    _logger: Any, _method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """
    Recursively redact credential material from log events.
    Account ids and upstream status codes stay readable.
    """

    def redact(data: Any) -> Any:
        if isinstance(data, dict):
            return {
                k: ("[REDACTED]" if _is_secret_key(k) else redact(v))
                for k, v in data.items()
            }
        if isinstance(data, list):
            return [redact(item) for item in data]
        return data

    redacted = redact(event_dict)
    if isinstance(redacted, dict):
        return cast(dict[str, Any], redacted)
    return {}


def setup_logging() -> None:
    settings = get_settings()

    base_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        secret_redactor,
    ]

    if settings.DEBUG:
        renderer: Any = structlog.dev.ConsoleRenderer()
        processors = base_processors + [renderer]
        min_level = logging.DEBUG
    else:
        renderer = structlog.processors.JSONRenderer()
        processors = base_processors + [structlog.processors.dict_tracebacks, renderer]
        min_level = logging.INFO

    structlog.configure(
        processors=cast(Any, processors),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Route library logs (uvicorn, httpx) through the same stream.
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=min_level,
    )
