"""
Application exception hierarchy.

Every error raised by the compute client carries a stable `code` and an HTTP
`status_code` so the boundary layer can render it without inspecting types.
"""

from typing import Any, Dict, Optional


class FleetDeckException(Exception):
    """Base class for all FleetDeck application errors."""

    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}


class ConfigurationError(FleetDeckException):
    """Invalid or missing configuration (settings, credential file, catalog)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message, code="configuration_error", status_code=500, details=details
        )


class AccountNotFoundError(FleetDeckException):
    def __init__(self, account_id: str):
        super().__init__(
            f"Account {account_id} is not configured",
            code="not_found",
            status_code=404,
            details={"account_id": account_id},
        )
        self.account_id = account_id


class AccountScopedError(FleetDeckException):
    """An upstream failure attributed to one configured account."""

    def __init__(
        self,
        message: str,
        *,
        account_id: str,
        status_code: Optional[int] = None,
        body: str = "",
        code: str,
        http_status: int = 502,
    ):
        super().__init__(
            f"[{account_id}] {message}",
            code=code,
            status_code=http_status,
            details={"account_id": account_id, "upstream_status": status_code},
        )
        self.account_id = account_id
        self.upstream_status = status_code
        self.body = body


class AuthenticationError(AccountScopedError):
    """The identity service refused the credentials or returned no token."""

    def __init__(
        self,
        message: str,
        *,
        account_id: str,
        status_code: Optional[int] = None,
        body: str = "",
    ):
        super().__init__(
            message,
            account_id=account_id,
            status_code=status_code,
            body=body,
            code="auth_error",
        )


class ApiError(AccountScopedError):
    """A compute/network/storage call failed after any permitted retry."""

    def __init__(
        self,
        message: str,
        *,
        account_id: str,
        status_code: Optional[int] = None,
        body: str = "",
    ):
        super().__init__(
            message,
            account_id=account_id,
            status_code=status_code,
            body=body,
            code="upstream_error",
        )


class ResourceUnavailable(FleetDeckException):
    """A resource needed to answer the request does not exist (e.g. no port)."""

    def __init__(self, message: str, *, account_id: str, resource: str):
        super().__init__(
            message,
            code="resource_unavailable",
            status_code=404,
            details={"account_id": account_id, "resource": resource},
        )
        self.account_id = account_id
        self.resource = resource
