from __future__ import annotations

from typing import Any

import httpx

from fleetdeck.shared.adapters.base import IdentityProtocol
from fleetdeck.shared.core.credentials import AccountDescriptor, IdentityVersion
from fleetdeck.shared.core.exceptions import ConfigurationError

_CONSOLE_TYPE = "novnc"


def _clean(value: Any) -> str | None:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


class LegacyProtocol(IdentityProtocol):
    """Identity v2.0 (token in body) with tenant-scoped compute v2."""

    version = IdentityVersion.V2

    def build_auth_request(
        self, account: AccountDescriptor, *, domain_id: str
    ) -> tuple[str, dict[str, Any]]:
        creds = account.credentials
        body = {
            "auth": {
                "passwordCredentials": {
                    "username": creds.api_user,
                    "password": creds.api_password.get_secret_value(),
                },
                "tenantId": creds.tenant_id,
            }
        }
        return f"{account.endpoints.identity}/tokens", body

    def extract_token(self, response: httpx.Response) -> str | None:
        try:
            payload = response.json()
        except ValueError:
            return None
        access = payload.get("access") if isinstance(payload, dict) else None
        token = access.get("token") if isinstance(access, dict) else None
        return _clean(token.get("id")) if isinstance(token, dict) else None

    def volumes_url(self, account: AccountDescriptor) -> str:
        # The legacy block-storage root already carries the tenant.
        return f"{account.endpoints.block_storage}/volumes/detail"

    def build_console_request(
        self, account: AccountDescriptor, server_id: str
    ) -> tuple[str, dict[str, Any]]:
        return (
            f"{account.endpoints.compute}/servers/{server_id}/action",
            {"os-getVNCConsole": {"type": _CONSOLE_TYPE}},
        )

    def extract_console_url(self, payload: Any) -> str | None:
        if not isinstance(payload, dict):
            return None
        console = payload.get("console")
        return _clean(console.get("url")) if isinstance(console, dict) else None


class CurrentProtocol(IdentityProtocol):
    """Identity v3 (token in X-Subject-Token) with compute v2.1."""

    version = IdentityVersion.V3

    def build_auth_request(
        self, account: AccountDescriptor, *, domain_id: str
    ) -> tuple[str, dict[str, Any]]:
        creds = account.credentials
        body = {
            "auth": {
                "identity": {
                    "methods": ["password"],
                    "password": {
                        "user": {
                            "name": creds.api_user,
                            "password": creds.api_password.get_secret_value(),
                            "domain": {"id": domain_id},
                        }
                    },
                },
                "scope": {"project": {"id": creds.tenant_id}},
            }
        }
        return f"{account.endpoints.identity}/auth/tokens", body

    def extract_token(self, response: httpx.Response) -> str | None:
        return _clean(response.headers.get("X-Subject-Token"))

    def volumes_url(self, account: AccountDescriptor) -> str:
        return f"{account.endpoints.block_storage}/{account.tenant_id}/volumes/detail"

    def build_console_request(
        self, account: AccountDescriptor, server_id: str
    ) -> tuple[str, dict[str, Any]]:
        return (
            f"{account.endpoints.compute}/servers/{server_id}/remote-consoles",
            {"remote_console": {"protocol": "vnc", "type": _CONSOLE_TYPE}},
        )

    def extract_console_url(self, payload: Any) -> str | None:
        if not isinstance(payload, dict):
            return None
        console = payload.get("remote_console")
        return _clean(console.get("url")) if isinstance(console, dict) else None


_PROTOCOLS: dict[IdentityVersion, IdentityProtocol] = {
    IdentityVersion.V2: LegacyProtocol(),
    IdentityVersion.V3: CurrentProtocol(),
}


def get_identity_protocol(version: IdentityVersion) -> IdentityProtocol:
    protocol = _PROTOCOLS.get(version)
    if protocol is None:
        raise ConfigurationError(f"Unsupported identity version: {version!r}")
    return protocol
