"""
Account catalog loading.

Turns the on-disk credential file into the list of AccountDescriptor records
the client registry consumes. All validation happens here, once, at startup.
"""

from __future__ import annotations

import json
from collections import Counter
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from fleetdeck.shared.core.config import get_settings
from fleetdeck.shared.core.credentials import (
    AccountConfig,
    AccountCredentials,
    AccountDescriptor,
    AccountEndpoints,
)
from fleetdeck.shared.core.exceptions import ConfigurationError

logger = structlog.get_logger()

TENANT_FRAGMENT_LENGTH = 8


def derive_account_id(config: AccountConfig, *, shared_region: bool) -> str:
    base = f"{config.version.value}-{config.region}"
    if shared_region:
        return f"{base}-{config.tenant_id[:TENANT_FRAGMENT_LENGTH]}"
    return base


def build_account_catalog(
    configs: list[AccountConfig], *, endpoint_domain: str | None = None
) -> list[AccountDescriptor]:
    """
    Derive immutable descriptors from validated config entries.

    Account ids are `{version}-{region}`; when several accounts share a
    version and region the first tenant-id characters are appended.
    """
    domain = endpoint_domain or get_settings().ENDPOINT_DOMAIN
    region_counts = Counter((c.version, c.region) for c in configs)

    descriptors: list[AccountDescriptor] = []
    seen: set[str] = set()
    for config in configs:
        account_id = derive_account_id(
            config, shared_region=region_counts[(config.version, config.region)] > 1
        )
        if account_id in seen:
            raise ConfigurationError(
                f"Duplicate account id derived from credential file: {account_id}",
                details={"account_id": account_id},
            )
        seen.add(account_id)

        endpoints = AccountEndpoints.defaults(
            config.version, config.region, config.tenant_id, domain
        ).with_overrides(config.endpoints)
        descriptors.append(
            AccountDescriptor(
                account_id=account_id,
                version=config.version,
                region=config.region,
                credentials=AccountCredentials(
                    api_user=config.api_user,
                    api_password=config.api_password,
                    tenant_id=config.tenant_id,
                ),
                endpoints=endpoints,
            )
        )
    return descriptors


def parse_account_entries(raw: Any) -> list[AccountConfig]:
    entries = raw.get("accounts") if isinstance(raw, dict) else raw
    if isinstance(raw, dict) and entries is None:
        # A bare single-account object.
        entries = [raw]
    if not isinstance(entries, list):
        raise ConfigurationError("Credential file must contain a list of accounts")

    configs: list[AccountConfig] = []
    for index, entry in enumerate(entries):
        try:
            configs.append(AccountConfig.model_validate(entry))
        except ValidationError as exc:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
            raise ConfigurationError(
                f"Invalid account entry at index {index}",
                details={"index": index, "fields": fields},
            ) from exc
    return configs


def load_account_catalog(path: str | Path | None = None) -> list[AccountDescriptor]:
    """Load and validate the credential file into account descriptors."""
    settings = get_settings()
    resolved = Path(path or settings.ACCOUNTS_FILE)
    if not resolved.exists():
        raise ConfigurationError(
            f"Credential file not found: {resolved}",
            details={"path": str(resolved)},
        )

    try:
        with resolved.open(encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            f"Credential file is not valid JSON: {resolved}",
            details={"path": str(resolved), "line": exc.lineno},
        ) from exc

    descriptors = build_account_catalog(
        parse_account_entries(raw), endpoint_domain=settings.ENDPOINT_DOMAIN
    )
    logger.info(
        "account_catalog_loaded",
        path=str(resolved),
        accounts=[d.account_id for d in descriptors],
    )
    return descriptors
