"""
Global pytest fixtures for the FleetDeck test suite.

Provides:
- Settings isolation (cache reset around every test)
- A controllable clock for token and flavor-cache expiry
- Account descriptor factory built through the real catalog path
- A throwaway httpx.AsyncClient for respx-mocked upstream calls
"""
import os
from typing import AsyncGenerator, Callable

import httpx
import pytest

# Set test environment BEFORE any app imports
os.environ["TESTING"] = "true"
os.environ["ENVIRONMENT"] = "development"
os.environ["DEBUG"] = "false"

from fleetdeck.shared.core.accounts import build_account_catalog  # noqa: E402
from fleetdeck.shared.core.config import get_settings  # noqa: E402
from fleetdeck.shared.core.credentials import (  # noqa: E402
    AccountConfig,
    AccountDescriptor,
)

TEST_DOMAIN = "conoha.test"


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Each test sees settings rebuilt from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_account() -> Callable[..., AccountDescriptor]:
    def _make(
        version: str = "v3",
        region: str = "c3j1",
        tenant_id: str = "tenant-0001",
        **extra: object,
    ) -> AccountDescriptor:
        config = AccountConfig(
            version=version,
            region=region,
            api_user="gncu-user",
            api_password="s3cret-pass",
            tenant_id=tenant_id,
            **extra,
        )
        return build_account_catalog([config], endpoint_domain=TEST_DOMAIN)[0]

    return _make


@pytest.fixture
async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient() as client:
        yield client
