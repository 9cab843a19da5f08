from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import httpx

from fleetdeck.shared.core.credentials import AccountDescriptor, IdentityVersion


class IdentityProtocol(ABC):
    """
    Abstract base for the two identity/compute API generations.

    Standardizes the points where legacy and current accounts differ:
    - Token issuance (request shape and where the token comes back)
    - Block-storage URL layout
    - Console creation request and response shape

    One instance is selected per account when its client is built; call
    sites never branch on the version themselves.
    """

    version: IdentityVersion

    @abstractmethod
    def build_auth_request(
        self, account: AccountDescriptor, *, domain_id: str
    ) -> Tuple[str, Dict[str, Any]]:
        """Return the (url, json body) used to mint a token."""
        raise NotImplementedError()

    @abstractmethod
    def extract_token(self, response: httpx.Response) -> Optional[str]:
        """Pull the token out of a successful identity response."""
        raise NotImplementedError()

    @abstractmethod
    def volumes_url(self, account: AccountDescriptor) -> str:
        raise NotImplementedError()

    @abstractmethod
    def build_console_request(
        self, account: AccountDescriptor, server_id: str
    ) -> Tuple[str, Dict[str, Any]]:
        raise NotImplementedError()

    @abstractmethod
    def extract_console_url(self, payload: Any) -> Optional[str]:
        raise NotImplementedError()
