"""
Typed Account Credentials
Standardizes per-account configuration into frozen Pydantic models so the
compute client never touches the raw credential file.
"""
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr, field_validator


class IdentityVersion(str, Enum):
    """Identity/compute API generation an account speaks."""

    V2 = "v2"  # legacy: identity v2.0, compute v2/{tenant}
    V3 = "v3"  # current: identity v3, compute v2.1


class EndpointOverrides(BaseModel):
    """Optional per-account endpoint overrides from the credential file."""

    identity: Optional[str] = None
    compute: Optional[str] = None
    networking: Optional[str] = None
    block_storage: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("block_storage", "blockStorage")
    )


class AccountConfig(BaseModel):
    """One raw entry of the credential file, validated at load time."""

    model_config = ConfigDict(extra="ignore")

    version: IdentityVersion = IdentityVersion.V3
    region: str = Field(..., min_length=1)
    api_user: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("api_user", "apiUser")
    )
    api_password: SecretStr = Field(
        ..., validation_alias=AliasChoices("api_password", "apiPassword")
    )
    tenant_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("tenant_id", "tenantId")
    )
    endpoints: EndpointOverrides = Field(default_factory=EndpointOverrides)

    @field_validator("region", "api_user", "tenant_id")
    @classmethod
    def _strip(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("api_password")
    @classmethod
    def _password_present(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("must not be empty")
        return value


class AccountCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_user: str
    api_password: SecretStr
    tenant_id: str


class AccountEndpoints(BaseModel):
    """Fully-formed service roots for one account (no trailing slash)."""

    model_config = ConfigDict(frozen=True)

    identity: str
    compute: str
    networking: str
    block_storage: str

    @classmethod
    def defaults(
        cls, version: IdentityVersion, region: str, tenant_id: str, domain: str
    ) -> "AccountEndpoints":
        if version is IdentityVersion.V2:
            return cls(
                identity=f"https://identity.{region}.{domain}/v2.0",
                compute=f"https://compute.{region}.{domain}/v2/{tenant_id}",
                networking=f"https://networking.{region}.{domain}/v2.0",
                block_storage=f"https://block-storage.{region}.{domain}/v2/{tenant_id}",
            )
        return cls(
            identity=f"https://identity.{region}.{domain}/v3",
            compute=f"https://compute.{region}.{domain}/v2.1",
            networking=f"https://networking.{region}.{domain}/v2.0",
            block_storage=f"https://block-storage.{region}.{domain}/v3",
        )

    def with_overrides(self, overrides: EndpointOverrides) -> "AccountEndpoints":
        updates = {
            key: value.rstrip("/")
            for key, value in overrides.model_dump().items()
            if value
        }
        return self.model_copy(update=updates)


class AccountDescriptor(BaseModel):
    """Immutable description of one configured cloud account."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    version: IdentityVersion
    region: str
    credentials: AccountCredentials
    endpoints: AccountEndpoints

    @property
    def tenant_id(self) -> str:
        return self.credentials.tenant_id
