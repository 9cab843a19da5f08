from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

from fleetdeck.shared.core.exceptions import FleetDeckException

T = TypeVar("T")


class ServerAction(str, Enum):
    START = "start"
    STOP = "stop"
    REBOOT = "reboot"
    FORCE_STOP = "force-stop"


ACTION_BODIES: dict[ServerAction, dict[str, Any]] = {
    ServerAction.START: {"os-start": None},
    ServerAction.STOP: {"os-stop": None},
    ServerAction.REBOOT: {"reboot": {"type": "SOFT"}},
    ServerAction.FORCE_STOP: {"os-stop": {"force_shutdown": True}},
}

# Flavor fields copied onto a server's flavor sub-object during enrichment.
ENRICHABLE_FLAVOR_FIELDS = ("name", "vcpus", "ram", "disk", "ephemeral", "swap")

VOLUMES_ATTACHED_KEY = "os-extended-volumes:volumes_attached"


class GraphKind(str, Enum):
    CPU = "cpu"
    DISK = "disk"
    NETWORK = "interface"


@dataclass(frozen=True)
class GraphQuery:
    """Time range and aggregation mode for a telemetry graph."""

    start: Optional[str] = None
    end: Optional[str] = None
    mode: Optional[str] = None

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.start:
            params["start_date_raw"] = self.start
        if self.end:
            params["end_date_raw"] = self.end
        if self.mode:
            params["mode"] = self.mode
        return params


class GraphSeries(BaseModel):
    """Column names plus `[timestamp, value...]` rows; samples may be null."""

    model_config = ConfigDict(populate_by_name=True)

    schema_: list[str] = Field(default_factory=list, alias="schema")
    data: list[list[Union[int, float, str, None]]] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {"schema": self.schema_, "data": self.data}


@dataclass(frozen=True)
class Port:
    id: str
    security_groups: tuple[str, ...]
    device_id: str = ""

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Port":
        return cls(
            id=str(payload["id"]),
            security_groups=tuple(payload.get("security_groups") or ()),
            device_id=str(payload.get("device_id") or ""),
        )


@dataclass(frozen=True)
class AccountFailure:
    account_id: str
    error: BaseException

    @property
    def message(self) -> str:
        if isinstance(self.error, FleetDeckException):
            return self.error.message
        return str(self.error) or type(self.error).__name__

    def to_payload(self) -> dict[str, Any]:
        code = getattr(self.error, "code", "account_failed")
        return {"account_id": self.account_id, "code": code, "message": self.message}


@dataclass
class AggregateResult(Generic[T]):
    """Union of per-account successes plus the accounts that failed."""

    items: list[T] = field(default_factory=list)
    failures: list[AccountFailure] = field(default_factory=list)
    succeeded: list[str] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.failures)
