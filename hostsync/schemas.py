"""Control plane wire schemas and display snapshots.

Wire models accept the control plane's CamelCase keys (``ID``, ``PoolID``,
``Active`` ...) as well as the snake_case field names. Unknown attributes
are kept (``extra="allow"``): only ``id`` matters to the stores.
All models are frozen so snapshots handed to consumers cannot be mutated.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hostsync.enums import HostHealth, IndicatorState


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)


# --- Collections ---

class Entity(WireModel):
    """Anything the stores mirror: identified by a stable string id."""
    id: str = Field(alias="ID")


class Host(Entity):
    name: str = Field(default="", alias="Name")
    pool_id: str = Field(default="", alias="PoolID")
    ip_addr: str = Field(default="", alias="IPAddr")
    rpc_port: int | None = Field(default=None, alias="RPCPort")
    memory: int = Field(default=0, alias="Memory")  # bytes
    ram_limit: str = Field(default="", alias="RAMLimit")
    cores: int = Field(default=0, alias="Cores")
    kernel_version: str = Field(default="", alias="KernelVersion")


class Pool(Entity):
    description: str = Field(default="", alias="Description")
    core_capacity: int = Field(default=0, alias="CoreCapacity")
    memory_capacity: int = Field(default=0, alias="MemoryCapacity")


class Service(Entity):
    name: str = Field(default="", alias="Name")
    pool_id: str = Field(default="", alias="PoolID")
    parent_service_id: str = Field(default="", alias="ParentServiceID")
    desired_state: int = Field(default=0, alias="DesiredState")


# --- Live status feed ---

class HostStatus(WireModel):
    """Latest connectivity/authentication snapshot for one host.

    ``None`` means the control plane did not report the flag.
    """
    host_id: str = Field(alias="HostID")
    connected: bool | None = Field(default=None, alias="Active")
    authenticated: bool | None = Field(default=None, alias="Authenticated")


# --- Host commands ---

class HostCreate(BaseModel):
    """Operator input for adding a host."""
    host: str
    port: int
    pool_id: str
    ram_limit: str = "100%"
    name: str = ""

    @field_validator("ram_limit", mode="before")
    @classmethod
    def _default_ram_limit(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return "100%"
        return value

    @property
    def ip_addr(self) -> str:
        return f"{self.host}:{self.port}"

    def to_payload(self) -> dict:
        payload = {
            "IPAddr": self.ip_addr,
            "PoolID": self.pool_id,
            "RAMLimit": self.ram_limit,
        }
        if self.name:
            payload["Name"] = self.name
        return payload


class AddHostResponse(WireModel):
    """Control plane -> operator: the new host's delegate key."""
    private_key: str = Field(default="", alias="PrivateKey")


class NewHostDefaults(BaseModel):
    """Initial values for the add-host form."""
    port: int
    ram_limit: str
    pool_id: str | None = None  # None until the pools store has resolved


# --- Display snapshot ---

class HostRow(BaseModel):
    """One display-ready host: directory entry merged with its live status."""
    model_config = ConfigDict(frozen=True)

    host: Host
    pool: Pool | None = None
    status: HostStatus | None = None
    health: HostHealth = HostHealth.UNKNOWN
    active: IndicatorState = IndicatorState.QUESTION
    authenticated: IndicatorState = IndicatorState.QUESTION
