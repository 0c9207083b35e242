"""Pydantic models for desired and canonical resource state.

One model per kind serves both directions:
1. Desired state parsed from a manifest or a mapping (validated up front)
2. Canonical state returned by a lifecycle operation (remote fields filled in)

Remote-derived fields (id, status, created_at and the like) are ignored when a
model is mapped to a request body. Multi-word fields accept both snake_case
and the camelCase used in manifests.
"""

from __future__ import annotations

import ipaddress
from collections.abc import Mapping
from typing import Annotated, Any, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .wire import (
    CloudProvider,
    ConnectionStatus,
    DatastoreStatus,
    NetworkStatus,
    PerformanceTier,
)

ResourceT = TypeVar("ResourceT", bound="ResourceModel")


class ResourceModel(BaseModel):
    """Base for resource models."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    def to_output(self) -> dict[str, Any]:
        """Serialize for display, omitting unset fields."""
        return self.model_dump(mode="json", exclude_none=True)


def _empty_as_unset(v: Any) -> Any:
    # "" and [] are how the API reports an unset optional field
    if v == "" or v == []:
        return None
    return v


def _validate_cidr(v: str) -> str:
    if "/" not in v:
        raise ValueError("must be in CIDR notation (e.g., 192.168.0.0/16)")
    try:
        ipaddress.ip_network(v, strict=True)
    except ValueError as e:
        raise ValueError(f"invalid CIDR block: {e}") from e
    return v


# =============================================================================
# Network
# =============================================================================


class Location(ResourceModel):
    """Cloud provider and region a resource is placed in."""

    provider: CloudProvider
    region: Annotated[str, Field(min_length=1)]


class VPCInfo(ResourceModel):
    """Provider-side VPC details, known once the network is active."""

    resource_id: str = Field("", alias="resourceId")
    account_id: str = Field("", alias="accountId")


class NetworkResource(ResourceModel):
    """A private network. Every desired field is immutable after creation."""

    name: Annotated[str, Field(min_length=1)]
    location: Location
    cidr_block: str = Field(alias="cidrBlock")

    # Remote-derived
    id: str | None = None
    status: NetworkStatus | None = None
    created_at: int | None = Field(None, alias="createdAt")
    vpc: VPCInfo | None = None

    @field_validator("cidr_block")
    @classmethod
    def validate_cidr(cls, v: str) -> str:
        return _validate_cidr(v)


# =============================================================================
# Datastore
# =============================================================================


class DatastoreLocation(Location):
    # Priority order; resolved by the control plane when unset
    availability_zones: list[str] | None = Field(None, alias="availabilityZones")

    @field_validator("availability_zones", mode="before")
    @classmethod
    def empty_zones_unset(cls, v: Any) -> Any:
        return _empty_as_unset(v)


class Tier(ResourceModel):
    """Memory and CPU sizing."""

    memory_bytes: Annotated[int, Field(gt=0, alias="memoryBytes")]
    performance_tier: PerformanceTier = Field(alias="performanceTier")
    replicas: Annotated[int | None, Field(ge=0)] = None


class Features(ResourceModel):
    """Dragonfly feature flags.

    Each flag is independently unset, true or false. Unset flags are never
    sent to the API, so the server default applies.
    """

    cache_mode: bool | None = Field(None, alias="cacheMode")
    tls: bool | None = None
    bullmq: bool | None = None
    sidekiq: bool | None = None
    memcached: bool | None = None
    acl_rules: list[str] | None = Field(None, alias="aclRules")


class Cluster(ResourceModel):
    """Multi-shard mode. Presence of this block enables clustering."""

    shard_memory: Annotated[int | None, Field(gt=0, alias="shardMemory")] = None


class MaintenanceWindow(ResourceModel):
    weekday: Annotated[int | None, Field(ge=0, le=6)] = None
    hour: Annotated[int | None, Field(ge=0, le=23)] = None
    duration_hours: Annotated[int | None, Field(ge=1, le=24, alias="durationHours")] = None


class DatastoreResource(ResourceModel):
    """A managed Dragonfly datastore.

    Everything except disable_passkey can be updated in place. secret_key is
    only populated once the datastore is active, and an empty secret_key is
    the only signal the API gives that passkey auth was disabled.
    """

    name: Annotated[str, Field(min_length=1)]
    network_id: str | None = Field(None, alias="networkId")
    location: DatastoreLocation
    tier: Tier
    features: Features = Field(default_factory=Features)
    cluster: Cluster | None = None
    maintenance_window: MaintenanceWindow | None = Field(None, alias="maintenanceWindow")
    disable_passkey: bool | None = Field(None, alias="disablePasskey")

    # Remote-derived
    id: str | None = None
    status: DatastoreStatus | None = None
    created_at: int | None = Field(None, alias="createdAt")
    address: str | None = None
    secret_key: str | None = Field(None, alias="secretKey", repr=False)
    dashboard_url: str | None = Field(None, alias="dashboardUrl")

    @field_validator("network_id", mode="before")
    @classmethod
    def empty_network_unset(cls, v: Any) -> Any:
        return _empty_as_unset(v)


# =============================================================================
# Connection
# =============================================================================


class Peer(ResourceModel):
    """The VPC on the customer's side of a peering connection."""

    account_id: Annotated[str, Field(min_length=1, alias="accountId")]
    vpc_id: Annotated[str, Field(min_length=1, alias="vpcId")]
    # Only needed when the peer VPC is in a different region from the network
    region: str | None = None
    cidr_block: str | None = Field(None, alias="cidrBlock")

    @field_validator("region", "cidr_block", mode="before")
    @classmethod
    def empty_as_unset(cls, v: Any) -> Any:
        return _empty_as_unset(v)

    @field_validator("cidr_block")
    @classmethod
    def validate_cidr(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _validate_cidr(v)


class ConnectionResource(ResourceModel):
    """A peering connection between a network and a customer VPC.

    Every desired field is immutable after creation. A freshly created
    connection sits in INACTIVE until the peer account accepts it.
    """

    name: Annotated[str, Field(min_length=1)]
    network_id: Annotated[str, Field(min_length=1, alias="networkId")]
    peer: Peer

    # Remote-derived
    id: str | None = None
    status: ConnectionStatus | None = None
    status_detail: str | None = Field(None, alias="statusDetail")
    peer_connection_id: str | None = Field(None, alias="peerConnectionId")


# =============================================================================
# Input parsing
# =============================================================================


def format_validation_errors(e: ValidationError) -> str:
    """Render pydantic errors one per line as 'loc: msg'."""
    errors = []
    for error in e.errors():
        loc = ".".join(str(x) for x in error["loc"])
        errors.append(f"  - {loc}: {error['msg']}")
    return "\n".join(errors)


def parse_desired(model: type[ResourceT], desired: ResourceT | Mapping[str, Any]) -> ResourceT:
    """Coerce caller input into a validated desired-state model.

    Raises:
        ConfigurationError: If the input is not a mapping or model of the
            expected kind, or fails validation.
    """
    if isinstance(desired, model):
        return desired
    if isinstance(desired, BaseModel):
        raise ConfigurationError(
            f"expected {model.__name__}, got {type(desired).__name__}"
        )
    if not isinstance(desired, Mapping):
        raise ConfigurationError(
            f"desired state must be a mapping or {model.__name__}, got {type(desired).__name__}"
        )

    try:
        return model.model_validate(dict(desired))
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid {model.__name__}:\n{format_validation_errors(e)}"
        ) from e
