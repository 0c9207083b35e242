"""Pydantic models for the control plane's JSON request and response bodies.

Field names match the wire exactly. Optional fields default to None and are
dropped from request bodies (see to_payload) so "unset" never reaches the
API as false or null.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# Enumerations
# =============================================================================


class CloudProvider(str, Enum):
    """Cloud providers a resource can be placed in."""

    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"


class PerformanceTier(str, Enum):
    """CPU provisioned relative to memory."""

    DEV = "dev"
    STANDARD = "standard"
    ENHANCED = "enhanced"


class NetworkStatus(str, Enum):
    """Network lifecycle statuses."""

    PENDING = "pending"
    ACTIVE = "active"
    FAILED = "failed"
    DELETING = "deleting"
    DELETED = "deleted"


class DatastoreStatus(str, Enum):
    """Datastore lifecycle statuses."""

    PENDING = "pending"
    UPDATING = "updating"
    RESTORING = "restoring"
    ACTIVE = "active"
    DELETING = "deleting"
    DELETED = "deleted"


class ConnectionStatus(str, Enum):
    """Peering connection lifecycle statuses.

    INACTIVE means the peering exists but has not been approved on the peer
    account yet. IRRECOVERABLE means the peer side was removed out-of-band.
    """

    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"
    IRRECOVERABLE = "irrecoverable"
    DELETING = "deleting"
    DELETED = "deleted"
    FAILED = "failed"


class WireModel(BaseModel):
    """Base for wire models: unknown response fields are ignored."""

    model_config = {"extra": "ignore"}

    def to_payload(self) -> dict[str, Any]:
        """Serialize as a request body, omitting unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)


# =============================================================================
# Networks
# =============================================================================


class NetworkLocation(WireModel):
    provider: CloudProvider
    region: str


class NetworkVPC(WireModel):
    """The VPC provisioned for a network. Needed to set up peering."""

    resource_id: str = ""
    account_id: str = ""


class NetworkConfig(WireModel):
    name: str
    location: NetworkLocation
    cidr_block: str


class Network(NetworkConfig):
    """A network as returned by the API: the config fields plus server state."""

    network_id: str
    status: NetworkStatus
    created_at: int = 0
    vpc: NetworkVPC | None = None


# =============================================================================
# Datastores
# =============================================================================


class DatastoreLocation(WireModel):
    provider: CloudProvider
    region: str
    # Priority order
    availability_zones: list[str] | None = None


class DatastoreTier(WireModel):
    max_memory_bytes: int
    performance_tier: PerformanceTier
    # Not counting the master
    replicas: int | None = None


class DragonflyConfig(WireModel):
    cache_mode: bool | None = None
    tls: bool | None = None
    bullmq: bool | None = None
    sidekiq: bool | None = None
    memcached: bool | None = None
    acl_rules: list[str] | None = None


class ClusterConfig(WireModel):
    enabled: bool | None = None
    shard_memory: int | None = None


class MaintenanceWindow(WireModel):
    weekday: int | None = None
    hour: int | None = None
    duration_hours: int | None = None


class DatastoreConfig(WireModel):
    name: str
    network_id: str | None = None
    location: DatastoreLocation
    tier: DatastoreTier
    dragonfly: DragonflyConfig = Field(default_factory=DragonflyConfig)
    cluster: ClusterConfig | None = None
    maintenance_window: MaintenanceWindow | None = None
    disable_passkey: bool | None = None


class DatastoreDashboard(WireModel):
    url: str = ""


class Datastore(WireModel):
    datastore_id: str
    status: DatastoreStatus
    created_at: int = 0
    # Connection secret; empty when passkey auth is disabled
    password: str = ""
    addr: str = ""
    dashboard: DatastoreDashboard | None = None
    config: DatastoreConfig


# =============================================================================
# Connections
# =============================================================================


class PeerConfig(WireModel):
    account_id: str
    vpc_id: str
    # Only set when the peer VPC is in a different region from the network
    region: str | None = None
    cidr_block: str | None = None


class ConnectionConfig(WireModel):
    name: str
    network_id: str
    peer: PeerConfig


class Connection(WireModel):
    connection_id: str
    status: ConnectionStatus
    status_detail: str = ""
    # The cloud provider's own peering connection ID
    peer_connection_id: str = ""
    connection_config: ConnectionConfig


class ErrorResponse(WireModel):
    error: str
