"""Pure transforms between resource models and wire models.

to_wire output carries only the fields a caller declares; remote-derived
fields never reach a request body. from_wire fills every field the API
returns. Empty strings the API uses for "not set" come back as None.
"""

from __future__ import annotations

from . import wire
from .models import (
    Cluster,
    ConnectionResource,
    DatastoreLocation,
    DatastoreResource,
    Features,
    Location,
    MaintenanceWindow,
    NetworkResource,
    Peer,
    Tier,
    VPCInfo,
)

# =============================================================================
# Network
# =============================================================================


def network_to_wire(desired: NetworkResource) -> wire.NetworkConfig:
    return wire.NetworkConfig(
        name=desired.name,
        location=wire.NetworkLocation(
            provider=desired.location.provider,
            region=desired.location.region,
        ),
        cidr_block=desired.cidr_block,
    )


def network_from_wire(remote: wire.Network) -> NetworkResource:
    vpc = None
    if remote.vpc is not None:
        vpc = VPCInfo(resource_id=remote.vpc.resource_id, account_id=remote.vpc.account_id)

    return NetworkResource(
        id=remote.network_id,
        name=remote.name,
        location=Location(provider=remote.location.provider, region=remote.location.region),
        cidr_block=remote.cidr_block,
        status=remote.status,
        created_at=remote.created_at,
        vpc=vpc,
    )


# =============================================================================
# Datastore
# =============================================================================


def datastore_to_wire(
    desired: DatastoreResource, *, for_update: bool = False
) -> wire.DatastoreConfig:
    """Map a datastore to its request body.

    disable_passkey is only honoured on create and is left out of update bodies.
    """
    location = desired.location
    tier = desired.tier
    features = desired.features

    cluster = None
    if desired.cluster is not None:
        cluster = wire.ClusterConfig(enabled=True, shard_memory=desired.cluster.shard_memory)

    maintenance_window = None
    if desired.maintenance_window is not None:
        window = desired.maintenance_window
        maintenance_window = wire.MaintenanceWindow(
            weekday=window.weekday,
            hour=window.hour,
            duration_hours=window.duration_hours,
        )

    return wire.DatastoreConfig(
        name=desired.name,
        network_id=desired.network_id or None,
        location=wire.DatastoreLocation(
            provider=location.provider,
            region=location.region,
            availability_zones=location.availability_zones,
        ),
        tier=wire.DatastoreTier(
            max_memory_bytes=tier.memory_bytes,
            performance_tier=tier.performance_tier,
            replicas=tier.replicas,
        ),
        dragonfly=wire.DragonflyConfig(
            cache_mode=features.cache_mode,
            tls=features.tls,
            bullmq=features.bullmq,
            sidekiq=features.sidekiq,
            memcached=features.memcached,
            acl_rules=features.acl_rules,
        ),
        cluster=cluster,
        maintenance_window=maintenance_window,
        disable_passkey=None if for_update else desired.disable_passkey,
    )


def datastore_from_wire(remote: wire.Datastore) -> DatastoreResource:
    config = remote.config
    dragonfly = config.dragonfly

    cluster = None
    if config.cluster is not None and config.cluster.enabled:
        # The API reports an unset shard size as 0
        cluster = Cluster(shard_memory=config.cluster.shard_memory or None)

    maintenance_window = None
    window = config.maintenance_window
    if window is not None and any(
        v is not None for v in (window.weekday, window.hour, window.duration_hours)
    ):
        maintenance_window = MaintenanceWindow(
            weekday=window.weekday,
            hour=window.hour,
            duration_hours=window.duration_hours,
        )

    # An empty secret is the only sign that passkey auth was disabled
    disable_passkey = True if not remote.password else config.disable_passkey

    return DatastoreResource(
        id=remote.datastore_id,
        name=config.name,
        network_id=config.network_id or None,
        location=DatastoreLocation(
            provider=config.location.provider,
            region=config.location.region,
            availability_zones=config.location.availability_zones or None,
        ),
        tier=Tier(
            memory_bytes=config.tier.max_memory_bytes,
            performance_tier=config.tier.performance_tier,
            replicas=config.tier.replicas,
        ),
        features=Features(
            cache_mode=dragonfly.cache_mode,
            tls=dragonfly.tls,
            bullmq=dragonfly.bullmq,
            sidekiq=dragonfly.sidekiq,
            memcached=dragonfly.memcached,
            acl_rules=dragonfly.acl_rules,
        ),
        cluster=cluster,
        maintenance_window=maintenance_window,
        disable_passkey=disable_passkey,
        status=remote.status,
        created_at=remote.created_at,
        address=remote.addr or None,
        secret_key=remote.password or None,
        dashboard_url=(remote.dashboard.url or None) if remote.dashboard else None,
    )


# =============================================================================
# Connection
# =============================================================================


def connection_to_wire(desired: ConnectionResource) -> wire.ConnectionConfig:
    peer = desired.peer
    return wire.ConnectionConfig(
        name=desired.name,
        network_id=desired.network_id,
        peer=wire.PeerConfig(
            account_id=peer.account_id,
            vpc_id=peer.vpc_id,
            region=peer.region or None,
            cidr_block=peer.cidr_block or None,
        ),
    )


def connection_from_wire(remote: wire.Connection) -> ConnectionResource:
    config = remote.connection_config
    return ConnectionResource(
        id=remote.connection_id,
        name=config.name,
        network_id=config.network_id,
        peer=Peer(
            account_id=config.peer.account_id,
            vpc_id=config.peer.vpc_id,
            region=config.peer.region or None,
            cidr_block=config.peer.cidr_block or None,
        ),
        status=remote.status,
        status_detail=remote.status_detail or None,
        peer_connection_id=remote.peer_connection_id or None,
    )
