"""Tests for desired-state to wire mapping and back."""

import pytest

from dfcloud import wire
from dfcloud.mappers import (
    connection_from_wire,
    connection_to_wire,
    datastore_from_wire,
    datastore_to_wire,
    network_from_wire,
    network_to_wire,
)
from dfcloud.models import (
    Cluster,
    ConnectionResource,
    DatastoreResource,
    Features,
    MaintenanceWindow,
    NetworkResource,
)


def echo_datastore(config: wire.DatastoreConfig, password: str = "pw") -> wire.Datastore:
    """Simulate the API echoing a config back in an active datastore."""
    return wire.Datastore.model_validate(
        {
            "datastore_id": "ds-1",
            "status": "active",
            "created_at": 1700000000,
            "password": password,
            "addr": "ds-1.dragonflydb.test:6385",
            "dashboard": {"url": "https://dashboard.test/ds-1"},
            "config": config.to_payload(),
        }
    )


def full_datastore() -> DatastoreResource:
    return DatastoreResource.model_validate(
        {
            "name": "sessions",
            "networkId": "net-1",
            "location": {
                "provider": "aws",
                "region": "eu-west-1",
                "availabilityZones": ["euw1-az1", "euw1-az2"],
            },
            "tier": {"memoryBytes": 6_000_000_000, "performanceTier": "enhanced", "replicas": 1},
            "features": {"cacheMode": True, "tls": False, "aclRules": ["USER app ON >pw +@all"]},
            "cluster": {"shardMemory": 12_000_000_000},
            "maintenanceWindow": {"weekday": 2, "hour": 4, "durationHours": 1},
        }
    )


class TestNetworkMapping:
    """Tests for network mapping."""

    def test_round_trip(self) -> None:
        """Test that echoed fields survive to_wire then from_wire."""
        desired = NetworkResource.model_validate(
            {
                "name": "primary",
                "location": {"provider": "gcp", "region": "us-central1"},
                "cidr_block": "10.10.0.0/16",
            }
        )
        remote = wire.Network.model_validate(
            {"network_id": "net-1", "status": "active", **network_to_wire(desired).to_payload()}
        )

        canonical = network_from_wire(remote)

        assert canonical.name == desired.name
        assert canonical.location == desired.location
        assert canonical.cidr_block == desired.cidr_block
        assert canonical.id == "net-1"

    def test_remote_fields_never_sent(self) -> None:
        """Test that server-owned fields are not part of the request body."""
        desired = NetworkResource.model_validate(
            {
                "name": "primary",
                "location": {"provider": "aws", "region": "us-east-1"},
                "cidr_block": "192.168.0.0/16",
                "id": "net-1",
                "status": "active",
                "vpc": {"resource_id": "vpc-1", "account_id": "1"},
            }
        )

        payload = network_to_wire(desired).to_payload()

        assert set(payload) == {"name", "location", "cidr_block"}

    def test_vpc_mapped(self) -> None:
        """Test that VPC details come through once present."""
        remote = wire.Network.model_validate(
            {
                "network_id": "net-1",
                "status": "active",
                "name": "n",
                "location": {"provider": "aws", "region": "us-east-1"},
                "cidr_block": "192.168.0.0/16",
                "vpc": {"resource_id": "vpc-abc", "account_id": "123"},
            }
        )

        canonical = network_from_wire(remote)

        assert canonical.vpc.resource_id == "vpc-abc"
        assert canonical.vpc.account_id == "123"


class TestDatastoreMapping:
    """Tests for datastore mapping."""

    def test_round_trip(self) -> None:
        """Test that every echoed field survives the round trip."""
        desired = full_datastore()

        canonical = datastore_from_wire(echo_datastore(datastore_to_wire(desired)))

        assert canonical.name == desired.name
        assert canonical.network_id == desired.network_id
        assert canonical.location == desired.location
        assert canonical.tier == desired.tier
        assert canonical.features == desired.features
        assert canonical.cluster == desired.cluster
        assert canonical.maintenance_window == desired.maintenance_window

    def test_round_trip_minimal(self) -> None:
        """Test that absent optional blocks stay absent."""
        desired = DatastoreResource.model_validate(
            {
                "name": "cache",
                "location": {"provider": "aws", "region": "us-east-1"},
                "tier": {"memory_bytes": 3_000_000_000, "performance_tier": "dev"},
            }
        )

        canonical = datastore_from_wire(echo_datastore(datastore_to_wire(desired)))

        assert canonical.features == Features()
        assert canonical.cluster is None
        assert canonical.maintenance_window is None
        assert canonical.network_id is None
        assert canonical.location.availability_zones is None
        assert canonical.tier.replicas is None

    def test_tier_memory_field_name(self) -> None:
        """Test that memory maps to max_memory_bytes on the wire."""
        payload = datastore_to_wire(full_datastore()).to_payload()

        assert payload["tier"] == {
            "max_memory_bytes": 6_000_000_000,
            "performance_tier": "enhanced",
            "replicas": 1,
        }

    def test_flags_preserve_unset(self) -> None:
        """Test that only explicitly set flags reach the wire."""
        payload = datastore_to_wire(full_datastore()).to_payload()

        assert payload["dragonfly"] == {
            "cache_mode": True,
            "tls": False,
            "acl_rules": ["USER app ON >pw +@all"],
        }

    def test_cluster_sent_enabled(self) -> None:
        """Test that a cluster block is sent with enabled set."""
        payload = datastore_to_wire(full_datastore()).to_payload()

        assert payload["cluster"] == {"enabled": True, "shard_memory": 12_000_000_000}

    def test_disabled_cluster_maps_to_none(self) -> None:
        """Test that a cluster reported as disabled is no cluster."""
        config = datastore_to_wire(full_datastore())
        config.cluster = wire.ClusterConfig(enabled=False, shard_memory=0)

        assert datastore_from_wire(echo_datastore(config)).cluster is None

    def test_zero_shard_memory_maps_to_none(self) -> None:
        """Test that a zero shard size means unset."""
        config = datastore_to_wire(full_datastore())
        config.cluster = wire.ClusterConfig(enabled=True, shard_memory=0)

        assert datastore_from_wire(echo_datastore(config)).cluster == Cluster()

    def test_partial_maintenance_window_kept(self) -> None:
        """Test that a window with only some fields set is kept as-is."""
        config = datastore_to_wire(full_datastore())
        config.maintenance_window = wire.MaintenanceWindow(hour=3)

        window = datastore_from_wire(echo_datastore(config)).maintenance_window

        assert window == MaintenanceWindow(hour=3)

    def test_remote_fields_mapped(self) -> None:
        """Test address, secret and dashboard come from the response."""
        canonical = datastore_from_wire(echo_datastore(datastore_to_wire(full_datastore())))

        assert canonical.id == "ds-1"
        assert canonical.status == wire.DatastoreStatus.ACTIVE
        assert canonical.address == "ds-1.dragonflydb.test:6385"
        assert canonical.secret_key == "pw"
        assert canonical.dashboard_url == "https://dashboard.test/ds-1"

    def test_secret_not_in_repr(self) -> None:
        """Test that the datastore secret is kept out of repr."""
        remote = echo_datastore(datastore_to_wire(full_datastore()), password="hunter2-secret")

        canonical = datastore_from_wire(remote)

        assert canonical.secret_key == "hunter2-secret"
        assert "hunter2-secret" not in repr(canonical)

    @pytest.mark.parametrize(
        ("password", "echoed", "expected"),
        [
            ("", None, True),
            ("", False, True),
            ("secret", None, None),
            ("secret", False, False),
        ],
    )
    def test_empty_secret_means_passkey_disabled(
        self, password: str, echoed: bool | None, expected: bool | None
    ) -> None:
        """Test that an empty secret is read back as passkey disabled."""
        config = datastore_to_wire(full_datastore())
        config.disable_passkey = echoed

        canonical = datastore_from_wire(echo_datastore(config, password=password))

        assert canonical.disable_passkey is expected
        if not password:
            assert canonical.secret_key is None

    def test_empty_network_id_maps_to_none(self) -> None:
        """Test that an empty network id from the API means no network."""
        config = datastore_to_wire(full_datastore())
        config.network_id = ""

        assert datastore_from_wire(echo_datastore(config)).network_id is None

    def test_disable_passkey_sent_on_create_only(self) -> None:
        """Test that disable_passkey is left out of update bodies."""
        desired = full_datastore().model_copy(update={"disable_passkey": True})

        assert datastore_to_wire(desired).to_payload()["disable_passkey"] is True
        assert "disable_passkey" not in datastore_to_wire(desired, for_update=True).to_payload()

    def test_empty_optional_fields_round_trip(self) -> None:
        """Test that empty network id and zones compare equal after the round trip."""
        desired = DatastoreResource.model_validate(
            {
                "name": "cache",
                "network_id": "",
                "location": {"provider": "aws", "region": "us-east-1", "availability_zones": []},
                "tier": {"memory_bytes": 3_000_000_000, "performance_tier": "dev"},
            }
        )

        canonical = datastore_from_wire(echo_datastore(datastore_to_wire(desired)))

        assert canonical.network_id == desired.network_id
        assert canonical.location == desired.location


class TestConnectionMapping:
    """Tests for connection mapping."""

    def test_round_trip(self) -> None:
        """Test that name, network and peer survive the round trip."""
        desired = ConnectionResource.model_validate(
            {
                "name": "to-app-vpc",
                "networkId": "net-1",
                "peer": {
                    "accountId": "210987654321",
                    "vpcId": "vpc-peer",
                    "region": "us-west-2",
                    "cidrBlock": "172.16.0.0/16",
                },
            }
        )
        remote = wire.Connection.model_validate(
            {
                "connection_id": "conn-1",
                "status": "inactive",
                "peer_connection_id": "pcx-1",
                "connection_config": connection_to_wire(desired).to_payload(),
            }
        )

        canonical = connection_from_wire(remote)

        assert canonical.name == desired.name
        assert canonical.network_id == desired.network_id
        assert canonical.peer == desired.peer
        assert canonical.peer_connection_id == "pcx-1"
        assert canonical.status_detail is None

    def test_empty_peer_region_maps_to_none(self) -> None:
        """Test that an empty peer region is absent, not an empty string."""
        remote = wire.Connection.model_validate(
            {
                "connection_id": "conn-1",
                "status": "active",
                "connection_config": {
                    "name": "c",
                    "network_id": "net-1",
                    "peer": {"account_id": "1", "vpc_id": "vpc-1", "region": ""},
                },
            }
        )

        assert connection_from_wire(remote).peer.region is None

    def test_unset_peer_region_omitted(self) -> None:
        """Test that an unset region is not sent."""
        desired = ConnectionResource(
            name="c",
            network_id="net-1",
            peer={"account_id": "1", "vpc_id": "vpc-1"},
        )

        payload = connection_to_wire(desired).to_payload()

        assert payload["peer"] == {"account_id": "1", "vpc_id": "vpc-1"}
