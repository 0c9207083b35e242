"""Integration tests for the network lifecycle against the mock control plane."""

import pytest

from dfcloud import lifecycle
from dfcloud.errors import (
    ClientError,
    ConfigurationError,
    ConvergenceTimeoutError,
    NotFoundError,
    OperationCancelledError,
    ProvisioningFailedError,
    ReplacementError,
    ReplaceRequiredError,
    ServerError,
)
from dfcloud.lifecycle import Operation, Outcome, ResourceKind
from dfcloud.models import NetworkResource
from dfcloud.wire import NetworkStatus
from dfcloud_mock import NETWORKS, MockControlPlane, make_provider

DESIRED = {
    "name": "primary",
    "location": {"provider": "aws", "region": "us-east-1"},
    "cidr_block": "192.168.0.0/16",
}


class TestNetworkCreate:
    """Tests for network create."""

    @pytest.mark.asyncio
    async def test_create_waits_for_active(self) -> None:
        """Test create polls pending to active and returns VPC details."""
        plane = MockControlPlane(ready_after_reads=2)

        async with make_provider(plane) as provider:
            result = await provider.controller(ResourceKind.NETWORK).create(DESIRED)

        assert result.success
        assert result.operation == Operation.CREATE
        assert result.outcome == Outcome.SUCCEEDED
        assert result.resource.status == NetworkStatus.ACTIVE
        assert result.resource.vpc.resource_id == f"vpc-{result.resource_id}"
        assert result.resource.name == "primary"
        assert len(plane.requests_for("POST")) == 1
        assert len(plane.requests_for("GET")) == 2

    @pytest.mark.asyncio
    async def test_create_accepts_model(self) -> None:
        """Test create with a model instance instead of a mapping."""
        plane = MockControlPlane(ready_after_reads=1)

        async with make_provider(plane) as provider:
            result = await provider.controller("network").create(
                NetworkResource.model_validate(DESIRED)
            )

        assert result.success

    @pytest.mark.asyncio
    async def test_invalid_desired_state_makes_no_request(self) -> None:
        """Test malformed desired state fails before any network call."""
        plane = MockControlPlane()

        async with make_provider(plane) as provider:
            result = await provider.controller("network").create(
                {**DESIRED, "cidr_block": "192.168.0.1"}
            )

        assert isinstance(result.error, ConfigurationError)
        assert "cidrBlock" in str(result.error)
        assert plane.requests == []

    @pytest.mark.asyncio
    async def test_unknown_provider_rejected(self) -> None:
        """Test an unknown cloud provider is rejected up front."""
        plane = MockControlPlane()

        async with make_provider(plane) as provider:
            result = await provider.controller("network").create(
                {**DESIRED, "location": {"provider": "oracle", "region": "x"}}
            )

        assert isinstance(result.error, ConfigurationError)
        assert plane.requests == []

    @pytest.mark.asyncio
    async def test_client_error_aborts_without_polling(self) -> None:
        """Test a rejected create does not poll."""
        plane = MockControlPlane()
        plane.inject_error("POST", "/v1/networks", 409, {"error": "cidr overlaps"})

        async with make_provider(plane) as provider:
            result = await provider.controller("network").create(DESIRED)

        assert isinstance(result.error, ClientError)
        assert result.error.message == "cidr overlaps"
        assert result.outcome == Outcome.FAILED
        assert plane.requests_for("GET") == []

    @pytest.mark.asyncio
    async def test_create_timeout_keeps_id(self) -> None:
        """Test a create that never converges reports unknown and keeps the id."""
        plane = MockControlPlane(ready_after_reads=1000)

        async with make_provider(plane, convergence_timeout_seconds=0.1) as provider:
            result = await provider.controller("network").create(DESIRED)

        assert isinstance(result.error, ConvergenceTimeoutError)
        assert result.outcome == Outcome.UNKNOWN
        assert result.resource_id is not None
        assert result.resource_id in str(result.error)
        assert "active" in str(result.error)

    @pytest.mark.asyncio
    async def test_failed_network_aborts_early(self) -> None:
        """Test a network that fails to provision ends the wait."""
        plane = MockControlPlane(ready_after_reads=1)
        plane.provision_as(NETWORKS, "failed")

        async with make_provider(plane) as provider:
            result = await provider.controller("network").create(DESIRED)

        assert isinstance(result.error, ProvisioningFailedError)
        assert result.error.status == "failed"
        assert result.outcome == Outcome.FAILED


class TestNetworkRead:
    """Tests for network read."""

    @pytest.mark.asyncio
    async def test_read_active(self) -> None:
        """Test read returns canonical state."""
        plane = MockControlPlane()
        plane.seed_network("net-1")

        async with make_provider(plane) as provider:
            result = await provider.controller("network").read("net-1")

        assert result.success
        assert not result.absent
        assert result.resource.id == "net-1"
        assert result.resource.cidr_block == "192.168.0.0/16"

    @pytest.mark.asyncio
    async def test_read_missing_is_absent(self) -> None:
        """Test a 404 read is reported absent without error."""
        plane = MockControlPlane()

        async with make_provider(plane) as provider:
            result = await provider.controller("network").read("net-gone")

        assert result.success
        assert result.absent
        assert result.outcome == Outcome.ABSENT
        assert result.resource is None

    @pytest.mark.asyncio
    async def test_read_deleted_status_is_absent(self) -> None:
        """Test a deleted-status read is reported absent."""
        plane = MockControlPlane()
        plane.seed_network("net-1", status="deleted")

        async with make_provider(plane) as provider:
            result = await provider.controller("network").read("net-1")

        assert result.absent
        assert result.error is None

    @pytest.mark.asyncio
    async def test_read_server_error(self) -> None:
        """Test a server error during read is carried in the result."""
        plane = MockControlPlane()
        plane.inject_error("GET", "/v1/networks/net-1", 500)

        async with make_provider(plane) as provider:
            result = await provider.controller("network").read("net-1")

        assert isinstance(result.error, ServerError)
        assert not result.absent


class TestNetworkDelete:
    """Tests for network delete."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("delete_mode", ["status", "vanish"])
    async def test_delete_then_read_is_absent(self, delete_mode: str) -> None:
        """Test delete waits for removal, after which read reports absent."""
        plane = MockControlPlane(delete_mode=delete_mode, delete_after_reads=2)
        plane.seed_network("net-1")

        async with make_provider(plane) as provider:
            controller = provider.controller("network")
            deleted = await controller.delete("net-1")
            read = await controller.read("net-1")

        assert deleted.success
        assert deleted.absent
        assert read.absent
        assert read.error is None

    @pytest.mark.asyncio
    async def test_delete_already_gone(self) -> None:
        """Test deleting a missing network succeeds without polling."""
        plane = MockControlPlane()

        async with make_provider(plane) as provider:
            result = await provider.controller("network").delete("net-gone")

        assert result.success
        assert result.absent
        assert plane.requests_for("GET") == []

    @pytest.mark.asyncio
    async def test_delete_with_immediate_404(self) -> None:
        """Test a network that vanishes straight after delete."""
        plane = MockControlPlane(delete_mode="vanish", delete_after_reads=0)
        plane.seed_network("net-1")

        async with make_provider(plane) as provider:
            result = await provider.controller("network").delete("net-1")

        assert result.success
        assert plane.record(NETWORKS, "net-1") is None


class TestNetworkUpdate:
    """Tests for network update on an immutable kind."""

    @pytest.mark.asyncio
    async def test_no_change_is_noop(self) -> None:
        """Test update with identical desired state sends nothing."""
        plane = MockControlPlane()
        plane.seed_network("net-1")
        desired = {
            "name": "seeded-network",
            "location": {"provider": "aws", "region": "us-east-1"},
            "cidr_block": "192.168.0.0/16",
        }

        async with make_provider(plane) as provider:
            result = await provider.controller("network").update("net-1", desired)

        assert result.success
        assert result.resource.id == "net-1"
        assert plane.requests_for("PUT") == []
        assert plane.requests_for("DELETE") == []

    @pytest.mark.asyncio
    async def test_change_requires_replace(self) -> None:
        """Test a changed immutable field is refused by default."""
        plane = MockControlPlane()
        plane.seed_network("net-1")

        async with make_provider(plane) as provider:
            result = await provider.controller("network").update("net-1", DESIRED)

        assert isinstance(result.error, ReplaceRequiredError)
        assert result.error.fields == ["name"]
        assert plane.requests_for("DELETE") == []

    @pytest.mark.asyncio
    async def test_replace_on_change(self) -> None:
        """Test replacement deletes, waits, creates and waits again."""
        plane = MockControlPlane(ready_after_reads=1)
        plane.seed_network("net-1")

        async with make_provider(plane, replace_on_change=True) as provider:
            result = await provider.controller("network").update(
                "net-1", {**DESIRED, "cidr_block": "10.0.0.0/16"}
            )

        assert result.success
        assert result.resource_id != "net-1"
        assert result.resource.cidr_block == "10.0.0.0/16"
        assert result.resource.status == NetworkStatus.ACTIVE
        assert [r.method for r in plane.requests if r.method != "GET"] == ["DELETE", "POST"]

    @pytest.mark.asyncio
    async def test_replace_names_failed_step(self) -> None:
        """Test a replacement that fails on create reports the step."""
        plane = MockControlPlane(ready_after_reads=1)
        plane.seed_network("net-1")
        plane.inject_error("POST", "/v1/networks", 400, {"error": "quota exceeded"})

        async with make_provider(plane, replace_on_change=True) as provider:
            result = await provider.controller("network").update("net-1", DESIRED)

        assert isinstance(result.error, ReplacementError)
        assert result.error.step == "create"
        assert isinstance(result.error.cause, ClientError)
        assert result.outcome == Outcome.FAILED

    @pytest.mark.asyncio
    async def test_update_missing_network(self) -> None:
        """Test update of a missing network fails with not found."""
        plane = MockControlPlane()

        async with make_provider(plane) as provider:
            result = await provider.controller("network").update("net-gone", DESIRED)

        assert isinstance(result.error, NotFoundError)

    def test_requires_replace_lists_fields(self) -> None:
        """Test requires_replace names every changed immutable field."""
        plane = MockControlPlane()
        controller = make_provider(plane).controller("network")
        current = NetworkResource.model_validate(DESIRED)
        desired = NetworkResource.model_validate(
            {**DESIRED, "location": {"provider": "aws", "region": "eu-west-1"}, "name": "other"}
        )

        assert controller.requires_replace(current, desired) == ["name", "location"]
        assert controller.requires_replace(current, current) == []


class TestNetworkImport:
    """Tests for network import."""

    @pytest.mark.asyncio
    async def test_import_existing(self) -> None:
        """Test import returns the same shape as create."""
        plane = MockControlPlane()
        plane.seed_network("net-1")

        async with make_provider(plane) as provider:
            result = await provider.controller("network").import_("net-1")

        assert result.success
        assert result.operation == Operation.IMPORT
        assert result.resource.vpc.account_id == "123456789012"

    @pytest.mark.asyncio
    async def test_import_missing(self) -> None:
        """Test importing a missing network is an error, not absent."""
        plane = MockControlPlane()

        async with make_provider(plane) as provider:
            result = await provider.controller("network").import_("net-gone")

        assert isinstance(result.error, NotFoundError)
        assert not result.absent

    @pytest.mark.asyncio
    async def test_import_deleted(self) -> None:
        """Test importing a deleted network is a not-found error."""
        plane = MockControlPlane()
        plane.seed_network("net-1", status="deleted")

        async with make_provider(plane) as provider:
            result = await provider.controller("network").import_("net-1")

        assert isinstance(result.error, NotFoundError)


class TestNetworkCancelled:
    """Tests for operations started after the provider was cancelled."""

    @pytest.mark.asyncio
    async def test_cancelled_create_sends_nothing(self) -> None:
        """Test a cancelled create never reaches the API."""
        plane = MockControlPlane(ready_after_reads=1)

        async with make_provider(plane) as provider:
            provider.cancel()
            result = await provider.controller("network").create(DESIRED)

        assert isinstance(result.error, OperationCancelledError)
        assert not result.error.request_sent
        assert result.outcome == Outcome.FAILED
        assert result.resource_id is None
        assert plane.requests_for("POST") == []
        assert plane.state.list_records(NETWORKS) == []

    @pytest.mark.asyncio
    async def test_cancelled_delete_sends_nothing(self) -> None:
        """Test a cancelled delete leaves the network in place."""
        plane = MockControlPlane()
        plane.seed_network("net-1")

        async with make_provider(plane) as provider:
            provider.cancel()
            result = await provider.controller("network").delete("net-1")

        assert isinstance(result.error, OperationCancelledError)
        assert result.outcome == Outcome.FAILED
        assert plane.requests == []
        assert plane.record(NETWORKS, "net-1").status == "active"

    @pytest.mark.asyncio
    async def test_cancelled_replace_sends_nothing(self) -> None:
        """Test a cancelled replacement neither deletes nor creates."""
        plane = MockControlPlane(ready_after_reads=1)
        plane.seed_network("net-1")

        async with make_provider(plane, replace_on_change=True) as provider:
            provider.cancel()
            result = await provider.controller("network").update("net-1", DESIRED)

        assert isinstance(result.error, OperationCancelledError)
        assert result.outcome == Outcome.FAILED
        assert [r.method for r in plane.requests] == ["GET"]
        assert plane.record(NETWORKS, "net-1") is not None


class TestNetworkReplaceDeadlines:
    """Tests for the wait deadlines used during replacement."""

    @pytest.mark.asyncio
    async def test_each_wait_gets_full_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the delete and create waits do not share one deadline."""
        plane = MockControlPlane(ready_after_reads=1)
        plane.seed_network("net-1")
        scopes = []
        real_await_status = lifecycle.await_status

        async def recording_await_status(*args, **kwargs):
            scopes.append(kwargs["scope"])
            return await real_await_status(*args, **kwargs)

        monkeypatch.setattr(lifecycle, "await_status", recording_await_status)

        async with make_provider(plane, replace_on_change=True) as provider:
            caller_scope = provider.new_scope()
            result = await provider.controller("network").update(
                "net-1", DESIRED, caller_scope
            )

        assert result.success
        assert len(scopes) == 2
        deleted_scope, provisioned_scope = scopes
        assert deleted_scope is not caller_scope
        assert provisioned_scope is not deleted_scope
        assert provisioned_scope.deadline >= deleted_scope.deadline >= caller_scope.deadline
        assert all(s.cancel_event is caller_scope.cancel_event for s in scopes)
