"""Network lifecycle.

A network is created once and never changed: name, location and CIDR block
are all fixed at creation. Its VPC details only appear once it is active.
"""

from __future__ import annotations

from typing import Any

from .lifecycle import ImmutableResourceController, ResourceKind
from .mappers import network_from_wire, network_to_wire
from .models import NetworkResource
from .wire import Network, NetworkConfig, NetworkStatus


class NetworkController(ImmutableResourceController):
    kind = ResourceKind.NETWORK
    model = NetworkResource
    provisioned_statuses = frozenset({NetworkStatus.ACTIVE})
    failure_statuses = frozenset({NetworkStatus.FAILED})
    immutable_fields = ("name", "location", "cidr_block")

    async def _fetch(self, resource_id: str) -> Network:
        return await self._client.get_network(resource_id)

    async def _create_remote(self, config: NetworkConfig) -> Network:
        return await self._client.create_network(config)

    async def _delete_remote(self, resource_id: str) -> None:
        await self._client.delete_network(resource_id)

    async def _list_remote(self) -> list[Network]:
        return await self._client.list_networks()

    def _to_wire(self, desired: NetworkResource) -> NetworkConfig:
        return network_to_wire(desired)

    def _from_wire(self, remote: Network) -> NetworkResource:
        return network_from_wire(remote)

    def _remote_id(self, remote: Any) -> str:
        return remote.network_id
