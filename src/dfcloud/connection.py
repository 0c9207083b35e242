"""Peering connection lifecycle.

A connection links a network to a VPC in the customer's own account. The
control plane requests the peering, then the connection sits INACTIVE until
the peer side accepts it, which happens outside this package. Create
therefore treats INACTIVE as provisioned, as well as ACTIVE.
"""

from __future__ import annotations

from typing import Any

from .lifecycle import ImmutableResourceController, ResourceKind
from .mappers import connection_from_wire, connection_to_wire
from .models import ConnectionResource
from .wire import Connection, ConnectionConfig, ConnectionStatus


class ConnectionController(ImmutableResourceController):
    kind = ResourceKind.CONNECTION
    model = ConnectionResource
    provisioned_statuses = frozenset({ConnectionStatus.INACTIVE, ConnectionStatus.ACTIVE})
    # IRRECOVERABLE: the peer side was removed out-of-band
    failure_statuses = frozenset({ConnectionStatus.FAILED, ConnectionStatus.IRRECOVERABLE})
    immutable_fields = ("name", "network_id", "peer")

    async def _fetch(self, resource_id: str) -> Connection:
        return await self._client.get_connection(resource_id)

    async def _create_remote(self, config: ConnectionConfig) -> Connection:
        return await self._client.create_connection(config)

    async def _delete_remote(self, resource_id: str) -> None:
        await self._client.delete_connection(resource_id)

    async def _list_remote(self) -> list[Connection]:
        return await self._client.list_connections()

    def _to_wire(self, desired: ConnectionResource) -> ConnectionConfig:
        return connection_to_wire(desired)

    def _from_wire(self, remote: Connection) -> ConnectionResource:
        return connection_from_wire(remote)

    def _remote_id(self, remote: Any) -> str:
        return remote.connection_id
