"""Datastore lifecycle.

Datastores are updated in place: the new configuration is sent and the
datastore moves back through UPDATING until it is active again. Only
disable_passkey forces a replacement. The API offers no way to read that
flag back reliably, so an empty secret is taken as the sign it is set.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .errors import ReplaceRequiredError, ResourceBusyError
from .lifecycle import LifecycleResult, ResourceController, ResourceKind
from .mappers import datastore_from_wire, datastore_to_wire
from .models import DatastoreResource, ResourceModel, parse_desired
from .poller import WaitScope
from .wire import Datastore, DatastoreConfig, DatastoreStatus

logger = logging.getLogger(__name__)

# An update sent in these statuses would race an in-flight transition
BUSY_STATUSES = frozenset(
    {DatastoreStatus.PENDING, DatastoreStatus.UPDATING, DatastoreStatus.DELETING}
)


class DatastoreController(ResourceController):
    kind = ResourceKind.DATASTORE
    model = DatastoreResource
    provisioned_statuses = frozenset({DatastoreStatus.ACTIVE})

    async def _fetch(self, resource_id: str) -> Datastore:
        return await self._client.get_datastore(resource_id)

    async def _create_remote(self, config: DatastoreConfig) -> Datastore:
        return await self._client.create_datastore(config)

    async def _delete_remote(self, resource_id: str) -> None:
        await self._client.delete_datastore(resource_id)

    async def _list_remote(self) -> list[Datastore]:
        return await self._client.list_datastores()

    def _to_wire(self, desired: DatastoreResource) -> DatastoreConfig:
        return datastore_to_wire(desired)

    def _from_wire(self, remote: Datastore) -> DatastoreResource:
        return datastore_from_wire(remote)

    def _remote_id(self, remote: Any) -> str:
        return remote.datastore_id

    def requires_replace(self, current: ResourceModel, desired: ResourceModel) -> list[str]:
        # Unset means "keep whatever the datastore has"
        wanted = getattr(desired, "disable_passkey", None)
        if wanted is None:
            return []
        if bool(wanted) != bool(getattr(current, "disable_passkey", None)):
            return ["disable_passkey"]
        return []

    async def _update(
        self,
        result: LifecycleResult,
        desired: DatastoreResource | Mapping[str, Any],
        scope: WaitScope | None,
    ) -> None:
        spec = parse_desired(DatastoreResource, desired)
        scope = scope or self.new_scope()
        resource_id = result.resource_id

        remote = await self._fetch_current(resource_id)
        if remote.status in BUSY_STATUSES:
            raise ResourceBusyError(resource_id, remote.status.value)

        changed = self.requires_replace(self._canonical(remote), spec)
        if changed:
            raise ReplaceRequiredError(resource_id, changed)

        self._check_cancelled(scope, resource_id, "update")
        # disable_passkey is create-only
        await self._client.update_datastore(resource_id, datastore_to_wire(spec, for_update=True))
        logger.info(
            "Datastore update accepted, waiting for it to become active",
            extra={"kind": self.kind.value, "resource_id": resource_id},
        )

        final = await self._await_provisioned(resource_id, scope)
        result.resource = self._canonical(final)
