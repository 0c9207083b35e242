"""Controller registry.

The provider owns the one API client of a process and hands it to one
controller per resource kind. Hosts pick a controller by kind name and never
construct clients or controllers themselves.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from .client import DfCloudClient
from .config import (
    DEFAULT_CONVERGENCE_TIMEOUT_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    Config,
)
from .connection import ConnectionController
from .datastore import DatastoreController
from .lifecycle import ResourceController, ResourceKind
from .network import NetworkController
from .poller import WaitScope

logger = logging.getLogger(__name__)

CONTROLLERS: dict[ResourceKind, type[ResourceController]] = {
    ResourceKind.NETWORK: NetworkController,
    ResourceKind.DATASTORE: DatastoreController,
    ResourceKind.CONNECTION: ConnectionController,
}


class Provider:
    """One client, one controller per kind, one shared cancel signal.

    Usage:
        async with Provider.from_config(Config.from_env()) as provider:
            result = await provider.controller("network").read("net-123")
    """

    def __init__(
        self,
        client: DfCloudClient,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        convergence_timeout_seconds: float = DEFAULT_CONVERGENCE_TIMEOUT_SECONDS,
        replace_on_change: bool = False,
    ) -> None:
        self._client = client
        self._convergence_timeout = convergence_timeout_seconds
        self._cancel_event = asyncio.Event()
        self._controllers: dict[ResourceKind, ResourceController] = {
            kind: controller_class(
                client,
                poll_interval_seconds=poll_interval_seconds,
                convergence_timeout_seconds=convergence_timeout_seconds,
                replace_on_change=replace_on_change,
                cancel_event=self._cancel_event,
            )
            for kind, controller_class in CONTROLLERS.items()
        }

    @classmethod
    def from_config(
        cls,
        config: Config,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> Provider:
        """Build the client and every controller from configuration."""
        logger.debug(
            "Configuring provider",
            extra={
                "api_host": config.api_host,
                "poll_interval_seconds": config.poll_interval_seconds,
                "convergence_timeout_seconds": config.convergence_timeout_seconds,
                "replace_on_change": config.replace_on_change,
            },
        )
        return cls(
            DfCloudClient.from_config(config, transport=transport),
            poll_interval_seconds=config.poll_interval_seconds,
            convergence_timeout_seconds=config.convergence_timeout_seconds,
            replace_on_change=config.replace_on_change,
        )

    @property
    def client(self) -> DfCloudClient:
        return self._client

    @property
    def kinds(self) -> list[ResourceKind]:
        return list(self._controllers)

    def controller(self, kind: ResourceKind | str) -> ResourceController:
        """Get the controller for a kind.

        Raises:
            ConfigurationError: If the kind is unknown.
        """
        return self._controllers[ResourceKind.from_name(kind)]

    def new_scope(self) -> WaitScope:
        """Create a wait scope bounded by the configured convergence timeout."""
        return WaitScope.with_timeout(self._convergence_timeout, self._cancel_event)

    def cancel(self) -> None:
        """Abort every in-flight wait. Operations finish with OperationCancelledError."""
        logger.info("Cancellation requested")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> Provider:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()
