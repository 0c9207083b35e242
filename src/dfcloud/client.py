"""Async REST client for the Dragonfly Cloud control plane.

Each coroutine issues exactly one authenticated request and either returns a
decoded wire model or raises one of the errors in errors.py. The client never
retries: resending a mutating request is never safe to do blindly, and
repeated status checks are the poller's job.

The client holds nothing but its credentials and connection pool, so one
instance can serve any number of concurrent operations.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .config import (
    DEFAULT_API_HOST,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    Config,
)
from .errors import (
    ClientError,
    ConfigurationError,
    DecodeError,
    NotFoundError,
    ServerError,
    TransportError,
)
from .wire import (
    Connection,
    ConnectionConfig,
    Datastore,
    DatastoreConfig,
    ErrorResponse,
    Network,
    NetworkConfig,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

NETWORKS_PATH = "/v1/networks"
DATASTORES_PATH = "/v1/datastores"
CONNECTIONS_PATH = "/v1/connections"


def _error_message(response: httpx.Response) -> str | None:
    """Extract the message from an {"error": "..."} body, if it has one."""
    try:
        return ErrorResponse.model_validate(response.json()).error
    except (ValueError, ValidationError):
        return None


class DfCloudClient:
    """Client for the /v1 networks, datastores and connections endpoints.

    Use as an async context manager, or call aclose() when done:

        async with DfCloudClient.from_config(config) as client:
            network = await client.get_network("net-123")
    """

    def __init__(
        self,
        api_key: str,
        *,
        api_host: str = DEFAULT_API_HOST,
        timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: API key sent as the bearer token.
            api_host: Host name, or a full base URL including scheme.
            timeout_seconds: Timeout applied to every request.
            transport: Optional httpx transport (tests use httpx.MockTransport).

        Raises:
            ConfigurationError: If api_key is empty.
        """
        if not api_key:
            raise ConfigurationError("missing api key")

        host = api_host.rstrip("/")
        base_url = host if "://" in host else f"https://{host}"

        self._base_url = base_url
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: Config,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> DfCloudClient:
        """Build a client from validated configuration."""
        return cls(
            config.api_key,
            api_host=config.api_host,
            timeout_seconds=config.request_timeout_seconds,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> DfCloudClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._http.aclose()

    # =========================================================================
    # Networks
    # =========================================================================

    async def get_network(self, network_id: str) -> Network:
        response = await self._request("GET", f"{NETWORKS_PATH}/{network_id}")
        return self._decode(response, Network)

    async def create_network(self, config: NetworkConfig) -> Network:
        response = await self._request("POST", NETWORKS_PATH, config.to_payload())
        return self._decode(response, Network)

    async def update_network(self, network_id: str, config: NetworkConfig) -> Network:
        response = await self._request(
            "PUT", f"{NETWORKS_PATH}/{network_id}", config.to_payload()
        )
        return self._decode(response, Network)

    async def delete_network(self, network_id: str) -> None:
        await self._request("DELETE", f"{NETWORKS_PATH}/{network_id}")

    async def list_networks(self) -> list[Network]:
        """List all networks in the account."""
        response = await self._request("GET", NETWORKS_PATH)
        return self._decode_list(response, Network)

    # =========================================================================
    # Datastores
    # =========================================================================

    async def get_datastore(self, datastore_id: str) -> Datastore:
        response = await self._request("GET", f"{DATASTORES_PATH}/{datastore_id}")
        return self._decode(response, Datastore)

    async def create_datastore(self, config: DatastoreConfig) -> Datastore:
        response = await self._request("POST", DATASTORES_PATH, config.to_payload())
        return self._decode(response, Datastore)

    async def update_datastore(self, datastore_id: str, config: DatastoreConfig) -> Datastore:
        response = await self._request(
            "PUT", f"{DATASTORES_PATH}/{datastore_id}", config.to_payload()
        )
        return self._decode(response, Datastore)

    async def delete_datastore(self, datastore_id: str) -> None:
        await self._request("DELETE", f"{DATASTORES_PATH}/{datastore_id}")

    async def list_datastores(self) -> list[Datastore]:
        """List all datastores in the account."""
        response = await self._request("GET", DATASTORES_PATH)
        return self._decode_list(response, Datastore)

    # =========================================================================
    # Connections
    # =========================================================================

    async def get_connection(self, connection_id: str) -> Connection:
        response = await self._request("GET", f"{CONNECTIONS_PATH}/{connection_id}")
        return self._decode(response, Connection)

    async def create_connection(self, config: ConnectionConfig) -> Connection:
        response = await self._request("POST", CONNECTIONS_PATH, config.to_payload())
        return self._decode(response, Connection)

    async def update_connection(
        self, connection_id: str, config: ConnectionConfig
    ) -> Connection:
        response = await self._request(
            "PUT", f"{CONNECTIONS_PATH}/{connection_id}", config.to_payload()
        )
        return self._decode(response, Connection)

    async def delete_connection(self, connection_id: str) -> None:
        await self._request("DELETE", f"{CONNECTIONS_PATH}/{connection_id}")

    async def list_connections(self) -> list[Connection]:
        """List all peering connections in the account."""
        response = await self._request("GET", CONNECTIONS_PATH)
        return self._decode_list(response, Connection)

    # =========================================================================
    # Transport and classification
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request and classify a non-2xx response into an error.

        Raises:
            TransportError: No response was received.
            NotFoundError: The server answered 404.
            ClientError: Any other 4xx with a decodable error body.
            ServerError: 5xx, or 4xx whose error body could not be decoded.
        """
        logger.debug("API request", extra={"method": method, "path": path})

        try:
            response = await self._http.request(method, path, json=payload)
        except httpx.TransportError as e:
            logger.warning(
                "API request failed before a response was received",
                extra={"method": method, "path": path, "error_type": type(e).__name__},
            )
            raise TransportError(f"{method} {path}: {e}") from e

        if response.is_success:
            return response

        status = response.status_code
        message = _error_message(response) if 400 <= status < 500 else None

        logger.debug(
            "API error response",
            extra={"method": method, "path": path, "status_code": status, "error": message},
        )

        if status == httpx.codes.NOT_FOUND:
            raise NotFoundError(message or response.reason_phrase or "not found")
        if message is not None:
            raise ClientError(status, message)
        raise ServerError(status)

    @staticmethod
    def _decode(response: httpx.Response, model: type[ModelT]) -> ModelT:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise DecodeError(f"decode response: {e}") from e

    @staticmethod
    def _decode_list(response: httpx.Response, model: type[ModelT]) -> list[ModelT]:
        try:
            items = response.json()
        except ValueError as e:
            raise DecodeError(f"decode response: {e}") from e

        if items is None:
            return []
        if not isinstance(items, list):
            raise DecodeError(f"decode response: expected a list, got {type(items).__name__}")

        try:
            return [model.model_validate(item) for item in items]
        except ValidationError as e:
            raise DecodeError(f"decode response: {e}") from e
