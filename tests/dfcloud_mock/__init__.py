"""Dragonfly Cloud API Mock for Integration Testing.

This module provides an in-memory implementation of the control plane's
REST API, served through httpx.MockTransport, so the real client, poller
and controllers can be exercised end to end without network access.

Key Features:
- Asynchronous provisioning simulation (status advances after N reads)
- Deletion as a "deleted" status or as a vanish-to-404
- Error injection (HTTP status or transport failure) per method and path
- Request log for asserting on request bodies and headers

Usage:
    from dfcloud_mock import MockControlPlane, make_provider

    plane = MockControlPlane(ready_after_reads=2)
    async with make_provider(plane) as provider:
        result = await provider.controller("network").create({...})

    assert plane.requests_for("POST")[0].body["name"] == "..."
"""

from .control_plane import (
    DEFAULT_API_HOST,
    DEFAULT_API_KEY,
    MockControlPlane,
    RecordedRequest,
)
from .factory import make_client, make_provider
from .state import CONNECTIONS, DATASTORES, NETWORKS, MockControlPlaneState, MockRecord

__all__ = [
    "CONNECTIONS",
    "DATASTORES",
    "DEFAULT_API_HOST",
    "DEFAULT_API_KEY",
    "NETWORKS",
    "MockControlPlane",
    "MockControlPlaneState",
    "MockRecord",
    "RecordedRequest",
    "make_client",
    "make_provider",
]
