"""Status convergence polling.

The control plane provisions asynchronously: a create or update returns while
the resource is still pending, and the caller has to re-fetch until it
settles. await_status is the one primitive every controller uses for that.

A WaitScope bounds each wait. It carries the deadline and a cancel event; the
event is shared per provider so a single signal handler can abort every
in-flight wait at once.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Collection
from dataclasses import dataclass, field
from typing import Any

from .config import DEFAULT_CONVERGENCE_TIMEOUT_SECONDS, DEFAULT_POLL_INTERVAL_SECONDS
from .errors import (
    ConvergenceTimeoutError,
    NotFoundError,
    OperationCancelledError,
    ProvisioningFailedError,
)

logger = logging.getLogger(__name__)

DELETED_STATUS = "deleted"

Fetch = Callable[[str], Awaitable[Any]]


@dataclass
class WaitScope:
    """Deadline and cancellation for one lifecycle operation."""

    deadline: float
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    @classmethod
    def with_timeout(
        cls,
        timeout_seconds: float = DEFAULT_CONVERGENCE_TIMEOUT_SECONDS,
        cancel_event: asyncio.Event | None = None,
    ) -> WaitScope:
        """Create a scope expiring timeout_seconds from now."""
        return cls(
            deadline=time.monotonic() + timeout_seconds,
            cancel_event=cancel_event if cancel_event is not None else asyncio.Event(),
        )

    def remaining(self) -> float:
        """Seconds left before the deadline, never negative."""
        return max(0.0, self.deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.deadline

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        self.cancel_event.set()


def _status_value(status: Any) -> str:
    return getattr(status, "value", status)


async def await_status(
    fetch: Fetch,
    resource_id: str,
    target: Any,
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    scope: WaitScope | None = None,
    failure_statuses: Collection[Any] = (),
) -> Any | None:
    """Re-fetch a resource until its status is in target.

    Args:
        fetch: Coroutine function returning the resource for an id. Must
            raise NotFoundError when the resource does not exist.
        resource_id: Id of the resource to watch.
        target: One status, or a collection of acceptable statuses.
        poll_interval: Seconds between fetches.
        scope: Deadline and cancellation; defaults to the standard deadline.
        failure_statuses: Statuses that end the wait early. Empty by default,
            in which case a failed resource is polled until the deadline.

    Returns:
        The fetched resource once it reached a target status, or None if the
        target includes "deleted" and the resource is no longer found.

    Raises:
        ConvergenceTimeoutError: The deadline passed first.
        OperationCancelledError: The scope was cancelled while waiting.
        ProvisioningFailedError: The resource entered a failure status.
        DfCloudError: Any error from fetch other than an expected NotFound.
    """
    if scope is None:
        scope = WaitScope.with_timeout()

    if isinstance(target, str) or not isinstance(target, Collection):
        targets = {_status_value(target)}
    else:
        targets = {_status_value(t) for t in target}
    failures = {_status_value(s) for s in failure_statuses}
    waiting_for_delete = DELETED_STATUS in targets

    started = time.monotonic()
    polls = 0
    last_status: str | None = None

    while True:
        if scope.cancelled:
            raise OperationCancelledError(resource_id, targets)

        polls += 1
        try:
            obj = await fetch(resource_id)
        except NotFoundError:
            if waiting_for_delete:
                logger.debug(
                    "Resource no longer found",
                    extra={"resource_id": resource_id, "polls": polls},
                )
                return None
            raise

        last_status = _status_value(obj.status)
        if last_status in targets:
            logger.debug(
                "Resource reached target status",
                extra={
                    "resource_id": resource_id,
                    "status": last_status,
                    "polls": polls,
                    "waited_seconds": time.monotonic() - started,
                },
            )
            return obj

        if last_status in failures:
            detail = getattr(obj, "status_detail", None) or None
            raise ProvisioningFailedError(resource_id, last_status, detail)

        remaining = scope.remaining()
        if remaining <= 0:
            raise ConvergenceTimeoutError(
                resource_id,
                targets,
                waited_seconds=time.monotonic() - started,
                last_status=last_status,
            )

        logger.debug(
            "Waiting for resource status",
            extra={
                "resource_id": resource_id,
                "status": last_status,
                "target": sorted(targets),
                "remaining_seconds": remaining,
            },
        )

        # Sleep until the next poll, waking early on cancellation
        try:
            await asyncio.wait_for(
                scope.cancel_event.wait(),
                timeout=min(poll_interval, remaining),
            )
        except TimeoutError:
            pass
        else:
            raise OperationCancelledError(resource_id, targets)
