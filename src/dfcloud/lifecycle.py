"""Lifecycle operations shared by every resource kind.

Each controller exposes the same five operations: create, read, update,
delete and import_. They never raise across the controller boundary (except
for asyncio cancellation): every outcome, including failures, comes back as
a LifecycleResult so the host can persist whatever is known, such as the id
of a resource whose create timed out.

Per-kind controllers subclass ResourceController and fill in the client
calls, the mappers and the status sets. Network and Connection cannot be
changed after creation and share ImmutableResourceController.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic import ValidationError

from .client import DfCloudClient
from .config import DEFAULT_CONVERGENCE_TIMEOUT_SECONDS, DEFAULT_POLL_INTERVAL_SECONDS
from .errors import (
    ClientError,
    ConfigurationError,
    ConvergenceTimeoutError,
    DecodeError,
    DfCloudError,
    NotFoundError,
    OperationCancelledError,
    ProvisioningFailedError,
    ReplacementError,
    ReplaceRequiredError,
    ResourceBusyError,
    TransportError,
)
from .models import ResourceModel, parse_desired
from .poller import DELETED_STATUS, WaitScope, await_status

logger = logging.getLogger(__name__)

# Errors after which the remote state is not known
UNKNOWN_OUTCOME_ERRORS = (TransportError, ConvergenceTimeoutError, OperationCancelledError)


class ResourceKind(str, Enum):
    """Resource kinds managed by this package."""

    NETWORK = "network"
    DATASTORE = "datastore"
    CONNECTION = "connection"

    @classmethod
    def from_name(cls, name: str | ResourceKind) -> ResourceKind:
        """Resolve a kind from its name, case-insensitively.

        Plural forms ("networks") are accepted too.

        Raises:
            ConfigurationError: If the name is not a known kind.
        """
        if isinstance(name, cls):
            return name
        normalized = str(name).strip().lower()
        for kind in cls:
            if normalized in (kind.value, f"{kind.value}s"):
                return kind
        valid = [kind.value for kind in cls]
        raise ConfigurationError(f"Unknown resource kind '{name}'. Valid kinds: {valid}")


class Operation(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    IMPORT = "import"


class Outcome(str, Enum):
    """How the caller should treat a finished operation."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"  # Definitely not applied
    UNKNOWN = "unknown"  # May or may not have been applied; re-read
    ABSENT = "absent"  # Resource does not exist; drop it from tracked state


@dataclass
class LifecycleResult:
    """Result of a single lifecycle operation."""

    kind: ResourceKind
    operation: Operation
    resource_id: str | None = None
    resource: ResourceModel | None = None
    absent: bool = False
    error: Exception | None = None
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        """Check if the operation succeeded."""
        return self.error is None

    @property
    def outcome(self) -> Outcome:
        if self.error is None:
            return Outcome.ABSENT if self.absent else Outcome.SUCCEEDED
        error = self.error
        if isinstance(error, OperationCancelledError) and not error.request_sent:
            return Outcome.FAILED
        if isinstance(error, ReplacementError):
            error = error.cause
        if isinstance(error, UNKNOWN_OUTCOME_ERRORS):
            return Outcome.UNKNOWN
        return Outcome.FAILED

    def to_output(self) -> dict[str, Any]:
        """Summarize the result for display."""
        output: dict[str, Any] = {
            "kind": self.kind.value,
            "operation": self.operation.value,
            "outcome": self.outcome.value,
            "id": self.resource_id,
            "duration_seconds": round(self.duration_seconds, 3),
        }
        if self.resource is not None:
            output["resource"] = self.resource.to_output()
        if self.error is not None:
            output["error"] = str(self.error)
            output["error_type"] = type(self.error).__name__
        return output


class ResourceController:
    """Lifecycle operations for one resource kind.

    Subclasses set the class attributes and implement the client hooks.
    """

    kind: ClassVar[ResourceKind]
    model: ClassVar[type[ResourceModel]]
    # Statuses that count as "create finished"
    provisioned_statuses: ClassVar[frozenset[str]]
    # Statuses that end a wait early with ProvisioningFailedError
    failure_statuses: ClassVar[frozenset[str]] = frozenset()

    def __init__(
        self,
        client: DfCloudClient,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        convergence_timeout_seconds: float = DEFAULT_CONVERGENCE_TIMEOUT_SECONDS,
        replace_on_change: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self._client = client
        self._poll_interval = poll_interval_seconds
        self._convergence_timeout = convergence_timeout_seconds
        self._replace_on_change = replace_on_change
        self._cancel_event = cancel_event if cancel_event is not None else asyncio.Event()

    def new_scope(self) -> WaitScope:
        """Create a wait scope bounded by the configured convergence timeout."""
        return WaitScope.with_timeout(self._convergence_timeout, self._cancel_event)

    def _fresh_deadline(self, scope: WaitScope) -> WaitScope:
        """A scope with a full convergence timeout that shares scope's cancel event."""
        return WaitScope.with_timeout(self._convergence_timeout, scope.cancel_event)

    def _check_cancelled(self, scope: WaitScope, resource_id: str | None, action: str) -> None:
        """Refuse to send a mutating request once the scope is cancelled."""
        if scope.cancelled:
            raise OperationCancelledError(
                resource_id or f"new {self.kind.value}", action=action
            )

    # =========================================================================
    # Kind hooks
    # =========================================================================

    async def _fetch(self, resource_id: str) -> Any:
        raise NotImplementedError

    async def _create_remote(self, config: Any) -> Any:
        raise NotImplementedError

    async def _delete_remote(self, resource_id: str) -> None:
        raise NotImplementedError

    async def _list_remote(self) -> list[Any]:
        raise NotImplementedError

    def _to_wire(self, desired: Any) -> Any:
        raise NotImplementedError

    def _from_wire(self, remote: Any) -> Any:
        raise NotImplementedError

    def _remote_id(self, remote: Any) -> str:
        raise NotImplementedError

    def requires_replace(self, current: ResourceModel, desired: ResourceModel) -> list[str]:
        """Names of changed fields that cannot be updated in place."""
        raise NotImplementedError

    # =========================================================================
    # Operations
    # =========================================================================

    async def create(
        self,
        desired: ResourceModel | Mapping[str, Any],
        scope: WaitScope | None = None,
    ) -> LifecycleResult:
        """Create the resource and wait until it is provisioned."""
        return await self._execute(Operation.CREATE, None, self._create, desired, scope)

    async def read(self, resource_id: str) -> LifecycleResult:
        """Fetch current state; a missing or deleted resource is reported absent."""
        return await self._execute(Operation.READ, resource_id, self._read)

    async def update(
        self,
        resource_id: str,
        desired: ResourceModel | Mapping[str, Any],
        scope: WaitScope | None = None,
    ) -> LifecycleResult:
        """Bring the resource to the desired state."""
        return await self._execute(Operation.UPDATE, resource_id, self._update, desired, scope)

    async def delete(self, resource_id: str, scope: WaitScope | None = None) -> LifecycleResult:
        """Delete the resource and wait until it is gone."""
        return await self._execute(Operation.DELETE, resource_id, self._delete, scope)

    async def import_(self, resource_id: str) -> LifecycleResult:
        """Adopt an existing resource by id."""
        return await self._execute(Operation.IMPORT, resource_id, self._import)

    async def list_all(self) -> list[ResourceModel]:
        """List every resource of this kind in canonical form.

        Unlike the lifecycle operations, errors are raised.
        """
        return [self._canonical(remote) for remote in await self._list_remote()]

    # =========================================================================
    # Operation bodies
    # =========================================================================

    async def _create(
        self,
        result: LifecycleResult,
        desired: ResourceModel | Mapping[str, Any],
        scope: WaitScope | None,
    ) -> None:
        spec = parse_desired(self.model, desired)
        scope = scope or self.new_scope()

        self._check_cancelled(scope, None, "create")
        remote = await self._create_remote(self._to_wire(spec))
        result.resource_id = self._remote_id(remote)
        logger.info(
            "Resource created, waiting for provisioning",
            extra={"kind": self.kind.value, "resource_id": result.resource_id},
        )

        final = await self._await_provisioned(result.resource_id, scope)
        result.resource = self._canonical(final)

    async def _read(self, result: LifecycleResult) -> None:
        try:
            remote = await self._fetch(result.resource_id)
        except NotFoundError:
            result.absent = True
            return

        if _is_deleted(remote):
            result.absent = True
            return
        result.resource = self._canonical(remote)

    async def _update(
        self,
        result: LifecycleResult,
        desired: ResourceModel | Mapping[str, Any],
        scope: WaitScope | None,
    ) -> None:
        raise NotImplementedError

    async def _delete(self, result: LifecycleResult, scope: WaitScope | None) -> None:
        scope = scope or self.new_scope()
        await self._delete_and_wait(result.resource_id, scope)
        result.absent = True

    async def _import(self, result: LifecycleResult) -> None:
        remote = await self._fetch(result.resource_id)
        if _is_deleted(remote):
            raise NotFoundError(f"{self.kind.value} {result.resource_id} has been deleted")
        result.resource = self._canonical(remote)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _fetch_current(self, resource_id: str) -> Any:
        """Fetch a resource that must exist; a deleted one counts as not found."""
        remote = await self._fetch(resource_id)
        if _is_deleted(remote):
            raise NotFoundError(f"{self.kind.value} {resource_id} has been deleted")
        return remote

    async def _await_provisioned(self, resource_id: str, scope: WaitScope) -> Any:
        return await await_status(
            self._fetch,
            resource_id,
            self.provisioned_statuses,
            poll_interval=self._poll_interval,
            scope=scope,
            failure_statuses=self.failure_statuses,
        )

    async def _delete_and_wait(self, resource_id: str, scope: WaitScope) -> None:
        self._check_cancelled(scope, resource_id, "delete")
        try:
            await self._delete_remote(resource_id)
        except NotFoundError:
            logger.info(
                "Resource already deleted",
                extra={"kind": self.kind.value, "resource_id": resource_id},
            )
            return

        await await_status(
            self._fetch,
            resource_id,
            DELETED_STATUS,
            poll_interval=self._poll_interval,
            scope=scope,
        )

    def _canonical(self, remote: Any) -> Any:
        try:
            return self._from_wire(remote)
        except ValidationError as e:
            raise DecodeError(f"unexpected {self.kind.value} in response: {e}") from e

    async def _execute(
        self,
        operation: Operation,
        resource_id: str | None,
        body: Any,
        *args: Any,
    ) -> LifecycleResult:
        """Run an operation body, converting every error into the result."""
        result = LifecycleResult(kind=self.kind, operation=operation, resource_id=resource_id)
        extra: dict[str, Any] = {
            "kind": self.kind.value,
            "operation": operation.value,
            "resource_id": resource_id,
        }

        try:
            await body(result, *args)
        except ConfigurationError as e:
            logger.error("Invalid desired state", extra={**extra, "error": str(e)})
            result.error = e
        except NotFoundError as e:
            logger.warning("Resource not found", extra={**extra, "error": str(e)})
            result.error = e
        except ClientError as e:
            logger.error(
                "API rejected request",
                extra={**extra, "error": e.message, "status_code": e.status_code},
            )
            result.error = e
        except (ConvergenceTimeoutError, OperationCancelledError) as e:
            # Outcome unknown: the id is kept so the caller can re-read
            logger.warning(
                "Resource did not converge",
                extra={**extra, "resource_id": result.resource_id, "error": str(e)},
            )
            result.error = e
        except ProvisioningFailedError as e:
            logger.error(
                "Resource entered terminal failure status",
                extra={**extra, "resource_id": result.resource_id, "status": e.status},
            )
            result.error = e
        except (ResourceBusyError, ReplaceRequiredError) as e:
            logger.warning("Update refused", extra={**extra, "error": str(e)})
            result.error = e
        except ReplacementError as e:
            logger.error(
                "Replacement stopped part way",
                extra={**extra, "resource_id": result.resource_id, "step": e.step},
            )
            result.error = e
        except DfCloudError as e:
            logger.error(
                "API error",
                extra={**extra, "error": str(e), "error_type": type(e).__name__},
            )
            result.error = e
        except Exception as e:
            logger.exception("Unexpected error during lifecycle operation", extra=extra)
            result.error = e

        result.end_time = datetime.now(UTC)
        self._log_result(result)
        return result

    def _log_result(self, result: LifecycleResult) -> None:
        """Log the operation result with structured data."""
        extra: dict[str, Any] = {
            "kind": result.kind.value,
            "operation": result.operation.value,
            "resource_id": result.resource_id,
            "outcome": result.outcome.value,
            "duration_seconds": result.duration_seconds,
        }
        if result.error is not None:
            extra["error"] = str(result.error)
            logger.error("Lifecycle operation failed", extra=extra)
        else:
            logger.info("Lifecycle operation complete", extra=extra)


class ImmutableResourceController(ResourceController):
    """Controller for kinds whose desired fields cannot change after creation.

    Update is a no-op when nothing changed. A change is refused with
    ReplaceRequiredError unless replace_on_change is set, in which case the
    resource is deleted and created again under a new id.
    """

    immutable_fields: ClassVar[tuple[str, ...]] = ()

    def requires_replace(self, current: ResourceModel, desired: ResourceModel) -> list[str]:
        return [
            name
            for name in self.immutable_fields
            if getattr(current, name) != getattr(desired, name)
        ]

    async def _update(
        self,
        result: LifecycleResult,
        desired: ResourceModel | Mapping[str, Any],
        scope: WaitScope | None,
    ) -> None:
        spec = parse_desired(self.model, desired)
        scope = scope or self.new_scope()
        resource_id = result.resource_id

        current = self._canonical(await self._fetch_current(resource_id))
        changed = self.requires_replace(current, spec)
        if not changed:
            logger.info(
                "No changes to apply",
                extra={"kind": self.kind.value, "resource_id": resource_id},
            )
            result.resource = current
            return

        if not self._replace_on_change:
            raise ReplaceRequiredError(resource_id, changed)

        logger.info(
            "Replacing resource",
            extra={"kind": self.kind.value, "resource_id": resource_id, "fields": changed},
        )
        await self._replace(result, spec, scope)

    async def _replace(
        self,
        result: LifecycleResult,
        spec: ResourceModel,
        scope: WaitScope,
    ) -> None:
        # Each wait gets its own convergence timeout; cancellation stays shared
        old_id = result.resource_id
        self._check_cancelled(scope, old_id, "delete")
        step = "delete"
        try:
            try:
                await self._delete_remote(old_id)
            except NotFoundError:
                pass
            else:
                step = "await_deleted"
                await await_status(
                    self._fetch,
                    old_id,
                    DELETED_STATUS,
                    poll_interval=self._poll_interval,
                    scope=self._fresh_deadline(scope),
                )

            step = "create"
            self._check_cancelled(scope, old_id, "create")
            remote = await self._create_remote(self._to_wire(spec))
            result.resource_id = self._remote_id(remote)

            step = "await_provisioned"
            final = await self._await_provisioned(
                result.resource_id, self._fresh_deadline(scope)
            )
        except DfCloudError as e:
            raise ReplacementError(old_id, step, e) from e

        result.resource = self._canonical(final)


def _is_deleted(remote: Any) -> bool:
    return getattr(remote.status, "value", remote.status) == DELETED_STATUS
