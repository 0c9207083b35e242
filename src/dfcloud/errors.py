"""Error taxonomy shared by the client, the poller and the controllers.

Every error raised by this package derives from DfCloudError so callers can
catch the whole family at once. The subclasses separate three outcomes a
caller must treat differently:

- definitely failed: ClientError, ServerError, DecodeError,
  ProvisioningFailedError, ResourceBusyError, ReplaceRequiredError
- unknown outcome: TransportError (the request may have landed),
  ConvergenceTimeoutError, OperationCancelledError once a request was sent
  (cancelled before sending, it is definitely failed)
- already satisfied: NotFoundError during Delete, which controllers turn
  into success rather than surfacing
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class DfCloudError(Exception):
    """Base exception for all errors raised by this package."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(DfCloudError):
    """Raised when configuration or desired state is malformed.

    Always detected before any network call is made.
    """


class TransportError(DfCloudError):
    """Raised when the request never produced an HTTP response.

    Covers DNS, TLS, connection and request-timeout failures.
    """


class ClientError(DfCloudError):
    """Raised for 4xx responses carrying a decodable error body."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(
            f"bad status: {status_code}: {message}",
            details={"status_code": status_code},
        )
        self.status_code = status_code
        self.message = message


class NotFoundError(ClientError):
    """Raised for 404 responses."""

    def __init__(self, message: str = "not found") -> None:
        super().__init__(404, message)


class ServerError(DfCloudError):
    """Raised for 5xx responses, or 4xx responses with an undecodable body."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"bad status: {status_code}", details={"status_code": status_code})
        self.status_code = status_code


class DecodeError(DfCloudError):
    """Raised when a successful response body does not match the expected shape."""


def _format_target(target: str | Iterable[str]) -> str:
    if isinstance(target, str):
        return target
    return "|".join(sorted(str(t) for t in target))


class ConvergenceTimeoutError(DfCloudError):
    """Raised when a resource did not reach its target status before the deadline.

    The final remote state is unknown; callers should Read to re-check.
    """

    def __init__(
        self,
        resource_id: str,
        target: str | Iterable[str],
        waited_seconds: float,
        last_status: str | None = None,
    ) -> None:
        target_text = _format_target(target)
        message = (
            f"timed out after {waited_seconds:.1f}s waiting for {resource_id} "
            f"to reach status {target_text}"
        )
        if last_status is not None:
            message += f" (last status: {last_status})"
        super().__init__(
            message,
            details={
                "resource_id": resource_id,
                "target": target_text,
                "waited_seconds": waited_seconds,
                "last_status": last_status,
            },
        )
        self.resource_id = resource_id
        self.target = target_text
        self.waited_seconds = waited_seconds
        self.last_status = last_status


class OperationCancelledError(DfCloudError):
    """Raised when the wait scope was cancelled, mid-convergence or before a request."""

    def __init__(
        self,
        resource_id: str,
        target: str | Iterable[str] | None = None,
        *,
        action: str | None = None,
    ) -> None:
        target_text = _format_target(target) if target is not None else None
        if action is not None:
            message = f"cancelled before sending {action} request for {resource_id}"
        else:
            message = f"cancelled while waiting for {resource_id} to reach status {target_text}"
        super().__init__(
            message,
            details={"resource_id": resource_id, "target": target_text, "action": action},
        )
        self.resource_id = resource_id
        self.target = target_text
        self.action = action
        # False when the scope was cancelled before the request went out
        self.request_sent = action is None


class ProvisioningFailedError(DfCloudError):
    """Raised when the remote resource settled in a terminal failure status."""

    def __init__(self, resource_id: str, status: str, detail: str | None = None) -> None:
        message = f"{resource_id} entered terminal status {status}"
        if detail:
            message += f": {detail}"
        super().__init__(
            message,
            details={"resource_id": resource_id, "status": status, "detail": detail},
        )
        self.resource_id = resource_id
        self.status = status
        self.detail = detail


class ResourceBusyError(DfCloudError):
    """Raised when an update is requested while the resource is mid-transition."""

    def __init__(self, resource_id: str, status: str) -> None:
        super().__init__(
            f"{resource_id} is not active (status: {status}); retry once it settles",
            details={"resource_id": resource_id, "status": status},
        )
        self.resource_id = resource_id
        self.status = status


class ReplaceRequiredError(DfCloudError):
    """Raised when a change touches fields that cannot be updated in place."""

    def __init__(self, resource_id: str, fields: list[str]) -> None:
        super().__init__(
            f"{resource_id} must be replaced to change: {', '.join(fields)}",
            details={"resource_id": resource_id, "fields": fields},
        )
        self.resource_id = resource_id
        self.fields = fields


class ReplacementError(DfCloudError):
    """Raised when a delete-then-create replacement stops part way."""

    def __init__(self, resource_id: str, step: str, cause: Exception) -> None:
        super().__init__(
            f"replacement of {resource_id} failed during {step}: {cause}",
            details={"resource_id": resource_id, "step": step, "cause": type(cause).__name__},
        )
        self.resource_id = resource_id
        self.step = step
        self.cause = cause
