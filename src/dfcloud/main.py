"""Process-level plumbing for the dfcloud command line.

Sets up structured logging and runs one lifecycle operation per process
with signal handling: SIGINT or SIGTERM cancels any in-flight convergence
wait, and the operation still returns a result (with an unknown outcome)
so whatever is known, such as a fresh resource id, is printed.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from datetime import UTC, datetime
from typing import Any

import httpx

from .config import Config
from .errors import ConfigurationError
from .lifecycle import LifecycleResult, Operation, ResourceKind
from .models import ResourceModel
from .provider import Provider

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_ABSENT = 3

# LogRecord attributes that are not structured context
_RESERVED_LOG_ATTRS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    )
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Add extra fields from the record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_LOG_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure JSON logging on stderr; stdout is reserved for command output."""
    root_logger = logging.getLogger()

    # Replace a handler from an earlier call; sys.stderr may have changed since
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            root_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Request lines from the HTTP stack would repeat our own API logging
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def exit_code_for(result: LifecycleResult) -> int:
    """Map an operation result to a process exit code."""
    if result.error is not None:
        if isinstance(result.error, ConfigurationError):
            return EXIT_CONFIG_ERROR
        return EXIT_FAILURE
    if result.absent and result.operation == Operation.READ:
        return EXIT_ABSENT
    return EXIT_SUCCESS


def _install_signal_handlers(provider: Provider) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed = []

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("Received signal", extra={"signal": sig.name})
        provider.cancel()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
        except (NotImplementedError, RuntimeError):
            # Not on the main thread, or not supported by this platform
            logger.debug("Signal handler not installed", extra={"signal": sig.name})
            continue
        installed.append(sig)
    return installed


def _remove_signal_handlers(signals: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for sig in signals:
        loop.remove_signal_handler(sig)


async def run_operation(
    config: Config,
    kind: ResourceKind | str,
    operation: Operation,
    *,
    resource_id: str | None = None,
    desired: ResourceModel | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> LifecycleResult:
    """Run one lifecycle operation against the configured control plane.

    Raises:
        ConfigurationError: If kind is unknown.
    """
    async with Provider.from_config(config, transport=transport) as provider:
        controller = provider.controller(kind)
        signals = _install_signal_handlers(provider)
        try:
            if operation == Operation.CREATE:
                return await controller.create(desired)
            if operation == Operation.READ:
                return await controller.read(resource_id)
            if operation == Operation.UPDATE:
                return await controller.update(resource_id, desired)
            if operation == Operation.DELETE:
                return await controller.delete(resource_id)
            return await controller.import_(resource_id)
        finally:
            _remove_signal_handlers(signals)


async def run_create_all(
    config: Config,
    manifests: list[tuple[ResourceKind, ResourceModel]],
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[LifecycleResult]:
    """Create resources in order, stopping at the first one that fails."""
    results: list[LifecycleResult] = []
    async with Provider.from_config(config, transport=transport) as provider:
        signals = _install_signal_handlers(provider)
        try:
            for kind, desired in manifests:
                result = await provider.controller(kind).create(desired)
                results.append(result)
                if not result.success:
                    break
        finally:
            _remove_signal_handlers(signals)
    return results


async def run_list(
    config: Config,
    kind: ResourceKind | str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[ResourceModel]:
    """List every resource of a kind.

    Raises:
        DfCloudError: If the API call fails.
    """
    async with Provider.from_config(config, transport=transport) as provider:
        return await provider.controller(kind).list_all()
