"""Configuration management with validation.

Configuration is process-wide and immutable. Invalid values are rejected at
load time so a misconfigured process fails before any API call is made.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field

from .errors import ConfigurationError

__all__ = ["Config", "ConfigurationError"]

# Environment variables
API_KEY_ENV_VAR = "DFCLOUD_API_KEY"
API_HOST_ENV_VAR = "DFCLOUD_API_HOST"

# Configuration constants with documented bounds
DEFAULT_API_HOST = "api.dragonflydb.cloud"

DEFAULT_REQUEST_TIMEOUT_SECONDS = 15.0
MAX_REQUEST_TIMEOUT_SECONDS = 300.0

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
MAX_POLL_INTERVAL_SECONDS = 60.0

DEFAULT_CONVERGENCE_TIMEOUT_SECONDS = 300.0  # 5 minutes per create/update/delete wait
MAX_CONVERGENCE_TIMEOUT_SECONDS = 3600.0

# Manifests are small YAML documents; anything bigger is a mistake
MAX_MANIFEST_FILE_SIZE_BYTES = 1024 * 1024

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Host with optional scheme and port, no path
VALID_API_HOST_PATTERN = r"^(https?://)?[A-Za-z0-9.-]+(:[0-9]{1,5})?/?$"


@dataclass(frozen=True)
class Config:
    """Client and convergence configuration.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    api_key: str = field(repr=False)
    api_host: str = DEFAULT_API_HOST

    # Timing
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    convergence_timeout_seconds: float = DEFAULT_CONVERGENCE_TIMEOUT_SECONDS

    # Behavior
    replace_on_change: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.api_key:
            errors.append(f"{API_KEY_ENV_VAR} is required (missing api key)")

        if not self.api_host:
            errors.append(f"{API_HOST_ENV_VAR} must not be empty")
        elif not re.match(VALID_API_HOST_PATTERN, self.api_host):
            errors.append(f"{API_HOST_ENV_VAR} must be a host name or base URL: {self.api_host}")

        if not (0 < self.request_timeout_seconds <= MAX_REQUEST_TIMEOUT_SECONDS):
            errors.append(
                f"request timeout must be in (0, {MAX_REQUEST_TIMEOUT_SECONDS}] seconds"
            )

        if not (0 < self.poll_interval_seconds <= MAX_POLL_INTERVAL_SECONDS):
            errors.append(f"poll interval must be in (0, {MAX_POLL_INTERVAL_SECONDS}] seconds")

        if not (0 < self.convergence_timeout_seconds <= MAX_CONVERGENCE_TIMEOUT_SECONDS):
            errors.append(
                f"convergence timeout must be in (0, {MAX_CONVERGENCE_TIMEOUT_SECONDS}] seconds"
            )
        elif self.convergence_timeout_seconds < self.poll_interval_seconds:
            errors.append("convergence timeout must be at least one poll interval")

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"log level must be one of {VALID_LOG_LEVELS}: {self.log_level}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level.upper())

    @classmethod
    def from_env(
        cls,
        api_key: str | None = None,
        api_host: str | None = None,
    ) -> Config:
        """Load configuration from environment variables.

        Explicit arguments take precedence over the environment.

        Environment Variables:
            DFCLOUD_API_KEY: API key used as the bearer token (required)
            DFCLOUD_API_HOST: API host (default: api.dragonflydb.cloud)
            DFCLOUD_REQUEST_TIMEOUT: Per-request timeout in seconds (default: 15)
            DFCLOUD_POLL_INTERVAL: Seconds between status polls (default: 5)
            DFCLOUD_CONVERGENCE_TIMEOUT: Deadline for create/update/delete waits
                in seconds (default: 300)
            DFCLOUD_REPLACE_ON_CHANGE: If "true", immutable changes are applied
                by delete-then-create instead of being rejected (default: false)
            DFCLOUD_LOG_LEVEL: Logging level (default: INFO)
        """

        def get_float(key: str, default: float) -> float:
            value = os.environ.get(key)
            if value is None or value == "":
                return default
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be a number: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        return cls(
            api_key=api_key or os.environ.get(API_KEY_ENV_VAR, ""),
            api_host=api_host or os.environ.get(API_HOST_ENV_VAR) or DEFAULT_API_HOST,
            request_timeout_seconds=get_float(
                "DFCLOUD_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
            poll_interval_seconds=get_float("DFCLOUD_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS),
            convergence_timeout_seconds=get_float(
                "DFCLOUD_CONVERGENCE_TIMEOUT", DEFAULT_CONVERGENCE_TIMEOUT_SECONDS
            ),
            replace_on_change=get_bool("DFCLOUD_REPLACE_ON_CHANGE", False),
            log_level=os.environ.get("DFCLOUD_LOG_LEVEL", "INFO"),
        )
