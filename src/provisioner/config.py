"""Configuration management with validation.

Limits are enforced at configuration load time so that a misconfigured
engine fails before the first remote call instead of in the middle of a
multi-step reconciliation.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


DEFAULT_API_URL = "https://console.cloud.timescale.com/api/query"

# HTTP-level retries performed by the transport pipeline
DEFAULT_HTTP_MAX_RETRIES = 5
MAX_HTTP_MAX_RETRIES = 20
DEFAULT_RETRY_WAIT_MIN_SECONDS = 1
DEFAULT_RETRY_WAIT_MAX_SECONDS = 30
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30

# Content-classified retries performed by the engine
DEFAULT_DELETE_RETRY_ATTEMPTS = 12
DEFAULT_DELETE_RETRY_INTERVAL_SECONDS = 10
DEFAULT_ATTACH_RETRY_ATTEMPTS = 12
DEFAULT_ATTACH_RETRY_INTERVAL_SECONDS = 10
DEFAULT_CREATE_RETRY_ATTEMPTS = 30
DEFAULT_CREATE_RETRY_INTERVAL_SECONDS = 10
MAX_RETRY_ATTEMPTS = 100

# Upper bound on any readiness wait (create timeouts included)
MAX_CREATE_TIMEOUT_SECONDS = 6 * 3600

MAX_RESPONSE_PREVIEW_CHARS = 500

# Manifest limits
MAX_MANIFEST_FILE_SIZE_BYTES = 1024 * 1024
MAX_MANIFEST_RESOURCES = 500

VALID_PROJECT_ID_PATTERN = r"^[a-z0-9]{6,32}$"
VALID_URL_PATTERN = r"^https?://[^\s/$.?#].[^\s]*$"


@dataclass(frozen=True)
class Config:
    """Engine configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    project_id: str
    api_url: str = DEFAULT_API_URL

    # Transport
    http_max_retries: int = DEFAULT_HTTP_MAX_RETRIES
    retry_wait_min_seconds: int = DEFAULT_RETRY_WAIT_MIN_SECONDS
    retry_wait_max_seconds: int = DEFAULT_RETRY_WAIT_MAX_SECONDS
    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS

    # Engine retries
    delete_retry_attempts: int = DEFAULT_DELETE_RETRY_ATTEMPTS
    delete_retry_interval_seconds: float = DEFAULT_DELETE_RETRY_INTERVAL_SECONDS
    attach_retry_attempts: int = DEFAULT_ATTACH_RETRY_ATTEMPTS
    attach_retry_interval_seconds: float = DEFAULT_ATTACH_RETRY_INTERVAL_SECONDS
    create_retry_attempts: int = DEFAULT_CREATE_RETRY_ATTEMPTS
    create_retry_interval_seconds: float = DEFAULT_CREATE_RETRY_INTERVAL_SECONDS

    # Overrides the creation PollSpec timeout of every resource type
    create_timeout_seconds: float | None = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.project_id:
            errors.append("CLOUD_PROJECT_ID is required")
        elif not re.match(VALID_PROJECT_ID_PATTERN, self.project_id):
            errors.append(
                f"CLOUD_PROJECT_ID must match pattern {VALID_PROJECT_ID_PATTERN}: {self.project_id}"
            )

        if not re.match(VALID_URL_PATTERN, self.api_url):
            errors.append(f"CLOUD_API_URL must be an http(s) URL: {self.api_url}")

        if not (0 <= self.http_max_retries <= MAX_HTTP_MAX_RETRIES):
            errors.append(f"CLOUD_MAX_RETRIES must be between 0 and {MAX_HTTP_MAX_RETRIES}")

        if self.retry_wait_min_seconds < 0:
            errors.append("CLOUD_RETRY_WAIT_MIN_SEC cannot be negative")
        if self.retry_wait_max_seconds < self.retry_wait_min_seconds:
            errors.append("CLOUD_RETRY_WAIT_MAX_SEC must be >= CLOUD_RETRY_WAIT_MIN_SEC")

        if self.request_timeout_seconds < 1:
            errors.append("CLOUD_REQUEST_TIMEOUT_SEC must be at least 1")

        for key, attempts in (
            ("DELETE_RETRY_ATTEMPTS", self.delete_retry_attempts),
            ("ATTACH_RETRY_ATTEMPTS", self.attach_retry_attempts),
            ("CREATE_RETRY_ATTEMPTS", self.create_retry_attempts),
        ):
            if not (1 <= attempts <= MAX_RETRY_ATTEMPTS):
                errors.append(f"{key} must be between 1 and {MAX_RETRY_ATTEMPTS}")

        for key, interval in (
            ("DELETE_RETRY_INTERVAL_SEC", self.delete_retry_interval_seconds),
            ("ATTACH_RETRY_INTERVAL_SEC", self.attach_retry_interval_seconds),
            ("CREATE_RETRY_INTERVAL_SEC", self.create_retry_interval_seconds),
        ):
            if interval < 0:
                errors.append(f"{key} cannot be negative")

        if self.create_timeout_seconds is not None and not (
            0 < self.create_timeout_seconds <= MAX_CREATE_TIMEOUT_SECONDS
        ):
            errors.append(
                f"CREATE_TIMEOUT_SEC must be between 1 and {MAX_CREATE_TIMEOUT_SECONDS} seconds"
            )

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            CLOUD_PROJECT_ID: Project all resources belong to (required)
            CLOUD_API_URL: GraphQL endpoint (default: production console)
            CLOUD_MAX_RETRIES: HTTP-level retries per request (default: 5)
            CLOUD_RETRY_WAIT_MIN_SEC: Minimum HTTP backoff (default: 1)
            CLOUD_RETRY_WAIT_MAX_SEC: Maximum HTTP backoff (default: 30)
            CLOUD_REQUEST_TIMEOUT_SEC: Per-request timeout (default: 30)
            DELETE_RETRY_ATTEMPTS: Attempts for blocked deletes (default: 12)
            DELETE_RETRY_INTERVAL_SEC: Wait between blocked deletes (default: 10)
            ATTACH_RETRY_ATTEMPTS: Attempts for blocked attaches (default: 12)
            ATTACH_RETRY_INTERVAL_SEC: Wait between blocked attaches (default: 10)
            CREATE_RETRY_ATTEMPTS: Attempts while a new resource waits on a dependency (default: 30)
            CREATE_RETRY_INTERVAL_SEC: Wait between those attempts (default: 10)
            CREATE_TIMEOUT_SEC: Override for every creation readiness timeout
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_float(key: str, default: float | None) -> float | None:
            value = os.environ.get(key)
            if value is None or value == "":
                return default
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be a number: {value}") from e

        return cls(
            project_id=os.environ.get("CLOUD_PROJECT_ID", ""),
            api_url=os.environ.get("CLOUD_API_URL", DEFAULT_API_URL),
            http_max_retries=get_int("CLOUD_MAX_RETRIES", DEFAULT_HTTP_MAX_RETRIES),
            retry_wait_min_seconds=get_int(
                "CLOUD_RETRY_WAIT_MIN_SEC", DEFAULT_RETRY_WAIT_MIN_SECONDS
            ),
            retry_wait_max_seconds=get_int(
                "CLOUD_RETRY_WAIT_MAX_SEC", DEFAULT_RETRY_WAIT_MAX_SECONDS
            ),
            request_timeout_seconds=get_int(
                "CLOUD_REQUEST_TIMEOUT_SEC", DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
            delete_retry_attempts=get_int("DELETE_RETRY_ATTEMPTS", DEFAULT_DELETE_RETRY_ATTEMPTS),
            delete_retry_interval_seconds=get_float(
                "DELETE_RETRY_INTERVAL_SEC", DEFAULT_DELETE_RETRY_INTERVAL_SECONDS
            ),
            attach_retry_attempts=get_int("ATTACH_RETRY_ATTEMPTS", DEFAULT_ATTACH_RETRY_ATTEMPTS),
            attach_retry_interval_seconds=get_float(
                "ATTACH_RETRY_INTERVAL_SEC", DEFAULT_ATTACH_RETRY_INTERVAL_SECONDS
            ),
            create_retry_attempts=get_int("CREATE_RETRY_ATTEMPTS", DEFAULT_CREATE_RETRY_ATTEMPTS),
            create_retry_interval_seconds=get_float(
                "CREATE_RETRY_INTERVAL_SEC", DEFAULT_CREATE_RETRY_INTERVAL_SECONDS
            ),
            create_timeout_seconds=get_float("CREATE_TIMEOUT_SEC", None),
        )
