# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bacrot Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation to prevent
accidental modification during runtime. Secrets (database password,
storage keys) are masked in every repr.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List
import re

from bacrot.credentials import mask_secret


DEFAULT_DAC_ENDPOINT = "https://db3prod-dacsvc.azure.com/DACWebService.svc"
DEFAULT_SERVER_DOMAIN = "database.windows.net"
DEFAULT_BLOB_DOMAIN = "blob.core.windows.net"
DEFAULT_EDITION = "Business"
DEFAULT_SIZE_GB = 10
DEFAULT_MONTHLY_WINDOW = 3


class StorageBackend(str, Enum):
    """Blob storage provider holding the backup artifacts."""

    AZURE = "azure"
    S3 = "s3"


def _validate_cron_time(time_str: str) -> bool:
    """Validate HH:MM time format."""
    if not time_str:
        return False
    try:
        parts = time_str.split(":")
        if len(parts) != 2:
            return False
        hour, minute = int(parts[0]), int(parts[1])
        return 0 <= hour <= 23 and 0 <= minute <= 59
    except (ValueError, AttributeError):
        return False


def _validate_container_name(name: str) -> bool:
    """
    Validate a blob container name.

    Rules:
    - 3-63 characters
    - Lowercase letters, numbers, hyphens
    - Must start and end with letter or number
    - No consecutive hyphens
    """
    if not name or len(name) < 3 or len(name) > 63:
        return False
    if not re.match(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$", name):
        return False
    return "--" not in name


@dataclass(frozen=True)
class DatabaseRef:
    """Connection details of the database being exported or imported."""

    name: str
    server: str
    user: str
    password: str = field(repr=False)
    edition: str | None = None
    size_gb: int | None = None

    def __repr__(self) -> str:
        return (
            f"DatabaseRef(name={self.name!r}, server={self.server!r}, "
            f"user={self.user!r}, password={mask_secret(self.password)!r})"
        )


@dataclass(frozen=True)
class BlobRef:
    """Location of a .bacpac artifact in blob storage."""

    account_name: str
    name: str | None = None
    account_key: str | None = field(default=None, repr=False)
    container: str | None = None

    def __repr__(self) -> str:
        return (
            f"BlobRef(account_name={self.account_name!r}, name={self.name!r}, "
            f"container={self.container!r}, "
            f"account_key={mask_secret(self.account_key)!r})"
        )

    def with_updates(self, **kwargs) -> "BlobRef":
        return replace(self, **kwargs)


@dataclass(frozen=True)
class RetentionPolicy:
    """
    Which historical backups to keep.

    Rules are evaluated independently and unioned:
    - limit: keep the N most recent artifacts
    - monthly_window: keep everything newer than N months (off when None)
    - per_month: keep the latest artifact of every calendar month
    - per_year: keep the latest artifact of every calendar year
    """

    limit: int = 10
    monthly_window: int | None = None
    per_month: bool = False
    per_year: bool = False

    def __post_init__(self) -> None:
        errors: List[str] = []
        if self.limit < 0:
            errors.append(f"limit must be >= 0, got {self.limit}")
        if self.monthly_window is not None and self.monthly_window < 0:
            errors.append(f"monthly_window must be >= 0, got {self.monthly_window}")
        if errors:
            from bacrot.exceptions import ConfigurationError

            raise ConfigurationError(
                "Retention policy validation failed",
                details={"errors": errors},
            )


@dataclass(frozen=True)
class BacrotConfig:
    """
    Immutable configuration for backup, restore and rotation.

    This configuration is frozen after creation so it can be shared by
    concurrent rotations and polls without copying.
    """

    # Required: storage account holding the .bacpac containers
    storage_account: str

    # Storage provider (default: azure)
    storage_backend: StorageBackend = StorageBackend.AZURE

    # Storage access key; resolved lazily when not set
    storage_key: str | None = field(default=None, repr=False)

    # DAC import/export service base URL
    dac_endpoint: str = DEFAULT_DAC_ENDPOINT

    # Suffix appended to short server names
    server_domain: str = DEFAULT_SERVER_DOMAIN

    # Suffix used to compose blob URIs
    blob_domain: str = DEFAULT_BLOB_DOMAIN

    # Retention policy used by rotate() when none is passed
    retention: RetentionPolicy = field(default_factory=RetentionPolicy)

    # Seconds between two status polls
    poll_interval: float = 10.0

    # Optional ceiling for a whole wait, in seconds (None = unbounded)
    poll_timeout: float | None = None

    # Maximum concurrent deletions during rotation
    max_concurrent_deletes: int = 3

    # Import defaults
    default_edition: str = DEFAULT_EDITION
    default_size_gb: int = DEFAULT_SIZE_GB

    # S3 backend only
    region: str = "us-east-1"
    endpoint_url: str | None = None

    # Daily rotation time in HH:MM format (UTC)
    schedule_cron: str | None = None

    # Containers rotated by the scheduled job
    rotation_containers: List[str] = field(default_factory=list)

    # Timeout for a single HTTP call to the DAC service, in seconds
    http_timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not self.storage_account:
            errors.append("storage_account is required")

        if self.poll_interval < 0:
            errors.append(f"poll_interval must be >= 0, got {self.poll_interval}")

        if self.poll_timeout is not None and self.poll_timeout <= 0:
            errors.append(f"poll_timeout must be > 0, got {self.poll_timeout}")

        if self.max_concurrent_deletes < 1:
            errors.append(
                f"max_concurrent_deletes must be >= 1, got {self.max_concurrent_deletes}"
            )

        if self.default_size_gb < 1:
            errors.append(f"default_size_gb must be >= 1, got {self.default_size_gb}")

        if self.schedule_cron and not _validate_cron_time(self.schedule_cron):
            errors.append(f"Invalid schedule_cron format: {self.schedule_cron}, expected HH:MM")

        if self.schedule_cron and not self.rotation_containers:
            errors.append("rotation_containers required when schedule_cron is set")

        for container in self.rotation_containers:
            if not _validate_container_name(container):
                errors.append(f"Invalid container name: {container}")

        if not self.dac_endpoint.startswith(("http://", "https://")):
            errors.append(f"dac_endpoint must be an http(s) URL, got {self.dac_endpoint}")

        if errors:
            from bacrot.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    def __repr__(self) -> str:
        return (
            f"BacrotConfig(storage_account={self.storage_account!r}, "
            f"storage_backend={self.storage_backend.value!r}, "
            f"storage_key={mask_secret(self.storage_key)!r}, "
            f"dac_endpoint={self.dac_endpoint!r}, retention={self.retention!r})"
        )

    def with_updates(self, **kwargs) -> "BacrotConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        return replace(self, **kwargs)
