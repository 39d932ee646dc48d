# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers and retention profiles.

These helpers are small, convenient wrappers around create_config() and
BacrotConfig.with_updates(). They make it easy to:

- Build a configuration from environment variables
- Apply ready-made retention profiles
"""

from __future__ import annotations

import os
from typing import List

from bacrot.builder import create_config
from bacrot.config import DEFAULT_MONTHLY_WINDOW, BacrotConfig, RetentionPolicy, StorageBackend
from bacrot.errors import (
    explain_invalid_backend_env,
    explain_invalid_bool_env,
    explain_invalid_float_env,
    explain_invalid_int_env,
    explain_missing_storage_account_env,
)
from bacrot.exceptions import ConfigurationError

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_int(name: str, value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_int_env(name, value)) from exc
    if parsed < 0:
        raise ConfigurationError(explain_invalid_int_env(name, value))
    return parsed


def _parse_float(name: str, value: str | None, default: float | None) -> float | None:
    if not value:
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_float_env(name, value)) from exc
    if parsed < 0:
        raise ConfigurationError(explain_invalid_float_env(name, value))
    return parsed


def _parse_bool(name: str, value: str | None) -> bool:
    if not value:
        return False
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(explain_invalid_bool_env(name, value))


def _parse_monthly_window(value: str | None) -> int | None:
    """Unset or empty: rule off. 'true'/'on': default window. Otherwise months."""
    if not value:
        return None
    if value.strip().lower() in _TRUE:
        return DEFAULT_MONTHLY_WINDOW
    if value.strip().lower() in _FALSE:
        return None
    return _parse_int("BACROT_RETENTION_MONTHLY_WINDOW", value, DEFAULT_MONTHLY_WINDOW)


def _parse_backend(value: str | None) -> StorageBackend:
    if not value:
        return StorageBackend.AZURE
    try:
        return StorageBackend(value.lower())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_backend_env(value)) from exc


def _parse_containers(value: str | None) -> List[str]:
    if not value:
        return []
    return [c.strip() for c in value.split(",") if c.strip()]


def create_config_from_env() -> BacrotConfig:
    """
    Create a BacrotConfig from environment variables.

    Required:
        - AZURE_STORAGE_ACCOUNT: Storage account (or S3 access scope name)

    Optional environment variables:
        - AZURE_STORAGE_ACCESS_KEY: Storage key (otherwise resolved at runtime)
        - BACROT_STORAGE_BACKEND: 'azure' | 's3' (default: azure)
        - AWS_REGION: Region for the s3 backend (default: us-east-1)
        - BACROT_DAC_ENDPOINT: DAC service base URL
        - BACROT_RETENTION_LIMIT: Backups to keep by count (default: 10)
        - BACROT_RETENTION_MONTHLY_WINDOW: Months kept entirely, or 'true' for 3
        - BACROT_RETENTION_PER_MONTH: Keep the latest backup of each month
        - BACROT_RETENTION_PER_YEAR: Keep the latest backup of each year
        - BACROT_POLL_INTERVAL: Seconds between status polls (default: 10)
        - BACROT_POLL_TIMEOUT: Seconds before a wait gives up (default: none)
        - BACROT_MAX_CONCURRENT_DELETES: Deletions in flight (default: 3)
        - BACROT_SCHEDULE_CRON: Daily rotation time in HH:MM (UTC)
        - BACROT_ROTATION_CONTAINERS: Comma-separated containers to rotate
    """

    account = os.getenv("AZURE_STORAGE_ACCOUNT")
    if not account:
        raise ConfigurationError(explain_missing_storage_account_env())

    backend = _parse_backend(os.getenv("BACROT_STORAGE_BACKEND"))
    extra = {}
    if backend == StorageBackend.S3:
        extra["region"] = os.getenv("AWS_REGION", "us-east-1")

    return create_config(
        storage_account=account,
        storage_key=os.getenv("AZURE_STORAGE_ACCESS_KEY") or None,
        storage_backend=backend,
        dac_endpoint=os.getenv("BACROT_DAC_ENDPOINT") or None,
        retention_limit=_parse_int(
            "BACROT_RETENTION_LIMIT", os.getenv("BACROT_RETENTION_LIMIT"), 10
        ),
        monthly_window=_parse_monthly_window(os.getenv("BACROT_RETENTION_MONTHLY_WINDOW")),
        per_month=_parse_bool(
            "BACROT_RETENTION_PER_MONTH", os.getenv("BACROT_RETENTION_PER_MONTH")
        ),
        per_year=_parse_bool(
            "BACROT_RETENTION_PER_YEAR", os.getenv("BACROT_RETENTION_PER_YEAR")
        ),
        poll_interval=_parse_float(
            "BACROT_POLL_INTERVAL", os.getenv("BACROT_POLL_INTERVAL"), 10.0
        ),
        poll_timeout=_parse_float(
            "BACROT_POLL_TIMEOUT", os.getenv("BACROT_POLL_TIMEOUT"), None
        ),
        max_concurrent_deletes=_parse_int(
            "BACROT_MAX_CONCURRENT_DELETES", os.getenv("BACROT_MAX_CONCURRENT_DELETES"), 3
        ),
        schedule_cron=os.getenv("BACROT_SCHEDULE_CRON") or None,
        rotation_containers=_parse_containers(os.getenv("BACROT_ROTATION_CONTAINERS")),
        **extra,
    )


# ============================================================================
# Profiles
# ============================================================================

def monthly_archive(config: BacrotConfig) -> BacrotConfig:
    """
    Keep a rolling quarter plus one backup per month.

    - At least 10 most recent backups
    - Everything from the last 3 months
    - The latest backup of every month
    """

    policy = config.retention
    return config.with_updates(
        retention=RetentionPolicy(
            limit=max(policy.limit, 10),
            monthly_window=DEFAULT_MONTHLY_WINDOW,
            per_month=True,
            per_year=policy.per_year,
        )
    )


def yearly_archive(config: BacrotConfig) -> BacrotConfig:
    """
    Long-term profile: monthly archive plus one backup per year.
    """

    archived = monthly_archive(config)
    policy = archived.retention
    return archived.with_updates(
        retention=RetentionPolicy(
            limit=policy.limit,
            monthly_window=policy.monthly_window,
            per_month=True,
            per_year=True,
        )
    )
