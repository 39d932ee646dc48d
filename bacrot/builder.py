# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bacrot Builder - Functional builder pattern for configuration.

This module provides pure functions for building BacrotConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from typing import Any, Callable, Dict, List

from bacrot.config import (
    DEFAULT_BLOB_DOMAIN,
    DEFAULT_DAC_ENDPOINT,
    DEFAULT_EDITION,
    DEFAULT_MONTHLY_WINDOW,
    DEFAULT_SERVER_DOMAIN,
    DEFAULT_SIZE_GB,
    BacrotConfig,
    RetentionPolicy,
    StorageBackend,
)


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]


def create_empty_config() -> ConfigDict:
    """
    Create an initial empty configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "storage_account": "",
        "storage_backend": StorageBackend.AZURE,
        "storage_key": None,
        "dac_endpoint": DEFAULT_DAC_ENDPOINT,
        "server_domain": DEFAULT_SERVER_DOMAIN,
        "blob_domain": DEFAULT_BLOB_DOMAIN,
        "retention": RetentionPolicy(),
        "poll_interval": 10.0,
        "poll_timeout": None,
        "max_concurrent_deletes": 3,
        "default_edition": DEFAULT_EDITION,
        "default_size_gb": DEFAULT_SIZE_GB,
        "region": "us-east-1",
        "endpoint_url": None,
        "schedule_cron": None,
        "rotation_containers": [],
        "http_timeout": 30.0,
    }


def with_storage_account(config: ConfigDict, account: str, key: str | None = None) -> ConfigDict:
    """
    Set the storage account (and optionally its access key).

    Args:
        config: Current configuration dictionary
        account: Storage account name
        key: Access key; when omitted it is resolved at runtime

    Returns:
        New configuration dictionary with the account set
    """
    return {**config, "storage_account": account, "storage_key": key}


def with_s3_backend(
    config: ConfigDict,
    region: str = "us-east-1",
    endpoint_url: str | None = None,
) -> ConfigDict:
    """Store artifacts in S3 buckets instead of Azure containers."""
    return {
        **config,
        "storage_backend": StorageBackend.S3,
        "region": region,
        "endpoint_url": endpoint_url,
    }


def with_dac_endpoint(config: ConfigDict, endpoint: str) -> ConfigDict:
    """
    Set the DAC service base URL (regional data center).

    Args:
        config: Current configuration dictionary
        endpoint: e.g. 'https://db3prod-dacsvc.azure.com/DACWebService.svc'

    Returns:
        New configuration dictionary with the endpoint set
    """
    return {**config, "dac_endpoint": endpoint}


def retain_last(config: ConfigDict, limit: int) -> ConfigDict:
    """
    Keep the `limit` most recent backups.

    Args:
        config: Current configuration dictionary
        limit: Number of recent backups to keep

    Returns:
        New configuration dictionary with the count rule set
    """
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    policy = config["retention"]
    return {
        **config,
        "retention": RetentionPolicy(
            limit=limit,
            monthly_window=policy.monthly_window,
            per_month=policy.per_month,
            per_year=policy.per_year,
        ),
    }


def retain_recent_months(config: ConfigDict, months: int = DEFAULT_MONTHLY_WINDOW) -> ConfigDict:
    """
    Keep every backup newer than `months` calendar months.

    Args:
        config: Current configuration dictionary
        months: Window length (default: 3, the last quarter)

    Returns:
        New configuration dictionary with the recent window rule set
    """
    if months < 0:
        raise ValueError(f"months must be >= 0, got {months}")
    policy = config["retention"]
    return {
        **config,
        "retention": RetentionPolicy(
            limit=policy.limit,
            monthly_window=months,
            per_month=policy.per_month,
            per_year=policy.per_year,
        ),
    }


def retain_monthly(config: ConfigDict) -> ConfigDict:
    """Keep the latest backup of every calendar month."""
    policy = config["retention"]
    return {
        **config,
        "retention": RetentionPolicy(
            limit=policy.limit,
            monthly_window=policy.monthly_window,
            per_month=True,
            per_year=policy.per_year,
        ),
    }


def retain_yearly(config: ConfigDict) -> ConfigDict:
    """Keep the latest backup of every calendar year."""
    policy = config["retention"]
    return {
        **config,
        "retention": RetentionPolicy(
            limit=policy.limit,
            monthly_window=policy.monthly_window,
            per_month=policy.per_month,
            per_year=True,
        ),
    }


def poll_every(config: ConfigDict, seconds: float, timeout: float | None = None) -> ConfigDict:
    """
    Set the status polling interval and optional overall deadline.

    Args:
        config: Current configuration dictionary
        seconds: Seconds between polls
        timeout: Seconds before a wait gives up (None = wait forever)

    Returns:
        New configuration dictionary with polling settings
    """
    if seconds < 0:
        raise ValueError(f"poll interval must be >= 0, got {seconds}")
    return {**config, "poll_interval": seconds, "poll_timeout": timeout}


def with_max_concurrent_deletes(config: ConfigDict, max_ops: int) -> ConfigDict:
    """
    Set the maximum number of deletions in flight during rotation.

    Args:
        config: Current configuration dictionary
        max_ops: Maximum concurrent deletions

    Returns:
        New configuration dictionary with max_concurrent_deletes set
    """
    if max_ops < 1:
        raise ValueError(f"max_concurrent_deletes must be >= 1, got {max_ops}")
    return {**config, "max_concurrent_deletes": max_ops}


def rotate_daily_at(config: ConfigDict, time: str, containers: List[str]) -> ConfigDict:
    """
    Schedule a daily rotation (UTC) of the given containers.

    Args:
        config: Current configuration dictionary
        time: Time in HH:MM format (e.g., '02:30' for 2:30 AM UTC)
        containers: Containers to rotate

    Returns:
        New configuration dictionary with schedule set
    """
    parts = time.split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid time format: {time}, expected HH:MM")
    try:
        hour, minute = int(parts[0]), int(parts[1])
    except ValueError:
        raise ValueError(f"Invalid time format: {time}, expected HH:MM")
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time: {time}")

    merged = list(config["rotation_containers"])
    for container in containers:
        if container not in merged:
            merged.append(container)
    return {**config, "schedule_cron": time, "rotation_containers": merged}


def build_config(config_dict: ConfigDict) -> BacrotConfig:
    """
    Validate and build an immutable BacrotConfig from a configuration dictionary.

    Args:
        config_dict: Configuration dictionary built using builder functions

    Returns:
        Validated, immutable BacrotConfig instance

    Raises:
        ConfigurationError: If validation fails
    """
    if not config_dict.get("storage_account"):
        from bacrot.exceptions import ConfigurationError

        raise ConfigurationError("storage_account is required")

    return BacrotConfig(**config_dict)


def pipe(*funcs: BuilderFunc) -> BuilderFunc:
    """
    Compose multiple builder functions into a single function.

        config = pipe(
            lambda c: with_storage_account(c, "backups"),
            lambda c: retain_last(c, 14),
            retain_monthly,
        )(create_empty_config())
    """

    def composed(config: ConfigDict) -> ConfigDict:
        result = config
        for func in funcs:
            result = func(result)
        return result

    return composed


def create_config(
    storage_account: str,
    *,
    storage_key: str | None = None,
    storage_backend: str | StorageBackend = StorageBackend.AZURE,
    dac_endpoint: str | None = None,
    retention_limit: int = 10,
    monthly_window: int | None = None,
    per_month: bool = False,
    per_year: bool = False,
    poll_interval: float = 10.0,
    poll_timeout: float | None = None,
    max_concurrent_deletes: int = 3,
    schedule_cron: str | None = None,
    rotation_containers: List[str] | None = None,
    **kwargs: Any,
) -> BacrotConfig:
    """
    Create bacrot configuration from simple parameters.

    This is the recommended user-facing API for creating configurations.

    Example:
        config = create_config(
            storage_account="dbbackups",
            retention_limit=14,
            per_month=True,
            schedule_cron="03:00",
            rotation_containers=["orders"],
        )
    """
    config_dict = create_empty_config()
    config_dict = with_storage_account(config_dict, storage_account, storage_key)

    backend = StorageBackend(storage_backend.lower()) if isinstance(storage_backend, str) else storage_backend
    if backend == StorageBackend.S3:
        config_dict = with_s3_backend(
            config_dict,
            kwargs.pop("region", "us-east-1"),
            kwargs.pop("endpoint_url", None),
        )

    if dac_endpoint:
        config_dict = with_dac_endpoint(config_dict, dac_endpoint)

    config_dict = retain_last(config_dict, retention_limit)
    if monthly_window is not None:
        config_dict = retain_recent_months(config_dict, monthly_window)
    if per_month:
        config_dict = retain_monthly(config_dict)
    if per_year:
        config_dict = retain_yearly(config_dict)

    config_dict = poll_every(config_dict, poll_interval, poll_timeout)
    config_dict = with_max_concurrent_deletes(config_dict, max_concurrent_deletes)

    if schedule_cron:
        config_dict = rotate_daily_at(config_dict, schedule_cron, rotation_containers or [])
    elif rotation_containers:
        config_dict = {**config_dict, "rotation_containers": list(rotation_containers)}

    # Apply any additional kwargs
    for key, value in kwargs.items():
        if key in config_dict:
            config_dict[key] = value

    return build_config(config_dict)
