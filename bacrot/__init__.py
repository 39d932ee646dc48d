# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
bacrot - Database backup, restore and backup rotation on blob storage.

Queues DAC exports/imports of SQL databases to .bacpac blobs, waits for
them to finish, and keeps a bounded, policy-driven set of historical
backups per container.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from bacrot.builder import create_config
from bacrot.config import BacrotConfig, BlobRef, DatabaseRef, RetentionPolicy

# Core functions
from bacrot.core import (
    backup,
    get_metrics,
    initialize_state,
    latest_artifact,
    request_status,
    restore,
    rotate,
    shutdown_state,
    wait_until_finished,
)

# Environment-based configuration and profiles (additional helpers)
from bacrot.env import (
    create_config_from_env,
    monthly_archive,
    yearly_archive,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "create_config",
    "create_config_from_env",
    "monthly_archive",
    "yearly_archive",
    "BacrotConfig",
    "BlobRef",
    "DatabaseRef",
    "RetentionPolicy",
    # Core orchestration functions
    "initialize_state",
    "backup",
    "restore",
    "request_status",
    "wait_until_finished",
    "rotate",
    "latest_artifact",
    "get_metrics",
    "shutdown_state",
]
