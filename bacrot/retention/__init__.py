# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Retention Engine - Catalog, policy evaluation and pruning.
"""

from bacrot.retention.catalog import (
    Artifact,
    Catalog,
    build_catalog,
    normalize_entries,
    parse_timestamp,
    sort_catalog,
)

from bacrot.retention.policy import (
    KeepSet,
    evaluate,
    subtract_months,
)

from bacrot.retention.pruner import (
    PruneReport,
    prune,
)

__all__ = [
    # Catalog
    "Artifact",
    "Catalog",
    "build_catalog",
    "normalize_entries",
    "parse_timestamp",
    "sort_catalog",
    # Policy
    "KeepSet",
    "evaluate",
    "subtract_months",
    # Pruner
    "PruneReport",
    "prune",
]
