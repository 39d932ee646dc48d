# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Retention Policy Evaluator - Decide which backups survive a rotation.

Every rule is a pure function over a catalog sorted ascending by
modification time. evaluate() unions their results by artifact name, so
an artifact selected by several rules is kept once.
"""

import calendar
from datetime import datetime, UTC
from typing import Dict, FrozenSet, Hashable, Iterable, Set

from bacrot.config import RetentionPolicy
from bacrot.retention.catalog import Artifact, Catalog, sort_catalog

KeepSet = FrozenSet[str]


def subtract_months(moment: datetime, months: int) -> datetime:
    """
    Move a datetime back by whole calendar months.

    The day is clamped to the length of the target month
    (e.g. 31 May minus 3 months is 28/29 February).
    """
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def keep_last(catalog: Catalog, limit: int) -> Set[str]:
    """Names of the `limit` most recent artifacts."""
    if limit <= 0:
        return set()
    return {artifact.name for artifact in catalog[-limit:]}


def keep_recent_window(catalog: Catalog, now: datetime, months: int) -> Set[str]:
    """Names of artifacts modified strictly after now - months."""
    cutoff = subtract_months(now, months)
    return {artifact.name for artifact in catalog if artifact.last_modified > cutoff}


def _latest_per_group(catalog: Catalog, group_key) -> Set[str]:
    latest: Dict[Hashable, Artifact] = {}
    # Input is ascending, so the last write per group is its newest artifact.
    for artifact in catalog:
        latest[group_key(artifact.last_modified)] = artifact
    return {artifact.name for artifact in latest.values()}


def keep_latest_per_month(catalog: Catalog) -> Set[str]:
    return _latest_per_group(catalog, lambda moment: (moment.year, moment.month))


def keep_latest_per_year(catalog: Catalog) -> Set[str]:
    return _latest_per_group(catalog, lambda moment: moment.year)


def evaluate(
    catalog: Iterable[Artifact],
    policy: RetentionPolicy,
    now: datetime | None = None,
) -> KeepSet:
    """
    Compute the set of artifact names to keep.

    Args:
        catalog: Artifacts to consider (re-sorted here, so any order works)
        policy: Retention rules to apply
        now: Reference instant for the recent window rule
             (default: current UTC time; naive values are taken as UTC)

    Returns:
        Frozen set of names, always a subset of the catalog's names
    """
    ordered = sort_catalog(catalog)
    if not ordered:
        return frozenset()

    if now is None:
        now = datetime.now(UTC)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=UTC)

    keep = keep_last(ordered, policy.limit)

    if policy.monthly_window is not None:
        keep |= keep_recent_window(ordered, now, policy.monthly_window)

    if policy.per_month:
        keep |= keep_latest_per_month(ordered)

    if policy.per_year:
        keep |= keep_latest_per_year(ordered)

    return frozenset(keep)
