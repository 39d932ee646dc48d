# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Pruning Executor - Delete every artifact outside the keep set.

Deletions run concurrently behind a semaphore. One failed deletion never
aborts the batch: every candidate is attempted exactly once, failures are
collected per name, and nothing is retried here.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, FrozenSet, Iterable, List

import structlog

from bacrot.exceptions import DeleteError
from bacrot.retention.catalog import Artifact

logger = structlog.get_logger()

DeleteFn = Callable[[str], Awaitable[None]]


@dataclass
class PruneReport:
    """Outcome of a pruning batch."""

    deleted: List[str]
    failed: Dict[str, DeleteError]
    keep: FrozenSet[str]
    dry_run: bool = False
    candidates: List[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        """True when at least one deletion failed."""
        return bool(self.failed)


async def prune(
    catalog: Iterable[Artifact],
    keep: Iterable[str],
    delete_fn: DeleteFn,
    concurrency_limit: int = 3,
    dry_run: bool = False,
) -> PruneReport:
    """
    Delete catalog artifacts that are not in the keep set.

    Args:
        catalog: Artifacts currently in the container
        keep: Names to preserve
        delete_fn: Async callable deleting one artifact by name; raises
                   DeleteError (any other exception is wrapped into one)
        concurrency_limit: Maximum deletions in flight
        dry_run: If True, only report what would be deleted

    Returns:
        PruneReport with deleted names and per-name failures
    """
    if concurrency_limit < 1:
        raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")

    keep_set = frozenset(keep)
    seen = set()
    to_delete: List[str] = []
    for artifact in catalog:
        if artifact.name not in keep_set and artifact.name not in seen:
            seen.add(artifact.name)
            to_delete.append(artifact.name)

    if dry_run:
        for name in to_delete:
            logger.debug("artifact_would_prune", name=name)
        return PruneReport(
            deleted=list(to_delete),
            failed={},
            keep=keep_set,
            dry_run=True,
            candidates=list(to_delete),
        )

    semaphore = asyncio.Semaphore(concurrency_limit)
    deleted: List[str] = []
    failed: Dict[str, DeleteError] = {}

    async def _delete_one(name: str) -> None:
        async with semaphore:
            try:
                await delete_fn(name)
            except DeleteError as e:
                failed[name] = e
                logger.error("artifact_delete_failed", name=name, error=str(e))
                return
            except Exception as e:
                failed[name] = DeleteError(
                    f"Failed to delete {name}: {e}", details={"name": name}
                )
                logger.error("artifact_delete_failed", name=name, error=str(e))
                return
            deleted.append(name)
            logger.info("artifact_deleted", name=name)

    await asyncio.gather(*(_delete_one(name) for name in to_delete))

    logger.info(
        "prune_completed",
        deleted=len(deleted),
        failed=len(failed),
        kept=len(keep_set),
    )

    return PruneReport(
        deleted=deleted,
        failed=failed,
        keep=keep_set,
        candidates=list(to_delete),
    )
