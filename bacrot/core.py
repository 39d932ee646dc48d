# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bacrot Core - Backup, restore, wait and rotate.

This module wires the request builder, the DAC client, the poller and the
retention engine together. All collaborators live in an explicit
BacrotState built once by initialize_state() and passed to every call.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import List, TypedDict

import structlog

from bacrot.config import (
    BacrotConfig,
    BlobRef,
    DatabaseRef,
    RetentionPolicy,
    StorageBackend,
)
from bacrot.credentials import (
    CachingKeyResolver,
    EnvKeyResolver,
    KeyResolver,
    StaticKeyResolver,
)
from bacrot.dac.client import DacClient, HttpDacClient
from bacrot.dac.poller import OperationHandle, PollObserver, RequestStatus, StatusState
from bacrot.dac.poller import wait_until_finished as _wait_until_finished
from bacrot.dac.requests import (
    OperationKind,
    build_export_request,
    build_import_request,
    default_blob_name,
    qualify_server,
    qualify_user,
)
from bacrot.exceptions import (
    ConfigurationError,
    ListingError,
    OperationFailedError,
    ValidationError,
)
from bacrot.retention.catalog import Artifact, build_catalog
from bacrot.retention.policy import evaluate
from bacrot.retention.pruner import PruneReport, prune
from bacrot.storage import BlobStorage, create_storage

logger = structlog.get_logger()


@dataclass
class RotationResult:
    """Result of rotating one container."""

    operation_id: str  # ULID
    container: str
    total_scanned: int
    kept: List[str]
    report: PruneReport
    duration_seconds: float
    dry_run: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        """True when the rotation finished but some deletions failed."""
        return self.report.partial


@dataclass
class BacrotMetrics:
    """Counters for the running process."""

    total_backups: int
    total_restores: int
    total_rotations: int
    total_deleted: int
    total_delete_failures: int
    last_rotation_at: datetime | None
    last_error: str | None


class BacrotState(TypedDict):
    """Runtime state shared by all operations of one process."""

    key_resolver: KeyResolver
    storage: BlobStorage
    dac_client: DacClient
    last_rotation_at: datetime | None
    total_backups: int
    total_restores: int
    total_rotations: int
    total_deleted: int
    total_delete_failures: int
    last_error: str | None


def _default_key_resolver(config: BacrotConfig) -> KeyResolver:
    if config.storage_key:
        return StaticKeyResolver({config.storage_account: config.storage_key})
    return EnvKeyResolver()


async def initialize_state(
    config: BacrotConfig,
    *,
    key_resolver: KeyResolver | None = None,
    storage: BlobStorage | None = None,
    dac_client: DacClient | None = None,
) -> BacrotState:
    """
    Initialize runtime state.

    Collaborators not passed in are built from the configuration. Keys
    resolved through the key resolver are cached in memory for the
    lifetime of the state.

    Args:
        config: Bacrot configuration
        key_resolver: Storage key resolver (default: config key or environment)
        storage: Blob storage adapter (default: per config.storage_backend)
        dac_client: DAC client (default: HttpDacClient on config.dac_endpoint)

    Returns:
        Initialized BacrotState dictionary
    """
    resolver = CachingKeyResolver(key_resolver or _default_key_resolver(config))

    if storage is None:
        storage = create_storage(config, resolver)

    if dac_client is None:
        dac_client = HttpDacClient(config.dac_endpoint, timeout=config.http_timeout)

    logger.info(
        "bacrot_state_initialized",
        storage_account=config.storage_account,
        storage_backend=config.storage_backend.value,
    )

    return BacrotState(
        key_resolver=resolver,
        storage=storage,
        dac_client=dac_client,
        last_rotation_at=None,
        total_backups=0,
        total_restores=0,
        total_rotations=0,
        total_deleted=0,
        total_delete_failures=0,
        last_error=None,
    )


def _with_container(db: DatabaseRef, blob: BlobRef) -> BlobRef:
    if blob.container:
        return blob
    return blob.with_updates(container=db.name)


def _check_listable(config: BacrotConfig, blob: BlobRef) -> None:
    """
    The latest backup can only be looked up in the configured Azure account.

    The S3 backend serves rotation only: the DAC service imports from Azure
    blob URIs, so an S3 object name cannot be restored.
    """
    if config.storage_backend != StorageBackend.AZURE:
        raise ConfigurationError(
            "Restoring the latest backup requires the azure storage backend; "
            "pass an explicit blob name instead",
            details={"storage_backend": config.storage_backend.value},
        )
    if blob.account_name != config.storage_account:
        raise ValidationError(
            f"Cannot look up the latest backup in {blob.account_name}: only "
            f"{config.storage_account} is listed; pass an explicit blob name",
            details={
                "account_name": blob.account_name,
                "storage_account": config.storage_account,
            },
        )


async def backup(
    config: BacrotConfig,
    state: BacrotState,
    db: DatabaseRef,
    blob: BlobRef,
) -> OperationHandle:
    """
    Queue an export of `db` to blob storage.

    The blob is named <db>-YYYY-MM-DD-HH-mm.bacpac when blob.name is
    empty, and stored in a container named after the database unless
    blob.container is set.

    Raises:
        ValidationError: If a required field is empty
        CredentialsUnavailable: If no storage key can be resolved
        SubmissionError: If the DAC service rejects the request
    """
    blob = _with_container(db, blob)
    if not blob.name:
        blob = blob.with_updates(name=default_blob_name(db.name))

    request = await build_export_request(
        db,
        blob,
        state["key_resolver"],
        server_domain=config.server_domain,
        blob_domain=config.blob_domain,
    )

    try:
        guid = await state["dac_client"].submit_export(request)
    except Exception as e:
        state["last_error"] = str(e)
        raise

    state["total_backups"] += 1
    logger.info("backup_queued", database=db.name, blob_uri=request.blob_uri, guid=guid)
    return OperationHandle(request_id=guid, db=db, kind=OperationKind.BACKUP)


async def latest_artifact(
    config: BacrotConfig,
    state: BacrotState,
    container: str,
) -> Artifact | None:
    """Most recently modified artifact of a container, or None when empty."""
    catalog = build_catalog(await state["storage"].list_artifacts(container))
    return catalog[-1] if catalog else None


async def restore(
    config: BacrotConfig,
    state: BacrotState,
    db: DatabaseRef,
    blob: BlobRef,
) -> OperationHandle:
    """
    Queue an import of a .bacpac into `db`.

    When blob.name is empty the most recent artifact of the container is
    restored. That lookup needs the azure backend and blob.account_name
    equal to config.storage_account.

    Raises:
        ConfigurationError: If no blob name was given on the s3 backend
        ListingError: If no blob name was given and the container is empty
        ValidationError: If a required field is empty
        CredentialsUnavailable: If no storage key can be resolved
        SubmissionError: If the DAC service rejects the request
    """
    blob = _with_container(db, blob)
    if not blob.name:
        _check_listable(config, blob)
        latest = await latest_artifact(config, state, blob.container)
        if latest is None:
            raise ListingError(
                f"No backup found in {blob.account_name}/{blob.container}",
                details={"container": blob.container},
            )
        blob = blob.with_updates(name=latest.name)
        logger.info("restore_source_selected", container=blob.container, name=latest.name)

    request = await build_import_request(
        db,
        blob,
        state["key_resolver"],
        server_domain=config.server_domain,
        blob_domain=config.blob_domain,
        default_edition=config.default_edition,
        default_size_gb=config.default_size_gb,
    )

    try:
        guid = await state["dac_client"].submit_import(request)
    except Exception as e:
        state["last_error"] = str(e)
        raise

    state["total_restores"] += 1
    logger.info("restore_queued", database=db.name, blob_uri=request.blob_uri, guid=guid)
    return OperationHandle(request_id=guid, db=db, kind=OperationKind.RESTORE)


async def request_status(
    config: BacrotConfig,
    state: BacrotState,
    db: DatabaseRef,
    guid: str,
) -> RequestStatus | None:
    """One status check for a queued request."""
    return await state["dac_client"].get_operation_status(
        qualify_server(db.server, config.server_domain),
        qualify_user(db.user, db.server),
        db.password,
        guid,
    )


async def wait_until_finished(
    config: BacrotConfig,
    state: BacrotState,
    target: OperationHandle | DatabaseRef,
    guid: str | None = None,
    on_each_poll: PollObserver | None = None,
) -> RequestStatus:
    """
    Wait for a queued request to finish.

    Args:
        config: Bacrot configuration (poll_interval, poll_timeout)
        state: Runtime state
        target: The handle returned by backup()/restore(), or the
                database the request runs against (then pass guid)
        guid: Request id, required when target is a DatabaseRef
        on_each_poll: Optional observer of every raw poll result

    Returns:
        Terminal RequestStatus; also recorded on the handle

    Raises:
        PollingError: Status check failed or the request failed (a failed
                      request is also recorded on the handle)
        PollingTimeoutError: Still running after config.poll_timeout
    """
    handle = target if isinstance(target, OperationHandle) else None
    db = handle.db if handle else target
    request_id = handle.request_id if handle else guid
    if not request_id:
        raise ValueError("guid is required when waiting on a DatabaseRef")

    async def status_fn() -> RequestStatus | None:
        return await request_status(config, state, db, request_id)

    try:
        status = await _wait_until_finished(
            status_fn,
            request_id,
            interval=config.poll_interval,
            on_each_poll=on_each_poll,
            timeout=config.poll_timeout,
        )
    except OperationFailedError as e:
        state["last_error"] = str(e)
        if handle is not None:
            handle.status = RequestStatus(
                StatusState.FAILED,
                e.details.get("message") or e.message,
                e.details.get("status"),
            )
        raise
    except Exception as e:
        state["last_error"] = str(e)
        raise

    if handle is not None:
        handle.status = status
    return status


async def rotate(
    config: BacrotConfig,
    state: BacrotState,
    container: str,
    policy: RetentionPolicy | None = None,
    now: datetime | None = None,
    dry_run: bool = False,
) -> RotationResult:
    """
    Apply a retention policy to a container.

    This is the main entry point for rotation. It:
    1. Lists the container (a listing failure aborts the rotation)
    2. Normalizes and sorts the listing into a catalog
    3. Computes the keep set
    4. Deletes everything else with bounded concurrency

    Args:
        config: Bacrot configuration
        state: Runtime state
        container: Container (or bucket) to rotate
        policy: Retention policy (default: config.retention)
        now: Reference instant for the recent window rule
        dry_run: If True, only report what would be deleted

    Returns:
        RotationResult; check .partial for per-artifact failures
    """
    from ulid import ULID

    policy = policy or config.retention
    operation_id = str(ULID())
    start_time = datetime.now(UTC)

    logger.info(
        "rotation_started",
        operation_id=operation_id,
        container=container,
        dry_run=dry_run,
    )

    try:
        raw_entries = await state["storage"].list_artifacts(container)
        catalog = build_catalog(raw_entries)
        keep = evaluate(catalog, policy, now)
        logger.info(
            "keep_set_computed",
            operation_id=operation_id,
            total=len(catalog),
            keep=len(keep),
        )

        async def delete_fn(name: str) -> None:
            await state["storage"].delete_artifact(container, name)

        report = await prune(
            catalog,
            keep,
            delete_fn,
            concurrency_limit=config.max_concurrent_deletes,
            dry_run=dry_run,
        )
    except Exception as e:
        state["last_error"] = str(e)
        logger.error("rotation_failed", operation_id=operation_id, error=str(e))
        raise

    duration = (datetime.now(UTC) - start_time).total_seconds()

    state["last_rotation_at"] = datetime.now(UTC)
    state["total_rotations"] += 1
    if not dry_run:
        state["total_deleted"] += len(report.deleted)
        state["total_delete_failures"] += len(report.failed)

    result = RotationResult(
        operation_id=operation_id,
        container=container,
        total_scanned=len(catalog),
        kept=[artifact.name for artifact in catalog if artifact.name in keep],
        report=report,
        duration_seconds=duration,
        dry_run=dry_run,
        errors=[f"{name}: {error.message}" for name, error in report.failed.items()],
    )

    logger.info(
        "rotation_completed",
        operation_id=operation_id,
        container=container,
        deleted=len(report.deleted),
        failed=len(report.failed),
        duration=duration,
    )
    return result


def get_metrics(state: BacrotState) -> BacrotMetrics:
    """Get current counters."""
    return BacrotMetrics(
        total_backups=state["total_backups"],
        total_restores=state["total_restores"],
        total_rotations=state["total_rotations"],
        total_deleted=state["total_deleted"],
        total_delete_failures=state["total_delete_failures"],
        last_rotation_at=state["last_rotation_at"],
        last_error=state["last_error"],
    )


async def shutdown_state(state: BacrotState) -> None:
    """Cleanup resources."""
    try:
        await state["storage"].aclose()
    except Exception as e:
        logger.warning("storage_close_failed", error=str(e))

    try:
        await state["dac_client"].aclose()
    except Exception as e:
        logger.warning("dac_client_close_failed", error=str(e))

    logger.info("bacrot_state_shutdown_complete")
