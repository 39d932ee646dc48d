# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bacrot FastAPI Integration - Plugin for FastAPI applications.

This module provides a complete integration with FastAPI including:
- Lifespan management (startup/shutdown)
- Protected admin endpoints for backup, restore, status and rotation
- Scheduled daily rotation
- Health checks
"""

import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, UTC
from typing import Any, Dict

import structlog
from fastapi import Depends, FastAPI, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from bacrot.config import BacrotConfig, BlobRef, DatabaseRef
from bacrot.core import (
    BacrotState,
    RotationResult,
    backup,
    get_metrics,
    initialize_state,
    request_status,
    restore,
    rotate,
    shutdown_state,
    wait_until_finished,
)
from bacrot.dac.poller import OperationHandle, RequestStatus
from bacrot.exceptions import (
    BacrotError,
    ConfigurationError,
    CredentialsUnavailable,
    ListingError,
    MalformedArtifactError,
    PollingError,
    PollingTimeoutError,
    SubmissionError,
    ValidationError,
)

logger = structlog.get_logger()

# Security
security = HTTPBearer(auto_error=False)


class DatabaseBody(BaseModel):
    """Database connection details sent to the admin endpoints."""

    database: str
    server: str
    user: str
    password: str
    edition: str | None = None
    size_gb: int | None = None

    def to_ref(self) -> DatabaseRef:
        return DatabaseRef(
            name=self.database,
            server=self.server,
            user=self.user,
            password=self.password,
            edition=self.edition,
            size_gb=self.size_gb,
        )


class TransferBody(DatabaseBody):
    """Backup/restore request body."""

    blob_name: str | None = None
    container: str | None = None
    wait: bool = False


class StatusBody(DatabaseBody):
    wait: bool = False


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> bool:
    """
    Verify API key from Authorization header.

    The API key is read from the BACROT_ADMIN_API_KEY environment variable.
    Requests must include: Authorization: Bearer <api_key>

    Raises:
        HTTPException: If API key is missing or invalid
    """
    api_key = os.getenv("BACROT_ADMIN_API_KEY")

    if not api_key:
        raise HTTPException(
            status_code=500,
            detail="BACROT_ADMIN_API_KEY environment variable not set",
        )

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Authorization header required",
        )

    if credentials.credentials != api_key:
        raise HTTPException(
            status_code=403,
            detail="Invalid API key",
        )

    return True


_STATUS_CODES = (
    (ValidationError, 422),
    (ConfigurationError, 409),
    (CredentialsUnavailable, 503),
    (SubmissionError, 502),
    (ListingError, 502),
    (MalformedArtifactError, 502),
    (PollingTimeoutError, 504),
    (PollingError, 502),
)


def _http_error(error: BacrotError) -> HTTPException:
    """Map a bacrot error to an HTTP error with a readable detail."""
    for error_type, status_code in _STATUS_CODES:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=error.message)
    return HTTPException(status_code=500, detail=error.message)


def _status_dict(status: RequestStatus | None) -> Dict[str, Any] | None:
    if status is None:
        return None
    return {"state": status.state.value, "message": status.message, "raw": status.raw}


def _handle_dict(handle: OperationHandle) -> Dict[str, Any]:
    return {
        "guid": handle.request_id,
        "kind": handle.kind.value,
        "database": handle.db.name,
        "status": _status_dict(handle.status),
    }


def _rotation_dict(result: RotationResult) -> Dict[str, Any]:
    return {
        "operation_id": result.operation_id,
        "container": result.container,
        "total_scanned": result.total_scanned,
        "kept": result.kept,
        "deleted": result.report.deleted,
        "failed": {name: error.message for name, error in result.report.failed.items()},
        "partial": result.partial,
        "dry_run": result.dry_run,
        "duration_seconds": result.duration_seconds,
    }


def register_bacrot_routes(
    app: FastAPI,
    config: BacrotConfig,
    state: BacrotState,
    prefix: str = "/admin/bacrot",
) -> None:
    """
    Register bacrot admin endpoints on a FastAPI app.

    All endpoints require Bearer token authentication.

    Args:
        app: FastAPI application
        config: Bacrot configuration
        state: Runtime state
        prefix: URL prefix for endpoints (default: /admin/bacrot)
    """

    async def _transfer(operation, body: TransferBody) -> dict:
        blob = BlobRef(
            account_name=config.storage_account,
            name=body.blob_name,
            container=body.container,
        )
        try:
            handle = await operation(config, state, body.to_ref(), blob)
            if body.wait:
                await wait_until_finished(config, state, handle)
        except BacrotError as e:
            raise _http_error(e)
        return _handle_dict(handle)

    @app.post(f"{prefix}/backup", dependencies=[Depends(verify_api_key)])
    async def trigger_backup(body: TransferBody) -> dict:
        """
        Queue a database export. With wait=true, answer once it finished.
        """
        return await _transfer(backup, body)

    @app.post(f"{prefix}/restore", dependencies=[Depends(verify_api_key)])
    async def trigger_restore(body: TransferBody) -> dict:
        """
        Queue a database import, from the latest backup unless blob_name is set.
        """
        return await _transfer(restore, body)

    @app.post(f"{prefix}/status/{{guid}}", dependencies=[Depends(verify_api_key)])
    async def get_request_status(guid: str, body: StatusBody) -> dict:
        """
        Get the status of a queued request.

        Database credentials travel in the body, never in the URL.
        """
        try:
            if body.wait:
                status = await wait_until_finished(config, state, body.to_ref(), guid)
            else:
                status = await request_status(config, state, body.to_ref(), guid)
        except BacrotError as e:
            raise _http_error(e)
        return {"guid": guid, "status": _status_dict(status)}

    @app.post(f"{prefix}/rotate/{{container}}", dependencies=[Depends(verify_api_key)])
    async def trigger_rotation(container: str, dry_run: bool = True) -> dict:
        """
        Apply the configured retention policy to a container.

        Args:
            container: Container to rotate
            dry_run: If true, only report what would be deleted
        """
        try:
            result = await rotate(config, state, container, dry_run=dry_run)
        except BacrotError as e:
            raise _http_error(e)
        return _rotation_dict(result)

    @app.get(f"{prefix}/metrics", dependencies=[Depends(verify_api_key)])
    async def get_bacrot_metrics() -> dict:
        """
        Get process counters.
        """
        metrics = asdict(get_metrics(state))
        if metrics["last_rotation_at"]:
            metrics["last_rotation_at"] = metrics["last_rotation_at"].isoformat()
        return metrics

    @app.get(f"{prefix}/health", dependencies=[Depends(verify_api_key)])
    async def health_check() -> dict:
        """
        Health check endpoint.

        Verifies that the storage key can be resolved.
        """
        credentials_ok = False
        credentials_error = None
        try:
            await state["key_resolver"].resolve(config.storage_account)
            credentials_ok = True
        except BacrotError as e:
            credentials_error = e.message

        return {
            "status": "healthy" if credentials_ok else "degraded",
            "credentials_available": credentials_ok,
            "credentials_error": credentials_error,
            "last_error": state["last_error"],
            "timestamp": datetime.now(UTC).isoformat(),
        }

    @app.get(f"{prefix}/config", dependencies=[Depends(verify_api_key)])
    async def get_config() -> dict:
        """
        Get current configuration (secrets redacted).
        """
        return {
            "storage_account": config.storage_account,
            "storage_backend": config.storage_backend.value,
            "dac_endpoint": config.dac_endpoint,
            "retention": asdict(config.retention),
            "poll_interval": config.poll_interval,
            "poll_timeout": config.poll_timeout,
            "max_concurrent_deletes": config.max_concurrent_deletes,
            "schedule_cron": config.schedule_cron,
            "rotation_containers": config.rotation_containers,
        }


def _setup_scheduled_rotation(config: BacrotConfig, state: BacrotState):
    """Set up APScheduler for the daily rotation."""
    from apscheduler.schedulers.asyncio import AsyncIOScheduler
    from apscheduler.triggers.cron import CronTrigger

    scheduler = AsyncIOScheduler()

    # Parse HH:MM format
    hour, minute = map(int, config.schedule_cron.split(":"))

    async def scheduled_rotation():
        """Rotate every configured container."""
        logger.info("scheduled_rotation_starting", containers=config.rotation_containers)
        for container in config.rotation_containers:
            try:
                result = await rotate(config, state, container)
                logger.info(
                    "scheduled_rotation_completed",
                    container=container,
                    deleted=len(result.report.deleted),
                    failed=len(result.report.failed),
                )
            except BacrotError as e:
                logger.error("scheduled_rotation_failed", container=container, error=str(e))

    scheduler.add_job(
        scheduled_rotation,
        trigger=CronTrigger(hour=hour, minute=minute, timezone="UTC"),
        id="bacrot_rotation",
        replace_existing=True,
    )
    scheduler.start()

    logger.info(
        "scheduler_started",
        schedule=config.schedule_cron,
        next_run=scheduler.get_job("bacrot_rotation").next_run_time.isoformat(),
    )
    return scheduler


def setup_bacrot_plugin(
    app: FastAPI,
    config: BacrotConfig,
    prefix: str = "/admin/bacrot",
) -> None:
    """
    Set up the bacrot plugin with startup/shutdown hooks.

    Args:
        app: FastAPI application
        config: Bacrot configuration
        prefix: URL prefix for admin endpoints
    """
    app.state.bacrot_config = config
    app.state.bacrot_state = None
    app.state.bacrot_scheduler = None

    @app.on_event("startup")
    async def startup():
        """Initialize bacrot on app startup."""
        logger.info("bacrot_plugin_starting", storage_account=config.storage_account)

        state = await initialize_state(config)
        app.state.bacrot_state = state
        register_bacrot_routes(app, config, state, prefix)

        if config.schedule_cron:
            app.state.bacrot_scheduler = _setup_scheduled_rotation(config, state)

        logger.info("bacrot_plugin_started")

    @app.on_event("shutdown")
    async def shutdown():
        """Cleanup bacrot on app shutdown."""
        logger.info("bacrot_plugin_stopping")

        if app.state.bacrot_scheduler:
            app.state.bacrot_scheduler.shutdown(wait=False)

        state = app.state.bacrot_state
        if state:
            await shutdown_state(state)

        logger.info("bacrot_plugin_stopped")


@asynccontextmanager
async def bacrot_lifespan(app: FastAPI, config: BacrotConfig):
    """
    Alternative lifespan context manager for FastAPI.

        app = FastAPI(lifespan=lambda app: bacrot_lifespan(app, config))
    """
    logger.info("bacrot_lifespan_starting")

    state = await initialize_state(config)
    app.state.bacrot_state = state
    app.state.bacrot_config = config

    register_bacrot_routes(app, config, state)

    scheduler = None
    if config.schedule_cron:
        scheduler = _setup_scheduled_rotation(config, state)

    logger.info("bacrot_lifespan_started")

    try:
        yield
    finally:
        logger.info("bacrot_lifespan_stopping")
        if scheduler:
            scheduler.shutdown(wait=False)
        await shutdown_state(state)
        logger.info("bacrot_lifespan_stopped")


def get_bacrot_state(app: FastAPI) -> BacrotState:
    """
    Get bacrot state from a FastAPI app.

    Raises:
        RuntimeError: If bacrot is not initialized
    """
    state = getattr(app.state, "bacrot_state", None)
    if not state:
        raise RuntimeError("bacrot not initialized. Call setup_bacrot_plugin first.")
    return state
