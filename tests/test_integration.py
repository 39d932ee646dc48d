# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Integration Tests for bacrot.

These tests verify the integration between components:
- FastAPI endpoints and authentication
- Backup/restore/status through the admin API
- Rotation through the admin API
"""

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

from bacrot.config import StorageBackend
from bacrot.dac.poller import RequestStatus, StatusState
from bacrot.integrations.fastapi import get_bacrot_state, register_bacrot_routes

AUTH = {"Authorization": "Bearer test-api-key-12345"}

DB_BODY = {
    "database": "orders",
    "server": "myserver",
    "user": "alice",
    "password": "s3cret!",
}


def _client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture
def app(test_config, test_state):
    app = FastAPI()
    register_bacrot_routes(app, test_config, test_state)
    return app


# ============================================================================
# Authentication
# ============================================================================

@pytest.mark.asyncio
async def test_missing_authorization_is_rejected(app):
    async with _client(app) as client:
        response = await client.get("/admin/bacrot/metrics")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_wrong_api_key_is_rejected(app):
    async with _client(app) as client:
        response = await client.get(
            "/admin/bacrot/metrics",
            headers={"Authorization": "Bearer wrong"},
        )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unset_api_key_is_a_server_error(app, monkeypatch):
    monkeypatch.delenv("BACROT_ADMIN_API_KEY")

    async with _client(app) as client:
        response = await client.get("/admin/bacrot/metrics", headers=AUTH)

    assert response.status_code == 500


# ============================================================================
# Backup / Restore / Status
# ============================================================================

@pytest.mark.asyncio
async def test_backup_endpoint_queues_export(app, fake_dac):
    async with _client(app) as client:
        response = await client.post("/admin/bacrot/backup", json=DB_BODY, headers=AUTH)

    assert response.status_code == 200
    data = response.json()
    assert data["guid"] == "export-guid-1"
    assert data["kind"] == "backup"
    assert data["status"] is None
    assert fake_dac.exports[0].user_name == "alice@myserver"


@pytest.mark.asyncio
async def test_backup_endpoint_can_wait(app, fake_dac):
    fake_dac.statuses = [RequestStatus(StatusState.RUNNING), RequestStatus(StatusState.COMPLETED)]

    async with _client(app) as client:
        response = await client.post(
            "/admin/bacrot/backup", json={**DB_BODY, "wait": True}, headers=AUTH
        )

    assert response.status_code == 200
    assert response.json()["status"]["state"] == "completed"
    assert len(fake_dac.status_calls) == 2


@pytest.mark.asyncio
async def test_backup_endpoint_reports_validation_errors(app):
    async with _client(app) as client:
        response = await client.post(
            "/admin/bacrot/backup", json={**DB_BODY, "server": ""}, headers=AUTH
        )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_restore_endpoint_uses_latest_backup(app, fake_dac):
    async with _client(app) as client:
        response = await client.post("/admin/bacrot/restore", json=DB_BODY, headers=AUTH)

    assert response.status_code == 200
    assert response.json()["kind"] == "restore"
    assert fake_dac.imports[0].blob_uri.endswith("orders-2024-12-01-02-00.bacpac")


@pytest.mark.asyncio
async def test_restore_endpoint_with_empty_container(app):
    async with _client(app) as client:
        response = await client.post(
            "/admin/bacrot/restore",
            json={**DB_BODY, "container": "empty-container"},
            headers=AUTH,
        )

    assert response.status_code == 502
    assert "No backup found" in response.json()["detail"]


@pytest.mark.asyncio
async def test_restore_endpoint_latest_on_s3_backend_conflicts(test_config, test_state, fake_dac):
    app = FastAPI()
    register_bacrot_routes(app, test_config.with_updates(storage_backend=StorageBackend.S3), test_state)

    async with _client(app) as client:
        response = await client.post("/admin/bacrot/restore", json=DB_BODY, headers=AUTH)

    assert response.status_code == 409
    assert "azure" in response.json()["detail"]
    assert fake_dac.imports == []


@pytest.mark.asyncio
async def test_status_endpoint(app, fake_dac):
    fake_dac.statuses = [RequestStatus(StatusState.RUNNING, raw="Running, Progress = 10%")]

    async with _client(app) as client:
        response = await client.post("/admin/bacrot/status/abc-123", json=DB_BODY, headers=AUTH)

    assert response.status_code == 200
    data = response.json()
    assert data["guid"] == "abc-123"
    assert data["status"]["state"] == "running"
    assert fake_dac.status_calls[0][3] == "abc-123"


@pytest.mark.asyncio
async def test_status_endpoint_reports_failed_request(app, fake_dac):
    fake_dac.statuses = [RequestStatus(StatusState.FAILED, "Login failed", "Failed")]

    async with _client(app) as client:
        response = await client.post(
            "/admin/bacrot/status/abc-123", json={**DB_BODY, "wait": True}, headers=AUTH
        )

    assert response.status_code == 502


# ============================================================================
# Rotation / Metrics / Config
# ============================================================================

@pytest.mark.asyncio
async def test_rotate_endpoint_defaults_to_dry_run(app, fake_storage):
    async with _client(app) as client:
        response = await client.post("/admin/bacrot/rotate/orders", headers=AUTH)

    assert response.status_code == 200
    data = response.json()
    assert data["dry_run"] is True
    assert len(data["deleted"]) == 2
    assert fake_storage.delete_calls == []


@pytest.mark.asyncio
async def test_rotate_endpoint_deletes_when_asked(app, fake_storage):
    async with _client(app) as client:
        response = await client.post(
            "/admin/bacrot/rotate/orders", params={"dry_run": "false"}, headers=AUTH
        )
        metrics = await client.get("/admin/bacrot/metrics", headers=AUTH)

    assert response.status_code == 200
    assert response.json()["partial"] is False
    assert len(fake_storage.containers["orders"]) == 10

    data = metrics.json()
    assert data["total_rotations"] == 1
    assert data["total_deleted"] == 2
    assert data["last_rotation_at"] is not None


@pytest.mark.asyncio
async def test_health_endpoint(app):
    async with _client(app) as client:
        response = await client.get("/admin/bacrot/health", headers=AUTH)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["credentials_available"] is True


@pytest.mark.asyncio
async def test_config_endpoint_redacts_secrets(app):
    async with _client(app) as client:
        response = await client.get("/admin/bacrot/config", headers=AUTH)

    assert response.status_code == 200
    data = response.json()
    assert data["storage_account"] == "dbbackups"
    assert data["retention"]["limit"] == 10
    assert "storagekey-1234567890" not in response.text


def test_get_bacrot_state_requires_setup():
    with pytest.raises(RuntimeError):
        get_bacrot_state(FastAPI())
