# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for bacrot tests.

Provides in-memory storage and DAC fakes, configuration and state helpers.
"""

import os
from datetime import datetime, UTC
from typing import Dict, Iterable, List

import pytest
import pytest_asyncio

from bacrot.dac.poller import RequestStatus, StatusState
from bacrot.exceptions import DeleteError, ListingError

# Set test environment variables
os.environ["BACROT_ADMIN_API_KEY"] = "test-api-key-12345"


def artifact_entry(name: str, when: datetime, key: str = "last_modified") -> dict:
    """Raw listing entry the way a storage adapter returns it."""
    return {"name": name, key: when}


def monthly_entries(db: str, dates: Iterable[datetime]) -> List[dict]:
    return [artifact_entry(f"{db}-{d:%Y-%m-%d-%H-%M}.bacpac", d) for d in dates]


class FakeStorage:
    """In-memory BlobStorage."""

    def __init__(
        self,
        containers: Dict[str, List[dict]] | None = None,
        failing: Iterable[str] = (),
        listing_error: bool = False,
    ):
        self.containers = {k: list(v) for k, v in (containers or {}).items()}
        self.failing = set(failing)
        self.listing_error = listing_error
        self.delete_calls: List[str] = []
        self.closed = False

    async def list_artifacts(self, container: str) -> List[dict]:
        if self.listing_error:
            raise ListingError(f"Failed to list container {container}")
        return list(self.containers.get(container, []))

    async def delete_artifact(self, container: str, name: str) -> None:
        self.delete_calls.append(name)
        if name in self.failing:
            raise DeleteError(f"Failed to delete {name}: lease held")
        self.containers[container] = [
            entry for entry in self.containers.get(container, []) if entry["name"] != name
        ]

    async def aclose(self) -> None:
        self.closed = True


class FakeDacClient:
    """In-memory DacClient with a scripted sequence of statuses."""

    def __init__(self, statuses: Iterable = ()):
        self.exports = []
        self.imports = []
        self.status_calls = []
        self.statuses = list(statuses)
        self.closed = False

    async def submit_export(self, request) -> str:
        self.exports.append(request)
        return f"export-guid-{len(self.exports)}"

    async def submit_import(self, request) -> str:
        self.imports.append(request)
        return f"import-guid-{len(self.imports)}"

    async def get_operation_status(self, server, user, password, guid):
        self.status_calls.append((server, user, password, guid))
        if not self.statuses:
            return RequestStatus(StatusState.COMPLETED, raw="Completed")
        item = self.statuses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def test_config():
    """Create a test configuration."""
    from bacrot.config import BacrotConfig

    return BacrotConfig(
        storage_account="dbbackups",
        storage_key="storagekey-1234567890",
        poll_interval=0.0,
    )


@pytest.fixture
def db_ref():
    from bacrot.config import DatabaseRef

    return DatabaseRef(name="orders", server="myserver", user="alice", password="s3cret!")


@pytest.fixture
def blob_ref():
    from bacrot.config import BlobRef

    return BlobRef(account_name="dbbackups")


@pytest.fixture
def fake_storage():
    dates = [datetime(2024, month, 1, 2, 0, tzinfo=UTC) for month in range(1, 13)]
    return FakeStorage({"orders": monthly_entries("orders", dates)})


@pytest.fixture
def fake_dac():
    return FakeDacClient()


@pytest_asyncio.fixture
async def test_state(test_config, fake_storage, fake_dac):
    """Create initialized state wired to the fakes."""
    from bacrot.core import initialize_state

    state = await initialize_state(test_config, storage=fake_storage, dac_client=fake_dac)
    yield state
