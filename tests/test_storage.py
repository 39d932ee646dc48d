# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Storage adapter tests with the SDK clients replaced by stubs.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, UTC
from types import SimpleNamespace

import pytest
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from botocore.exceptions import ClientError

from bacrot.config import BacrotConfig, StorageBackend
from bacrot.credentials import StaticKeyResolver
from bacrot.exceptions import DeleteError, ListingError
from bacrot.retention.catalog import build_catalog
from bacrot.storage import create_storage
from bacrot.storage.azure import AzureBlobStorage
from bacrot.storage.s3 import S3BlobStorage

JAN = datetime(2024, 1, 1, tzinfo=UTC)
FEB = datetime(2024, 2, 1, tzinfo=UTC)


class StubContainer:
    def __init__(self, blobs=(), list_error=None, delete_error=None):
        self.blobs = list(blobs)
        self.list_error = list_error
        self.delete_error = delete_error
        self.deleted = []

    async def list_blobs(self):
        for blob in self.blobs:
            yield blob
        if self.list_error:
            raise self.list_error

    async def delete_blob(self, name):
        if self.delete_error:
            raise self.delete_error
        self.deleted.append(name)


class StubService:
    def __init__(self, container):
        self.container = container
        self.closed = False

    def get_container_client(self, name):
        return self.container

    async def close(self):
        self.closed = True


def _azure(container: StubContainer) -> AzureBlobStorage:
    storage = AzureBlobStorage("dbbackups", StaticKeyResolver({"dbbackups": "key"}))
    storage._service = StubService(container)
    return storage


def test_create_storage_selects_backend():
    resolver = StaticKeyResolver({"dbbackups": "key"})
    azure = create_storage(BacrotConfig(storage_account="dbbackups"), resolver)
    s3 = create_storage(
        BacrotConfig(storage_account="dbbackups", storage_backend=StorageBackend.S3),
        resolver,
    )

    assert isinstance(azure, AzureBlobStorage)
    assert azure.account_url == "https://dbbackups.blob.core.windows.net"
    assert isinstance(s3, S3BlobStorage)


@pytest.mark.asyncio
async def test_azure_listing_feeds_the_catalog():
    container = StubContainer([
        SimpleNamespace(name="orders-feb.bacpac", last_modified=FEB),
        SimpleNamespace(name="orders-jan.bacpac", last_modified=JAN),
    ])

    entries = await _azure(container).list_artifacts("orders")

    assert [a.name for a in build_catalog(entries)] == ["orders-jan.bacpac", "orders-feb.bacpac"]


@pytest.mark.asyncio
async def test_azure_listing_error():
    container = StubContainer(list_error=HttpResponseError(message="AuthenticationFailed"))

    with pytest.raises(ListingError):
        await _azure(container).list_artifacts("orders")


@pytest.mark.asyncio
async def test_azure_delete_of_missing_blob_succeeds():
    container = StubContainer(delete_error=ResourceNotFoundError(message="BlobNotFound"))

    await _azure(container).delete_artifact("orders", "gone.bacpac")


@pytest.mark.asyncio
async def test_azure_delete_error():
    container = StubContainer(delete_error=HttpResponseError(message="LeaseIdMissing"))

    with pytest.raises(DeleteError) as exc_info:
        await _azure(container).delete_artifact("orders", "leased.bacpac")

    assert exc_info.value.details["name"] == "leased.bacpac"


@pytest.mark.asyncio
async def test_azure_aclose_closes_service():
    storage = _azure(StubContainer())
    service = storage._service

    await storage.aclose()

    assert service.closed
    assert storage._service is None


class SlowKeyResolver:
    def __init__(self):
        self.calls = 0

    async def resolve(self, account_name):
        self.calls += 1
        await asyncio.sleep(0.01)
        return "key"


@pytest.mark.asyncio
async def test_azure_concurrent_first_use_creates_one_client(monkeypatch):
    created = []

    def service_factory(account_url, credential):
        created.append(account_url)
        return StubService(StubContainer())

    monkeypatch.setattr("bacrot.storage.azure.BlobServiceClient", service_factory)
    resolver = SlowKeyResolver()
    storage = AzureBlobStorage("dbbackups", resolver)

    await asyncio.gather(*(
        storage.delete_artifact("orders", f"orders-{i}.bacpac") for i in range(5)
    ))

    assert created == ["https://dbbackups.blob.core.windows.net"]
    assert resolver.calls == 1
    assert len(storage._service.container.deleted) == 5


class StubPaginator:
    def __init__(self, pages):
        self.pages = pages

    async def paginate(self, **kwargs):
        for page in self.pages:
            yield page


class StubS3Client:
    def __init__(self, pages=(), delete_error=None):
        self.pages = list(pages)
        self.delete_error = delete_error
        self.deleted = []

    def get_paginator(self, name):
        return StubPaginator(self.pages)

    async def delete_object(self, Bucket, Key):
        if self.delete_error:
            raise self.delete_error
        self.deleted.append((Bucket, Key))


def _s3(client: StubS3Client) -> S3BlobStorage:
    storage = S3BlobStorage()

    @asynccontextmanager
    async def _client():
        yield client

    storage._client = _client
    return storage


@pytest.mark.asyncio
async def test_s3_listing_across_pages():
    client = StubS3Client([
        {"Contents": [{"Key": "a.bacpac", "LastModified": JAN}]},
        {"Contents": [{"Key": "b.bacpac", "LastModified": FEB}]},
        {},
    ])

    entries = await _s3(client).list_artifacts("backups")

    assert [a.name for a in build_catalog(entries)] == ["a.bacpac", "b.bacpac"]


@pytest.mark.asyncio
async def test_s3_delete():
    client = StubS3Client()

    await _s3(client).delete_artifact("backups", "a.bacpac")

    assert client.deleted == [("backups", "a.bacpac")]


@pytest.mark.asyncio
async def test_s3_delete_error():
    error = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "DeleteObject")

    with pytest.raises(DeleteError):
        await _s3(StubS3Client(delete_error=error)).delete_artifact("backups", "a.bacpac")
