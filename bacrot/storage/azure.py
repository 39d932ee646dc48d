# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Azure Blob Storage adapter (azure-storage-blob, async client).

The service client is created on first use, once the account key has
been resolved, and reused until aclose(). Concurrent first calls share
one client.
"""

import asyncio
from typing import Any, Dict, List

import structlog
from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob.aio import BlobServiceClient

from bacrot.config import DEFAULT_BLOB_DOMAIN
from bacrot.credentials import KeyResolver
from bacrot.exceptions import DeleteError, ListingError

logger = structlog.get_logger()


class AzureBlobStorage:
    """Lists and deletes blobs in one storage account."""

    def __init__(
        self,
        account_name: str,
        key_resolver: KeyResolver,
        blob_domain: str = DEFAULT_BLOB_DOMAIN,
    ):
        self.account_name = account_name
        self.account_url = f"https://{account_name}.{blob_domain}"
        self._key_resolver = key_resolver
        self._service: BlobServiceClient | None = None
        self._lock = asyncio.Lock()

    async def _get_service(self) -> BlobServiceClient:
        if self._service is not None:
            return self._service
        async with self._lock:
            if self._service is None:
                key = await self._key_resolver.resolve(self.account_name)
                self._service = BlobServiceClient(
                    account_url=self.account_url,
                    credential={"account_name": self.account_name, "account_key": key},
                )
        return self._service

    async def list_artifacts(self, container: str) -> List[Dict[str, Any]]:
        service = await self._get_service()
        container_client = service.get_container_client(container)

        entries: List[Dict[str, Any]] = []
        try:
            async for blob in container_client.list_blobs():
                entries.append({"name": blob.name, "last_modified": blob.last_modified})
        except AzureError as e:
            logger.error("container_listing_failed", container=container, error=str(e))
            raise ListingError(
                f"Failed to list container {container}: {e}",
                details={"account": self.account_name, "container": container},
            ) from e

        logger.debug("container_listed", container=container, total=len(entries))
        return entries

    async def delete_artifact(self, container: str, name: str) -> None:
        service = await self._get_service()
        container_client = service.get_container_client(container)
        try:
            await container_client.delete_blob(name)
        except ResourceNotFoundError:
            # Already gone; the goal of the deletion is met.
            logger.warning("artifact_already_absent", container=container, name=name)
        except AzureError as e:
            raise DeleteError(
                f"Failed to delete {name}: {e}",
                details={"container": container, "name": name},
            ) from e

    async def aclose(self) -> None:
        if self._service is not None:
            await self._service.close()
            self._service = None
