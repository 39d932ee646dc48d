# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Storage Layer - Blob containers holding .bacpac artifacts.

Only the two operations rotation needs are exposed: listing a container
and deleting one artifact.
"""

from typing import Any, List, Protocol

from bacrot.config import BacrotConfig, StorageBackend
from bacrot.credentials import KeyResolver
from bacrot.exceptions import ConfigurationError


class BlobStorage(Protocol):
    """Protocol for blob storage adapters."""

    async def list_artifacts(self, container: str) -> List[Any]:
        """
        List raw entries of a container.

        Each entry exposes a name and a modification timestamp under the
        provider's own key; bacrot.retention.catalog normalizes them.

        Raises:
            ListingError: If the container cannot be listed
        """
        ...

    async def delete_artifact(self, container: str, name: str) -> None:
        """
        Delete one artifact.

        Raises:
            DeleteError: If the artifact cannot be deleted
        """
        ...

    async def aclose(self) -> None:
        ...


def create_storage(config: BacrotConfig, key_resolver: KeyResolver) -> BlobStorage:
    """
    Build the storage adapter selected by config.storage_backend.

    Args:
        config: Bacrot configuration
        key_resolver: Resolves the account key (Azure backend)

    Raises:
        ConfigurationError: If the backend is unsupported
    """
    if config.storage_backend == StorageBackend.AZURE:
        from bacrot.storage.azure import AzureBlobStorage

        return AzureBlobStorage(
            config.storage_account,
            key_resolver,
            blob_domain=config.blob_domain,
        )
    elif config.storage_backend == StorageBackend.S3:
        from bacrot.storage.s3 import S3BlobStorage

        return S3BlobStorage(region=config.region, endpoint_url=config.endpoint_url)
    else:
        raise ConfigurationError(f"Unsupported storage backend: {config.storage_backend}")


__all__ = [
    "BlobStorage",
    "create_storage",
]
