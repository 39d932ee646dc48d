# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
S3 adapter (aiobotocore) for .bacpac archives kept in S3-compatible
storage. The container is the bucket; credentials come from the usual
AWS environment/config chain.

This backend is rotation-only. The DAC service exports to and imports from
Azure blob URIs, so objects listed here are pruned but never restored;
restoring the latest backup raises ConfigurationError on this backend.
"""

from typing import Any, Dict, List

import structlog
from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError

from bacrot.exceptions import DeleteError, ListingError

logger = structlog.get_logger()


class S3BlobStorage:
    """Lists and deletes objects in S3 buckets."""

    def __init__(
        self,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        list_batch_size: int = 1000,
    ):
        self.region = region
        self.endpoint_url = endpoint_url
        self.list_batch_size = list_batch_size
        self._session = get_session()

    def _client(self):
        # Clients are created per operation via context manager
        return self._session.create_client(
            "s3",
            region_name=self.region,
            endpoint_url=self.endpoint_url,
        )

    async def list_artifacts(self, container: str) -> List[Dict[str, Any]]:
        entries: List[Dict[str, Any]] = []
        try:
            async with self._client() as s3_client:
                paginator = s3_client.get_paginator("list_objects_v2")
                async for page in paginator.paginate(
                    Bucket=container,
                    MaxKeys=self.list_batch_size,
                ):
                    for obj in page.get("Contents", []):
                        entries.append({"name": obj["Key"], "LastModified": obj["LastModified"]})
        except (BotoCoreError, ClientError) as e:
            logger.error("container_listing_failed", container=container, error=str(e))
            raise ListingError(
                f"Failed to list bucket {container}: {e}",
                details={"container": container},
            ) from e

        logger.debug("container_listed", container=container, total=len(entries))
        return entries

    async def delete_artifact(self, container: str, name: str) -> None:
        try:
            async with self._client() as s3_client:
                await s3_client.delete_object(Bucket=container, Key=name)
        except (BotoCoreError, ClientError) as e:
            raise DeleteError(
                f"Failed to delete {name}: {e}",
                details={"container": container, "name": name},
            ) from e

    async def aclose(self) -> None:
        return None
