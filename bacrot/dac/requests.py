# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Request Builder - Turn database and blob references into DAC requests.

Building a request validates and normalizes identifiers and resolves the
storage key. It never talks to the DAC service itself.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Dict, List

from bacrot.config import (
    DEFAULT_BLOB_DOMAIN,
    DEFAULT_EDITION,
    DEFAULT_SERVER_DOMAIN,
    DEFAULT_SIZE_GB,
    BlobRef,
    DatabaseRef,
)
from bacrot.credentials import KeyResolver, mask_secret
from bacrot.errors import explain_missing_fields, explain_no_storage_key
from bacrot.exceptions import CredentialsUnavailable, ValidationError

BLOB_CREDENTIALS_TYPE = (
    "BlobStorageAccessKeyCredentials:#Microsoft.SqlServer.Management.Dac.ServiceTypes"
)


class OperationKind(str, Enum):
    """Direction of a DAC request."""

    BACKUP = "backup"  # Export database -> blob
    RESTORE = "restore"  # Import blob -> database


@dataclass(frozen=True)
class ProviderRequest:
    """Fully-formed DAC export/import request."""

    kind: OperationKind
    blob_uri: str
    storage_key: str = field(repr=False)
    database_name: str
    server_name: str
    user_name: str
    password: str = field(repr=False)
    edition: str | None = None
    size_gb: int | None = None

    def __repr__(self) -> str:
        return (
            f"ProviderRequest(kind={self.kind.value!r}, blob_uri={self.blob_uri!r}, "
            f"database_name={self.database_name!r}, server_name={self.server_name!r}, "
            f"user_name={self.user_name!r}, password={mask_secret(self.password)!r}, "
            f"storage_key={mask_secret(self.storage_key)!r})"
        )

    def to_payload(self) -> Dict[str, Any]:
        """JSON body expected by the DAC Export/Import endpoints."""
        payload: Dict[str, Any] = {
            "BlobCredentials": {
                "__type": BLOB_CREDENTIALS_TYPE,
                "Uri": self.blob_uri,
                "StorageAccessKey": self.storage_key,
            },
            "ConnectionInfo": {
                "DatabaseName": self.database_name,
                "Password": self.password,
                "ServerName": self.server_name,
                "UserName": self.user_name,
            },
        }
        if self.kind == OperationKind.RESTORE:
            payload["AzureEdition"] = self.edition
            payload["DatabaseSizeInGB"] = self.size_gb
        return payload


def short_server_name(server: str) -> str:
    """'myserver.database.windows.net' -> 'myserver'."""
    return server.split(".", 1)[0]


def qualify_user(user: str, server: str) -> str:
    """Append @server unless the login is already qualified."""
    if "@" in user:
        return user
    return f"{user}@{short_server_name(server)}"


def qualify_server(server: str, domain: str = DEFAULT_SERVER_DOMAIN) -> str:
    """Append the provider domain unless the host is already qualified."""
    if "." in server:
        return server
    return f"{server}.{domain}"


def resolve_blob_uri(
    blob_name: str,
    account_name: str,
    container: str,
    domain: str = DEFAULT_BLOB_DOMAIN,
) -> str:
    """Absolute blob URL; absolute names are used verbatim."""
    if blob_name.startswith(("http://", "https://")):
        return blob_name
    return f"https://{account_name}.{domain}/{container}/{blob_name.lstrip('/')}"


def default_blob_name(db_name: str, now: datetime | None = None) -> str:
    """Name for a new backup: <db>-YYYY-MM-DD-HH-mm.bacpac."""
    now = now or datetime.now(UTC)
    return f"{db_name}-{now.strftime('%Y-%m-%d-%H-%M')}.bacpac"


def _missing_fields(db: DatabaseRef, blob: BlobRef) -> List[str]:
    checks = {
        "blob.name": blob.name,
        "blob.account_name": blob.account_name,
        "db.name": db.name,
        "db.password": db.password,
        "db.server": db.server,
        "db.user": db.user,
    }
    return [name for name, value in checks.items() if not value]


async def _resolve_storage_key(blob: BlobRef, key_resolver: KeyResolver | None) -> str:
    if blob.account_key:
        return blob.account_key
    if key_resolver is None:
        raise CredentialsUnavailable(explain_no_storage_key(blob.account_name))
    key = await key_resolver.resolve(blob.account_name)
    if not key:
        raise CredentialsUnavailable(explain_no_storage_key(blob.account_name))
    return key


async def _build_request(
    kind: OperationKind,
    db: DatabaseRef,
    blob: BlobRef,
    key_resolver: KeyResolver | None,
    server_domain: str,
    blob_domain: str,
    edition: str | None = None,
    size_gb: int | None = None,
) -> ProviderRequest:
    missing = _missing_fields(db, blob)
    if missing:
        raise ValidationError(
            explain_missing_fields(kind.value, missing),
            details={"missing": missing},
        )

    storage_key = await _resolve_storage_key(blob, key_resolver)
    container = blob.container or db.name

    return ProviderRequest(
        kind=kind,
        blob_uri=resolve_blob_uri(blob.name, blob.account_name, container, blob_domain),
        storage_key=storage_key,
        database_name=db.name,
        server_name=qualify_server(db.server, server_domain),
        user_name=qualify_user(db.user, db.server),
        password=db.password,
        edition=edition,
        size_gb=size_gb,
    )


async def build_export_request(
    db: DatabaseRef,
    blob: BlobRef,
    key_resolver: KeyResolver | None = None,
    *,
    server_domain: str = DEFAULT_SERVER_DOMAIN,
    blob_domain: str = DEFAULT_BLOB_DOMAIN,
) -> ProviderRequest:
    """
    Build a database -> blob export request.

    Args:
        db: Source database
        blob: Destination blob (name, account, optional key and container)
        key_resolver: Used when blob.account_key is not set
        server_domain: Suffix for short server names
        blob_domain: Suffix used to compose the blob URI

    Returns:
        ProviderRequest ready for submission

    Raises:
        ValidationError: If a required field is empty
        CredentialsUnavailable: If no storage key can be resolved
    """
    return await _build_request(
        OperationKind.BACKUP, db, blob, key_resolver, server_domain, blob_domain
    )


async def build_import_request(
    db: DatabaseRef,
    blob: BlobRef,
    key_resolver: KeyResolver | None = None,
    *,
    server_domain: str = DEFAULT_SERVER_DOMAIN,
    blob_domain: str = DEFAULT_BLOB_DOMAIN,
    default_edition: str = DEFAULT_EDITION,
    default_size_gb: int = DEFAULT_SIZE_GB,
) -> ProviderRequest:
    """
    Build a blob -> database import request.

    Same validation as build_export_request(); edition and size fall back
    to default_edition / default_size_gb when the DatabaseRef leaves them
    unset.
    """
    return await _build_request(
        OperationKind.RESTORE,
        db,
        blob,
        key_resolver,
        server_domain,
        blob_domain,
        edition=db.edition or default_edition,
        size_gb=db.size_gb or default_size_gb,
    )
