# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Storage key resolution.

A resolver turns a storage account name into its access key. Keys are held
in memory only and are never logged in full; use mask_secret() whenever a
key has to appear in a log line or repr.
"""

import asyncio
import os
import ssl
from typing import Dict, Protocol
from xml.etree import ElementTree

import httpx
import structlog

from bacrot.errors import explain_no_storage_key
from bacrot.exceptions import CredentialsUnavailable

logger = structlog.get_logger()

MANAGEMENT_URL = "https://management.core.windows.net"
MANAGEMENT_API_VERSION = "2012-03-01"


def mask_secret(value: str | None) -> str | None:
    """Keep the first four characters of a secret and hide the rest."""
    if value is None:
        return None
    if len(value) <= 4:
        return "****"
    return f"{value[:4]}****"


class KeyResolver(Protocol):
    """Protocol for storage key lookups."""

    async def resolve(self, account_name: str) -> str:
        """
        Return the access key of a storage account.

        Raises:
            CredentialsUnavailable: If no key can be found
        """
        ...


class StaticKeyResolver:
    """Serves keys from a fixed account -> key mapping."""

    def __init__(self, keys: Dict[str, str]):
        self._keys = dict(keys)

    async def resolve(self, account_name: str) -> str:
        key = self._keys.get(account_name)
        if not key:
            raise CredentialsUnavailable(explain_no_storage_key(account_name))
        return key


class EnvKeyResolver:
    """
    Reads the key from the environment.

    AZURE_STORAGE_ACCESS_KEY is used for any account unless
    AZURE_STORAGE_ACCOUNT is set and names a different one.
    """

    def __init__(
        self,
        key_var: str = "AZURE_STORAGE_ACCESS_KEY",
        account_var: str = "AZURE_STORAGE_ACCOUNT",
    ):
        self.key_var = key_var
        self.account_var = account_var

    async def resolve(self, account_name: str) -> str:
        configured_account = os.getenv(self.account_var)
        if configured_account and configured_account != account_name:
            raise CredentialsUnavailable(
                explain_no_storage_key(account_name),
                details={"configured_account": configured_account},
            )
        key = os.getenv(self.key_var)
        if not key:
            raise CredentialsUnavailable(explain_no_storage_key(account_name))
        return key


class ManagementKeyResolver:
    """
    Fetches the primary key through the classic service management API.

    Authentication is the management certificate passed as `cert`
    (a PEM path or a (cert, key) tuple), loaded into an SSL context.
    """

    def __init__(
        self,
        subscription_id: str,
        cert: str | tuple[str, str],
        base_url: str = MANAGEMENT_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.subscription_id = subscription_id
        self.cert = cert
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def resolve(self, account_name: str) -> str:
        url = (
            f"{self.base_url}/{self.subscription_id}"
            f"/services/storageservices/{account_name}/keys"
        )
        try:
            if self._transport is not None:
                client = httpx.AsyncClient(transport=self._transport, timeout=self.timeout)
            else:
                client = httpx.AsyncClient(verify=_ssl_context(self.cert), timeout=self.timeout)
            async with client:
                response = await client.get(
                    url, headers={"x-ms-version": MANAGEMENT_API_VERSION}
                )
        except (httpx.HTTPError, OSError) as e:
            raise CredentialsUnavailable(
                f"Storage key lookup failed: {e}",
                details={"account_name": account_name},
            ) from e

        if response.status_code != 200:
            raise CredentialsUnavailable(
                explain_no_storage_key(account_name),
                details={"status_code": response.status_code},
            )

        key = _extract_primary_key(response.text)
        if not key:
            raise CredentialsUnavailable(explain_no_storage_key(account_name))
        return key


def _ssl_context(cert: str | tuple[str, str]) -> ssl.SSLContext:
    """Client-certificate context; a bare path holds both cert and key."""
    context = ssl.create_default_context()
    if isinstance(cert, tuple):
        context.load_cert_chain(certfile=cert[0], keyfile=cert[1])
    else:
        context.load_cert_chain(certfile=cert)
    return context


def _extract_primary_key(xml_text: str) -> str | None:
    try:
        root = ElementTree.fromstring(xml_text)
    except ElementTree.ParseError:
        return None
    for element in root.iter():
        if element.tag.rsplit("}", 1)[-1] == "Primary" and element.text:
            return element.text.strip()
    return None


class CachingKeyResolver:
    """
    Wraps another resolver and remembers resolved keys for the process lifetime.

    Concurrent lookups of the same account share a single call to the
    inner resolver.
    """

    def __init__(self, inner: KeyResolver):
        self.inner = inner
        self._cache: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def resolve(self, account_name: str) -> str:
        if account_name in self._cache:
            return self._cache[account_name]
        async with self._lock:
            if account_name not in self._cache:
                key = await self.inner.resolve(account_name)
                self._cache[account_name] = key
                logger.debug(
                    "storage_key_resolved",
                    account_name=account_name,
                    key=mask_secret(key),
                )
        return self._cache[account_name]

    def clear(self) -> None:
        self._cache.clear()
