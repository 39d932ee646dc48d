# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DAC Client - HTTP adapter for the import/export service.

Endpoints (relative to the service base URL):
- POST /Export, POST /Import: JSON body, answers <guid>REQUEST-ID</guid>
- GET  /Status?servername=&username=&password=&reqId=: ArrayOfStatusInfo XML
"""

import re
from typing import Protocol
from xml.etree import ElementTree

import httpx
import structlog

from bacrot.config import DEFAULT_DAC_ENDPOINT
from bacrot.dac.poller import RequestStatus, classify_status
from bacrot.dac.requests import OperationKind, ProviderRequest
from bacrot.exceptions import PollingError, SubmissionError

logger = structlog.get_logger()

_GUID_RE = re.compile(r"<guid[^>]*>\s*([^<\s]+)\s*</guid>", re.IGNORECASE)


class DacClient(Protocol):
    """Protocol for DAC service access."""

    async def submit_export(self, request: ProviderRequest) -> str:
        ...

    async def submit_import(self, request: ProviderRequest) -> str:
        ...

    async def get_operation_status(
        self, server: str, user: str, password: str, guid: str
    ) -> RequestStatus | None:
        ...

    async def aclose(self) -> None:
        ...


def extract_guid(body: str) -> str | None:
    """Pull the request id out of a <guid>...</guid> response."""
    match = _GUID_RE.search(body or "")
    return match.group(1) if match else None


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_status_document(xml_text: str, guid: str) -> RequestStatus | None:
    """
    Parse an ArrayOfStatusInfo document.

    Picks the StatusInfo whose RequestId matches guid (falling back to the
    first one). Returns None when the document holds no status entries.

    Raises:
        PollingError: If the document is not XML
    """
    try:
        root = ElementTree.fromstring(xml_text)
    except ElementTree.ParseError as e:
        raise PollingError(
            f"Unreadable status response: {e}",
            details={"guid": guid},
        ) from e

    entries = [el for el in root.iter() if _local_name(el.tag) == "StatusInfo"]
    if not entries:
        return None

    def _field(entry: ElementTree.Element, name: str) -> str | None:
        for child in entry:
            if _local_name(child.tag) == name:
                return (child.text or "").strip() or None
        return None

    selected = next(
        (entry for entry in entries if _field(entry, "RequestId") == guid),
        entries[0],
    )
    return classify_status(_field(selected, "Status"), _field(selected, "ErrorMessage"))


class HttpDacClient:
    """
    DAC client over httpx.

    One AsyncClient is shared by every call; close it with aclose().
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_DAC_ENDPOINT,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def _submit(self, service: str, request: ProviderRequest) -> str:
        url = f"{self.endpoint}/{service}"
        try:
            response = await self._client.post(
                url,
                json=request.to_payload(),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error("dac_submit_failed", service=service, error=str(e))
            raise SubmissionError(
                f"{service} request could not be sent: {e}",
                details={"database": request.database_name},
            ) from e

        if response.status_code != 200:
            logger.error(
                "dac_submit_rejected",
                service=service,
                status_code=response.status_code,
            )
            raise SubmissionError(
                f"{service} request rejected with HTTP {response.status_code}",
                status_code=response.status_code,
                details={"database": request.database_name, "body": response.text[:500]},
            )

        guid = extract_guid(response.text)
        if not guid:
            raise SubmissionError(
                f"{service} response did not contain a request id",
                status_code=response.status_code,
                details={"database": request.database_name},
            )

        logger.info(
            "dac_request_queued",
            service=service,
            guid=guid,
            blob_uri=request.blob_uri,
        )
        return guid

    async def submit_export(self, request: ProviderRequest) -> str:
        if request.kind != OperationKind.BACKUP:
            raise ValueError("submit_export expects a backup request")
        return await self._submit("Export", request)

    async def submit_import(self, request: ProviderRequest) -> str:
        if request.kind != OperationKind.RESTORE:
            raise ValueError("submit_import expects a restore request")
        return await self._submit("Import", request)

    async def get_operation_status(
        self, server: str, user: str, password: str, guid: str
    ) -> RequestStatus | None:
        """
        Fetch the current status of a request.

        Raises:
            PollingError: On transport failure or a non-200 answer. The
                          provider's error text is kept in the message.
        """
        try:
            response = await self._client.get(
                f"{self.endpoint}/Status",
                params={
                    "servername": server,
                    "username": user,
                    "password": password,
                    "reqId": guid,
                },
            )
        except httpx.HTTPError as e:
            raise PollingError(
                f"Status request could not be sent: {e}",
                details={"guid": guid},
            ) from e

        if response.status_code != 200:
            raise PollingError(
                f"Status request failed with HTTP {response.status_code}: {response.text[:500]}",
                details={"guid": guid, "status_code": response.status_code},
            )

        return parse_status_document(response.text, guid)

    async def aclose(self) -> None:
        await self._client.aclose()
