# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DAC HTTP Client Tests.

The service is replaced by an httpx.MockTransport.
"""

import json

import httpx
import pytest

from bacrot.dac.client import HttpDacClient, extract_guid, parse_status_document
from bacrot.dac.poller import StatusState
from bacrot.dac.requests import OperationKind, ProviderRequest
from bacrot.exceptions import PollingError, SubmissionError

ENDPOINT = "https://dac.example.test/DACWebService.svc"

STATUS_XML = """<ArrayOfStatusInfo xmlns="http://schemas.datacontract.org/2004/07/Microsoft.SqlServer.Management.Dac.ServiceTypes">
  <StatusInfo>
    <ErrorMessage>{error}</ErrorMessage>
    <RequestId>{guid}</RequestId>
    <Status>{status}</Status>
  </StatusInfo>
</ArrayOfStatusInfo>"""


def _request(kind=OperationKind.BACKUP) -> ProviderRequest:
    return ProviderRequest(
        kind=kind,
        blob_uri="https://dbbackups.blob.core.windows.net/orders/x.bacpac",
        storage_key="key-abc",
        database_name="orders",
        server_name="myserver.database.windows.net",
        user_name="alice@myserver",
        password="pw",
        edition="Business" if kind == OperationKind.RESTORE else None,
        size_gb=10 if kind == OperationKind.RESTORE else None,
    )


def test_extract_guid():
    body = '<guid xmlns="http://schemas.microsoft.com/2003/10/Serialization/">0b0e-42</guid>'
    assert extract_guid(body) == "0b0e-42"
    assert extract_guid("<error>nope</error>") is None


def test_parse_status_document_picks_matching_request():
    xml = (
        "<ArrayOfStatusInfo>"
        "<StatusInfo><RequestId>other</RequestId><Status>Completed</Status></StatusInfo>"
        "<StatusInfo><RequestId>mine</RequestId><Status>Running, Progress = 5%</Status></StatusInfo>"
        "</ArrayOfStatusInfo>"
    )

    status = parse_status_document(xml, "mine")

    assert status.state == StatusState.RUNNING
    assert status.raw == "Running, Progress = 5%"


def test_parse_status_document_without_entries():
    assert parse_status_document("<ArrayOfStatusInfo/>", "guid") is None


def test_parse_status_document_rejects_garbage():
    with pytest.raises(PollingError):
        parse_status_document("not xml at all", "guid")


@pytest.mark.asyncio
async def test_submit_export_posts_payload_and_returns_guid():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, text="<guid>abc-123</guid>")

    client = HttpDacClient(ENDPOINT, transport=httpx.MockTransport(handler))
    try:
        guid = await client.submit_export(_request())
    finally:
        await client.aclose()

    assert guid == "abc-123"
    assert seen["url"] == f"{ENDPOINT}/Export"
    assert seen["body"]["ConnectionInfo"]["UserName"] == "alice@myserver"


@pytest.mark.asyncio
async def test_submit_import_hits_import_endpoint():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, text="<guid>imp-1</guid>")

    client = HttpDacClient(ENDPOINT, transport=httpx.MockTransport(handler))
    try:
        guid = await client.submit_import(_request(OperationKind.RESTORE))
    finally:
        await client.aclose()

    assert guid == "imp-1"
    assert seen["path"].endswith("/Import")
    assert seen["body"]["DatabaseSizeInGB"] == 10


@pytest.mark.asyncio
async def test_rejected_submission_raises_with_status_code():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, text="Invalid credentials")

    client = HttpDacClient(ENDPOINT, transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(SubmissionError) as exc_info:
            await client.submit_export(_request())
    finally:
        await client.aclose()

    assert exc_info.value.status_code == 400
    assert "Invalid credentials" in exc_info.value.details["body"]


@pytest.mark.asyncio
async def test_response_without_guid_is_a_submission_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    client = HttpDacClient(ENDPOINT, transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(SubmissionError):
            await client.submit_export(_request())
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_transport_failure_is_a_submission_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = HttpDacClient(ENDPOINT, transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(SubmissionError):
            await client.submit_export(_request())
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_wrong_kind_is_rejected():
    client = HttpDacClient(ENDPOINT, transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    try:
        with pytest.raises(ValueError):
            await client.submit_export(_request(OperationKind.RESTORE))
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_get_operation_status_sends_query_and_parses():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200, text=STATUS_XML.format(error="", guid="abc-123", status="Completed")
        )

    client = HttpDacClient(ENDPOINT, transport=httpx.MockTransport(handler))
    try:
        status = await client.get_operation_status(
            "myserver.database.windows.net", "alice@myserver", "pw", "abc-123"
        )
    finally:
        await client.aclose()

    assert status.state == StatusState.COMPLETED
    assert seen["params"] == {
        "servername": "myserver.database.windows.net",
        "username": "alice@myserver",
        "password": "pw",
        "reqId": "abc-123",
    }


@pytest.mark.asyncio
async def test_failed_import_into_populated_database_is_already_satisfied():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            text=STATUS_XML.format(
                error="Target database contains one or more user objects.",
                guid="abc-123",
                status="Failed",
            ),
        )

    client = HttpDacClient(ENDPOINT, transport=httpx.MockTransport(handler))
    try:
        status = await client.get_operation_status("s", "u", "p", "abc-123")
    finally:
        await client.aclose()

    assert status.state == StatusState.ALREADY_SATISFIED


@pytest.mark.asyncio
async def test_status_http_error_keeps_provider_text():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="Data plane says: contains one or more user objects")

    client = HttpDacClient(ENDPOINT, transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(PollingError) as exc_info:
            await client.get_operation_status("s", "u", "p", "abc-123")
    finally:
        await client.aclose()

    assert "user objects" in exc_info.value.message
    assert exc_info.value.details["status_code"] == 500
