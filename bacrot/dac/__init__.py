# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DAC Layer - Request building, submission and status polling for
database export/import.
"""

from bacrot.dac.requests import (
    OperationKind,
    ProviderRequest,
    build_export_request,
    build_import_request,
    default_blob_name,
    qualify_server,
    qualify_user,
    resolve_blob_uri,
)

from bacrot.dac.poller import (
    OperationHandle,
    RequestStatus,
    StatusState,
    classify_status,
    is_already_satisfied,
    wait_until_finished,
)

from bacrot.dac.client import (
    DacClient,
    HttpDacClient,
    extract_guid,
    parse_status_document,
)

__all__ = [
    # Requests
    "OperationKind",
    "ProviderRequest",
    "build_export_request",
    "build_import_request",
    "default_blob_name",
    "qualify_server",
    "qualify_user",
    "resolve_blob_uri",
    # Poller
    "OperationHandle",
    "RequestStatus",
    "StatusState",
    "classify_status",
    "is_already_satisfied",
    "wait_until_finished",
    # Client
    "DacClient",
    "HttpDacClient",
    "extract_guid",
    "parse_status_document",
]
