# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for bacrot.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""


def explain_missing_storage_account_env() -> str:
    """
    Explain that the storage account environment variable is missing.
    """

    return (
        "Storage account is not configured. "
        "Set the AZURE_STORAGE_ACCOUNT environment variable or pass "
        "storage_account=... to create_config()."
    )


def explain_invalid_int_env(name: str, value: str | None) -> str:
    """
    Explain that an integer environment variable is invalid.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        "It must be a non-negative integer."
    )


def explain_invalid_float_env(name: str, value: str | None) -> str:
    """
    Explain that a duration environment variable is invalid.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        "It must be a non-negative number of seconds."
    )


def explain_invalid_bool_env(name: str, value: str | None) -> str:
    return (
        f"Invalid {name} value: {value!r}. "
        "Expected one of: 'true', 'false', '1', '0', 'yes', 'no'."
    )


def explain_invalid_backend_env(value: str | None) -> str:
    """
    Explain that BACROT_STORAGE_BACKEND is invalid.
    """

    return (
        f"Invalid BACROT_STORAGE_BACKEND value: {value!r}. "
        "Expected 'azure' or 's3'."
    )


def explain_missing_fields(kind: str, fields: list[str]) -> str:
    """
    Explain which fields a backup or restore request is missing.
    """

    return (
        f"Cannot build {kind} request, missing required field(s): "
        f"{', '.join(fields)}."
    )


def explain_no_storage_key(account_name: str) -> str:
    return (
        f"No access key available for storage account {account_name!r}. "
        "Pass blob.account_key, set AZURE_STORAGE_ACCESS_KEY, or configure "
        "a key resolver."
    )
