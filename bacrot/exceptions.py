# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bacrot Exceptions - Custom exceptions for the bacrot package.

Callers can tell apart a request that failed to submit (SubmissionError),
a request that never finished (PollingTimeoutError), and a rotation that
finished with per-artifact failures (RotationResult.partial, DeleteError).
"""


class BacrotError(Exception):
    """Base exception for all bacrot errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(BacrotError):
    """Raised when configuration is invalid."""

    pass


class ValidationError(BacrotError):
    """Raised when a backup/restore request is missing required fields."""

    pass


class CredentialsUnavailable(BacrotError):
    """Raised when no storage access key can be resolved."""

    pass


class SubmissionError(BacrotError):
    """Raised when the DAC service rejects an export/import request."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)


class ListingError(BacrotError):
    """Raised when a container listing fails. Aborts the whole rotation."""

    pass


class DeleteError(BacrotError):
    """Raised when a single artifact cannot be deleted."""

    pass


class MalformedArtifactError(BacrotError):
    """Raised when a listing entry has no usable name or timestamp."""

    pass


class PollingError(BacrotError):
    """Raised when waiting on a DAC request stops without success."""

    pass


class OperationFailedError(PollingError):
    """Raised when the DAC service reports the request as failed."""

    pass


class PollingTimeoutError(PollingError):
    """Raised when a DAC request is still running after the wait deadline."""

    pass
