# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Operation Poller - Drive a DAC request to a terminal state.

State machine:

    Polling --(completed / no status / already satisfied)--> Succeeded
    Polling --(status check error / failed status)--------> Failed
    Polling --(anything else)--> sleep(interval) --> Polling

The only suspension point between ticks is asyncio.sleep(), so cancelling
the awaiting task stops polling; an in-flight status call is simply not
followed by another tick.
"""

import asyncio
import inspect
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

import structlog

from bacrot.config import DatabaseRef
from bacrot.dac.requests import OperationKind
from bacrot.exceptions import OperationFailedError, PollingError, PollingTimeoutError

logger = structlog.get_logger()

# The provider reports an import into an already populated database as a
# failure with this text. It is not a stable contract, so it lives behind
# is_already_satisfied() and nowhere else.
ALREADY_SATISFIED_PATTERN = re.compile(
    r"contains one or more user objects", re.IGNORECASE
)
_WHITESPACE_RUNS = re.compile(r"[\r\n\t ]+")


class StatusState(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ALREADY_SATISFIED = "already_satisfied"


@dataclass(frozen=True)
class RequestStatus:
    """Status of a DAC request as reported by the provider."""

    state: StatusState
    message: str | None = None
    raw: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state != StatusState.RUNNING


@dataclass
class OperationHandle:
    """An accepted DAC request. Only `status` changes after creation."""

    request_id: str
    db: DatabaseRef
    kind: OperationKind
    status: RequestStatus | None = None


StatusFn = Callable[[], Awaitable[RequestStatus | None]]
PollObserver = Callable[[RequestStatus | None, BaseException | None], Any]


def is_already_satisfied(message: str | None) -> bool:
    """
    True when a provider error means the destination already holds the data.

    Carriage returns, newlines and tabs are word separators: every run of
    them (and of spaces) becomes a single space before the search, so both
    "one or more\\r\\n user objects" and "one\\tor more user\\nobjects" match.
    """
    if not message:
        return False
    normalized = _WHITESPACE_RUNS.sub(" ", message)
    return bool(ALREADY_SATISFIED_PATTERN.search(normalized))


def classify_status(raw_status: str | None, error_message: str | None = None) -> RequestStatus:
    """
    Map the provider's free-form status and error text to a RequestStatus.

    Examples of raw values: "Completed", "Failed", "Pending",
    "Running, Progress = 40%".
    """
    if is_already_satisfied(error_message):
        return RequestStatus(StatusState.ALREADY_SATISFIED, error_message, raw_status)

    normalized = (raw_status or "").strip().lower()
    if not normalized or normalized == "completed":
        return RequestStatus(StatusState.COMPLETED, error_message, raw_status)
    if normalized.startswith("failed"):
        return RequestStatus(StatusState.FAILED, error_message or raw_status, raw_status)
    return RequestStatus(StatusState.RUNNING, error_message, raw_status)


async def _notify(observer: PollObserver | None, result: Any, error: BaseException | None) -> None:
    if observer is None:
        return
    # Observers never change the outcome of a poll.
    try:
        outcome = observer(result, error)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception as e:
        logger.warning("poll_observer_failed", error=str(e))


async def _poll(
    status_fn: StatusFn,
    guid: str,
    interval: float,
    on_each_poll: PollObserver | None,
) -> RequestStatus:
    attempt = 0
    while True:
        attempt += 1
        try:
            status = await status_fn()
        except PollingError as e:
            await _notify(on_each_poll, None, e)
            if is_already_satisfied(e.message):
                logger.info("request_already_satisfied", guid=guid, attempt=attempt)
                return RequestStatus(StatusState.ALREADY_SATISFIED, e.message)
            logger.error("status_check_failed", guid=guid, attempt=attempt, error=str(e))
            raise
        except Exception as e:
            await _notify(on_each_poll, None, e)
            if is_already_satisfied(str(e)):
                logger.info("request_already_satisfied", guid=guid, attempt=attempt)
                return RequestStatus(StatusState.ALREADY_SATISFIED, str(e))
            logger.error("status_check_failed", guid=guid, attempt=attempt, error=str(e))
            raise PollingError(
                f"Status check failed: {e}",
                details={"guid": guid, "attempt": attempt},
            ) from e

        await _notify(on_each_poll, status, None)

        if status is None or status.state == StatusState.COMPLETED:
            logger.info("request_completed", guid=guid, attempts=attempt)
            return status or RequestStatus(StatusState.COMPLETED)

        if status.state == StatusState.ALREADY_SATISFIED or is_already_satisfied(status.message):
            logger.info("request_already_satisfied", guid=guid, attempts=attempt)
            return RequestStatus(StatusState.ALREADY_SATISFIED, status.message, status.raw)

        if status.state == StatusState.FAILED:
            logger.error("request_failed", guid=guid, message=status.message)
            raise OperationFailedError(
                f"Request {guid} failed: {status.message}",
                details={"guid": guid, "status": status.raw, "message": status.message},
            )

        logger.debug("poll_tick", guid=guid, attempt=attempt, status=status.raw)
        await asyncio.sleep(interval)


async def wait_until_finished(
    status_fn: StatusFn,
    guid: str,
    interval: float = 10.0,
    on_each_poll: PollObserver | None = None,
    timeout: float | None = None,
) -> RequestStatus:
    """
    Poll a DAC request until it reaches a terminal state.

    Args:
        status_fn: Async callable returning the current RequestStatus
                   (None means the provider has nothing left to report)
        guid: Request id, used for logging and error details
        interval: Seconds to wait between polls
        on_each_poll: Optional observer called as on_each_poll(status, error)
                      with every raw poll result, before classification.
                      May be sync or async.
        timeout: Optional ceiling in seconds for the whole wait

    Returns:
        The terminal RequestStatus (completed or already_satisfied)

    Raises:
        PollingError: If a status check fails (never retried)
        OperationFailedError: If the provider reports the request as failed
        PollingTimeoutError: If the request is still running at the deadline
    """
    if interval < 0:
        raise ValueError(f"interval must be >= 0, got {interval}")

    if timeout is None:
        return await _poll(status_fn, guid, interval, on_each_poll)

    try:
        async with asyncio.timeout(timeout):
            return await _poll(status_fn, guid, interval, on_each_poll)
    except TimeoutError as e:
        logger.warning("request_wait_timed_out", guid=guid, timeout=timeout)
        raise PollingTimeoutError(
            f"Request {guid} still running after {timeout}s",
            details={"guid": guid, "timeout": timeout},
        ) from e
