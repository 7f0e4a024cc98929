"""
Deadline-bounded execution of remote operations.

The operation receives its deadline (seconds) and is expected to hand it to
the transport (Firestore `timeout=`, `requests` `timeout=`), so a call that
loses the race is abandoned by the client library rather than left running.
The caller never waits past the deadline either way.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, TypeVar

from backend.errors import ErrorKind, TimeBankError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def new_executor(max_workers: int = 8) -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="timebank-remote")


def run_with_timeout(
    executor: Executor,
    operation: Callable[[float], T],
    timeout: float,
    message: str,
) -> T:
    """
    Runs `operation(timeout)` on `executor` and waits at most `timeout`
    seconds for it.

    Raises:
        TimeBankError: kind TIMEOUT with `message` when the deadline passes.
        Any exception raised by the operation itself is re-raised unchanged.
    """
    future = executor.submit(operation, timeout)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        future.cancel()
        logger.warning("Remote operation exceeded %.1fs: %s", timeout, message)
        raise TimeBankError(ErrorKind.TIMEOUT, message) from None
