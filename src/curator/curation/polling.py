"""Deadline-bounded polling shared by monitoring steps."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from curator.errors import CurationError
from curator.observability._logging import get_logger


log = get_logger(__name__)

T = TypeVar("T")


async def poll_until(
    check: Callable[[], Awaitable[T | None]],
    *,
    timeout_seconds: float,
    interval_seconds: float,
    step: str,
    description: str,
) -> T:
    """Call `check` until it returns a value other than None.

    `check` may raise CurationError to end polling with a failure. The
    check always runs at least once, even with a zero timeout.

    Raises:
        CurationError: code "timeout" when the deadline passes
    """
    deadline = time.monotonic() + timeout_seconds
    attempts = 0

    while True:
        attempts += 1
        result = await check()
        if result is not None:
            log.debug("poll_succeeded", step=step, waiting_for=description, attempts=attempts)
            return result

        if time.monotonic() >= deadline:
            raise CurationError(
                code="timeout",
                step=step,
                message=f"Timed out after {int(timeout_seconds)}s waiting for {description}",
                retryable=True,
                details={"attempts": attempts},
            )

        await asyncio.sleep(interval_seconds)


__all__ = ["poll_until"]
