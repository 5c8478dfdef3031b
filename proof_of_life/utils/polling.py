# ABOUTME: Bounded polling helper that repeatedly reads a value until a predicate accepts it.
# ABOUTME: Returns a typed outcome (success, timeout, failure) instead of raising.

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Generic, TypeVar

from loguru import logger
from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class PollStatus(str, Enum):
    """Terminal status of a polling loop"""
    SUCCESS = "success"
    TIMEOUT = "timeout"
    FAILURE = "failure"


class PollOutcome(BaseModel, Generic[T]):
    """Result of poll_until: the last value read plus how the loop ended"""

    status: PollStatus
    value: T | None = None
    attempts: int = 0
    error: str | None = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def ok(self) -> bool:
        return self.status == PollStatus.SUCCESS


async def poll_until(
    read: Callable[[], Awaitable[T]],
    predicate: Callable[[T], bool],
    interval: float,
    max_attempts: int,
    *,
    fail_fast: Callable[[Exception], bool] | None = None,
) -> PollOutcome[T]:
    """
    Read until predicate(value) is true or attempts run out.

    Read errors are treated as a miss and polling continues, unless fail_fast
    returns True for the error, in which case polling stops with FAILURE.

    Args:
        read: Async callable producing the next value
        predicate: Acceptance test for a value
        interval: Seconds to sleep between reads
        max_attempts: Maximum number of reads (at least one read is made)
        fail_fast: Optional classifier for errors that should stop polling

    Returns:
        PollOutcome with the accepted value on success, the last value read on timeout
    """
    attempts = max(1, max_attempts)
    last: T | None = None
    last_error: str | None = None

    for attempt in range(1, attempts + 1):
        try:
            last = await read()
            if predicate(last):
                return PollOutcome(status=PollStatus.SUCCESS, value=last, attempts=attempt)
        except Exception as e:
            last_error = f"{type(e).__name__}: {e}"
            if fail_fast is not None and fail_fast(e):
                logger.warning(f"Polling aborted on attempt {attempt}: {last_error}")
                return PollOutcome(
                    status=PollStatus.FAILURE,
                    value=last,
                    attempts=attempt,
                    error=last_error,
                )
            logger.debug(f"Poll read failed on attempt {attempt}: {last_error}")

        if attempt < attempts:
            await asyncio.sleep(interval)

    return PollOutcome(
        status=PollStatus.TIMEOUT,
        value=last,
        attempts=attempts,
        error=last_error,
    )
