"""Bounded exponential-backoff retry for asynchronous operations.

Every network operation of :class:`~styledna.core.bria_client.BriaApiClient`
goes through :func:`retry_with_backoff`.  The delay starts at
``initial_delay`` and is multiplied by ``backoff_multiplier`` after each
failure, capped at ``max_delay``.  There is no jitter.

Only wrap operations that are idempotent from the caller's point of view.
An operation that fails *after* a partial side effect (for example a batch
job that was created remotely before the response was lost) will be run
again.

Usage
-----
::

    result = await retry_with_backoff(
        lambda: client.get("/status/abc"),
        RetryOptions(max_retries=2, initial_delay=0.5),
    )
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryOptions:
    """Backoff settings for :func:`retry_with_backoff`.

    Attributes:
        max_retries: Retries after the first attempt.  The operation runs at
            most ``max_retries + 1`` times.
        initial_delay: Seconds to wait before the first retry.
        max_delay: Upper bound for the delay in seconds.
        backoff_multiplier: Factor applied to the delay after each failure.
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0


DEFAULT_RETRY_OPTIONS = RetryOptions()


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
    *,
    sleep: SleepFunc = asyncio.sleep,
    should_retry: Callable[[Exception], bool] | None = None,
) -> T:
    """Run *operation*, retrying failures with exponential backoff.

    Args:
        operation: Zero-argument callable returning an awaitable.  It is
            called again for every attempt.
        options: Backoff settings.  Defaults to :data:`DEFAULT_RETRY_OPTIONS`.
        sleep: Coroutine used to wait between attempts.  Tests pass a
            no-op to keep runs instant.
        should_retry: Decides whether a failure earns another attempt.  A
            failure it rejects is re-raised at once.  When omitted every
            exception is retried.

    Returns:
        The result of the first successful attempt.

    Raises:
        Exception: The exception from the final attempt once all retries
            are used up, or the first one *should_retry* rejects.
    """
    opts = options or DEFAULT_RETRY_OPTIONS
    delay = opts.initial_delay

    for attempt in range(opts.max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            if attempt == opts.max_retries:
                raise
            if should_retry is not None and not should_retry(e):
                logger.warning(f"Attempt {attempt + 1} failed and will not be retried: {e}")
                raise
            logger.warning(
                f"Attempt {attempt + 1}/{opts.max_retries + 1} failed: {e}; "
                f"retrying in {delay:.2f}s"
            )
            await sleep(delay)
            delay = min(delay * opts.backoff_multiplier, opts.max_delay)

    # range() always yields at least once, so the loop returns or raises.
    raise RuntimeError("retry loop exited without a result")
