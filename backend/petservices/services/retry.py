"""
PetServices Backend — Retry Policy
===================================

What:  Bounded retry with a pluggable backoff, shared by the object store
       uploads and the scraping webhook.
How:   Tenacity's AsyncRetrying drives the loop. Backoff is a function of
       the attempt number; `linear(3, 2.0)` waits 2s after attempt 1 and 4s
       after attempt 2, then gives up and re-raises the last error.
Who:   UploadManager.store(), ScrapeService.trigger().

Application errors (PetServicesError subclasses) are never retried: they
describe a request that will fail the same way every time.

The sleep function is injectable so tests can record the delays instead of
waiting for them.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
)

from petservices.exceptions import PetServicesError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default=lambda attempt: 2.0 * attempt)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    @classmethod
    def linear(
        cls,
        max_attempts: int,
        base_delay: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> "RetryPolicy":
        """Wait `base_delay * n` seconds after the n-th failed attempt."""
        return cls(
            max_attempts=max_attempts,
            backoff=lambda attempt: base_delay * attempt,
            sleep=sleep,
        )

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls.linear(settings.upload_max_attempts, settings.upload_base_delay)

    async def call(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        operation: str = "operation",
        **kwargs: Any,
    ) -> T:
        """
        Run `fn(*args, **kwargs)` until it succeeds or attempts run out.

        Raises:
            The last exception raised by `fn` once every attempt failed, or
            the first PetServicesError without retrying.
        """

        def _log_retry(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "%s failed (attempt %d/%d): %s. Retrying in %.1fs",
                operation,
                retry_state.attempt_number,
                self.max_attempts,
                exc,
                retry_state.upcoming_sleep,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=lambda retry_state: self.backoff(retry_state.attempt_number),
            retry=retry_if_not_exception_type(PetServicesError),
            before_sleep=_log_retry,
            sleep=self.sleep,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                return await fn(*args, **kwargs)

        # Unreachable: reraise=True propagates the final failure
        raise RuntimeError(f"{operation}: retry loop exited without a result")
