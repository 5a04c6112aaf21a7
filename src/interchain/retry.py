"""Request-level retry policy.

A retry re-runs the whole request cycle: a fresh context, the outgoing chain,
the transport send and the incoming chain.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Collection
from typing import TYPE_CHECKING

from interchain.exceptions import ConfigurationError, MaxRetryAttemptsExceeded
from interchain.pipeline.guards import (
    DEFAULT_RETRYABLE_STATUSES,
    KNOWN_METHODS,
    has_retryable_status,
    is_canceled,
    is_network_failure,
)
from interchain.pipeline.interceptor import maybe_await

if TYPE_CHECKING:
    from interchain.pipeline.context import Context

logger = logging.getLogger(__name__)

# Type aliases
RetryPredicate = Callable[["Context"], "bool | Awaitable[bool]"]
AttemptFn = Callable[[int], Awaitable["Context"]]

DEFAULT_MAX_RETRIES = 2


def _validate_retries(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(f"Retry count must be a non-negative integer, got {value!r}")
    return value


class RetryPolicy:
    """Decides whether a failed request is sent again.

    Retrying is off until enabled. A failed attempt is retried when all of
    these hold: the policy is enabled, attempts remain, and either the request
    meta has ``retryable=True`` or the predicate accepts the failed context.

    Attributes:
        enabled: Whether failed requests are retried at all
        predicate: Custom retry criteria (sync or async); None uses the default
        retryable_statuses: Statuses retried by the default predicate
        methods: Methods that may be retried
        backoff: Seconds to wait between attempts
    """

    def __init__(
        self,
        *,
        enabled: bool = False,
        max_retries: int = DEFAULT_MAX_RETRIES,
        predicate: RetryPredicate | None = None,
        retryable_statuses: Collection[int] = DEFAULT_RETRYABLE_STATUSES,
        methods: Collection[str] = KNOWN_METHODS,
        backoff: float = 0.0,
    ) -> None:
        self.enabled = enabled
        self._max_retries = _validate_retries(max_retries)
        self.predicate = predicate
        self.retryable_statuses = frozenset(retryable_statuses)
        self.methods = frozenset(m.upper() for m in methods)
        self.backoff = backoff

    @property
    def max_retries(self) -> int:
        """Retries allowed after the first attempt; 0 disables retrying."""
        return self._max_retries

    @max_retries.setter
    def max_retries(self, value: int) -> None:
        self._max_retries = _validate_retries(value)

    def default_predicate(self, context: Context) -> bool:
        """Retry transient server errors and network failures."""
        return has_retryable_status(context, self.retryable_statuses) or is_network_failure(context)

    async def is_retryable(self, context: Context) -> bool:
        """Evaluate the retry criteria against a failed attempt.

        Args:
            context: Context of the failed attempt (``error`` is set)

        Returns:
            True if the request opted in through meta, or the predicate accepts it
        """
        if is_canceled(context):
            return False
        if context.retryable:
            return True
        if self.predicate is None:
            return self.default_predicate(context)
        return bool(await maybe_await(self.predicate(context)))

    def check_method(self, method: str) -> None:
        """Ensure ``method`` may be retried.

        Raises:
            ConfigurationError: If the method is not in ``methods``
        """
        if method.upper() not in self.methods:
            raise ConfigurationError(f"Cannot retry request with method {method!r}: not one of {sorted(self.methods)}")

    async def run(self, send_attempt: AttemptFn, *, interrupt: asyncio.Event | None = None) -> Context:
        """Send a request, retrying failed attempts as allowed.

        Args:
            send_attempt: Runs one full request cycle for the given zero-based
                attempt number and returns its context, with ``error`` set if
                the attempt failed
            interrupt: Ends the backoff wait early when set; the next attempt
                then starts at once

        Returns:
            Context of the first successful attempt

        Raises:
            MaxRetryAttemptsExceeded: If every allowed retry failed
            ConfigurationError: If a retry is due but the method is not retryable
            Exception: The attempt's own error when it is not retried
        """
        errors: list[BaseException] = []
        attempt = 0
        while True:
            context = await send_attempt(attempt)
            if context.error is None:
                return context

            error = context.error
            errors.append(error)

            if not self.enabled or self.max_retries == 0:
                raise error
            if not await self.is_retryable(context):
                raise error
            if attempt >= self.max_retries:
                logger.warning(
                    "Request %s failed after %d attempts",
                    context.request_id,
                    len(errors),
                    extra={"event": "retry_exhausted", "request_id": context.request_id},
                )
                raise MaxRetryAttemptsExceeded(errors) from error
            self.check_method(context.method)

            attempt += 1
            logger.info(
                "Retrying %s %s (attempt %d of %d) after %s: %s",
                context.method,
                context.uri,
                attempt + 1,
                self.max_retries + 1,
                type(error).__name__,
                error,
                extra={"event": "request_retry", "request_id": context.request_id, "attempt": attempt},
            )
            if self.backoff > 0:
                await self._wait_backoff(interrupt)

    async def _wait_backoff(self, interrupt: asyncio.Event | None) -> None:
        if interrupt is None:
            await asyncio.sleep(self.backoff)
            return
        try:
            await asyncio.wait_for(interrupt.wait(), self.backoff)
        except TimeoutError:
            # Backoff elapsed without an interrupt
            pass
