"""Interceptor manager: applies a provider's interceptors to messages.

Outgoing messages pass through every interceptor's ``on_outgoing`` once.
Incoming messages go through a small state machine:

    STANDARD  --any on_incoming fails-->           REJECTED
    REJECTED  --an on_incoming_rejected returns--> STANDARD (from index 0)
    STANDARD  --all on_incoming succeed-->         FINAL_SUCCESS
    REJECTED  --every on_incoming_rejected fails-> FINAL_FAILURE

Every entry into STANDARD consumes one attempt. Exceeding
``max_incoming_interceptor_attempts`` fails the message with
MaxInterceptorAttemptsExceeded, which bounds reject/recover cycles.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING

from interchain.exceptions import ConfigurationError, MaxInterceptorAttemptsExceeded

if TYPE_CHECKING:
    from interchain.pipeline.context import Context
    from interchain.provider import Provider

logger = logging.getLogger(__name__)

# Allows 5 back and forths between the standard and the rejected chain.
DEFAULT_MAX_INCOMING_INTERCEPTOR_ATTEMPTS = 10


class IncomingState(Enum):
    """State of an incoming interception."""

    STANDARD = "standard"  # on_incoming pass
    REJECTED = "rejected"  # on_incoming_rejected pass
    FINAL_SUCCESS = "final_success"
    FINAL_FAILURE = "final_failure"


def validate_max_attempts(value: int) -> int:
    """Validate a cycle bound.

    Raises:
        ConfigurationError: If value is not a positive integer
    """
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"Maximum interceptor attempts must be a positive integer, got {value!r}")
    return value


class InterceptorManager:
    """Applies interceptors registered with a provider, in registration order.

    The same order is used for outgoing and incoming messages.

    Attributes:
        max_incoming_interceptor_attempts: Bound on standard-path entries per
            incoming interception
    """

    def __init__(self, max_incoming_interceptor_attempts: int = DEFAULT_MAX_INCOMING_INTERCEPTOR_ATTEMPTS) -> None:
        # Attempts at completing the incoming chain, keyed by context id.
        # An entry exists only while intercept_incoming() runs for that id.
        self._incoming_tries: dict[str, int] = {}
        self._max_incoming_interceptor_attempts = validate_max_attempts(max_incoming_interceptor_attempts)

    @property
    def max_incoming_interceptor_attempts(self) -> int:
        return self._max_incoming_interceptor_attempts

    @max_incoming_interceptor_attempts.setter
    def max_incoming_interceptor_attempts(self, value: int) -> None:
        self._max_incoming_interceptor_attempts = validate_max_attempts(value)

    def incoming_attempts(self, context_id: str) -> int | None:
        """Get the current attempt count for an in-flight incoming interception.

        Returns:
            Attempt count, or None if no interception is running for the id
        """
        return self._incoming_tries.get(context_id)

    async def intercept_outgoing(self, provider: Provider, context: Context) -> Context:
        """Apply ``on_outgoing`` of every interceptor in order.

        Args:
            provider: Provider sending the request
            context: Request context

        Returns:
            The context returned by the last interceptor

        Raises:
            Exception: Whatever an interceptor raised, after the cancellation
                sweep has run
        """
        try:
            for interceptor in list(provider.interceptors):
                logger.debug("Outgoing interceptor '%s' for %s", interceptor.name, context.id)
                context = await interceptor.on_outgoing(provider, context)
            return context
        except Exception as e:
            logger.debug("Outgoing chain failed for %s: %s: %s", context.id, type(e).__name__, e)
            await self.intercept_outgoing_canceled(provider, context, e)
            raise

    async def intercept_outgoing_canceled(self, provider: Provider, context: Context, error: BaseException) -> None:
        """Notify every interceptor that an outgoing request was canceled.

        Cancellation may come from the caller or from an outgoing interceptor.
        Failures of individual notifications are logged and do not stop the
        sweep.
        """
        for interceptor in list(provider.interceptors):
            try:
                await interceptor.on_outgoing_canceled(provider, context, error)
            except Exception as e:
                logger.error(
                    "Interceptor '%s' failed in on_outgoing_canceled: %s: %s",
                    interceptor.name,
                    type(e).__name__,
                    str(e),
                    extra={"event": "interceptor_notification_failed", "context_id": context.id},
                )

    async def intercept_incoming(
        self,
        provider: Provider,
        context: Context,
        error: BaseException | None = None,
    ) -> Context:
        """Apply the incoming chain until a finalized state is reached.

        Args:
            provider: Provider that sent the request
            context: Request context holding the response
            error: Transport failure; when given, the standard pass is skipped
                and the rejected pass starts immediately

        Returns:
            The recovered or transformed context

        Raises:
            MaxInterceptorAttemptsExceeded: If the chain keeps cycling
            Exception: The last error if no interceptor recovered
        """
        context_id = context.id
        self._incoming_tries[context_id] = 0
        state = IncomingState.STANDARD if error is None else IncomingState.REJECTED

        try:
            while state not in (IncomingState.FINAL_SUCCESS, IncomingState.FINAL_FAILURE):
                if state is IncomingState.STANDARD:
                    context, error = await self.intercept_incoming_standard(provider, context, context_id)
                    state = IncomingState.FINAL_SUCCESS if error is None else IncomingState.REJECTED
                else:
                    assert error is not None
                    context, error = await self.intercept_incoming_rejected(provider, context, error)
                    state = IncomingState.STANDARD if error is None else IncomingState.FINAL_FAILURE
            if error is not None:
                raise error
        except asyncio.CancelledError:
            # Task cancellation is not a chain outcome; only drop the counter.
            self._incoming_tries.pop(context_id, None)
            raise
        except Exception as e:
            await self.intercept_incoming_final(provider, context, e, context_id=context_id)
            raise

        await self.intercept_incoming_final(provider, context, context_id=context_id)
        return context

    async def intercept_incoming_standard(
        self,
        provider: Provider,
        context: Context,
        context_id: str | None = None,
    ) -> tuple[Context, BaseException | None]:
        """Run one standard pass, calling ``on_incoming`` in order.

        Args:
            provider: Provider that sent the request
            context: Request context
            context_id: Counter key (defaults to ``context.id``)

        Returns:
            Tuple of (context, None) on success, or (context as mutated up to
            the failing interceptor, error) on rejection

        Raises:
            MaxInterceptorAttemptsExceeded: If this entry exceeds the bound
        """
        key = context_id or context.id
        tries = self._incoming_tries.get(key, 0) + 1
        self._incoming_tries[key] = tries

        if tries > self.max_incoming_interceptor_attempts:
            logger.warning(
                "Incoming interceptor chain for %s did not settle after %d attempts",
                key,
                self.max_incoming_interceptor_attempts,
                extra={"event": "max_interceptor_attempts_exceeded", "context_id": key},
            )
            raise MaxInterceptorAttemptsExceeded(
                f"{self.max_incoming_interceptor_attempts} attempts exceeded while intercepting incoming data."
            )

        try:
            for interceptor in list(provider.interceptors):
                context = await interceptor.on_incoming(provider, context)
            return context, None
        except Exception as e:
            logger.debug(
                "Incoming chain rejected %s on attempt %d: %s: %s",
                key,
                tries,
                type(e).__name__,
                e,
            )
            return context, e

    async def intercept_incoming_rejected(
        self,
        provider: Provider,
        context: Context,
        error: BaseException,
    ) -> tuple[Context, BaseException | None]:
        """Run one rejected pass, calling ``on_incoming_rejected`` in order.

        The first interceptor that returns normally ends the pass; the rest
        are not consulted.

        Returns:
            Tuple of (recovered context, None), or (context, last error) if
            every interceptor failed to recover
        """
        for interceptor in list(provider.interceptors):
            try:
                recovered = await interceptor.on_incoming_rejected(provider, context, error)
            except Exception as e:
                error = e
                continue
            logger.debug("Interceptor '%s' recovered %s", interceptor.name, context.id)
            return recovered, None
        return context, error

    async def intercept_incoming_final(
        self,
        provider: Provider,
        context: Context,
        error: BaseException | None = None,
        *,
        context_id: str | None = None,
    ) -> None:
        """Notify every interceptor that incoming interception has finished.

        Args:
            provider: Provider that sent the request
            context: Final context
            error: Terminal error, if the interception failed
            context_id: Counter key (defaults to ``context.id``)
        """
        self._incoming_tries.pop(context_id or context.id, None)

        for interceptor in list(provider.interceptors):
            try:
                await interceptor.on_incoming_final(provider, context, error)
            except Exception as e:
                logger.error(
                    "Interceptor '%s' failed in on_incoming_final: %s: %s",
                    interceptor.name,
                    type(e).__name__,
                    str(e),
                    extra={"event": "interceptor_notification_failed", "context_id": context.id},
                )
