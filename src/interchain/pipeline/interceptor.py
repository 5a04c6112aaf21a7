"""Interceptor base class and function-backed interceptors.

An interceptor is a set of five hooks applied by a provider to every
request it sends. Each hook has a no-op default, so concrete interceptors
override only what they need.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from interchain.pipeline.context import Context
    from interchain.provider import Provider

T = TypeVar("T")

# Type aliases
ContextHookFn = Callable[["Provider", "Context"], "Context | Awaitable[Context]"]
RejectedHookFn = Callable[["Provider", "Context", BaseException], "Context | Awaitable[Context]"]
NotifyHookFn = Callable[["Provider", "Context", "BaseException | None"], "Any"]


async def maybe_await(value: T | Awaitable[T]) -> T:
    """Await ``value`` if it is awaitable, otherwise return it."""
    if inspect.isawaitable(value):
        return await value
    return value  # type: ignore[return-value]


class Interceptor:
    """Base class for interceptors.

    Instances outlive individual requests and are shared by every request the
    provider (and its forks) sends. Instance attributes are therefore shared
    state: two interleaved requests may both update them, and the last write
    wins. No locking is done here or expected from subclasses.

    Attributes:
        name: Identifier used in logs
    """

    def __init__(self, name: str | None = None) -> None:
        self.name = name or type(self).__name__

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    async def on_outgoing(self, provider: Provider, context: Context) -> Context:
        """Transform a request about to be sent.

        Raising aborts the send.
        """
        return context

    async def on_outgoing_canceled(self, provider: Provider, context: Context, error: BaseException) -> None:
        """Called when the outgoing chain failed or the request was aborted."""

    async def on_incoming(self, provider: Provider, context: Context) -> Context:
        """Transform a received response.

        Raising moves the incoming chain to the rejected path.
        """
        return context

    async def on_incoming_rejected(self, provider: Provider, context: Context, error: BaseException) -> Context:
        """Attempt to recover from ``error``.

        Returning normally signals recovery and restarts the standard chain
        with the returned context. Raising (the same or a new error) hands the
        failure to the next interceptor.
        """
        raise error

    async def on_incoming_final(self, provider: Provider, context: Context, error: BaseException | None = None) -> None:
        """Called exactly once per incoming interception, success or failure."""


class FunctionInterceptor(Interceptor):
    """Interceptor built from plain callables.

    Each callable may be sync or async. Hooks left as None keep the base
    class default.
    """

    def __init__(
        self,
        name: str | None = None,
        *,
        on_outgoing: ContextHookFn | None = None,
        on_outgoing_canceled: NotifyHookFn | None = None,
        on_incoming: ContextHookFn | None = None,
        on_incoming_rejected: RejectedHookFn | None = None,
        on_incoming_final: NotifyHookFn | None = None,
    ) -> None:
        super().__init__(name or "function")
        self._on_outgoing = on_outgoing
        self._on_outgoing_canceled = on_outgoing_canceled
        self._on_incoming = on_incoming
        self._on_incoming_rejected = on_incoming_rejected
        self._on_incoming_final = on_incoming_final

    async def on_outgoing(self, provider: Provider, context: Context) -> Context:
        if self._on_outgoing is None:
            return context
        return await maybe_await(self._on_outgoing(provider, context))

    async def on_outgoing_canceled(self, provider: Provider, context: Context, error: BaseException) -> None:
        if self._on_outgoing_canceled is not None:
            await maybe_await(self._on_outgoing_canceled(provider, context, error))

    async def on_incoming(self, provider: Provider, context: Context) -> Context:
        if self._on_incoming is None:
            return context
        return await maybe_await(self._on_incoming(provider, context))

    async def on_incoming_rejected(self, provider: Provider, context: Context, error: BaseException) -> Context:
        if self._on_incoming_rejected is None:
            raise error
        return await maybe_await(self._on_incoming_rejected(provider, context, error))

    async def on_incoming_final(self, provider: Provider, context: Context, error: BaseException | None = None) -> None:
        if self._on_incoming_final is not None:
            await maybe_await(self._on_incoming_final(provider, context, error))


def create_interceptor(
    name: str,
    *,
    on_outgoing: ContextHookFn | None = None,
    on_outgoing_canceled: NotifyHookFn | None = None,
    on_incoming: ContextHookFn | None = None,
    on_incoming_rejected: RejectedHookFn | None = None,
    on_incoming_final: NotifyHookFn | None = None,
) -> FunctionInterceptor:
    """Create an interceptor programmatically (without subclassing).

    Args:
        name: Interceptor identifier
        on_outgoing: Transform outgoing requests
        on_outgoing_canceled: Cancellation notification
        on_incoming: Transform incoming responses
        on_incoming_rejected: Recovery attempt for rejected responses
        on_incoming_final: Terminal notification

    Returns:
        FunctionInterceptor instance

    Example:
        def require_ok(provider, ctx):
            if ctx.response.status != 200:
                raise InterceptionError("not ok")
            return ctx

        provider.use(create_interceptor("require_ok", on_incoming=require_ok))
    """
    return FunctionInterceptor(
        name,
        on_outgoing=on_outgoing,
        on_outgoing_canceled=on_outgoing_canceled,
        on_incoming=on_incoming,
        on_incoming_rejected=on_incoming_rejected,
        on_incoming_final=on_incoming_final,
    )
