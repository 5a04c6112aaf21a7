"""Providers: the composition root of interchain.

A provider owns an ordered interceptor list, a retry policy and a transport,
and issues requests through them:

    build Context → intercept_outgoing → transport.send → intercept_incoming
                  ↖────────────── retry policy (whole cycle) ──────────────┘
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx

from interchain.config import InterchainConfig, get_config
from interchain.exceptions import RequestCanceled
from interchain.pipeline.context import Context, new_id
from interchain.pipeline.manager import InterceptorManager
from interchain.retry import DEFAULT_MAX_RETRIES, RetryPolicy, RetryPredicate
from interchain.transport import HttpxTransport, Transport

if TYPE_CHECKING:
    from collections.abc import Generator

    from interchain.pipeline.interceptor import Interceptor

logger = logging.getLogger(__name__)


class PendingRequest:
    """Awaitable handle on a request sent by a provider.

    Awaiting it yields the final Context (with ``response`` set) or raises the
    request's error. ``abort()`` cancels the request at any stage and is a
    no-op once the request has finished.
    """

    def __init__(
        self,
        provider: Provider,
        method: str,
        uri: httpx.URL,
        *,
        headers: dict[str, str | None],
        meta: dict[str, Any],
        payload: Any,
        encoding: str,
    ) -> None:
        self.provider = provider
        self.method = method
        self.uri = uri
        self.request_id = new_id()
        self.context: Context | None = None
        self._headers = headers
        self._meta = meta
        self._payload = payload
        self._encoding = encoding
        self._abort_error: BaseException | None = None
        self._abort_event = asyncio.Event()
        self._in_flight = False
        self._task: asyncio.Task[Context] = asyncio.ensure_future(self._run())

    def __await__(self) -> Generator[Any, None, Context]:
        return self._task.__await__()

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def aborted(self) -> bool:
        return self._abort_error is not None

    def abort(self, error: BaseException | None = None) -> None:
        """Cancel the request.

        Before dispatch the send is skipped, and a pending retry backoff ends
        at once; during flight the transport call is interrupted. Either way the outgoing cancellation sweep runs and the
        request fails with ``error`` (RequestCanceled by default).

        Args:
            error: Error the request should fail with
        """
        if self._task.done() or self._abort_error is not None:
            return
        self._abort_error = error or RequestCanceled("Request canceled.")
        self._abort_event.set()
        logger.debug("Abort requested for %s %s", self.method, self.uri)
        if self._in_flight and self.context is not None:
            self.provider.transport.abort(self.context, self._abort_error)

    async def _run(self) -> Context:
        provider = self.provider
        try:
            context = await provider.retry_policy.run(self._attempt, interrupt=self._abort_event)
        except Exception as e:
            provider._log_request_outcome(self, error=e)
            raise
        provider._log_request_outcome(self)
        return context

    async def _cancel(self, context: Context) -> None:
        assert self._abort_error is not None
        await self.provider.manager.intercept_outgoing_canceled(self.provider, context, self._abort_error)
        raise self._abort_error

    async def _attempt(self, attempt: int) -> Context:
        """Run one full request cycle.

        Returns:
            The attempt's context; ``error`` is set if the attempt failed

        Raises:
            Exception: The abort error if the request was aborted
        """
        provider = self.provider
        manager = provider.manager
        context = Context.for_request(
            self.method,
            self.uri,
            headers=self._headers,
            meta=self._meta,
            payload=self._payload,
            encoding=self._encoding,
            request_id=self.request_id,
            attempt=attempt,
        )
        self.context = context
        if self._abort_error is not None:
            await self._cancel(context)

        try:
            context = await manager.intercept_outgoing(provider, context)
        except Exception as e:
            context.error = e
            return context
        self.context = context
        if self._abort_error is not None:
            await self._cancel(context)

        transport_error: Exception | None = None
        self._in_flight = True
        try:
            context.response = await provider.transport.send(context)
        except Exception as e:
            if self._abort_error is not None:
                await self._cancel(context)
            transport_error = e
        finally:
            self._in_flight = False

        try:
            context = await manager.intercept_incoming(provider, context, transport_error)
        except Exception as e:
            context.error = e
            return context
        context.error = None
        self.context = context
        return context


class Provider:
    """Sends requests through an interceptor chain and a transport.

    Persistent defaults (``headers``, ``encoding``, ``uri``) are copied into
    every request. ``meta`` and ``payload`` apply to the next request only.

    Attributes:
        transport: Transport used to send requests
        manager: Applies the interceptors to each message
        retry_policy: Decides whether failed requests are sent again
        headers: Default headers for every request
        encoding: Encoding for str payloads
        uri: Default target URI
        payload: Body of the next request
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        config: InterchainConfig | None = None,
        interceptors: list[Interceptor] | None = None,
        uri: httpx.URL | str = "",
    ) -> None:
        self.config = config or get_config()
        if self.config.debug:
            # Set DEBUG level for all interchain loggers
            interchain_logger = logging.getLogger("interchain")
            interchain_logger.setLevel(logging.DEBUG)
            if not interchain_logger.handlers:
                handler = logging.StreamHandler()
                handler.setFormatter(logging.Formatter("%(name)s:%(levelname)s: %(message)s"))
                interchain_logger.addHandler(handler)

        self.transport: Transport = transport or HttpxTransport(timeout=self.config.timeout)
        self.manager = InterceptorManager(self.config.max_incoming_interceptor_attempts)

        retry = self.config.retry
        self.retry_policy = RetryPolicy(
            enabled=retry.enabled,
            max_retries=retry.retries,
            retryable_statuses=retry.retryable_statuses,
            methods=retry.methods,
            backoff=retry.backoff,
        )

        self.headers: dict[str, str | None] = dict(self.config.headers)
        self.encoding = "utf-8"
        self.uri = httpx.URL(uri)
        self.payload: Any = None
        self._meta: dict[str, Any] = {}
        self._interceptors: list[Interceptor] = []
        self.use(*(interceptors or []))

    @classmethod
    def from_config(cls, config: InterchainConfig | None = None, transport: Transport | None = None, **kwargs: Any):
        """Create a provider with the interceptors listed in the configuration."""
        config = config or get_config()
        return cls(transport, config=config, interceptors=config.load_interceptors(), **kwargs)

    @property
    def interceptors(self) -> list[Interceptor]:
        """Registered interceptors, in application order."""
        return self._interceptors

    def use(self, *interceptors: Interceptor) -> Provider:
        """Register interceptors, appending them to the chain in order."""
        for interceptor in interceptors:
            self._interceptors.append(interceptor)
            logger.debug("Registered interceptor '%s'", interceptor.name)
        return self

    @property
    def max_incoming_interceptor_attempts(self) -> int:
        return self.manager.max_incoming_interceptor_attempts

    @max_incoming_interceptor_attempts.setter
    def max_incoming_interceptor_attempts(self, value: int) -> None:
        self.manager.max_incoming_interceptor_attempts = value

    def auto_retry(self, retries: int = DEFAULT_MAX_RETRIES, *, enabled: bool = True, backoff: float | None = None) -> Provider:
        """Enable (or disable) automatic retrying of failed requests.

        Args:
            retries: Retries allowed after the first attempt; 0 never retries
            enabled: Pass False to turn retrying off
            backoff: Seconds to wait between attempts (unchanged if None)

        Raises:
            ConfigurationError: If retries is negative
        """
        self.retry_policy.max_retries = retries
        self.retry_policy.enabled = enabled
        if backoff is not None:
            self.retry_policy.backoff = backoff
        return self

    def retry_when(self, predicate: RetryPredicate | None) -> Provider:
        """Set the retry criteria.

        Args:
            predicate: Called with the failed attempt's context; may be async.
                None restores the default (transient statuses and network
                failures).
        """
        self.retry_policy.predicate = predicate
        return self

    @property
    def meta(self) -> dict[str, Any]:
        """Metadata for the next request only."""
        return self._meta

    @meta.setter
    def meta(self, value: dict[str, Any] | None) -> None:
        self._meta = dict(value) if value is not None else {}

    def fork(self):
        """Create a provider with the same setup and independent defaults.

        The fork uses the same interceptor instances (in a new list), the
        same transport and the same retry policy, so retry settings changed on
        either provider apply to both. Default headers, encoding and URI are
        copied. One-shot meta and payload are not carried over.
        """
        forked = type(self)(self.transport, config=self.config, uri=self.uri)
        forked._interceptors = list(self._interceptors)
        forked.retry_policy = self.retry_policy
        forked.max_incoming_interceptor_attempts = self.max_incoming_interceptor_attempts
        forked.headers = dict(self.headers)
        forked.encoding = self.encoding
        return forked

    def send(self, method: str, uri: httpx.URL | str | None = None, payload: Any = None) -> PendingRequest:
        """Send a request.

        Must be called from within a running event loop.

        Args:
            method: Request method
            uri: Target URI for this request only (defaults to ``uri``)
            payload: Body for this request (defaults to ``payload``)

        Returns:
            PendingRequest to await or abort
        """
        meta, self._meta = self._meta, {}
        if payload is None:
            payload = self.payload
        self.payload = None

        return PendingRequest(
            self,
            method.upper(),
            httpx.URL(uri) if uri is not None else self.uri,
            headers=dict(self.headers),
            meta=meta,
            payload=payload,
            encoding=self.encoding,
        )

    async def aclose(self) -> None:
        """Close the transport if it supports closing."""
        close = getattr(self.transport, "aclose", None)
        if close is not None:
            await close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _log_request_outcome(self, request: PendingRequest, error: BaseException | None = None) -> None:
        """Render a request outcome panel when debug is enabled."""
        if not self.config.debug:
            return

        from rich.console import Console
        from rich.panel import Panel
        from rich.text import Text

        console = Console(width=80, stderr=True)
        context = request.context
        attempts = context.attempt + 1 if context is not None else 0

        if error is None:
            color = "green"
            outcome = "COMPLETED"
        elif isinstance(error, RequestCanceled) or request.aborted:
            color = "yellow"
            outcome = "CANCELED"
        else:
            color = "red"
            outcome = "FAILED"

        status = context.response.status if context is not None and context.response is not None else None

        text = Text()
        text.append("[interchain] Request\n", style="bold cyan")
        text.append("├─ Outcome: ", style="dim")
        text.append(f"{outcome}\n", style=f"bold {color}")
        text.append("├─ Target: ", style="dim")
        text.append(f"{request.method} {request.uri}\n", style="magenta")
        text.append("├─ Attempts: ", style="dim")
        text.append(f"{attempts}\n", style="blue")
        text.append("├─ Interceptors: ", style="dim")
        text.append(f"{' → '.join(i.name for i in self.interceptors) or '<none>'}\n", style="blue")
        text.append("└─ Result: ", style="dim")
        if error is None:
            text.append(f"status {status}", style=f"bold {color}")
        else:
            text.append(f"{type(error).__name__}: {error}"[:200], style=f"bold {color}")

        console.print(Panel(text, border_style=color, padding=(0, 1), width=78))


class HttpProvider(Provider):
    """Provider with HTTP verb helpers.

    Example:
        provider = HttpProvider(uri="https://example.com/api")
        provider.use(CsrfInterceptor(), StatusCheckInterceptor())
        provider.auto_retry(3)
        context = await provider.get()
        print(context.response.json())
    """

    @property
    def path(self) -> str:
        return self.uri.path

    @path.setter
    def path(self, value: str) -> None:
        self.uri = self.uri.copy_with(path=value)

    def delete(self, uri: httpx.URL | str | None = None) -> PendingRequest:
        return self.send("DELETE", uri)

    def get(self, uri: httpx.URL | str | None = None) -> PendingRequest:
        return self.send("GET", uri)

    def head(self, uri: httpx.URL | str | None = None) -> PendingRequest:
        return self.send("HEAD", uri)

    def options(self, uri: httpx.URL | str | None = None) -> PendingRequest:
        return self.send("OPTIONS", uri)

    def patch(self, uri: httpx.URL | str | None = None, payload: Any = None) -> PendingRequest:
        return self.send("PATCH", uri, payload)

    def post(self, uri: httpx.URL | str | None = None, payload: Any = None) -> PendingRequest:
        return self.send("POST", uri, payload)

    def put(self, uri: httpx.URL | str | None = None, payload: Any = None) -> PendingRequest:
        return self.send("PUT", uri, payload)

    def trace(self, uri: httpx.URL | str | None = None) -> PendingRequest:
        return self.send("TRACE", uri)
