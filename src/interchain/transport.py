"""Transports deliver a request context and return its response.

The pipeline only depends on the Transport protocol. HttpxTransport is the
bundled implementation on top of ``httpx.AsyncClient``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import httpx

from interchain.exceptions import RequestCanceled, TransportError
from interchain.pipeline.context import Response

if TYPE_CHECKING:
    from interchain.pipeline.context import Context

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    """Sends requests described by a context."""

    async def send(self, context: Context) -> Response:
        """Send the request and wait for its response."""
        ...

    def abort(self, context: Context, reason: BaseException | None = None) -> None:
        """Interrupt an in-flight send. Must be idempotent."""
        ...


class HttpxTransport:
    """Transport backed by an ``httpx.AsyncClient``.

    Every send runs in its own task, keyed by context id, so that ``abort``
    can interrupt it. An aborted send raises the abort reason.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float | httpx.Timeout | None = 30.0,
    ) -> None:
        """Initialize the transport.

        Args:
            client: Client to use; one is created (and owned) if omitted
            timeout: Timeout for a created client
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._inflight: dict[str, asyncio.Task[httpx.Response]] = {}
        self._abort_reasons: dict[str, BaseException] = {}

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def send(self, context: Context) -> Response:
        """Send the request described by ``context``.

        Raises:
            TransportError: If httpx fails to complete the exchange
            Exception: The abort reason if the send was aborted
        """
        headers = {k: v for k, v in context.headers.items() if v is not None}
        task = asyncio.ensure_future(
            self._client.request(
                context.method,
                context.uri,
                headers=headers,
                content=context.encoded_payload(),
            )
        )
        self._inflight[context.id] = task
        try:
            raw = await task
        except asyncio.CancelledError:
            reason = self._abort_reasons.pop(context.id, None)
            if reason is None:
                raise
            raise reason from None
        except httpx.HTTPError as e:
            logger.debug("Transport failure for %s %s: %s", context.method, context.uri, e)
            raise TransportError(f"{context.method} {context.uri} failed: {e}") from e
        finally:
            self._inflight.pop(context.id, None)
            self._abort_reasons.pop(context.id, None)

        return Response.from_httpx(raw)

    def abort(self, context: Context, reason: BaseException | None = None) -> None:
        """Interrupt the in-flight send for ``context``; no-op if none."""
        task = self._inflight.get(context.id)
        if task is None or task.done() or context.id in self._abort_reasons:
            return
        self._abort_reasons[context.id] = reason or RequestCanceled("Request canceled.")
        task.cancel()
        logger.debug("Aborted in-flight request %s", context.id)

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
