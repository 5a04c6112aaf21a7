"""Request logging interceptor.

Logs every stage of a request with structured ``extra`` fields.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from interchain.pipeline.interceptor import Interceptor

if TYPE_CHECKING:
    from interchain.pipeline.context import Context
    from interchain.provider import Provider

logger = logging.getLogger(__name__)

_STARTED_AT_KEY = "request_log_started_at"


def _duration_ms(context: Context) -> float | None:
    started = context.meta.get(_STARTED_AT_KEY)
    if started is None:
        return None
    return round((time.monotonic() - started) * 1000, 2)


class LoggingInterceptor(Interceptor):
    """Log outgoing requests, responses, rejections and outcomes.

    Never changes the context and never recovers a rejection. Place it first
    to see every rejection, since rejected passes stop at the first recovery.
    """

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__("request_log")
        self.level = level

    async def on_outgoing(self, provider: Provider, context: Context) -> Context:
        context.meta[_STARTED_AT_KEY] = time.monotonic()
        logger.log(
            self.level,
            "→ %s %s (attempt %d)",
            context.method,
            context.uri,
            context.attempt + 1,
            extra={"event": "request_outgoing", "context_id": context.id, "request_id": context.request_id},
        )
        return context

    async def on_outgoing_canceled(self, provider: Provider, context: Context, error: BaseException) -> None:
        logger.warning(
            "✗ %s %s canceled: %s: %s",
            context.method,
            context.uri,
            type(error).__name__,
            error,
            extra={"event": "request_canceled", "context_id": context.id},
        )

    async def on_incoming(self, provider: Provider, context: Context) -> Context:
        status = context.response.status if context.response is not None else None
        logger.debug(
            "← %s %s status=%s",
            context.method,
            context.uri,
            status,
            extra={"event": "response_incoming", "context_id": context.id, "status": status},
        )
        return context

    async def on_incoming_rejected(self, provider: Provider, context: Context, error: BaseException) -> Context:
        logger.debug(
            "Response for %s %s rejected: %s: %s",
            context.method,
            context.uri,
            type(error).__name__,
            error,
            extra={"event": "response_rejected", "context_id": context.id},
        )
        raise error

    async def on_incoming_final(self, provider: Provider, context: Context, error: BaseException | None = None) -> None:
        duration_ms = _duration_ms(context)
        if error is None:
            logger.log(
                self.level,
                "✓ %s %s completed in %sms",
                context.method,
                context.uri,
                duration_ms,
                extra={"event": "request_completed", "context_id": context.id, "duration_ms": duration_ms},
            )
        else:
            logger.warning(
                "✗ %s %s failed in %sms: %s: %s",
                context.method,
                context.uri,
                duration_ms,
                type(error).__name__,
                error,
                extra={"event": "request_failed", "context_id": context.id, "duration_ms": duration_ms},
            )
