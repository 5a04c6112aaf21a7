"""Shared predicate functions for interceptors and the retry policy."""

from __future__ import annotations

from collections.abc import Collection
from typing import TYPE_CHECKING

from interchain.exceptions import RequestCanceled, TransportError

if TYPE_CHECKING:
    from interchain.pipeline.context import Context

# Methods the provider knows how to send and re-send.
KNOWN_METHODS = frozenset({"DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT", "TRACE"})

# Methods that change server state and so carry a CSRF token.
CSRF_METHODS = frozenset({"DELETE", "PATCH", "POST", "PUT"})

# Transient server-side outcomes retried by default.
DEFAULT_RETRYABLE_STATUSES = frozenset({500, 502, 503, 504})


def requires_csrf(ctx: Context, methods: Collection[str] = CSRF_METHODS) -> bool:
    """Check if the request method needs a CSRF token.

    Args:
        ctx: Request context
        methods: Methods that require the token

    Returns:
        True if the context method is one of ``methods``
    """
    return ctx.method in methods


def has_retryable_status(ctx: Context, statuses: Collection[int] = DEFAULT_RETRYABLE_STATUSES) -> bool:
    """Check if the response status is a transient server error.

    Args:
        ctx: Request context
        statuses: Statuses considered transient

    Returns:
        True if a response was received and its status is in ``statuses``
    """
    return ctx.response is not None and ctx.response.status in statuses


def is_network_failure(ctx: Context) -> bool:
    """Check if the attempt failed in the transport before any response.

    Args:
        ctx: Request context

    Returns:
        True if the error is a TransportError and no response was received
    """
    return ctx.response is None and isinstance(ctx.error, TransportError)


def is_canceled(ctx: Context) -> bool:
    return isinstance(ctx.error, RequestCanceled)
