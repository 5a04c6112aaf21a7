"""CSRF token interceptor.

Sets a CSRF token header on state-changing requests and picks up refreshed
tokens from response headers.
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from typing import TYPE_CHECKING

from interchain.exceptions import InterceptionError
from interchain.pipeline.guards import CSRF_METHODS, requires_csrf
from interchain.pipeline.interceptor import Interceptor

if TYPE_CHECKING:
    from interchain.config import InterchainConfig
    from interchain.pipeline.context import Context, Response
    from interchain.provider import Provider

logger = logging.getLogger(__name__)


class CsrfInterceptor(Interceptor):
    """Protects against Cross-Site Request Forgery with a token header.

    The header is only set when the request does not already carry it, so a
    token set manually on a request wins over this interceptor.

    ``token`` is shared by every request that passes through this instance.
    Concurrent requests may each pick up a new token from their response; the
    last one to arrive is kept.

    Attributes:
        token: Token set on outgoing requests
        header: Header name, "x-xsrf-token" by default
        methods: Methods that receive the token
    """

    def __init__(
        self,
        header: str = "x-xsrf-token",
        *,
        token: str = "",
        methods: Collection[str] = CSRF_METHODS,
    ) -> None:
        super().__init__("csrf")
        self.token = token
        self.header = header.lower()
        self.methods = frozenset(m.upper() for m in methods)

    @classmethod
    def from_config(cls, config: InterchainConfig | None = None) -> CsrfInterceptor:
        """Create an interceptor from the ``csrf`` configuration section."""
        from interchain.config import get_config

        csrf = (config or get_config()).csrf
        return cls(csrf.header, methods=csrf.methods)

    async def on_outgoing(self, provider: Provider, context: Context) -> Context:
        """Inject the current token into the request headers."""
        if context.has_header(self.header):
            if context.get_header(self.header) is None:
                raise InterceptionError("CSRF header value can not be None")
        elif requires_csrf(context, self.methods):
            context.headers[self.header] = self.token
        return context

    async def on_incoming(self, provider: Provider, context: Context) -> Context:
        """Store an updated token from the response headers."""
        self._update_token(context.response)
        return context

    async def on_incoming_rejected(self, provider: Provider, context: Context, error: BaseException) -> Context:
        """Store an updated token from a failed response, then pass the error on."""
        self._update_token(context.response)
        raise error

    def _update_token(self, response: Response | None) -> None:
        if response is None:
            return
        token = response.get_header(self.header)
        if token:
            if token != self.token:
                logger.debug("CSRF token updated from response header '%s'", self.header)
            self.token = token
