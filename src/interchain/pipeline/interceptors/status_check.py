"""Status check interceptor.

Rejects responses whose status is outside an accepted set.
"""

from __future__ import annotations

from collections.abc import Collection
from typing import TYPE_CHECKING

from interchain.exceptions import HTTPStatusError
from interchain.pipeline.interceptor import Interceptor

if TYPE_CHECKING:
    from interchain.pipeline.context import Context
    from interchain.provider import Provider


class StatusCheckInterceptor(Interceptor):
    """Raise HTTPStatusError for unaccepted response statuses.

    Without ``ok``, any 2xx status is accepted.

    Rejection moves the incoming chain to the rejected path, where a later
    interceptor may recover, and makes the default retry policy consider the
    status.
    """

    def __init__(self, ok: Collection[int] | None = None) -> None:
        super().__init__("status_check")
        self.ok = ok

    async def on_incoming(self, provider: Provider, context: Context) -> Context:
        response = context.response
        if response is None:
            return context
        accepted = response.ok if self.ok is None else response.status in self.ok
        if not accepted:
            raise HTTPStatusError(f"Request failed: {response.status} {response.reason}".rstrip(), response)
        return context
