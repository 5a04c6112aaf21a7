"""Error taxonomy for interchain.

Interceptors may raise anything; these classes cover the errors the
pipeline itself produces.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from interchain.pipeline.context import Response


class InterchainError(Exception):
    """Base class for errors raised by interchain."""


class ConfigurationError(InterchainError, ValueError):
    """Invalid provider, manager or retry configuration."""


class InterceptionError(InterchainError):
    """Raised by an interceptor to reject a message."""


class HTTPStatusError(InterceptionError):
    """Response status was outside the accepted range.

    Attributes:
        response: The rejected response
    """

    def __init__(self, message: str, response: Response) -> None:
        super().__init__(message)
        self.response = response


class MaxInterceptorAttemptsExceeded(InterchainError):
    """The incoming chain did not reach a finalized state.

    Happens when interceptors repeatedly reject and then recover an incoming
    message. Usually a logic bug in an interceptor leading to a cycle.
    """


class MaxRetryAttemptsExceeded(InterchainError):
    """Every allowed attempt of a request failed.

    Attributes:
        errors: Failure of each attempt, in attempt order
    """

    def __init__(self, errors: list[BaseException]) -> None:
        self.errors = list(errors)
        lines = [f"  {i}: {type(e).__name__}: {e}" for i, e in enumerate(self.errors, start=1)]
        super().__init__(f"{len(self.errors)} attempts failed:\n" + "\n".join(lines))

    @property
    def message(self) -> str:
        return str(self)


class RequestCanceled(InterchainError):
    """The request was aborted by the caller or an interceptor."""


class TransportError(InterchainError):
    """The transport failed to deliver a request or receive its response."""
