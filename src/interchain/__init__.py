"""interchain: interceptor chains and retries for async HTTP clients."""

from interchain.config import InterchainConfig, get_config
from interchain.exceptions import (
    ConfigurationError,
    HTTPStatusError,
    InterceptionError,
    InterchainError,
    MaxInterceptorAttemptsExceeded,
    MaxRetryAttemptsExceeded,
    RequestCanceled,
    TransportError,
)
from interchain.pipeline import Context, FunctionInterceptor, Interceptor, InterceptorManager, Response, create_interceptor
from interchain.pipeline.interceptors import CsrfInterceptor, LoggingInterceptor, StatusCheckInterceptor
from interchain.provider import HttpProvider, PendingRequest, Provider
from interchain.retry import RetryPolicy
from interchain.transport import HttpxTransport, Transport

__all__ = [
    "ConfigurationError",
    "Context",
    "CsrfInterceptor",
    "FunctionInterceptor",
    "HTTPStatusError",
    "HttpProvider",
    "HttpxTransport",
    "InterceptionError",
    "Interceptor",
    "InterceptorManager",
    "InterchainConfig",
    "InterchainError",
    "LoggingInterceptor",
    "MaxInterceptorAttemptsExceeded",
    "MaxRetryAttemptsExceeded",
    "PendingRequest",
    "Provider",
    "RequestCanceled",
    "Response",
    "RetryPolicy",
    "StatusCheckInterceptor",
    "Transport",
    "TransportError",
    "create_interceptor",
    "get_config",
]
