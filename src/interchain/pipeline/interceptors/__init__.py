"""Bundled interceptors.

Each interceptor overrides only the hooks it needs; the rest keep the
no-op defaults of Interceptor.
"""

from interchain.pipeline.interceptors.csrf import CsrfInterceptor
from interchain.pipeline.interceptors.request_log import LoggingInterceptor
from interchain.pipeline.interceptors.status_check import StatusCheckInterceptor

__all__ = [
    "CsrfInterceptor",
    "LoggingInterceptor",
    "StatusCheckInterceptor",
]
