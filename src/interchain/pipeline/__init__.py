"""Interceptor chain for request/response processing.

This module implements an ordered interceptor chain with:
- Five hooks per interceptor, each with a no-op default
- Registration order for both outgoing and incoming traversal
- Bounded reject/recover cycles on the incoming side

Formal Model:
    Interceptor iᵢ = (outᵢ, inᵢ, rejᵢ) where:
        outᵢ: Context → Context          (outgoing)
        inᵢ:  Context → Context          (incoming, may reject)
        rejᵢ: Context × Error → Context  (recovery, may re-reject)

    outgoing(c) = outₙ(…out₁(c))
    incoming(c) = inₙ(…in₁(c)), on rejection by e: incoming(rejₖ(c, e))
                  for the first k that recovers, at most N standard passes
"""

from interchain.pipeline.context import Context, Response
from interchain.pipeline.interceptor import FunctionInterceptor, Interceptor, create_interceptor
from interchain.pipeline.manager import IncomingState, InterceptorManager

__all__ = [
    "Context",
    "Response",
    "Interceptor",
    "FunctionInterceptor",
    "create_interceptor",
    "InterceptorManager",
    "IncomingState",
]
