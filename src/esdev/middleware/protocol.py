"""Middleware protocol and Next type alias.

A middleware is any callable matching::

    async def my_mw(request: Request, next: Next) -> AnyResponse: ...

No base class required. The server checks the shape, not the lineage.

The ``next`` callable may return ``Response`` or ``SSEResponse``.  Both
share the ``.with_header()`` / ``.with_status()`` chainable API, so
middleware can modify them uniformly.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol, TypeAlias

from esdev.http.request import Request
from esdev.http.response import Response, SSEResponse

# Any response type the pipeline can produce
AnyResponse: TypeAlias = Response | SSEResponse

# The next handler in the middleware chain
Next: TypeAlias = Callable[[Request], Awaitable[AnyResponse]]


class Middleware(Protocol):
    """Protocol for esdev middleware.

    Accepts both functions and callable objects::

        # Function middleware
        async def timing(request: Request, next: Next) -> AnyResponse:
            start = time.monotonic()
            response = await next(request)
            elapsed = time.monotonic() - start
            return response.with_header("Server-Timing", f"total;dur={elapsed * 1000:.1f}")

        # Class middleware
        class NoStore:
            async def __call__(self, request: Request, next: Next) -> AnyResponse:
                response = await next(request)
                return response.with_header("Cache-Control", "no-store")
    """

    async def __call__(self, request: Request, next: Next) -> AnyResponse: ...
