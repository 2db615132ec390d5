"""ASGI handler — translates ASGI scope/messages to esdev types.

The only component that touches raw ASGI directly. Converts scope dicts
to typed Request objects, dispatches through the middleware chain, and
sends the Response back through ASGI send().
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeAlias

from esdev._internal.asgi import Receive, Scope, Send
from esdev.errors import HTTPError
from esdev.http.request import Request
from esdev.http.response import SSEResponse
from esdev.middleware.protocol import AnyResponse, Next
from esdev.server.errors import handle_http_error, handle_internal_error
from esdev.server.sender import send_response

Dispatch: TypeAlias = Callable[[Request], Awaitable[AnyResponse]]


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    middleware: tuple[Callable[..., Any], ...],
    dispatch: Dispatch,
    debug: bool = False,
    sse_retry_ms: int | None = None,
) -> None:
    """Process a single HTTP request through the full pipeline.

    *dispatch* is the innermost handler; it sees whatever the middleware
    chain passes through (requests no file answered) and raises
    ``NotFound`` for anything it does not own.
    """
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)

    try:
        # Wrap middleware around the dispatch
        handler: Next = dispatch
        for mw in reversed(middleware):
            outer = handler

            async def make_next(req: Request, _mw: Any = mw, _next: Next = outer) -> AnyResponse:
                return await _mw(req, _next)

            handler = make_next

        response = await handler(request)

    except HTTPError as exc:
        response = handle_http_error(exc, request, debug=debug)
    except Exception as exc:
        response = handle_internal_error(exc, request, debug=debug)

    if isinstance(response, SSEResponse):
        from esdev.realtime.sse import handle_sse

        await handle_sse(response.event_stream, send, receive, retry_ms=sse_retry_ms)
    else:
        await send_response(response, send, head=request.method == "HEAD")
