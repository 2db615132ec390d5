"""Error handling pipeline for esdev requests.

Maps HTTPError exceptions and unexpected failures to plain-text Response
objects.  Every failure is scoped to its request; nothing here re-raises.
"""

import logging

from esdev.errors import HTTPError, PathEscapesRoot
from esdev.http.request import Request
from esdev.http.response import Response

logger = logging.getLogger("esdev.server")


def handle_http_error(exc: HTTPError, request: Request, *, debug: bool = False) -> Response:
    """Map an HTTPError to a Response."""
    if isinstance(exc, PathEscapesRoot):
        logger.warning("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)
    else:
        logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)

    body = f"{exc.status}: {exc.detail}" if debug and exc.detail else _reason(exc.status)
    resp = Response(body=body, status=exc.status)
    for name, value in exc.headers:
        resp = resp.with_header(name, value)
    return resp


def handle_internal_error(exc: Exception, request: Request, *, debug: bool = False) -> Response:
    """Handle unexpected exceptions as 500 errors."""
    logger.exception("500 %s %s", request.method, request.path)
    body = f"Internal Server Error\n\n{type(exc).__name__}: {exc}" if debug else "Internal Server Error"
    return Response(body=body, status=500)


def _reason(status: int) -> str:
    from http import HTTPStatus

    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return f"Error {status}"
