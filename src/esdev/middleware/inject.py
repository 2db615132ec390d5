"""HTML injection middleware.

Injects a snippet (the reload client ``<script>`` tag) into every
``text/html`` response before a configurable target string (default:
``</body>``).  Served files and the SPA fallback document both pass
through it, so every page connects to the reload channel without the
project's HTML mentioning it.
"""

from typing import TypeVar

from esdev.http.request import Request
from esdev.http.response import Response
from esdev.middleware.protocol import AnyResponse, Next


class HTMLInject:
    """Middleware that injects HTML content into text/html responses.

    Only affects ``Response`` objects with status 200 whose
    ``content_type`` contains ``text/html``.  ``SSEResponse`` and
    304 responses are passed through unchanged.

    When the target string is absent the snippet is appended at the end,
    which browsers still execute for documents without ``</body>``.

    Usage::

        server.add_middleware(HTMLInject(
            '<script type="module" src="/__esdev/reload.js"></script>',
            before="</body>",
        ))
    """

    __slots__ = ("_snippet", "_target")

    def __init__(self, snippet: str, *, before: str = "</body>") -> None:
        self._snippet = snippet
        self._target = before

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        """Inject the snippet into HTML responses."""
        response = await next(request)

        if not isinstance(response, Response) or response.status != 200:
            return response
        if "text/html" not in response.content_type:
            return response

        body = response.body
        if isinstance(body, str):
            snippet, target = self._snippet, self._target
            if snippet in body:
                return response
            return response.with_body(_insert(body, snippet, target))

        # Served files can be in any ASCII-compatible charset; splice bytes
        # so nothing outside the insertion point is re-encoded
        snippet_bytes = self._snippet.encode("utf-8")
        if snippet_bytes in body:
            return response
        return response.with_body(_insert(body, snippet_bytes, self._target.encode("utf-8")))


_T = TypeVar("_T", str, bytes)


def _insert(body: _T, snippet: _T, target: _T) -> _T:
    if target in body:
        return body.replace(target, snippet + target, 1)
    return body + snippet
