"""SPA fallback — serve one document for client-side routed navigations.

A request qualifies when it looks like a page navigation rather than a
subresource: GET/HEAD, no file extension on the last path segment, and an
``Accept`` header that admits HTML (or no ``Accept`` at all).
"""

from pathlib import Path

from esdev.errors import NotFound
from esdev.files.resolver import ResolvedPath, resolve_path
from esdev.http.request import Request

_HTML_RANGES = frozenset({"text/html", "application/xhtml+xml", "text/*", "*/*"})


def is_navigation(request: Request) -> bool:
    """True if *request* looks like a browser page navigation."""
    if request.method not in ("GET", "HEAD"):
        return False
    if request.extension:
        return False
    accept = request.accept
    if not accept:
        return True
    return any(media_range.lower() in _HTML_RANGES for media_range in accept)


def resolve_with_fallback(
    root: Path,
    request: Request,
    app_index: str | None,
    *,
    index: str = "index.html",
) -> ResolvedPath:
    """Resolve *request*, substituting *app_index* once for navigation misses.

    The fallback document is resolved at most once per request.  If it is
    missing too, the original ``NotFound`` propagates unchanged.

    Raises:
        PathEscapesRoot: The request path (never the fallback) escapes the root.
        NotFound: Neither the request path nor an applicable fallback exists.
    """
    try:
        return resolve_path(root, request.path, index=index)
    except NotFound as original:
        if app_index is None or not is_navigation(request):
            raise
        try:
            resolved = resolve_path(root, "/" + app_index.lstrip("/"), index=index)
        except NotFound:
            raise original from None
        return ResolvedPath(request_path=request.path, file_path=resolved.file_path, fallback=True)
