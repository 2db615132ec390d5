"""esdev exception hierarchy.

Shared across the resolver, rewriter, watcher, handler, and middleware so
every module raises and catches the same types.  Request-scoped failures
are ``HTTPError`` subclasses; diagnostics that must never fail a request
(``SpecifierUnresolved``) and per-subscription failures
(``WatchTransportError``) sit beside them.
"""

from dataclasses import dataclass


class DevServerError(Exception):
    """Base for all esdev-specific errors."""


class ConfigurationError(DevServerError):
    """Raised when server configuration is invalid.

    Raised by ``ServerConfig.validate()`` before any socket is bound.
    The only error class that aborts the process.
    """


@dataclass(frozen=True, slots=True)
class HTTPError(DevServerError):
    """An error that maps directly to an HTTP status code.

    Raised by the resolver, middleware, or dispatcher. The ASGI handler
    catches these and turns them into a plain-text response.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818 — conventional name in web servers
    """404 — no file exists for the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class PathEscapesRoot(HTTPError):  # noqa: N818
    """403 — the normalized request path points outside the root directory."""

    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(status=403, detail=detail)


class SpecifierUnresolved(DevServerError):  # noqa: N818
    """A bare import specifier matched no installed package.

    Never surfaces as an HTTP error: the module is served with the
    specifier left intact and the failure is reported as a diagnostic.
    """

    def __init__(self, specifier: str, importer: str, reason: str = "") -> None:
        self.specifier = specifier
        self.importer = importer
        self.reason = reason
        message = f"Could not resolve {specifier!r} imported from {importer}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class WatchTransportError(DevServerError):
    """A single reload-channel subscription can no longer be delivered to.

    Only that subscription is dropped; other clients keep receiving events.
    """
