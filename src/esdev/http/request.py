"""Immutable HTTP request.

Frozen metadata only.  The file server never reads request bodies, so
unlike a full framework request there is no body, form, or cookie access.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Any

from esdev._internal.asgi import Receive
from esdev.http.headers import Headers


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request."""

    method: str
    path: str
    headers: Headers
    query_string: bytes
    http_version: str
    client: tuple[str, int] | None

    # Private: ASGI receive callable, used by the SSE stream to watch for disconnect
    _receive: Receive

    # -- Computed properties --

    @property
    def accept(self) -> list[str]:
        """Media ranges from the ``Accept`` header, parameters dropped."""
        return self.headers.get_tokens("accept")

    @property
    def extension(self) -> str:
        """File extension of the last path segment (``""`` if none)."""
        return posixpath.splitext(posixpath.basename(self.path))[1]

    @property
    def url(self) -> str:
        """Full request URL (path + query string)."""
        if self.query_string:
            return f"{self.path}?{self.query_string.decode('latin-1')}"
        return self.path

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: dict[str, Any], receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        client = scope.get("client")
        return cls(
            method=scope["method"],
            path=scope["path"],
            headers=Headers(tuple(scope.get("headers", ()))),
            query_string=scope.get("query_string", b""),
            http_version=scope.get("http_version", "1.1"),
            client=tuple(client) if client else None,
            _receive=receive,
        )
