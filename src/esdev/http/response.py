"""HTTP response with chainable .with_*() transformation API.

Each transformation returns a new Response. Immutable by convention,
built incrementally by design.
"""

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any


@dataclass(frozen=True, slots=True)
class Response:
    """An HTTP response built through immutable transformations.

    Construct with a body, then chain ``.with_*()`` calls to set
    status and headers. Each call returns a new ``Response``.
    """

    body: str | bytes = ""
    status: int = 200
    content_type: str = "text/plain; charset=utf-8"
    headers: tuple[tuple[str, str], ...] = ()

    # -- Chainable transformations --

    def with_status(self, status: int) -> "Response":
        """Return a new Response with a different status code."""
        return replace(self, status=status)

    def with_header(self, name: str, value: str) -> "Response":
        """Return a new Response with an additional header."""
        return replace(self, headers=(*self.headers, (name, value)))

    def with_headers(self, headers: Mapping[str, str]) -> "Response":
        """Return a new Response with additional headers."""
        new = tuple(headers.items())
        return replace(self, headers=(*self.headers, *new))

    def with_content_type(self, content_type: str) -> "Response":
        """Return a new Response with a different content type."""
        return replace(self, content_type=content_type)

    def with_body(self, body: str | bytes) -> "Response":
        """Return a new Response with a different body."""
        return replace(self, body=body)

    def get_header(self, name: str) -> str | None:
        """Return the first value of header *name* (case-insensitive)."""
        lower = name.lower()
        for key, value in self.headers:
            if key.lower() == lower:
                return value
        return None

    # -- Body helpers --

    @property
    def body_bytes(self) -> bytes:
        """Body as bytes."""
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body

    @property
    def text(self) -> str:
        """Body as string."""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8")
        return self.body


@dataclass(frozen=True, slots=True)
class SSEResponse:
    """Sentinel response for Server-Sent Events.

    Wraps an EventStream and requires direct ASGI send/receive access
    (the handler bypasses the normal ``send_response`` path).

    Provides no-op ``.with_*()`` methods so middleware chains don't crash.
    SSE headers (text/event-stream, no-cache) are always sent by the SSE
    handler itself; any middleware header modifications are ignored.
    """

    event_stream: Any  # EventStream (avoided import cycle)

    def with_status(self, status: int) -> "SSEResponse":  # noqa: ARG002
        """No-op: SSE always sends 200."""
        return self

    def with_header(self, name: str, value: str) -> "SSEResponse":  # noqa: ARG002
        """No-op: SSE headers are fixed by the protocol handler."""
        return self

    def with_headers(self, headers: Mapping[str, str]) -> "SSEResponse":  # noqa: ARG002
        """No-op: SSE headers are fixed by the protocol handler."""
        return self

    def with_content_type(self, content_type: str) -> "SSEResponse":  # noqa: ARG002
        """No-op: SSE content type is always text/event-stream."""
        return self
