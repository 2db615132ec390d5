"""ChangeEvent, SSEEvent and EventStream types.

Frozen dataclasses shared by the watcher, the change bus, and the SSE
handler, which inspects them to format the wire protocol.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Literal, TypeAlias

ChangeKind: TypeAlias = Literal["modified", "created", "deleted"]


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """One filesystem change under the serving root.

    ``path`` is the URL path that serves the file (``/src/app.js``).
    """

    path: str
    kind: ChangeKind = "modified"

    def to_sse(self) -> "SSEEvent":
        """The reload-channel message for this change."""
        return SSEEvent(data=self.path, event="change")


@dataclass(frozen=True, slots=True)
class SSEEvent:
    """A single Server-Sent Event."""

    data: str
    event: str | None = None
    id: str | None = None
    retry: int | None = None

    def encode(self) -> str:
        """Serialize to SSE wire format."""
        lines: list[str] = []
        if self.event:
            lines.append(f"event: {self.event}")
        if self.id:
            lines.append(f"id: {self.id}")
        if self.retry is not None:
            lines.append(f"retry: {self.retry}")
        lines.extend(f"data: {line}" for line in self.data.split("\n"))
        lines.append("")  # Trailing newline to terminate the event
        return "\n".join(lines) + "\n"


@dataclass(frozen=True, slots=True)
class EventStream:
    """Stream Server-Sent Events to the client.

    The generator yields values converted to SSE events:

    - ``ChangeEvent``: sent as ``event: change`` with the path as data
    - ``SSEEvent``: sent as-is
    - ``str``: sent as data

    Usage::

        return SSEResponse(EventStream(bus.subscribe()))
    """

    generator: AsyncIterator[Any]
    event_type: str | None = None
    heartbeat_interval: float = 15.0
