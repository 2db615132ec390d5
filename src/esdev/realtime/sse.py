"""Server-Sent Events protocol implementation over ASGI.

Handles the reload channel's lifecycle: sends ``text/event-stream``
headers, relays values from an async generator, watches for client
disconnect, and sends heartbeat comments while the generator is idle.
"""

import asyncio
import contextlib
import json as json_module
import logging
from collections.abc import AsyncIterator
from typing import Any

from esdev._internal.asgi import Receive, Send
from esdev.realtime.events import ChangeEvent, EventStream, SSEEvent

logger = logging.getLogger("esdev.server")

_HEADERS = [
    (b"content-type", b"text/event-stream"),
    (b"cache-control", b"no-cache"),
    (b"connection", b"keep-alive"),
    (b"x-accel-buffering", b"no"),
]

_HEARTBEAT = ": heartbeat\n\n"


async def _send_chunk(send: Send, text: str) -> bool:
    """Send one body chunk; False once the connection is gone."""
    try:
        await send({"type": "http.response.body", "body": text.encode("utf-8"), "more_body": True})
    except (RuntimeError, OSError):
        return False
    return True


async def handle_sse(
    event_stream: EventStream,
    send: Send,
    receive: Receive,
    *,
    retry_ms: int | None = None,
) -> None:
    """Stream Server-Sent Events over an ASGI connection.

    Two tasks run side by side: the producer relays generator values (and
    heartbeats while idle), the monitor waits for ``http.disconnect``.
    Whichever finishes first cancels the other.  The producer always
    closes the generator on the way out, which is what removes a client's
    change-bus subscription.
    """
    await send({"type": "http.response.start", "status": 200, "headers": _HEADERS})

    if retry_ms is not None:
        await _send_chunk(send, f"retry: {retry_ms}\n\n")

    producer = asyncio.create_task(_produce(event_stream, send))
    monitor = asyncio.create_task(_wait_for_disconnect(receive))

    try:
        _done, pending = await asyncio.wait(
            {producer, monitor},
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
    finally:
        with contextlib.suppress(RuntimeError, OSError):
            await send({"type": "http.response.body", "body": b"", "more_body": False})


async def _wait_for_disconnect(receive: Receive) -> None:
    while True:
        message = await receive()
        if message.get("type") == "http.disconnect":
            return


async def _produce(event_stream: EventStream, send: Send) -> None:
    """Relay generator values until it ends, fails, or the client leaves.

    The pending ``__anext__()`` task is kept across heartbeat timeouts:
    ``asyncio.wait`` leaves it running, where ``wait_for`` would cancel it.
    """
    iterator: AsyncIterator[Any] = event_stream.generator.__aiter__()
    next_value: asyncio.Task[Any] | None = None

    async def advance() -> Any:
        return await iterator.__anext__()

    try:
        while True:
            if next_value is None:
                next_value = asyncio.create_task(advance())

            done, _ = await asyncio.wait({next_value}, timeout=event_stream.heartbeat_interval)
            if not done:
                if not await _send_chunk(send, _HEARTBEAT):
                    return
                continue

            finished, next_value = next_value, None
            try:
                value = finished.result()
            except StopAsyncIteration:
                return

            text = format_event(value, default_event=event_stream.event_type)
            if not await _send_chunk(send, text):
                return
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception("Event stream failed")
        await _send_chunk(send, SSEEvent(data="Internal server error", event="error").encode())
    finally:
        if next_value is not None:
            next_value.cancel()
            with contextlib.suppress(asyncio.CancelledError, StopAsyncIteration):
                await next_value
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            with contextlib.suppress(Exception):
                await aclose()


def format_event(value: Any, *, default_event: str | None = None) -> str:
    """Convert a yielded value to SSE wire format.

    Dispatch:
        - ``ChangeEvent`` -> ``event: change`` with the URL path as data
        - ``SSEEvent`` -> encode as-is
        - ``dict`` -> JSON-serialize as data
        - anything else -> ``str()`` as data
    """
    if isinstance(value, ChangeEvent):
        return value.to_sse().encode()

    if isinstance(value, SSEEvent):
        return value.encode()

    if isinstance(value, dict):
        return SSEEvent(data=json_module.dumps(value, default=str), event=default_event).encode()

    return SSEEvent(data=str(value), event=default_event).encode()
