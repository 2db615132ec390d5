"""Tests for esdev.realtime.sse — the SSE protocol handler over ASGI."""

import asyncio
from typing import Any

from esdev.realtime.bus import ChangeBus
from esdev.realtime.events import ChangeEvent, EventStream
from esdev.realtime.sse import handle_sse
from esdev.testing.sse import parse_sse_frames


class _Connection:
    """Fake ASGI connection: records sent messages, disconnects on demand."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []
        self.disconnect = asyncio.Event()

    async def receive(self) -> dict[str, Any]:
        await self.disconnect.wait()
        return {"type": "http.disconnect"}

    async def send(self, message: dict[str, Any]) -> None:
        self.messages.append(message)

    @property
    def text(self) -> str:
        return b"".join(
            m.get("body", b"") for m in self.messages if m["type"] == "http.response.body"
        ).decode()


class TestHandleSSE:
    async def test_headers_and_events(self) -> None:
        async def gen():
            yield ChangeEvent("/app.js")
            yield ChangeEvent("/style.css")

        conn = _Connection()
        await handle_sse(EventStream(gen()), conn.send, conn.receive)

        start = conn.messages[0]
        assert start["status"] == 200
        assert (b"content-type", b"text/event-stream") in start["headers"]
        events, _ = parse_sse_frames(conn.text)
        assert [(e.event, e.data) for e in events] == [
            ("change", "/app.js"),
            ("change", "/style.css"),
        ]
        assert conn.messages[-1] == {"type": "http.response.body", "body": b"", "more_body": False}

    async def test_retry_advisory(self) -> None:
        async def gen():
            yield "x"

        conn = _Connection()
        await handle_sse(EventStream(gen()), conn.send, conn.receive, retry_ms=500)
        assert conn.text.startswith("retry: 500\n\n")

    async def test_heartbeat_on_idle(self) -> None:
        async def gen():
            await asyncio.sleep(0.15)
            yield "late"

        conn = _Connection()
        await handle_sse(EventStream(gen(), heartbeat_interval=0.05), conn.send, conn.receive)
        events, heartbeats = parse_sse_frames(conn.text)
        assert heartbeats >= 1
        assert [e.data for e in events] == ["late"]

    async def test_disconnect_removes_subscription(self) -> None:
        bus = ChangeBus()
        conn = _Connection()
        task = asyncio.create_task(
            handle_sse(EventStream(bus.subscribe()), conn.send, conn.receive)
        )
        while len(bus) == 0:
            await asyncio.sleep(0.001)

        bus.publish(ChangeEvent("/app.js"))
        await asyncio.sleep(0.01)
        conn.disconnect.set()
        await asyncio.wait_for(task, timeout=1.0)

        assert len(bus) == 0
        events, _ = parse_sse_frames(conn.text)
        assert [e.data for e in events] == ["/app.js"]

    async def test_bus_close_ends_stream(self) -> None:
        bus = ChangeBus()
        conn = _Connection()
        task = asyncio.create_task(
            handle_sse(EventStream(bus.subscribe()), conn.send, conn.receive)
        )
        while len(bus) == 0:
            await asyncio.sleep(0.001)
        bus.close()
        await asyncio.wait_for(task, timeout=1.0)
        assert conn.messages[-1]["more_body"] is False

    async def test_generator_error_sends_error_event(self) -> None:
        async def gen():
            yield "ok"
            raise RuntimeError("boom")

        conn = _Connection()
        await handle_sse(EventStream(gen()), conn.send, conn.receive)
        events, _ = parse_sse_frames(conn.text)
        assert events[-1].event == "error"
