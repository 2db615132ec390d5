"""Tests for esdev.realtime.bus — change broadcast to reload clients."""

import asyncio

import pytest

from esdev.errors import WatchTransportError
from esdev.realtime.bus import ChangeBus, Subscription, SubscriptionState
from esdev.realtime.events import ChangeEvent


class TestSubscription:
    def test_starts_connecting(self) -> None:
        assert Subscription().state is SubscriptionState.CONNECTING

    async def test_deliver_requires_open(self) -> None:
        with pytest.raises(WatchTransportError, match="not open"):
            Subscription().deliver(ChangeEvent("/a.js"))

    async def test_deliver_and_iterate(self) -> None:
        bus = ChangeBus()
        sub = bus.connect()
        sub.deliver(ChangeEvent("/a.js"))
        sub.deliver(ChangeEvent("/b.js"))
        assert sub.pending == 2
        bus.disconnect(sub)
        assert [e.path async for e in sub] == ["/a.js", "/b.js"]

    async def test_overflow_raises(self) -> None:
        sub = ChangeBus(queue_size=1).connect()
        sub.deliver(ChangeEvent("/a.js"))
        with pytest.raises(WatchTransportError, match="behind"):
            sub.deliver(ChangeEvent("/b.js"))

    async def test_close_on_full_queue_still_ends_iteration(self) -> None:
        sub = ChangeBus(queue_size=1).connect()
        sub.deliver(ChangeEvent("/a.js"))
        sub.close()
        assert sub.state is SubscriptionState.CLOSED
        assert [e async for e in sub] == []

    async def test_close_twice(self) -> None:
        sub = ChangeBus().connect()
        sub.close()
        sub.close()
        assert sub.pending == 1  # a single end-of-stream marker


class TestChangeBus:
    async def test_publish_reaches_every_subscriber(self) -> None:
        bus = ChangeBus()
        a, b = bus.connect(), bus.connect()
        assert len(bus) == 2
        assert bus.publish(ChangeEvent("/app.js")) == 2
        assert a.pending == 1
        assert b.pending == 1

    async def test_publish_without_subscribers(self) -> None:
        assert ChangeBus().publish(ChangeEvent("/app.js")) == 0

    async def test_disconnect_removes(self) -> None:
        bus = ChangeBus()
        sub = bus.connect()
        bus.disconnect(sub)
        bus.disconnect(sub)
        assert len(bus) == 0
        assert sub.state is SubscriptionState.CLOSED

    async def test_slow_subscriber_is_dropped_alone(self) -> None:
        bus = ChangeBus(queue_size=1)
        slow, fast = bus.connect(), bus.connect()
        bus.publish(ChangeEvent("/1.js"))
        # fast drains its queue, slow does not
        fast._queue.get_nowait()
        assert bus.publish(ChangeEvent("/2.js")) == 1
        assert len(bus) == 1
        assert slow.state is SubscriptionState.CLOSED
        assert fast.state is SubscriptionState.OPEN

    async def test_subscribe_yields_published_events(self) -> None:
        bus = ChangeBus()
        received: list[str] = []

        async def consume() -> None:
            async for change in bus.subscribe():
                received.append(change.path)

        task = asyncio.create_task(consume())
        while len(bus) == 0:
            await asyncio.sleep(0)
        bus.publish(ChangeEvent("/a.js"))
        bus.publish(ChangeEvent("/b.js"))
        bus.close()
        await asyncio.wait_for(task, timeout=1.0)
        assert received == ["/a.js", "/b.js"]

    async def test_subscribe_unsubscribes_on_close(self) -> None:
        bus = ChangeBus()
        stream = bus.subscribe()
        pending = asyncio.ensure_future(stream.__anext__())
        while len(bus) == 0:
            await asyncio.sleep(0)
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending
        await stream.aclose()
        assert len(bus) == 0

    async def test_close_ends_every_stream(self) -> None:
        bus = ChangeBus()
        subs = [bus.connect() for _ in range(3)]
        bus.close()
        assert len(bus) == 0
        assert all(s.state is SubscriptionState.CLOSED for s in subs)
