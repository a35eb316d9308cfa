"""
Tests for the broadcast hub.

Tests:
- New subscribers see the latest rendering first
- Fan-out to every live subscriber
- Lazy pruning of ended subscribers
- Blocking delivery and its interaction with disconnects
- Shutdown
"""

import asyncio

import pytest

from ..session import BroadcastHub, ConnectionLifetime
from .conftest import next_update


class TestSubscribe:
    """Tests for subscribing."""

    @pytest.mark.asyncio
    async def test_receives_latest_immediately(self, hub):
        subscriber = await hub.subscribe(ConnectionLifetime())

        assert await next_update(subscriber) == "initial"
        assert hub.subscriber_count == 1

    @pytest.mark.asyncio
    async def test_late_subscriber_sees_latest_publish(self, hub):
        await hub.publish("second")
        subscriber = await hub.subscribe(ConnectionLifetime())

        assert await next_update(subscriber) == "second"


class TestPublish:
    """Tests for fan-out."""

    @pytest.mark.asyncio
    async def test_delivers_same_payload_to_all(self, hub):
        subscribers = [await hub.subscribe(ConnectionLifetime()) for _ in range(4)]
        for subscriber in subscribers:
            await next_update(subscriber)

        delivered = await hub.publish("update")

        assert delivered == 4
        for subscriber in subscribers:
            assert await next_update(subscriber) == "update"
        assert hub.latest == "update"

    @pytest.mark.asyncio
    async def test_updates_arrive_in_publish_order(self, hub):
        subscriber = await hub.subscribe(ConnectionLifetime())
        received = []

        async def reader():
            async for payload in subscriber.stream():
                received.append(payload)
                if len(received) == 4:
                    return

        task = asyncio.create_task(reader())
        for payload in ("one", "two", "three"):
            await hub.publish(payload)
        await asyncio.wait_for(task, 1.0)

        assert received == ["initial", "one", "two", "three"]

    @pytest.mark.asyncio
    async def test_ended_subscriber_pruned_and_skipped(self, hub):
        live = await hub.subscribe(ConnectionLifetime())
        gone_lifetime = ConnectionLifetime()
        gone = await hub.subscribe(gone_lifetime)
        await next_update(live)

        gone_lifetime.end()
        delivered = await hub.publish("update")

        assert delivered == 1
        assert hub.subscriber_count == 1
        assert gone.closed
        assert await next_update(live) == "update"
        # Stream of an ended subscriber yields nothing, not even its stale initial.
        assert [p async for p in gone.stream()] == []

    @pytest.mark.asyncio
    async def test_pruning_all(self, hub):
        lifetimes = [ConnectionLifetime() for _ in range(5)]
        for lifetime in lifetimes:
            await hub.subscribe(lifetime)
        for lifetime in lifetimes:
            lifetime.end()

        assert await hub.publish("update") == 0
        assert hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_concurrent_publish_prunes_once(self, hub):
        """Two publishes racing over the same ended subscriber never double-remove."""
        lifetime = ConnectionLifetime()
        subscriber = await hub.subscribe(lifetime)
        lifetime.end()

        await asyncio.gather(hub.publish("a"), hub.publish("b"))

        assert hub.subscriber_count == 0
        assert subscriber.closed


class TestBlockingDelivery:
    """A slow reader holds up publish; a disconnect releases it."""

    @pytest.mark.asyncio
    async def test_publish_waits_for_slow_reader(self, hub):
        subscriber = await hub.subscribe(ConnectionLifetime())
        # "initial" still unread, so the size-1 channel is full.
        publish = asyncio.create_task(hub.publish("update"))
        await asyncio.sleep(0.02)
        assert not publish.done()

        assert await next_update(subscriber) == "initial"
        assert await asyncio.wait_for(publish, 1.0) == 1
        assert await next_update(subscriber) == "update"

    @pytest.mark.asyncio
    async def test_disconnect_releases_blocked_publish(self, hub):
        lifetime = ConnectionLifetime()
        await hub.subscribe(lifetime)
        publish = asyncio.create_task(hub.publish("update"))
        await asyncio.sleep(0.02)
        assert not publish.done()

        lifetime.end()
        assert await asyncio.wait_for(publish, 1.0) == 0

        # The next publish prunes it.
        await hub.publish("later")
        assert hub.subscriber_count == 0


class TestShutdown:
    """Tests for hub teardown."""

    @pytest.mark.asyncio
    async def test_shutdown_ends_every_lifetime(self, hub):
        lifetimes = [ConnectionLifetime() for _ in range(3)]
        subscribers = [await hub.subscribe(lifetime) for lifetime in lifetimes]

        await hub.shutdown()

        assert hub.subscriber_count == 0
        assert hub.is_shut_down
        assert all(lifetime.ended for lifetime in lifetimes)
        assert all(subscriber.closed for subscriber in subscribers)

    @pytest.mark.asyncio
    async def test_shutdown_terminates_open_streams(self, hub):
        subscriber = await hub.subscribe(ConnectionLifetime())
        await next_update(subscriber)

        async def drain():
            return [payload async for payload in subscriber.stream()]

        task = asyncio.create_task(drain())
        await asyncio.sleep(0.01)
        await hub.shutdown()

        assert await asyncio.wait_for(task, 1.0) == []

    @pytest.mark.asyncio
    async def test_shutdown_releases_publish_blocked_on_stalled_reader(self, hub):
        """A reader that never reads must not keep the hub alive."""
        lifetime = ConnectionLifetime()
        subscriber = await hub.subscribe(lifetime)  # queue already holds "initial"

        publishing = asyncio.create_task(hub.publish("update"))
        await asyncio.sleep(0.01)
        assert not publishing.done()

        await asyncio.wait_for(hub.shutdown(), 1.0)

        assert await asyncio.wait_for(publishing, 1.0) == 0
        assert lifetime.ended
        assert subscriber.closed
        assert hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_subscribe_after_shutdown(self, hub):
        await hub.shutdown()
        lifetime = ConnectionLifetime()
        subscriber = await hub.subscribe(lifetime)

        assert lifetime.ended
        assert hub.subscriber_count == 0
        assert [p async for p in subscriber.stream()] == []


class TestConnectionLifetime:

    @pytest.mark.asyncio
    async def test_end_is_idempotent(self):
        lifetime = ConnectionLifetime()
        assert not lifetime.ended
        lifetime.end()
        lifetime.end()
        assert lifetime.ended
        await asyncio.wait_for(lifetime.wait(), 0.1)


@pytest.mark.asyncio
async def test_hub_default_initial_is_empty():
    hub = BroadcastHub("plain")
    subscriber = await hub.subscribe(ConnectionLifetime())
    assert await next_update(subscriber) == ""
