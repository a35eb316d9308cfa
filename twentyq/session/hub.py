"""
Broadcast Hub - Live fan-out of a session's rendered view.

The hub:
- Keeps the latest rendered representation of the session
- Holds the set of live subscribers (one per open event stream)
- Pushes every new rendering to every live subscriber, in publish order
- Prunes subscribers whose connection has ended, lazily, at publish time

Delivery is a blocking put into a size-1 queue per subscriber, so a slow
reader stalls the publish loop for its own delivery. That put is raced
against the subscriber's lifetime so a reader that goes away while the
publisher is waiting never wedges the hub.

Publish, subscribe and removal run inside one asyncio.Lock region per hub;
removal and channel close are idempotent. Shutdown ends every lifetime
before it waits for that lock.
"""

from __future__ import annotations
import asyncio
import itertools
from collections.abc import AsyncIterator

from ..observability.logging import get_logger

logger = get_logger(__name__)

_subscriber_ids = itertools.count(1)


class ConnectionLifetime:
    """
    Cancellation signal for one live connection.

    Ended by the transport when the client disconnects, or by the hub
    when the session is torn down. Ending twice is harmless.
    """

    def __init__(self) -> None:
        self._ended = asyncio.Event()

    @property
    def ended(self) -> bool:
        return self._ended.is_set()

    def end(self) -> None:
        self._ended.set()

    async def wait(self) -> None:
        await self._ended.wait()


class Subscriber:
    """
    Handle for one live connection.

    The only contract: deliver the latest update, and stop once the
    connection lifetime has ended.
    """

    def __init__(self, lifetime: ConnectionLifetime) -> None:
        self.subscriber_id = next(_subscriber_ids)
        self.lifetime = lifetime
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=1)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the delivery channel. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        # Drop anything undelivered so the queue holds no references.
        while not self._queue.empty():
            self._queue.get_nowait()

    async def deliver(self, payload: str) -> bool:
        """
        Block until payload is queued or the lifetime ends.

        Returns True if the payload was queued.
        """
        if self._closed or self.lifetime.ended:
            return False
        if not self._queue.full():
            self._queue.put_nowait(payload)
            return True

        put = asyncio.ensure_future(self._queue.put(payload))
        ended = asyncio.ensure_future(self.lifetime.wait())
        try:
            await asyncio.wait({put, ended}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (put, ended):
                if not task.done():
                    task.cancel()
        return put.done() and not put.cancelled()

    async def stream(self) -> AsyncIterator[str]:
        """
        Yield updates in publish order until the lifetime ends.

        Used by the per-connection delivery task.
        """
        while not self.lifetime.ended:
            if not self._queue.empty():
                yield self._queue.get_nowait()
                continue

            get = asyncio.ensure_future(self._queue.get())
            ended = asyncio.ensure_future(self.lifetime.wait())
            try:
                await asyncio.wait({get, ended}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for task in (get, ended):
                    if not task.done():
                        task.cancel()

            if get.done() and not get.cancelled():
                if self.lifetime.ended:
                    return
                yield get.result()


class BroadcastHub:
    """
    Subscriber registry and fan-out point for one session.

    Usage:
        hub = BroadcastHub(session_id, initial="")

        lifetime = ConnectionLifetime()
        subscriber = await hub.subscribe(lifetime)
        async for payload in subscriber.stream():
            send(payload)

        await hub.publish(new_rendering)   # from the session facade
        await hub.shutdown()               # from the registry on expiry
    """

    def __init__(self, session_id: str, initial: str = "") -> None:
        self.session_id = session_id
        self._lock = asyncio.Lock()
        self._latest = initial
        self._subscribers: list[Subscriber] = []
        self._shut_down = False

    @property
    def latest(self) -> str:
        return self._latest

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    async def subscribe(self, lifetime: ConnectionLifetime) -> Subscriber:
        """
        Register a new subscriber.

        The current rendering is queued for it straight away so it sees
        the game as it stands before any later update.
        """
        subscriber = Subscriber(lifetime)
        async with self._lock:
            if self._shut_down:
                lifetime.end()
                subscriber.close()
                return subscriber
            self._subscribers.append(subscriber)
            subscriber._queue.put_nowait(self._latest)

        logger.debug(
            "subscriber_added",
            session_id=self.session_id,
            subscriber_id=subscriber.subscriber_id,
            subscribers=len(self._subscribers),
        )
        return subscriber

    async def publish(self, rendered: str) -> int:
        """
        Store rendered as the latest view and push it to every live subscriber.

        Subscribers whose lifetime has ended are removed and closed instead
        of delivered to. Returns the number of deliveries made.
        """
        delivered = 0
        pruned = 0
        async with self._lock:
            self._latest = rendered
            i = 0
            # i only advances past live subscribers; a removed slot is
            # refilled from the end and must be looked at again.
            while i < len(self._subscribers):
                subscriber = self._subscribers[i]
                if subscriber.lifetime.ended or subscriber.closed:
                    self._remove_at(i)
                    pruned += 1
                    continue
                if await subscriber.deliver(rendered):
                    delivered += 1
                i += 1

        if pruned:
            logger.debug(
                "subscribers_pruned",
                session_id=self.session_id,
                pruned=pruned,
                subscribers=len(self._subscribers),
            )
        return delivered

    async def shutdown(self) -> None:
        """
        End every remaining connection lifetime and clear the set.

        Lifetimes are ended before the hub lock is taken: a publish that
        holds the lock while blocked on a stalled reader is released by
        its subscriber's lifetime ending, and only then can the lock be
        acquired here.
        """
        self._shut_down = True
        for subscriber in list(self._subscribers):
            subscriber.lifetime.end()

        async with self._lock:
            count = len(self._subscribers)
            for subscriber in self._subscribers:
                subscriber.lifetime.end()
                subscriber.close()
            self._subscribers.clear()

        logger.debug("hub_shutdown", session_id=self.session_id, closed=count)

    def _remove_at(self, index: int) -> None:
        """Swap-and-truncate removal. Caller holds the hub lock."""
        subscriber = self._subscribers[index]
        subscriber.close()
        self._subscribers[index] = self._subscribers[-1]
        self._subscribers.pop()
