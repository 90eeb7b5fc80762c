"""
Order change feeds.

A feed pushes Event notifications to every terminal of a venue after an
order or table write commits. Events carry identifiers only; receivers
re-read the database.

- LocalOrderFeed: in-process, for a single API process and for tests.
- RedisOrderFeed: Redis pub/sub, one channel per venue, for several
  processes sharing one database.

Callbacks are always run as separate tasks, never inline in publish(),
so a terminal holding its own lock while writing cannot deadlock on the
notification of that same write.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Awaitable, Callable, Protocol

import redis.asyncio as redis

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.events import (
    Event,
    get_redis_pool,
    publish_event,
)

logger = get_logger(__name__)

OrderChangeCallback = Callable[[Event], Awaitable[None]]
Unsubscribe = Callable[[], None]


class OrderFeed(Protocol):
    async def publish(self, event: Event) -> None: ...

    def subscribe(self, venue_id: int, callback: OrderChangeCallback) -> Unsubscribe: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


class _SubscriberRegistry:
    """Per-venue callback lists plus the tasks delivering to them."""

    def __init__(self) -> None:
        self._subscribers: dict[int, list[OrderChangeCallback]] = defaultdict(list)
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, venue_id: int, callback: OrderChangeCallback) -> Unsubscribe:
        self._subscribers[venue_id].append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(venue_id, [])
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks:
                self._subscribers.pop(venue_id, None)

        return unsubscribe

    def subscriber_count(self, venue_id: int) -> int:
        return len(self._subscribers.get(venue_id, ()))

    def _dispatch(self, event: Event) -> None:
        for callback in list(self._subscribers.get(event.venue_id, ())):
            task = asyncio.create_task(self._deliver(callback, event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _deliver(self, callback: OrderChangeCallback, event: Event) -> None:
        try:
            await callback(event)
        except Exception as e:
            # One broken subscriber must not stop the others
            logger.error(
                "Order change callback failed",
                event_type=event.type,
                venue_id=event.venue_id,
                table_id=event.table_id,
                error=str(e),
                exc_info=True,
            )

    async def drain(self) -> None:
        """Wait until every in-flight delivery has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _cancel_deliveries(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class LocalOrderFeed(_SubscriberRegistry):
    """In-process feed."""

    async def publish(self, event: Event) -> None:
        self._dispatch(event)

    async def start(self) -> None:
        logger.info("Local order feed started")

    async def stop(self) -> None:
        await self._cancel_deliveries()
        self._subscribers.clear()


class RedisOrderFeed(_SubscriberRegistry):
    """
    Redis pub/sub feed.

    Publishing goes through Redis only; local subscribers receive their own
    process's events back from the listener like everyone else's.
    """

    # Pause after a failed read before polling again
    read_error_delay = 1.0

    def __init__(self, redis_client: redis.Redis | None = None):
        super().__init__()
        self._redis = redis_client
        self._pubsub = None
        self._listener: asyncio.Task | None = None

    async def _client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = await get_redis_pool()
        return self._redis

    async def publish(self, event: Event) -> None:
        """
        Publish after the write has committed. A failed publish is logged;
        the write stands and terminals converge on their next read.
        """
        try:
            await publish_event(await self._client(), event)
        except (redis.RedisError, ValueError) as e:
            logger.error(
                "Order event not published",
                event_type=event.type,
                venue_id=event.venue_id,
                table_id=event.table_id,
                error=str(e),
            )

    async def start(self) -> None:
        client = await self._client()
        self._pubsub = client.pubsub()
        pattern = f"{settings.order_channel_prefix}:*:orders"
        await self._pubsub.psubscribe(pattern)
        self._listener = asyncio.create_task(self._listen())
        logger.info("Redis order feed started", pattern=pattern)

    async def _listen(self) -> None:
        while True:
            try:
                msg = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            except redis.TimeoutError:
                continue
            except redis.ConnectionError as e:
                logger.warning("Redis order feed connection error", error=str(e))
                await asyncio.sleep(self.read_error_delay)
                continue
            except Exception as e:
                logger.error("Redis order feed read failed", error=str(e), exc_info=True)
                await asyncio.sleep(self.read_error_delay)
                continue

            if msg is None or msg.get("type") not in ("message", "pmessage"):
                continue
            try:
                self.handle_message(msg.get("data"))
            except Exception as e:
                logger.error("Error handling order event", error=str(e), exc_info=True)

    def handle_message(self, data: str | bytes | None) -> None:
        """Decode one pub/sub payload and dispatch it to local subscribers."""
        if data is None:
            return
        try:
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            event = Event.from_json(data)
        except (ValueError, TypeError) as e:
            logger.warning("Discarding malformed order event", error=str(e))
            return
        self._dispatch(event)

    async def stop(self) -> None:
        if self._listener:
            self._listener.cancel()
            await asyncio.gather(self._listener, return_exceptions=True)
            self._listener = None
        if self._pubsub is not None:
            try:
                await asyncio.wait_for(
                    self._pubsub.aclose(),
                    timeout=settings.redis_pubsub_cleanup_timeout,
                )
            except (asyncio.TimeoutError, redis.RedisError) as e:
                logger.warning("Redis pubsub cleanup failed", error=str(e))
            self._pubsub = None
        await self._cancel_deliveries()
        self._subscribers.clear()


def create_order_feed(backend: str | None = None) -> OrderFeed:
    """Build the feed named by settings.order_feed_backend."""
    backend = backend or settings.order_feed_backend
    if backend == "redis":
        return RedisOrderFeed()
    if backend == "local":
        return LocalOrderFeed()
    raise ValueError(f"Unknown order feed backend '{backend}'")
