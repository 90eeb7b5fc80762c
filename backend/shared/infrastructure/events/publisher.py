"""
Order event publishing.

An event goes out only after its write has committed, on the channel of
the event's venue. Redis errors are retried under the publish policy;
an error that outlasts it is raised for the feed to log.
"""

from __future__ import annotations

import redis.asyncio as redis

from shared.config.settings import settings
from shared.infrastructure.retry import RetryPolicy, call_with_retry
from .channels import channel_venue_orders
from .event_schema import Event
from .event_types import MAX_EVENT_SIZE


def publish_policy() -> RetryPolicy:
    """Publish retries from settings (REDIS_PUBLISH_MAX_RETRIES, REDIS_PUBLISH_RETRY_DELAY)."""
    delay = settings.redis_publish_retry_delay
    return RetryPolicy(
        max_attempts=max(1, settings.redis_publish_max_retries),
        initial_delay=delay,
        max_delay=max(1.0, delay),
    )


def encode_event(event: Event) -> str:
    """JSON payload for ``event``. Raises ValueError above MAX_EVENT_SIZE bytes."""
    payload = event.to_json()
    size = len(payload.encode("utf-8"))
    if size > MAX_EVENT_SIZE:
        raise ValueError(f"Event {event.type} is {size} bytes, limit is {MAX_EVENT_SIZE}")
    return payload


async def publish_event(
    redis_client: redis.Redis,
    event: Event,
    policy: RetryPolicy | None = None,
) -> int:
    """
    Publish ``event`` on its venue's order channel.

    Returns:
        Number of subscribers that received the message.

    Raises:
        ValueError: If the event is too large.
        redis.RedisError: If every attempt failed.
    """
    payload = encode_event(event)
    channel = channel_venue_orders(event.venue_id)
    return await call_with_retry(
        lambda: redis_client.publish(channel, payload),
        policy or publish_policy(),
        retry_on=(redis.RedisError,),
        description=f"publish {event.type} to {channel}",
    )
