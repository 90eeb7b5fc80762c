"""
Event System for Real-time Order Sync via Redis pub/sub.

- event_types.py: Event type constants
- event_schema.py: Event dataclass with validation
- channels.py: Channel naming functions
- redis_pool.py: Shared Redis client
- publisher.py: publish_event with retry, size-checked encoding
"""

from .event_types import (
    ORDER_CREATED,
    ORDER_STATUS_CHANGED,
    ORDERS_CANCELLED,
    ORDERS_SETTLED,
    TABLE_STATUS_CHANGED,
    ORDER_EVENT_TYPES,
    MAX_EVENT_SIZE,
)
from .event_schema import Event
from .channels import channel_venue_orders
from .redis_pool import get_redis_pool, close_redis_pool
from .publisher import encode_event, publish_event

__all__ = [
    # Event Types
    "ORDER_CREATED",
    "ORDER_STATUS_CHANGED",
    "ORDERS_CANCELLED",
    "ORDERS_SETTLED",
    "TABLE_STATUS_CHANGED",
    "ORDER_EVENT_TYPES",
    "MAX_EVENT_SIZE",
    # Event Schema
    "Event",
    # Channels
    "channel_venue_orders",
    # Redis Pool
    "get_redis_pool",
    "close_redis_pool",
    # Publishing
    "encode_event",
    "publish_event",
]
