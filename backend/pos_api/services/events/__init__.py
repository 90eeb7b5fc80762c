"""
Order change feeds (in-process and Redis pub/sub).
"""

from .order_feed import (
    OrderFeed,
    OrderChangeCallback,
    Unsubscribe,
    LocalOrderFeed,
    RedisOrderFeed,
    create_order_feed,
)

__all__ = [
    "OrderFeed",
    "OrderChangeCallback",
    "Unsubscribe",
    "LocalOrderFeed",
    "RedisOrderFeed",
    "create_order_feed",
]
