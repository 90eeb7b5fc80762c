"""
Redis Channel Naming.
"""

from __future__ import annotations

from shared.config.settings import settings


def _validate_positive_id(id_value: int, name: str) -> None:
    """Validate that ID is a positive integer."""
    if not isinstance(id_value, int) or id_value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {id_value}")


def channel_venue_orders(venue_id: int) -> str:
    """Channel carrying order and table changes for every terminal of a venue."""
    _validate_positive_id(venue_id, "venue_id")
    return f"{settings.order_channel_prefix}:{venue_id}:orders"
