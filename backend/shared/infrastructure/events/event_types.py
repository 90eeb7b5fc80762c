"""
Event Type Constants.

Defines the order and table change events pushed to every terminal
of a venue.
"""

# =============================================================================
# Order lifecycle events
# =============================================================================

ORDER_CREATED = "ORDER_CREATED"
ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
ORDERS_CANCELLED = "ORDERS_CANCELLED"  # Cancel-all or stale-order healing
ORDERS_SETTLED = "ORDERS_SETTLED"  # Combined payment applied to every active order

# =============================================================================
# Table events
# =============================================================================

TABLE_STATUS_CHANGED = "TABLE_STATUS_CHANGED"

ORDER_EVENT_TYPES = frozenset({
    ORDER_CREATED,
    ORDER_STATUS_CHANGED,
    ORDERS_CANCELLED,
    ORDERS_SETTLED,
    TABLE_STATUS_CHANGED,
})

# Events carry identifiers only; terminals re-read the table on receipt
MAX_EVENT_SIZE = 16 * 1024
