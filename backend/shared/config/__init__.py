"""
Configuration module: Settings, logging, constants.
"""

from shared.config.settings import settings, get_settings, DATABASE_URL, CART_STORE_URL
from shared.config.logging import get_logger, setup_logging
from shared.config.constants import (
    OrderStatus,
    PaymentStatus,
    TableStatus,
    LifecycleState,
    CouponType,
    CouponStatus,
    is_active_order,
)

__all__ = [
    # settings
    "settings",
    "get_settings",
    "DATABASE_URL",
    "CART_STORE_URL",
    # logging
    "get_logger",
    "setup_logging",
    # constants
    "OrderStatus",
    "PaymentStatus",
    "TableStatus",
    "LifecycleState",
    "CouponType",
    "CouponStatus",
    "is_active_order",
]
