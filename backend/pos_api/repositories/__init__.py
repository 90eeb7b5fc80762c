"""
Repository Pattern implementation.

Every repository scopes queries by venue and leaves commits to the
calling service, so multi-row changes stay in one transaction.

Usage:
    from pos_api.repositories import OrderRepository

    repo = OrderRepository(db)
    active = repo.find_active_by_table(venue_id=1, table_id=3)
"""

from .base import BaseRepository
from .table import TableRepository
from .menu import MenuItemRepository
from .order import OrderRepository, active_order_clause, generate_order_number
from .coupon import CouponRepository
from .credit import CreditRepository

__all__ = [
    "BaseRepository",
    "TableRepository",
    "MenuItemRepository",
    "OrderRepository",
    "active_order_clause",
    "generate_order_number",
    "CouponRepository",
    "CreditRepository",
]
