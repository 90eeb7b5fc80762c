"""
SQLAlchemy models.

Shared order database (Base):
- venue.py: Venue, MenuItem
- table.py: Table
- order.py: Order, OrderItem
- coupon.py: Coupon, CouponRedemption
- credit.py: CreditTransaction

Terminal-local store (LocalBase):
- cart.py: CartLine
"""

from .base import Base, AuditMixin, BigIntPK, Money
from .venue import Venue, MenuItem
from .table import Table
from .order import Order, OrderItem
from .coupon import Coupon, CouponRedemption
from .credit import CreditTransaction
from .cart import LocalBase, CartLine

__all__ = [
    "Base",
    "AuditMixin",
    "BigIntPK",
    "Money",
    "Venue",
    "MenuItem",
    "Table",
    "Order",
    "OrderItem",
    "Coupon",
    "CouponRedemption",
    "CreditTransaction",
    "LocalBase",
    "CartLine",
]
