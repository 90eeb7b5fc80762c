"""
Order Models: Order, OrderItem.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import OrderStatus, PaymentStatus, is_active_order
from .base import AuditMixin, Base, BigIntPK, Money


class Order(AuditMixin, Base):
    """
    One round of ordering for a table.

    A table can hold several active orders at once (one per "add more"
    round). Orders are never deleted; cancellation is a terminal status.
    ``total`` is written once at creation as ``subtotal + tax`` and the
    settlement fields below carry this order's share of the combined bill.
    """

    __tablename__ = "pos_order"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    venue_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("venue.id"), nullable=False, index=True
    )
    table_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("restaurant_table.id"), nullable=False, index=True
    )
    staff_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    order_number: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    subtotal: Mapped[Decimal] = mapped_column(Money, nullable=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    tax: Mapped[Decimal] = mapped_column(Money, nullable=False)
    total: Mapped[Decimal] = mapped_column(Money, nullable=False)

    status: Mapped[str] = mapped_column(
        Text, default=OrderStatus.PLACED, nullable=False, index=True
    )  # placed, confirmed, preparing, ready, completed, cancelled
    payment_status: Mapped[str] = mapped_column(
        Text, default=PaymentStatus.PENDING, nullable=False
    )  # pending, partial, paid
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Settlement share, written when the combined bill is paid
    payment_method: Mapped[Optional[str]] = mapped_column(Text)
    settlement_proportion: Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 8))
    final_total: Mapped[Optional[Decimal]] = mapped_column(Money)
    amount_received: Mapped[Optional[Decimal]] = mapped_column(Money)
    discount_amount: Mapped[Optional[Decimal]] = mapped_column(Money)
    manual_discount_amount: Mapped[Optional[Decimal]] = mapped_column(Money)
    coupon_discount_amount: Mapped[Optional[Decimal]] = mapped_column(Money)
    tip: Mapped[Optional[Decimal]] = mapped_column(Money)
    credit_amount: Mapped[Optional[Decimal]] = mapped_column(Money)
    credit_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("credit_transaction.id"), index=True
    )
    applied_coupon_code: Mapped[Optional[str]] = mapped_column(Text)
    customer_id: Mapped[Optional[int]] = mapped_column(BigInteger, index=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Cancellation audit
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        # Active-order lookups per table
        Index("ix_order_venue_table_status", "venue_id", "table_id", "status"),
        CheckConstraint("subtotal >= 0", name="chk_order_subtotal_non_negative"),
        CheckConstraint("tax >= 0", name="chk_order_tax_non_negative"),
    )

    @property
    def original_total(self) -> Decimal:
        """The canonical per-order amount used to apportion a combined payment."""
        return self.subtotal + self.tax

    @property
    def is_active_order(self) -> bool:
        return is_active_order(self.status, self.payment_status)

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, number='{self.order_number}', status='{self.status}', "
            f"payment_status='{self.payment_status}', table_id={self.table_id})>"
        )


class OrderItem(Base):
    """
    A cart line converted 1:1 into the order at placement time.
    Stores name and price as they were when ordered.
    """

    __tablename__ = "pos_order_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("pos_order.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    menu_item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Money, nullable=False)
    # [{"name": "Size", "option": "Large", "price": 120.0}]
    variants: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_order_item_qty_positive"),
    )

    order: Mapped["Order"] = relationship(back_populates="items")
