"""
Promotion Models: Coupon, CouponRedemption.
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
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import CouponStatus, PaymentRestriction
from shared.utils.clock import utc_now
from .base import AuditMixin, Base, BigIntPK, Money


class Coupon(AuditMixin, Base):
    """
    Promotional coupon.

    Validation never writes to the coupon. The only mutation this engine
    performs is the atomic ``usage_count`` increment at redemption.

    ``config`` holds the type-specific payload:
      percentage, discount_amount, minimum_order_value,
      buy_x_get_y {buy_quantity, get_quantity, buy_item_id, get_item_id,
                   buy_category_id, get_category_id, get_discount_percentage},
      free_item_id, target_category_id, category_discount_percentage
    """

    __tablename__ = "coupon"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    venue_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("venue.id"), nullable=False, index=True
    )
    code: Mapped[str] = mapped_column(Text, nullable=False)  # Stored upper-case
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, default=CouponStatus.DRAFT, nullable=False)

    # Validity
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    start_time: Mapped[Optional[str]] = mapped_column(Text)  # "HH:MM" venue local time
    end_time: Mapped[Optional[str]] = mapped_column(Text)
    valid_days: Mapped[list[str]] = mapped_column(JSON, default=list)  # ["monday", ...]; empty = every day
    usage_limit: Mapped[Optional[int]] = mapped_column(Integer)
    per_customer_limit: Mapped[Optional[int]] = mapped_column(Integer)

    # Targeting
    min_order_value: Mapped[Optional[Decimal]] = mapped_column(Money)
    payment_method_restriction: Mapped[str] = mapped_column(
        Text, default=PaymentRestriction.ALL, nullable=False
    )

    config: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("venue_id", "code", name="uq_coupon_venue_code"),
        CheckConstraint("usage_count >= 0", name="chk_coupon_usage_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Coupon(id={self.id}, code='{self.code}', type='{self.type}', status='{self.status}')>"


class CouponRedemption(Base):
    """
    One confirmed use of a coupon against a combined table payment.

    ``order_id`` is the table's most recent order; ``order_ids`` lists
    every order the payment settled.
    """

    __tablename__ = "coupon_redemption"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    coupon_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("coupon.id"), nullable=False, index=True
    )
    venue_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("venue.id"), nullable=False, index=True
    )
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("pos_order.id"), nullable=False, index=True
    )
    order_ids: Mapped[list[int]] = mapped_column(JSON, default=list)
    customer_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    discount_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    original_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    final_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        Index("ix_redemption_coupon_customer", "coupon_id", "customer_id"),
    )
