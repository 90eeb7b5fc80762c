"""
Cart Model: CartLine.

Lives in the terminal-local store (its own declarative base and engine),
not in the shared order database.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from shared.utils.clock import utc_now
from .base import BigIntPK, Money


class LocalBase(DeclarativeBase):
    """Base class for terminal-local models."""

    pass


class CartLine(LocalBase):
    """
    A pending line in a table's cart, keyed by (venue_id, table_id).
    Destroyed when the order is placed or the cart is cleared.
    """

    __tablename__ = "cart_line"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    venue_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    table_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    menu_item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Money, nullable=False)
    variants: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)

    __table_args__ = (
        Index("ix_cart_line_venue_table", "venue_id", "table_id"),
    )

    def __repr__(self) -> str:
        return f"<CartLine(id={self.id}, menu_item_id={self.menu_item_id}, qty={self.quantity})>"
