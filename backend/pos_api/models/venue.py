"""
Venue Models: Venue, MenuItem.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK, Money

if TYPE_CHECKING:
    from .table import Table


class Venue(AuditMixin, Base):
    """
    A single restaurant location.
    Inherits: is_active, created_at, updated_at, *_by_id from AuditMixin.
    """

    __tablename__ = "venue"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    # Percentage, e.g. 8.50 means 8.5% on the order subtotal
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("8.50"), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text)
    phone: Mapped[Optional[str]] = mapped_column(Text)

    tables: Mapped[list["Table"]] = relationship(back_populates="venue")

    def __repr__(self) -> str:
        return f"<Venue(id={self.id}, slug='{self.slug}')>"


class MenuItem(AuditMixin, Base):
    """
    Catalogue entry. Read-only for this engine: carts snapshot name and
    price, coupons look items up by id and category.
    """

    __tablename__ = "menu_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    venue_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("venue.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    category_id: Mapped[Optional[int]] = mapped_column(BigInteger, index=True)
    category_name: Mapped[Optional[str]] = mapped_column(Text)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("ix_menu_item_venue_category", "venue_id", "category_id"),
    )

    def __repr__(self) -> str:
        return f"<MenuItem(id={self.id}, name='{self.name}', price={self.price})>"
