"""
Table Model.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import TableStatus
from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .venue import Venue


class Table(AuditMixin, Base):
    """
    Physical table in a venue.

    Invariant: a table marked available has no active orders. The
    lifecycle controller heals any table found violating it.
    """

    # "table" is a reserved SQL keyword
    __tablename__ = "restaurant_table"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    venue_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("venue.id"), nullable=False, index=True
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    area: Mapped[Optional[str]] = mapped_column(Text)  # "Main", "Terrace"
    capacity: Mapped[int] = mapped_column(Integer, default=4)
    status: Mapped[str] = mapped_column(
        Text, default=TableStatus.AVAILABLE, nullable=False, index=True
    )  # available, occupied, reserved, cleaning

    __table_args__ = (
        UniqueConstraint("venue_id", "number", name="uq_table_venue_number"),
        Index("ix_table_venue_status", "venue_id", "status"),
    )

    venue: Mapped["Venue"] = relationship(back_populates="tables")

    def __repr__(self) -> str:
        return f"<Table(id={self.id}, number={self.number}, status='{self.status}')>"
