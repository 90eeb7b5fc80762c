"""
Base class and AuditMixin for all SQLAlchemy ORM models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, Numeric
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from shared.utils.clock import utc_now


# BIGINT primary keys everywhere except SQLite, which only auto-increments
# INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")

# Currency amounts: decimal numbers with cent precision
Money = Numeric(12, 2)


class Base(DeclarativeBase):
    """Base class for the shared order database models."""

    pass


class AuditMixin:
    """
    Mixin providing audit trail fields for all models.

    Fields added:
    - is_active: Record is in use (catalogue rows can be retired, orders never are)
    - created_at, updated_at: Audit timestamps (UTC, set in Python so rows
      created within the same second still order correctly)
    - created_by_id, updated_by_id: Staff tracking
    """

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utc_now, nullable=True
    )

    created_by_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    updated_by_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    def set_created_by(self, staff_id: int | None) -> None:
        """Set created_by on a new entity."""
        self.created_by_id = staff_id

    def set_updated_by(self, staff_id: int | None) -> None:
        """Set updated_by fields on entity update."""
        self.updated_by_id = staff_id
        self.updated_at = utc_now()

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        id_val = getattr(self, "id", None)
        active = "active" if self.is_active else "retired"
        return f"<{class_name}(id={id_val}, {active})>"
