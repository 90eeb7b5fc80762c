"""
Credit Ledger Model: CreditTransaction.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, BigInteger, CheckConstraint, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import CreditStatus
from .base import AuditMixin, Base, BigIntPK, Money


class CreditTransaction(AuditMixin, Base):
    """
    Amount a customer left unpaid when the table was settled on credit.
    Created before any order is marked completed, in the same transaction.
    """

    __tablename__ = "credit_transaction"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    venue_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("venue.id"), nullable=False, index=True
    )
    customer_id: Mapped[Optional[int]] = mapped_column(BigInteger, index=True)
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_phone: Mapped[Optional[str]] = mapped_column(Text)
    order_ids: Mapped[list[int]] = mapped_column(JSON, default=list)
    table_number: Mapped[Optional[int]] = mapped_column(Integer)
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    amount_received: Mapped[Decimal] = mapped_column(Money, nullable=False)
    credit_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    payment_method: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, default=CreditStatus.PENDING, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("credit_amount > 0", name="chk_credit_amount_positive"),
    )

    def __repr__(self) -> str:
        return f"<CreditTransaction(id={self.id}, credit_amount={self.credit_amount}, status='{self.status}')>"
