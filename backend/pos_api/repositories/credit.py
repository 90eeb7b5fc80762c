"""
Credit Repository - The customer credit ledger.
"""

from decimal import Decimal
from typing import Sequence

from sqlalchemy import Select, select

from pos_api.models import CreditTransaction
from shared.config.constants import CreditStatus
from shared.utils.money import to_money
from .base import BaseRepository


class CreditRepository(BaseRepository[CreditTransaction]):
    """Repository for CreditTransaction entities."""

    @property
    def model(self) -> type[CreditTransaction]:
        return CreditTransaction

    def _base_query(self, venue_id: int) -> Select:
        return select(CreditTransaction).where(CreditTransaction.venue_id == venue_id)

    def create_credit_transaction(
        self,
        venue_id: int,
        customer_name: str,
        order_ids: list[int],
        total_amount: Decimal,
        amount_received: Decimal,
        credit_amount: Decimal,
        payment_method: str,
        customer_id: int | None = None,
        customer_phone: str | None = None,
        table_number: int | None = None,
        notes: str | None = None,
        staff_id: int | None = None,
    ) -> CreditTransaction:
        """
        Record an unpaid balance. Flushes to obtain the ID but does not
        commit: the settlement that created it owns the transaction.
        """
        entry = CreditTransaction(
            venue_id=venue_id,
            customer_id=customer_id,
            customer_name=customer_name.strip(),
            customer_phone=customer_phone,
            order_ids=list(order_ids),
            table_number=table_number,
            total_amount=to_money(total_amount),
            amount_received=to_money(amount_received),
            credit_amount=to_money(credit_amount),
            payment_method=payment_method,
            status=CreditStatus.PENDING,
            notes=notes,
        )
        entry.set_created_by(staff_id)
        return self.add(entry)

    def find_outstanding(self, venue_id: int, customer_id: int | None = None) -> Sequence[CreditTransaction]:
        query = self._base_query(venue_id).where(
            CreditTransaction.status != CreditStatus.PAID
        )
        if customer_id is not None:
            query = query.where(CreditTransaction.customer_id == customer_id)
        return self._db.execute(
            query.order_by(CreditTransaction.created_at, CreditTransaction.id)
        ).scalars().all()
