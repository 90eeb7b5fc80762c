"""
Payment Service.

Applies one combined payment to every active order of a table inside a
single database transaction:

    lock table -> verify active orders -> credit entry -> coupon redemption
    -> N order updates -> table available -> commit

Any failure rolls the whole thing back; nothing is partially applied and
nothing here is retried automatically.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from sqlalchemy.orm import Session

from pos_api.models import CouponRedemption, CreditTransaction, Order, Table
from pos_api.repositories import CreditRepository, OrderRepository
from shared.config.constants import OrderStatus, PaymentStatus, TableStatus
from shared.config.logging import mask_phone, payments_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.clock import utc_now
from shared.utils.exceptions import SettlementConflictError, ValidationError
from shared.utils.money import to_money
from .coupon_service import CouponService, RedemptionAmounts
from .payment_instruction import CreditPayment, DirectPayment, SplitPayment
from .settlement import OrderSettlement, allocate_settlement, order_original_total


@dataclass
class SettlementResult:
    table: Table
    orders: list[Order]
    allocations: list[OrderSettlement]
    credit: CreditTransaction | None = None
    redemption: CouponRedemption | None = None


class PaymentService:
    """Settles a table's combined bill atomically."""

    def __init__(self, db: Session):
        self._db = db
        self._orders = OrderRepository(db)
        self._credits = CreditRepository(db)
        self._coupons = CouponService(db)

    def settle(
        self,
        venue_id: int,
        table_id: int,
        instruction: DirectPayment | CreditPayment | SplitPayment,
        staff_id: int | None = None,
        expected_order_ids: Sequence[int] | None = None,
    ) -> SettlementResult:
        """
        Settle every active order at the table.

        Args:
            expected_order_ids: Active order ids the bill was quoted for.
                When given and the locked rows differ, SettlementConflictError
                is raised before anything is written.

        Raises:
            ValidationError: No active orders.
            SettlementConflictError: Active orders changed since the quote.
            CouponExhaustedError: Coupon limits reached at redemption.
        """
        try:
            result = self._settle(venue_id, table_id, instruction, staff_id, expected_order_ids)
            safe_commit(self._db)
        except Exception:
            self._db.rollback()
            raise

        logger.info(
            "Table settled",
            venue_id=venue_id,
            table_id=table_id,
            order_ids=[order.id for order in result.orders],
            method=instruction.recorded_method,
            final_total=str(instruction.final_total),
            credit_amount=str(instruction.credit_amount),
            credit_id=result.credit.id if result.credit else None,
            coupon_id=instruction.discount.coupon_id,
        )
        return result

    def _settle(
        self,
        venue_id: int,
        table_id: int,
        instruction: DirectPayment | CreditPayment | SplitPayment,
        staff_id: int | None,
        expected_order_ids: Sequence[int] | None,
    ) -> SettlementResult:
        table = self._orders.lock_table(venue_id, table_id)
        orders = list(self._orders.find_active_by_table(venue_id, table_id, for_update=True))
        if not orders:
            raise ValidationError("Table has no active orders to settle", table_id=table_id)

        actual_ids = [order.id for order in orders]
        if expected_order_ids is not None and set(expected_order_ids) != set(actual_ids):
            raise SettlementConflictError(table_id, sorted(expected_order_ids), actual_ids)

        allocations = allocate_settlement(orders, instruction)
        original_amount = to_money(sum((order_original_total(o) for o in orders), Decimal(0)))

        credit = None
        if instruction.is_credit:
            credit = self._credits.create_credit_transaction(
                venue_id=venue_id,
                customer_name=instruction.customer_name,
                customer_id=instruction.customer_id,
                customer_phone=instruction.customer_phone,
                order_ids=actual_ids,
                table_number=table.number,
                total_amount=instruction.final_total,
                amount_received=instruction.amount_received,
                credit_amount=instruction.credit_amount,
                payment_method=instruction.recorded_method,
                notes=instruction.notes,
                staff_id=staff_id,
            )
            logger.info(
                "Credit entry created",
                credit_id=credit.id,
                customer_phone=mask_phone(instruction.customer_phone),
                credit_amount=str(credit.credit_amount),
            )

        redemption = None
        discount = instruction.discount
        if discount.coupon_id is not None:
            redemption = self._coupons.redeem(
                venue_id=venue_id,
                coupon_id=discount.coupon_id,
                order_id=orders[-1].id,
                amounts=RedemptionAmounts(
                    discount_amount=discount.coupon_discount_amount,
                    original_amount=original_amount,
                    final_amount=instruction.final_total,
                    order_ids=actual_ids,
                ),
                customer_id=instruction.customer_id,
            )

        paid_at = utc_now()
        for order, share in zip(orders, allocations):
            self._orders.update_status(
                order.id,
                venue_id,
                OrderStatus.COMPLETED,
                patch={
                    "payment_status": PaymentStatus.PAID,
                    "payment_method": instruction.recorded_method,
                    "settlement_proportion": share.proportion,
                    "final_total": share.final_total,
                    "amount_received": share.amount_received,
                    "discount_amount": share.discount_amount,
                    "manual_discount_amount": share.manual_discount_amount,
                    "coupon_discount_amount": share.coupon_discount_amount,
                    "tip": share.tip,
                    "credit_amount": share.credit_amount,
                    "credit_id": credit.id if credit else None,
                    "applied_coupon_code": discount.coupon_code,
                    "customer_id": instruction.customer_id,
                    "paid_at": paid_at,
                },
                staff_id=staff_id,
            )

        table.status = TableStatus.AVAILABLE
        table.set_updated_by(staff_id)
        self._db.flush()

        return SettlementResult(
            table=table,
            orders=orders,
            allocations=allocations,
            credit=credit,
            redemption=redemption,
        )
