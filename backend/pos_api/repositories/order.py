"""
Order Repository - Data access for orders and their items.

All writes flush but never commit; the calling service owns the
transaction so table status changes land atomically with the orders.
"""

import random
from datetime import datetime
from decimal import Decimal
from typing import Any, Sequence

from sqlalchemy import Select, and_, or_, select
from sqlalchemy.orm import selectinload

from pos_api.models import Order, OrderItem, Table
from shared.config.constants import OrderStatus, PaymentStatus, TableStatus
from shared.utils.clock import utc_now
from shared.utils.exceptions import OrderNotFoundError, TableNotFoundError, ValidationError
from shared.utils.money import percent_of, to_money
from .base import BaseRepository


# Settlement and audit columns a status update may also write
PATCHABLE_FIELDS = frozenset({
    "payment_status",
    "payment_method",
    "settlement_proportion",
    "final_total",
    "amount_received",
    "discount_amount",
    "manual_discount_amount",
    "coupon_discount_amount",
    "tip",
    "credit_amount",
    "credit_id",
    "applied_coupon_code",
    "customer_id",
    "paid_at",
    "cancel_reason",
    "cancelled_at",
    "notes",
})


def active_order_clause():
    """SQL form of is_active_order."""
    return or_(
        Order.status.in_(OrderStatus.KITCHEN),
        and_(
            Order.status == OrderStatus.COMPLETED,
            Order.payment_status != PaymentStatus.PAID,
        ),
    )


def generate_order_number(venue_slug: str, now: datetime | None = None) -> str:
    """Human-facing order number, e.g. ``TAS-482913-07``."""
    now = now or utc_now()
    timestamp = str(int(now.timestamp() * 1000))[-6:]
    suffix = f"{random.randint(0, 99):02d}"
    return f"{venue_slug[:3].upper()}-{timestamp}-{suffix}"


class OrderRepository(BaseRepository[Order]):
    """
    Repository for Order entities.

    Guarantees eager loading of items. Table listings are ordered by
    creation time with the id as tie-breaker, so "most recent" is stable.
    """

    @property
    def model(self) -> type[Order]:
        return Order

    def _base_query(self, venue_id: int) -> Select:
        return (
            select(Order)
            .where(Order.venue_id == venue_id)
            .options(selectinload(Order.items))
        )

    def find_by_table(self, venue_id: int, table_id: int) -> Sequence[Order]:
        """Every order ever placed at the table, oldest first."""
        query = (
            self._base_query(venue_id)
            .where(Order.table_id == table_id)
            .order_by(Order.created_at, Order.id)
        )
        return self._db.execute(query).scalars().unique().all()

    def find_active_by_table(
        self,
        venue_id: int,
        table_id: int,
        for_update: bool = False,
    ) -> Sequence[Order]:
        """Active orders at the table, oldest first."""
        query = (
            self._base_query(venue_id)
            .where(Order.table_id == table_id, active_order_clause())
            .order_by(Order.created_at, Order.id)
        )
        if for_update:
            query = query.with_for_update()
        return self._db.execute(query).scalars().unique().all()

    def lock_table(self, venue_id: int, table_id: int) -> Table:
        """
        Load and lock the table row. Serializes writers touching the same
        table (placement, settlement, cancellation).
        """
        table = self._db.scalar(
            select(Table)
            .where(Table.id == table_id, Table.venue_id == venue_id)
            .with_for_update()
        )
        if not table:
            raise TableNotFoundError(table_id, venue_id=venue_id)
        return table

    def create_order(
        self,
        venue_id: int,
        table_id: int,
        staff_id: int,
        lines: Sequence[Any],
        tax_rate: Decimal,
        order_number: str,
        notes: str | None = None,
    ) -> tuple[Order, bool]:
        """
        Persist a placed order built 1:1 from cart lines.

        ``lines`` need menu_item_id, name, unit_price, quantity, line_total,
        variants and notes attributes. The table is marked occupied in the
        same transaction when it is not already.

        Returns:
            (order, is_first_round) where is_first_round is True when the
            table had no active orders before this one.
        """
        if not lines:
            raise ValidationError("Cannot create an order without items", table_id=table_id)

        table = self.lock_table(venue_id, table_id)
        prior_active = self.find_active_by_table(venue_id, table_id)

        subtotal = to_money(sum((Decimal(line.line_total) for line in lines), Decimal(0)))
        tax = percent_of(subtotal, tax_rate)

        order = Order(
            venue_id=venue_id,
            table_id=table_id,
            staff_id=staff_id,
            order_number=order_number,
            subtotal=subtotal,
            tax_rate=Decimal(tax_rate),
            tax=tax,
            total=subtotal + tax,
            status=OrderStatus.PLACED,
            payment_status=PaymentStatus.PENDING,
            notes=notes.strip() if notes and notes.strip() else None,
        )
        order.set_created_by(staff_id)
        order.items = [
            OrderItem(
                position=position,
                menu_item_id=line.menu_item_id,
                name=line.name,
                unit_price=to_money(line.unit_price),
                quantity=line.quantity,
                line_total=to_money(line.line_total),
                variants=list(line.variants or ()) or None,
                notes=line.notes,
            )
            for position, line in enumerate(lines)
        ]
        self.add(order)

        if table.status != TableStatus.OCCUPIED:
            table.status = TableStatus.OCCUPIED
            table.set_updated_by(staff_id)

        return order, not prior_active

    def update_status(
        self,
        order_id: int,
        venue_id: int,
        status: str,
        patch: dict[str, Any] | None = None,
        staff_id: int | None = None,
    ) -> Order:
        """Set an order's status plus any whitelisted settlement/audit fields."""
        if status not in OrderStatus.ALL:
            raise ValidationError(f"Unknown order status '{status}'", order_id=order_id)
        patch = patch or {}
        unknown = set(patch) - PATCHABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be patched: {', '.join(sorted(unknown))}",
                order_id=order_id,
            )

        order = self.find_by_id(order_id, venue_id, for_update=True)
        if not order:
            raise OrderNotFoundError(order_id, venue_id=venue_id)

        order.status = status
        for key, value in patch.items():
            setattr(order, key, value)
        order.set_updated_by(staff_id)
        self._db.flush()
        return order

    def cancel_orders(
        self,
        orders: Sequence[Order],
        reason: str,
        staff_id: int | None = None,
    ) -> list[Order]:
        """Mark every given order cancelled with an audit note."""
        now = utc_now()
        cancelled = []
        for order in orders:
            order.status = OrderStatus.CANCELLED
            order.cancel_reason = reason
            order.cancelled_at = now
            order.set_updated_by(staff_id)
            cancelled.append(order)
        self._db.flush()
        return cancelled
