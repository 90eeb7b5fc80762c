"""
Immutable views of persisted rows.

Async callers never touch ORM instances: the order store builds these
inside the worker thread, before its session closes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from shared.config.constants import is_active_order
from shared.utils.clock import ensure_utc


@dataclass(frozen=True, slots=True)
class VenueView:
    id: int
    name: str
    slug: str
    tax_rate: Decimal
    address: str | None = None
    phone: str | None = None

    @classmethod
    def from_model(cls, venue: Any) -> "VenueView":
        return cls(
            id=venue.id,
            name=venue.name,
            slug=venue.slug,
            tax_rate=Decimal(venue.tax_rate),
            address=venue.address,
            phone=venue.phone,
        )


@dataclass(frozen=True, slots=True)
class TableView:
    id: int
    venue_id: int
    number: int
    status: str
    area: str | None = None
    capacity: int = 4

    @classmethod
    def from_model(cls, table: Any) -> "TableView":
        return cls(
            id=table.id,
            venue_id=table.venue_id,
            number=table.number,
            status=table.status,
            area=table.area,
            capacity=table.capacity,
        )


@dataclass(frozen=True, slots=True)
class CartLineView:
    """A cart line as handed to order placement and coupon evaluation."""

    line_id: int
    menu_item_id: int
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    variants: tuple[dict[str, Any], ...] = ()
    notes: str | None = None

    @classmethod
    def from_model(cls, line: Any) -> "CartLineView":
        return cls(
            line_id=line.id,
            menu_item_id=line.menu_item_id,
            name=line.name,
            unit_price=Decimal(line.unit_price),
            quantity=line.quantity,
            line_total=Decimal(line.line_total),
            variants=tuple(line.variants or ()),
            notes=line.notes,
        )


@dataclass(frozen=True, slots=True)
class OrderLineView:
    menu_item_id: int
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    variants: tuple[dict[str, Any], ...] = ()
    notes: str | None = None

    @classmethod
    def from_model(cls, item: Any) -> "OrderLineView":
        return cls(
            menu_item_id=item.menu_item_id,
            name=item.name,
            unit_price=Decimal(item.unit_price),
            quantity=item.quantity,
            line_total=Decimal(item.line_total),
            variants=tuple(item.variants or ()),
            notes=item.notes,
        )


@dataclass(frozen=True, slots=True)
class OrderView:
    id: int
    venue_id: int
    table_id: int
    staff_id: int
    order_number: str
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    status: str
    payment_status: str
    created_at: datetime
    items: tuple[OrderLineView, ...] = ()
    notes: str | None = None
    payment_method: str | None = None
    final_total: Decimal | None = None
    amount_received: Decimal | None = None
    discount_amount: Decimal | None = None
    tip: Decimal | None = None
    credit_amount: Decimal | None = None
    credit_id: int | None = None
    applied_coupon_code: str | None = None
    paid_at: datetime | None = None
    cancel_reason: str | None = None
    cancelled_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return is_active_order(self.status, self.payment_status)

    @property
    def original_total(self) -> Decimal:
        return self.subtotal + self.tax

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @classmethod
    def from_model(cls, order: Any) -> "OrderView":
        return cls(
            id=order.id,
            venue_id=order.venue_id,
            table_id=order.table_id,
            staff_id=order.staff_id,
            order_number=order.order_number,
            subtotal=Decimal(order.subtotal),
            tax_rate=Decimal(order.tax_rate),
            tax=Decimal(order.tax),
            total=Decimal(order.total),
            status=order.status,
            payment_status=order.payment_status,
            created_at=ensure_utc(order.created_at),
            items=tuple(OrderLineView.from_model(item) for item in order.items),
            notes=order.notes,
            payment_method=order.payment_method,
            final_total=order.final_total,
            amount_received=order.amount_received,
            discount_amount=order.discount_amount,
            tip=order.tip,
            credit_amount=order.credit_amount,
            credit_id=order.credit_id,
            applied_coupon_code=order.applied_coupon_code,
            paid_at=ensure_utc(order.paid_at),
            cancel_reason=order.cancel_reason,
            cancelled_at=ensure_utc(order.cancelled_at),
        )


@dataclass(frozen=True, slots=True)
class TableSnapshot:
    """Everything a terminal needs to rebuild a table's state from the store."""

    venue: VenueView
    table: TableView
    orders: tuple[OrderView, ...] = field(default_factory=tuple)

    @property
    def active_orders(self) -> tuple[OrderView, ...]:
        return tuple(order for order in self.orders if order.is_active)
