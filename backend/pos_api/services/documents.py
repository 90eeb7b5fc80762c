"""
Kitchen ticket and bill documents.

Plain-text renderings plus the requests the lifecycle controller emits.
Printing or delivery is up to the DocumentSink the terminal is wired to.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol, Sequence

from pos_api.services.domain.snapshots import OrderView, TableView, VenueView
from shared.config.logging import get_logger
from shared.utils.clock import utc_now
from shared.utils.money import ZERO, to_money

logger = get_logger(__name__)

WIDTH = 40


@dataclass(frozen=True, slots=True)
class KitchenTicketRequest:
    venue: VenueView
    table: TableView
    order: OrderView
    is_additional_round: bool = False
    is_reprint: bool = False


@dataclass(frozen=True, slots=True)
class BillRequest:
    """One combined bill for every order settled together."""

    venue: VenueView
    table: TableView
    orders: tuple[OrderView, ...]
    instruction: Any
    issued_at: datetime = field(default_factory=utc_now)


class DocumentSink(Protocol):
    def submit(self, request: KitchenTicketRequest | BillRequest) -> None: ...


class CollectingDocumentSink:
    """Keeps requests in memory (API responses read them back, tests assert on them)."""

    def __init__(self) -> None:
        self.requests: list[KitchenTicketRequest | BillRequest] = []

    def submit(self, request: KitchenTicketRequest | BillRequest) -> None:
        self.requests.append(request)
        logger.debug("Document requested", kind=type(request).__name__)

    @property
    def kitchen_tickets(self) -> list[KitchenTicketRequest]:
        return [r for r in self.requests if isinstance(r, KitchenTicketRequest)]

    @property
    def bills(self) -> list[BillRequest]:
        return [r for r in self.requests if isinstance(r, BillRequest)]

    def clear(self) -> None:
        self.requests.clear()


def _row(label: str, value: Any) -> str:
    value = str(value)
    return f"{label}{' ' * max(1, WIDTH - len(label) - len(value))}{value}"


def _variant_suffix(variants: Sequence[dict[str, Any]]) -> str:
    names = [str(v.get("option") or v.get("name")) for v in variants if v.get("option") or v.get("name")]
    return f" ({', '.join(names)})" if names else ""


def render_kitchen_ticket(request: KitchenTicketRequest) -> str:
    """Items of one order only; earlier rounds are never reprinted with it."""
    order = request.order
    title = "KITCHEN ORDER TICKET"
    if request.is_additional_round:
        title += " - ADDITIONAL"
    if request.is_reprint:
        title += " (REPRINT)"

    lines = [
        request.venue.name.center(WIDTH),
        title.center(WIDTH),
        "-" * WIDTH,
        _row("Order", f"#{order.order_number}"),
        _row("Table", request.table.number),
        _row("Time", order.created_at.strftime("%Y-%m-%d %H:%M")),
        "-" * WIDTH,
    ]
    for item in order.items:
        lines.append(f"{item.quantity} x {item.name}{_variant_suffix(item.variants)}")
        if item.notes:
            lines.append(f"    note: {item.notes}")
    if order.notes:
        lines += ["-" * WIDTH, f"Notes: {order.notes}"]
    lines.append("-" * WIDTH)
    lines.append(_row("Items", order.item_count))
    return "\n".join(lines)


def render_bill(request: BillRequest) -> str:
    """Customer bill for all orders settled in one payment."""
    instruction = request.instruction
    discount = instruction.discount
    subtotal = to_money(sum((o.subtotal for o in request.orders), Decimal(0)))
    total_discount = to_money(discount.manual_discount_amount + discount.coupon_discount_amount)
    discounted = max(ZERO, subtotal - total_discount)
    tip = to_money(instruction.tip)
    tax = to_money(instruction.final_total - discounted - tip)

    lines = [request.venue.name.center(WIDTH)]
    if request.venue.address:
        lines.append(request.venue.address.center(WIDTH))
    lines += [
        "-" * WIDTH,
        _row("Table", request.table.number),
        _row("Orders", ", ".join(f"#{o.order_number}" for o in request.orders)),
        _row("Date", request.issued_at.strftime("%Y-%m-%d %H:%M")),
        "-" * WIDTH,
    ]
    for order in request.orders:
        for item in order.items:
            label = f"{item.quantity} x {item.name}{_variant_suffix(item.variants)}"
            lines.append(_row(label[: WIDTH - 12], to_money(item.line_total)))
    for free in discount.free_items:
        lines.append(_row(f"{free.quantity} x {free.name} (free)"[: WIDTH - 12], "0.00"))

    lines += ["-" * WIDTH, _row("Subtotal", subtotal)]
    if discount.coupon_discount_amount > 0:
        label = f"Coupon {discount.coupon_code}" if discount.coupon_code else "Coupon"
        lines.append(_row(label, f"-{to_money(discount.coupon_discount_amount)}"))
    if discount.manual_discount_amount > 0:
        lines.append(_row("Discount", f"-{to_money(discount.manual_discount_amount)}"))
    lines.append(_row(f"Tax ({request.venue.tax_rate}%)", tax))
    if tip > 0:
        lines.append(_row("Tip", tip))
    lines += [
        "=" * WIDTH,
        _row("TOTAL", to_money(instruction.final_total)),
        _row(f"Paid ({instruction.recorded_method})", instruction.amount_received),
    ]
    if getattr(instruction, "parts", None):
        for part in instruction.parts:
            lines.append(_row(f"  {part.method}", to_money(part.amount)))
    change = to_money(instruction.amount_received - instruction.final_total)
    if change > 0:
        lines.append(_row("Change", change))
    if instruction.credit_amount > 0:
        lines.append(_row(f"Credit ({instruction.customer_name})", instruction.credit_amount))
    lines += ["-" * WIDTH, "Thank you!".center(WIDTH)]
    return "\n".join(lines)
