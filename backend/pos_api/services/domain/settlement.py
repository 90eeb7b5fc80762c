"""
Settlement arithmetic.

Pure functions: no database, no clock. Given the table's active orders and
one aggregate payment instruction, compute each order's share of every
monetary field. Shares are apportioned on whole cents with the largest
remainder method so they always add back to the aggregate exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Literal, Sequence

from shared.utils.exceptions import ValidationError
from shared.utils.money import ZERO, apportion, clamp_money, percent_of, to_money


PROPORTION_QUANTUM = Decimal("0.00000001")


@dataclass(frozen=True, slots=True)
class OrderSettlement:
    """One order's slice of a combined payment."""

    order_id: int
    proportion: Decimal
    final_total: Decimal
    amount_received: Decimal
    discount_amount: Decimal
    manual_discount_amount: Decimal
    coupon_discount_amount: Decimal
    tip: Decimal
    credit_amount: Decimal


def order_original_total(order: Any) -> Decimal:
    """Canonical per-order amount for proportions: subtotal + tax."""
    return to_money(Decimal(order.subtotal) + Decimal(order.tax))


def settlement_proportions(orders: Sequence[Any]) -> list[Decimal]:
    """Each order's share of the combined original total (even split when it is zero)."""
    totals = [order_original_total(order) for order in orders]
    grand = sum(totals, Decimal(0))
    if grand == 0:
        return [(Decimal(1) / len(orders)).quantize(PROPORTION_QUANTUM) for _ in orders]
    return [(total / grand).quantize(PROPORTION_QUANTUM) for total in totals]


def allocate_settlement(orders: Sequence[Any], instruction: Any) -> list[OrderSettlement]:
    """
    Split an aggregate payment across orders in proportion to their
    original totals.

    Args:
        orders: Active orders with id, subtotal and tax, in a stable order.
        instruction: A payment instruction (final_total, amount_received,
            tip, credit_amount and a DiscountBreakdown).

    Returns:
        One OrderSettlement per order, in input order. For every field the
        shares sum exactly to the instruction's aggregate.
    """
    if not orders:
        raise ValidationError("No active orders to settle")

    weights = [order_original_total(order) for order in orders]
    proportions = settlement_proportions(orders)

    discount = instruction.discount
    columns = {
        "final_total": apportion(instruction.final_total, weights),
        "amount_received": apportion(instruction.amount_received, weights),
        "manual_discount_amount": apportion(discount.manual_discount_amount, weights),
        "coupon_discount_amount": apportion(discount.coupon_discount_amount, weights),
        "tip": apportion(instruction.tip, weights),
        "credit_amount": apportion(instruction.credit_amount, weights),
    }

    settlements = []
    for i, order in enumerate(orders):
        manual = columns["manual_discount_amount"][i]
        coupon = columns["coupon_discount_amount"][i]
        settlements.append(OrderSettlement(
            order_id=order.id,
            proportion=proportions[i],
            final_total=columns["final_total"][i],
            amount_received=columns["amount_received"][i],
            discount_amount=manual + coupon,
            manual_discount_amount=manual,
            coupon_discount_amount=coupon,
            tip=columns["tip"][i],
            credit_amount=columns["credit_amount"][i],
        ))
    return settlements


# =============================================================================
# Bill quote
# =============================================================================


@dataclass(frozen=True, slots=True)
class BillQuote:
    """The combined bill as shown at the counter before payment."""

    subtotal: Decimal
    original_tax: Decimal
    coupon_discount_amount: Decimal
    manual_discount_amount: Decimal
    discounted_subtotal: Decimal
    tax: Decimal
    tip: Decimal
    final_total: Decimal

    @property
    def total_discount(self) -> Decimal:
        return self.coupon_discount_amount + self.manual_discount_amount


def quote_bill(
    orders: Sequence[Any],
    tax_rate: Any,
    coupon_discount: Any = ZERO,
    manual_discount: Any = ZERO,
    manual_discount_type: Literal["fixed", "percentage"] = "fixed",
    tip: Any = ZERO,
) -> BillQuote:
    """
    Price the combined bill for a table's active orders.

    Discounts come off the subtotal, tax is recomputed on what is left,
    and the tip is added last:

        discounted = max(0, subtotal - coupon - manual)
        final      = discounted + tax(discounted) + tip

    A percentage manual discount is taken on the subtotal; either kind is
    capped at the subtotal.
    """
    subtotal = to_money(sum((Decimal(order.subtotal) for order in orders), Decimal(0)))
    coupon = clamp_money(coupon_discount, subtotal)

    if manual_discount_type == "percentage":
        manual = clamp_money(percent_of(subtotal, manual_discount), subtotal)
    else:
        manual = clamp_money(manual_discount, subtotal)

    discounted = max(ZERO, subtotal - coupon - manual)
    tax = percent_of(discounted, tax_rate)
    tip = to_money(tip)

    return BillQuote(
        subtotal=subtotal,
        original_tax=percent_of(subtotal, tax_rate),
        coupon_discount_amount=coupon,
        manual_discount_amount=manual,
        discounted_subtotal=discounted,
        tax=tax,
        tip=tip,
        final_total=discounted + tax + tip,
    )
