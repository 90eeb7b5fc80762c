"""
Order lifecycle reducer.

reconcile() merges what a terminal believes about a table with what the
database says, and returns the corrected state plus the side effects the
caller must carry out. It is pure: no I/O, no clock.

States:
    cart -> placed -> adding_more -> placed -> completed
    placed | adding_more --cancel--> cart
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Union

from shared.config.constants import LifecycleState, TableStatus
from .snapshots import OrderView


@dataclass(frozen=True, slots=True)
class TableOrderState:
    """A terminal's view of one table."""

    lifecycle: str = LifecycleState.CART
    active_orders: tuple[OrderView, ...] = ()
    current_order_id: int | None = None
    cart_item_count: int = 0
    # Orders already sent for healing; never re-sent while still active
    healing_order_ids: frozenset[int] = field(default_factory=frozenset)

    @property
    def has_local_state(self) -> bool:
        return (
            self.lifecycle != LifecycleState.CART
            or self.cart_item_count > 0
            or bool(self.active_orders)
        )


@dataclass(frozen=True, slots=True)
class RemoteSnapshot:
    """The table's orders (any status) and table status as just read."""

    orders: tuple[OrderView, ...]
    table_status: str

    @property
    def active_orders(self) -> tuple[OrderView, ...]:
        return tuple(order for order in self.orders if order.is_active)


@dataclass(frozen=True, slots=True)
class ClearCart:
    pass


@dataclass(frozen=True, slots=True)
class HealStaleOrders:
    order_ids: tuple[int, ...]
    reason: str


Effect = Union[ClearCart, HealStaleOrders]


@dataclass(frozen=True, slots=True)
class Reconciliation:
    state: TableOrderState
    effects: tuple[Effect, ...] = ()


STALE_ORDER_REASON = "Auto-cancelled: table was available while the order was still active"


def latest_order(orders: tuple[OrderView, ...]) -> OrderView | None:
    """Most recently created order (id breaks ties)."""
    if not orders:
        return None
    return max(orders, key=lambda order: (order.created_at, order.id))


def reconcile(state: TableOrderState, snapshot: RemoteSnapshot) -> Reconciliation:
    """
    Rules, in priority order:

    1. Table available but orders still active: the orders are stale. Heal
       them (cancel) unless they are already being healed, clear the cart
       and go back to cart.
    2. Active orders exist: the table is in service. Every state, including
       adding_more, becomes placed and leftover cart lines are cleared.
    3. No active orders: placed and adding_more fall back to cart.
       cart and completed are left alone.
    """
    active = snapshot.active_orders
    active_ids = {order.id for order in active}
    healing = frozenset(state.healing_order_ids & active_ids)

    if snapshot.table_status == TableStatus.AVAILABLE and active:
        to_heal = tuple(sorted(active_ids - healing))
        effects: list[Effect] = []
        cart_item_count = state.cart_item_count
        if to_heal:
            effects.append(HealStaleOrders(order_ids=to_heal, reason=STALE_ORDER_REASON))
            effects.append(ClearCart())
            cart_item_count = 0
        new_state = TableOrderState(
            lifecycle=LifecycleState.CART,
            active_orders=(),
            current_order_id=None,
            cart_item_count=cart_item_count,
            healing_order_ids=healing | frozenset(to_heal),
        )
        return Reconciliation(new_state, tuple(effects))

    if active:
        current = latest_order(active)
        effects = (ClearCart(),) if state.cart_item_count > 0 else ()
        return Reconciliation(
            TableOrderState(
                lifecycle=LifecycleState.PLACED,
                active_orders=active,
                current_order_id=current.id,
                cart_item_count=0,
                healing_order_ids=healing,
            ),
            effects,
        )

    lifecycle = state.lifecycle
    if lifecycle in (LifecycleState.PLACED, LifecycleState.ADDING_MORE):
        lifecycle = LifecycleState.CART
    return Reconciliation(replace(
        state,
        lifecycle=lifecycle,
        active_orders=(),
        current_order_id=None,
        healing_order_ids=healing,
    ))
