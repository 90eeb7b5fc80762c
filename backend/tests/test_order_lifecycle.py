"""
Tests for the lifecycle reducer.

The reducer is pure, so every case is a (state, snapshot) -> (state, effects)
check without a database.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from hypothesis import given, strategies as st

from pos_api.services.domain.order_lifecycle import (
    ClearCart,
    HealStaleOrders,
    RemoteSnapshot,
    STALE_ORDER_REASON,
    TableOrderState,
    latest_order,
    reconcile,
)
from pos_api.services.domain.snapshots import OrderView
from shared.config.constants import LifecycleState, OrderStatus, PaymentStatus, TableStatus


BASE_TIME = datetime(2024, 6, 5, 12, 0, tzinfo=timezone.utc)


def view(order_id: int, status: str = OrderStatus.PLACED, payment_status: str = PaymentStatus.PENDING,
         minutes: int = 0) -> OrderView:
    return OrderView(
        id=order_id,
        venue_id=1,
        table_id=3,
        staff_id=7,
        order_number=f"TES-000001-{order_id:02d}",
        subtotal=Decimal("200.00"),
        tax_rate=Decimal("8.50"),
        tax=Decimal("17.00"),
        total=Decimal("217.00"),
        status=status,
        payment_status=payment_status,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def snapshot(*orders: OrderView, table_status: str = TableStatus.OCCUPIED) -> RemoteSnapshot:
    return RemoteSnapshot(orders=tuple(orders), table_status=table_status)


class TestInService:
    """Active orders on an occupied table."""

    def test_cart_with_active_orders_becomes_placed(self):
        """Should adopt orders placed elsewhere and drop leftover cart lines."""
        state = TableOrderState(lifecycle=LifecycleState.CART, cart_item_count=2)

        result = reconcile(state, snapshot(view(1)))

        assert result.state.lifecycle == LifecycleState.PLACED
        assert result.state.current_order_id == 1
        assert result.state.cart_item_count == 0
        assert result.effects == (ClearCart(),)

    def test_empty_cart_needs_no_clear(self):
        result = reconcile(TableOrderState(), snapshot(view(1)))

        assert result.effects == ()

    def test_adding_more_is_forced_back_to_placed(self):
        """Should drop a round in progress once the table's orders change."""
        state = TableOrderState(lifecycle=LifecycleState.ADDING_MORE, cart_item_count=3)

        result = reconcile(state, snapshot(view(1), view(2, minutes=5)))

        assert result.state.lifecycle == LifecycleState.PLACED
        assert result.state.cart_item_count == 0
        assert result.state.current_order_id == 2
        assert result.effects == (ClearCart(),)

    def test_completed_terminal_adopts_new_orders(self):
        state = TableOrderState(lifecycle=LifecycleState.COMPLETED)

        result = reconcile(state, snapshot(view(9)))

        assert result.state.lifecycle == LifecycleState.PLACED

    def test_completed_but_unpaid_order_counts_as_active(self):
        result = reconcile(TableOrderState(), snapshot(view(1, status=OrderStatus.COMPLETED)))

        assert result.state.lifecycle == LifecycleState.PLACED

    def test_paid_and_cancelled_orders_are_ignored(self):
        orders = (
            view(1, status=OrderStatus.COMPLETED, payment_status=PaymentStatus.PAID),
            view(2, status=OrderStatus.CANCELLED),
        )
        state = TableOrderState(lifecycle=LifecycleState.PLACED, active_orders=(view(1),), current_order_id=1)

        result = reconcile(state, snapshot(*orders))

        assert result.state.lifecycle == LifecycleState.CART
        assert result.state.active_orders == ()
        assert result.state.current_order_id is None


class TestNoActiveOrders:
    def test_placed_falls_back_to_cart(self):
        """Should return to cart when another terminal settled the table."""
        state = TableOrderState(lifecycle=LifecycleState.PLACED, active_orders=(view(1),), current_order_id=1)

        result = reconcile(state, snapshot(table_status=TableStatus.AVAILABLE))

        assert result.state.lifecycle == LifecycleState.CART
        assert result.effects == ()

    def test_adding_more_keeps_cart_lines(self):
        state = TableOrderState(lifecycle=LifecycleState.ADDING_MORE, cart_item_count=2)

        result = reconcile(state, snapshot(table_status=TableStatus.AVAILABLE))

        assert result.state.lifecycle == LifecycleState.CART
        assert result.state.cart_item_count == 2

    def test_completed_is_left_alone(self):
        state = TableOrderState(lifecycle=LifecycleState.COMPLETED)

        result = reconcile(state, snapshot(table_status=TableStatus.AVAILABLE))

        assert result.state.lifecycle == LifecycleState.COMPLETED


class TestStaleOrderHealing:
    """An available table with active orders is inconsistent."""

    def test_heals_stale_orders_and_clears_cart(self):
        state = TableOrderState(lifecycle=LifecycleState.PLACED, cart_item_count=1)

        result = reconcile(state, snapshot(view(2), view(1), table_status=TableStatus.AVAILABLE))

        assert result.state.lifecycle == LifecycleState.CART
        assert result.state.active_orders == ()
        assert result.effects == (
            HealStaleOrders(order_ids=(1, 2), reason=STALE_ORDER_REASON),
            ClearCart(),
        )
        assert result.state.healing_order_ids == frozenset({1, 2})

    def test_healing_is_not_repeated(self):
        """Should not re-send orders that are already being healed."""
        stale = snapshot(view(1), table_status=TableStatus.AVAILABLE)
        first = reconcile(TableOrderState(), stale)

        second = reconcile(first.state, stale)

        assert second.effects == ()
        assert second.state.healing_order_ids == frozenset({1})

    def test_after_heal_reducer_is_a_no_op(self):
        """Should settle into cart once the healed orders come back cancelled."""
        first = reconcile(TableOrderState(), snapshot(view(1), table_status=TableStatus.AVAILABLE))

        healed = snapshot(view(1, status=OrderStatus.CANCELLED), table_status=TableStatus.AVAILABLE)
        second = reconcile(first.state, healed)
        third = reconcile(second.state, healed)

        assert second.effects == ()
        assert second.state.healing_order_ids == frozenset()
        assert third.state == second.state
        assert third.effects == ()


class TestLatestOrder:
    def test_newest_by_created_at(self):
        assert latest_order((view(5, minutes=1), view(3, minutes=9))).id == 3

    def test_id_breaks_ties(self):
        assert latest_order((view(5), view(6))).id == 6

    def test_empty(self):
        assert latest_order(()) is None


class TestReducerProperties:
    @given(
        lifecycle=st.sampled_from([
            LifecycleState.CART, LifecycleState.PLACED, LifecycleState.ADDING_MORE, LifecycleState.COMPLETED,
        ]),
        cart_items=st.integers(min_value=0, max_value=5),
        statuses=st.lists(st.sampled_from(OrderStatus.ALL), max_size=4),
        table_status=st.sampled_from(TableStatus.ALL),
    )
    def test_reconcile_is_idempotent(self, lifecycle, cart_items, statuses, table_status):
        """Should produce no further effects when applied to its own output."""
        orders = [view(i + 1, status=status, minutes=i) for i, status in enumerate(statuses)]
        remote = snapshot(*orders, table_status=table_status)

        first = reconcile(TableOrderState(lifecycle=lifecycle, cart_item_count=cart_items), remote)
        second = reconcile(first.state, remote)

        assert second.state == first.state
        assert second.effects == ()
