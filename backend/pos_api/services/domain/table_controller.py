"""
Table order controller.

Owns one table's lifecycle on one terminal. Local state is only a cache:
every push from the order feed re-reads the table and runs reconcile(),
whose effects (clear the cart, heal stale orders) are carried out here.

All public operations are serialized by a per-controller asyncio.Lock.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from decimal import Decimal
from typing import Any, Sequence

from pos_api.services.documents import (
    BillRequest,
    DocumentSink,
    KitchenTicketRequest,
)
from shared.config.constants import LifecycleState, TableStatus
from shared.config.logging import orders_logger as logger
from shared.config.settings import settings
from shared.infrastructure.events import ORDER_CREATED, Event
from shared.infrastructure.retry import RetryPolicy, call_with_retry
from shared.utils.exceptions import (
    AppException,
    EmptyCartError,
    InconsistentStateError,
    InvalidStateError,
    MissingStaffError,
    TransientBackendError,
)
from .cart_service import CartStore
from .coupon_service import CouponValidation
from .order_lifecycle import (
    ClearCart,
    HealStaleOrders,
    Reconciliation,
    RemoteSnapshot,
    TableOrderState,
    latest_order,
    reconcile,
)
from .order_store import OrderStore, SettlementOutcome
from .payment_instruction import CreditPayment, DirectPayment, SplitPayment
from .settlement import BillQuote, quote_bill
from .snapshots import CartLineView, OrderView, TableSnapshot, TableView, VenueView


class TableOrderController:
    """
    Usage:
        controller = TableOrderController(store, cart, sink, venue_id=1, table_id=3, staff_id=9)
        await controller.load()
        await controller.add_to_cart(12, "Paneer Tikka", Decimal("100"), quantity=2)
        order = await controller.place_order()
    """

    def __init__(
        self,
        store: OrderStore,
        cart: CartStore,
        sink: DocumentSink,
        venue_id: int,
        table_id: int,
        staff_id: int | None = None,
        retry_policy: RetryPolicy | None = None,
        hydration_timeout: float | None = None,
    ):
        self.store = store
        self.cart = cart
        self.sink = sink
        self.venue_id = venue_id
        self.table_id = table_id
        self.staff_id = staff_id
        self.retry_policy = retry_policy or RetryPolicy.for_reconciliation()
        self.hydration_timeout = (
            settings.hydration_timeout_seconds if hydration_timeout is None else hydration_timeout
        )
        self.state = TableOrderState(cart_item_count=cart.item_count())
        self.venue: VenueView | None = None
        self.table: TableView | None = None
        self._lock = asyncio.Lock()
        self._unsubscribe = None
        # Customer attached by an AddCustomer command, used by the next payment
        self.customer = None

    # =========================================================================
    # Hydration and push handling
    # =========================================================================

    async def _read_snapshot(self) -> TableSnapshot:
        return await call_with_retry(
            lambda: self.store.load_table_snapshot(self.venue_id, self.table_id),
            self.retry_policy,
            retry_on=(TransientBackendError,),
            description="table snapshot read",
        )

    async def _read_with_timeout(self) -> TableSnapshot | None:
        try:
            return await asyncio.wait_for(self._read_snapshot(), timeout=self.hydration_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Table hydration timed out, continuing with local state",
                venue_id=self.venue_id,
                table_id=self.table_id,
                timeout=self.hydration_timeout,
            )
            return None

    async def load(self) -> TableOrderState:
        """
        Hydrate from the store, reconcile and subscribe to pushes.

        An empty read is trusted only after one delayed re-read, because a
        freshly placed order from another terminal may not be visible yet.
        """
        snapshot = await self._read_with_timeout()
        local_empty = not self.state.has_local_state and self.cart.item_count() == 0
        if snapshot is not None and not snapshot.active_orders and local_empty:
            for attempt in range(self.retry_policy.max_attempts - 1):
                await asyncio.sleep(self.retry_policy.delay_for(attempt))
                retry = await self._read_with_timeout()
                if retry is not None:
                    snapshot = retry
                if snapshot.active_orders:
                    break

        async with self._lock:
            if snapshot is not None:
                await self._apply(snapshot)

        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe_to_orders(self.venue_id, self.on_orders_changed)
        logger.info(
            "Table loaded",
            venue_id=self.venue_id,
            table_id=self.table_id,
            lifecycle=self.state.lifecycle,
            active_orders=len(self.state.active_orders),
        )
        return self.state

    async def on_orders_changed(self, event: Event) -> None:
        """Push handler. Failures are logged, never raised into the feed."""
        if not event.concerns_table(self.table_id):
            return
        async with self._lock:
            # Echo of an order this terminal placed itself; a round started
            # since then must survive it
            if event.type == ORDER_CREATED and self._holds_order(event.entity.get("order_id")):
                return
        try:
            snapshot = await self._read_snapshot()
            async with self._lock:
                await self._apply(snapshot)
        except AppException as e:
            logger.error(
                "Reconciliation after order change failed",
                venue_id=self.venue_id,
                table_id=self.table_id,
                event_type=event.type,
                error=e.detail,
            )

    def _holds_order(self, order_id: Any) -> bool:
        return any(order.id == order_id for order in self.state.active_orders)

    async def _apply(self, snapshot: TableSnapshot) -> Reconciliation:
        """Reconcile against a fresh snapshot and run the effects. Caller holds the lock."""
        self.venue = snapshot.venue
        self.table = snapshot.table
        current = replace(self.state, cart_item_count=self.cart.item_count())
        result = reconcile(current, RemoteSnapshot(snapshot.orders, snapshot.table.status))
        self.state = result.state
        for effect in result.effects:
            await self._execute(effect)
        return result

    async def _execute(self, effect: ClearCart | HealStaleOrders) -> None:
        if isinstance(effect, ClearCart):
            self.cart.clear()
            self.state = replace(self.state, cart_item_count=0)
            return

        issue = InconsistentStateError(self.table_id, list(effect.order_ids))
        logger.warning(
            "Healing inconsistent table state",
            venue_id=self.venue_id,
            detail=str(issue),
        )
        try:
            await self.store.cancel_orders(
                self.venue_id,
                self.table_id,
                effect.reason,
                order_ids=effect.order_ids,
                staff_id=self.staff_id,
            )
        except AppException as e:
            # Forget the attempt so the next push tries again
            self.state = replace(
                self.state,
                healing_order_ids=self.state.healing_order_ids - frozenset(effect.order_ids),
            )
            logger.error(
                "Healing stale orders failed",
                venue_id=self.venue_id,
                table_id=self.table_id,
                order_ids=list(effect.order_ids),
                error=e.detail,
            )

    async def _ensure_context(self) -> None:
        if self.venue is None or self.table is None:
            snapshot = await self._read_snapshot()
            self.venue = snapshot.venue
            self.table = snapshot.table

    def _require(self, *allowed: str) -> None:
        if self.state.lifecycle not in allowed:
            raise InvalidStateError(
                "Table order",
                self.state.lifecycle,
                list(allowed),
                venue_id=self.venue_id,
                table_id=self.table_id,
            )

    def _set_cart_count(self) -> None:
        self.state = replace(self.state, cart_item_count=self.cart.item_count())

    # =========================================================================
    # Cart
    # =========================================================================

    async def add_to_cart(
        self,
        menu_item_id: int,
        name: str,
        unit_price: Any,
        quantity: int = 1,
        variants: list[dict[str, Any]] | None = None,
        notes: str | None = None,
        force_add: bool = False,
    ) -> list[CartLineView]:
        """
        Add an item while building a cart. ``force_add`` (voice commands)
        also reopens the table: placed moves to adding_more, completed starts
        a fresh cart.
        """
        async with self._lock:
            lifecycle = self.state.lifecycle
            if lifecycle not in LifecycleState.EDITABLE:
                if not force_add:
                    self._require(*LifecycleState.EDITABLE)
                if lifecycle == LifecycleState.PLACED:
                    self.state = replace(self.state, lifecycle=LifecycleState.ADDING_MORE)
                elif lifecycle == LifecycleState.COMPLETED:
                    self.cart.clear()
                    self.state = TableOrderState()

            lines = self.cart.add(menu_item_id, name, unit_price, quantity, variants, notes)
            self._set_cart_count()
            return lines

    async def update_cart_quantity(self, item_id: int, quantity: int) -> list[CartLineView]:
        async with self._lock:
            self._require(*LifecycleState.EDITABLE)
            lines = self.cart.update_quantity(item_id, quantity)
            self._set_cart_count()
            return lines

    async def remove_from_cart(self, item_id: int) -> list[CartLineView]:
        async with self._lock:
            self._require(*LifecycleState.EDITABLE)
            lines = self.cart.remove(item_id)
            self._set_cart_count()
            return lines

    async def clear_cart(self) -> None:
        """Empty the cart. Clearing while adding more returns to placed."""
        async with self._lock:
            self._require(*LifecycleState.EDITABLE)
            self.cart.clear()
            lifecycle = self.state.lifecycle
            if lifecycle == LifecycleState.ADDING_MORE and self.state.active_orders:
                lifecycle = LifecycleState.PLACED
            self.state = replace(self.state, lifecycle=lifecycle, cart_item_count=0)

    def cart_lines(self) -> list[CartLineView]:
        return self.cart.get()

    # =========================================================================
    # Orders
    # =========================================================================

    async def place_order(self, notes: str | None = None) -> OrderView:
        """
        Persist the cart as a new order and request its kitchen ticket.
        A failed write leaves the cart and the state untouched.
        """
        async with self._lock:
            self._require(*LifecycleState.EDITABLE)
            if not self.staff_id:
                raise MissingStaffError(venue_id=self.venue_id, table_id=self.table_id)
            lines = self.cart.get()
            if not lines:
                raise EmptyCartError(venue_id=self.venue_id, table_id=self.table_id)
            await self._ensure_context()

            is_additional_round = (
                bool(self.state.active_orders)
                or self.state.lifecycle == LifecycleState.ADDING_MORE
            )
            tax_rate = self.venue.tax_rate
            if tax_rate is None:
                tax_rate = Decimal(str(settings.default_tax_rate))

            order = await self.store.create_order(
                self.venue_id,
                self.table_id,
                self.staff_id,
                lines,
                tax_rate,
                notes=notes,
            )

            self.cart.clear()
            self.table = replace(self.table, status=TableStatus.OCCUPIED)
            self.state = replace(
                self.state,
                lifecycle=LifecycleState.PLACED,
                active_orders=self.state.active_orders + (order,),
                current_order_id=order.id,
                cart_item_count=0,
            )
            self.sink.submit(KitchenTicketRequest(
                venue=self.venue,
                table=self.table,
                order=order,
                is_additional_round=is_additional_round,
            ))
            return order

    async def add_more(self) -> None:
        """Reopen the cart for another round; placed orders stay as they are."""
        async with self._lock:
            self._require(LifecycleState.PLACED)
            self.cart.clear()
            self.state = replace(self.state, lifecycle=LifecycleState.ADDING_MORE, cart_item_count=0)

    async def print_kot(self) -> KitchenTicketRequest:
        """Reprint the kitchen ticket of the most recent active order."""
        async with self._lock:
            order = latest_order(self.state.active_orders)
            if order is None:
                raise InvalidStateError(
                    "Table order",
                    self.state.lifecycle,
                    [LifecycleState.PLACED, LifecycleState.ADDING_MORE],
                    table_id=self.table_id,
                )
            await self._ensure_context()
            request = KitchenTicketRequest(
                venue=self.venue,
                table=self.table,
                order=order,
                is_additional_round=len(self.state.active_orders) > 1,
                is_reprint=True,
            )
            self.sink.submit(request)
            return request

    async def start_new_order(self) -> None:
        async with self._lock:
            self._require(LifecycleState.COMPLETED)
            self.cart.clear()
            self.state = TableOrderState()

    async def cancel_all_orders(self, reason: str = "Cancelled by staff") -> list[OrderView]:
        """Cancel every active order in one transaction and free the table."""
        async with self._lock:
            self._require(LifecycleState.PLACED, LifecycleState.ADDING_MORE)
            try:
                cancelled = await self.store.cancel_orders(
                    self.venue_id,
                    self.table_id,
                    reason,
                    staff_id=self.staff_id,
                )
            except AppException as e:
                logger.error(
                    "Cancelling table orders failed",
                    venue_id=self.venue_id,
                    table_id=self.table_id,
                    order_ids=[o.id for o in self.state.active_orders],
                    error=e.detail,
                )
                raise

            self.cart.clear()
            if self.table is not None:
                self.table = replace(self.table, status=TableStatus.AVAILABLE)
            self.state = TableOrderState()
            return cancelled

    # =========================================================================
    # Payment
    # =========================================================================

    def _billable_lines(self) -> Sequence[Any]:
        if self.state.active_orders:
            return [item for order in self.state.active_orders for item in order.items]
        return self.cart.get()

    async def validate_coupon(
        self,
        code: str,
        customer_id: int | None = None,
        payment_method: str | None = None,
    ) -> CouponValidation:
        """Evaluate a coupon against the combined orders (or the cart before placement)."""
        return await self.store.validate_coupon(
            self.venue_id,
            code,
            self._billable_lines(),
            customer_id=customer_id,
            payment_method=payment_method,
        )

    async def quote(
        self,
        coupon_discount: Any = 0,
        manual_discount: Any = 0,
        manual_discount_type: str = "fixed",
        tip: Any = 0,
    ) -> BillQuote:
        await self._ensure_context()
        return quote_bill(
            self.state.active_orders,
            self.venue.tax_rate,
            coupon_discount=coupon_discount,
            manual_discount=manual_discount,
            manual_discount_type=manual_discount_type,
            tip=tip,
        )

    async def handle_payment(
        self,
        instruction: DirectPayment | CreditPayment | SplitPayment,
    ) -> SettlementOutcome:
        """
        Settle all active orders with one combined payment, free the table
        and request one combined bill. Never retried here.
        """
        async with self._lock:
            self._require(LifecycleState.PLACED, LifecycleState.ADDING_MORE)
            if not self.state.active_orders:
                raise InvalidStateError(
                    "Table order",
                    self.state.lifecycle,
                    ["placed with active orders"],
                    table_id=self.table_id,
                )
            await self._ensure_context()

            outcome = await self.store.settle_table(
                self.venue_id,
                self.table_id,
                instruction,
                staff_id=self.staff_id,
                expected_order_ids=[o.id for o in self.state.active_orders],
            )

            self.cart.clear()
            self.table = outcome.table
            self.state = TableOrderState(lifecycle=LifecycleState.COMPLETED)
            self.customer = None
            self.sink.submit(BillRequest(
                venue=self.venue,
                table=self.table,
                orders=outcome.orders,
                instruction=instruction,
            ))
            return outcome

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.cart.close()
