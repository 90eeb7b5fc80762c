"""
Order Store.

Async facade over the order database used by the lifecycle controller.
Synchronous SQLAlchemy work runs in a worker thread, each call in its own
session, and only immutable views leave it. After every committed write
an Event goes out on the order feed.

Persistence failures surface as TransientBackendError; nothing here
retries, callers decide (reads may retry, money writes never do).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from pos_api.repositories import (
    MenuItemRepository,
    OrderRepository,
    TableRepository,
    generate_order_number,
)
from pos_api.services.events import OrderChangeCallback, OrderFeed, Unsubscribe
from shared.config.constants import TableStatus
from shared.config.logging import orders_logger as logger
from shared.infrastructure.db import safe_commit
from shared.infrastructure.events import (
    ORDER_CREATED,
    ORDER_STATUS_CHANGED,
    ORDERS_CANCELLED,
    ORDERS_SETTLED,
    Event,
)
from shared.utils.exceptions import TableNotFoundError, TransientBackendError, VenueNotFoundError
from .coupon_service import CouponService, CouponValidation
from .payment_instruction import CreditPayment, DirectPayment, SplitPayment
from .payment_service import PaymentService
from .snapshots import OrderView, TableSnapshot, TableView, VenueView

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class SettlementOutcome:
    orders: tuple[OrderView, ...]
    table: TableView
    credit_id: int | None = None
    redemption_id: int | None = None


class OrderStore:
    """
    Usage:
        store = OrderStore(SessionLocal, LocalOrderFeed())
        order = await store.create_order(1, 3, staff_id=9, items=lines, tax_rate=Decimal("8.5"))
    """

    def __init__(self, session_factory: sessionmaker, feed: OrderFeed):
        self._session_factory = session_factory
        self.feed = feed

    async def _run(self, operation: str, fn: Callable[[Session], T]) -> T:
        def work() -> T:
            with self._session_factory() as db:
                return fn(db)

        try:
            return await asyncio.to_thread(work)
        except SQLAlchemyError as e:
            raise TransientBackendError(operation, error=str(e)) from e

    async def _publish(self, event_type: str, venue_id: int, table_id: int | None, entity: dict[str, Any], staff_id: int | None = None) -> None:
        await self.feed.publish(Event(
            type=event_type,
            venue_id=venue_id,
            table_id=table_id,
            entity=entity,
            actor={"staff_id": staff_id} if staff_id is not None else {},
        ))

    def subscribe_to_orders(self, venue_id: int, on_change: OrderChangeCallback) -> Unsubscribe:
        return self.feed.subscribe(venue_id, on_change)

    # =========================================================================
    # Reads
    # =========================================================================

    async def load_table_snapshot(self, venue_id: int, table_id: int) -> TableSnapshot:
        def read(db: Session) -> TableSnapshot:
            venue = MenuItemRepository(db).find_venue(venue_id)
            if not venue:
                raise VenueNotFoundError(venue_id)
            # Orders before the table: a placement committing in between then
            # shows up as "occupied, no order yet", never "available with orders"
            orders = OrderRepository(db).find_by_table(venue_id, table_id)
            table = TableRepository(db).find_by_id(table_id, venue_id)
            if not table:
                raise TableNotFoundError(table_id, venue_id=venue_id)
            return TableSnapshot(
                venue=VenueView.from_model(venue),
                table=TableView.from_model(table),
                orders=tuple(OrderView.from_model(order) for order in orders),
            )

        return await self._run("table read", read)

    async def get_orders_by_table(self, venue_id: int, table_id: int) -> list[OrderView]:
        def read(db: Session) -> list[OrderView]:
            return [
                OrderView.from_model(order)
                for order in OrderRepository(db).find_by_table(venue_id, table_id)
            ]

        return await self._run("order read", read)

    async def validate_coupon(
        self,
        venue_id: int,
        code: str,
        cart: Sequence[Any],
        customer_id: int | None = None,
        payment_method: str | None = None,
    ) -> CouponValidation:
        return await self._run(
            "coupon validation",
            lambda db: CouponService(db).validate(venue_id, code, cart, customer_id, payment_method),
        )

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_order(
        self,
        venue_id: int,
        table_id: int,
        staff_id: int,
        items: Sequence[Any],
        tax_rate: Decimal,
        notes: str | None = None,
    ) -> OrderView:
        """Persist a placed order and mark the table occupied when needed."""

        def write(db: Session) -> tuple[OrderView, bool]:
            venue = MenuItemRepository(db).find_venue(venue_id)
            if not venue:
                raise VenueNotFoundError(venue_id)
            try:
                order, first_round = OrderRepository(db).create_order(
                    venue_id=venue_id,
                    table_id=table_id,
                    staff_id=staff_id,
                    lines=items,
                    tax_rate=tax_rate,
                    order_number=generate_order_number(venue.slug),
                    notes=notes,
                )
                safe_commit(db)
            except Exception:
                db.rollback()
                raise
            db.refresh(order)
            return OrderView.from_model(order), first_round

        view, first_round = await self._run("order placement", write)
        logger.info(
            "Order placed",
            venue_id=venue_id,
            table_id=table_id,
            order_id=view.id,
            order_number=view.order_number,
            total=str(view.total),
            first_round=first_round,
        )
        await self._publish(
            ORDER_CREATED,
            venue_id,
            table_id,
            {"order_id": view.id, "table_status": TableStatus.OCCUPIED},
            staff_id,
        )
        return view

    async def update_order_status(
        self,
        order_id: int,
        venue_id: int,
        status: str,
        patch: dict[str, Any] | None = None,
        staff_id: int | None = None,
    ) -> OrderView:
        def write(db: Session) -> OrderView:
            try:
                order = OrderRepository(db).update_status(order_id, venue_id, status, patch, staff_id)
                safe_commit(db)
            except Exception:
                db.rollback()
                raise
            db.refresh(order)
            return OrderView.from_model(order)

        view = await self._run("order status update", write)
        await self._publish(
            ORDER_STATUS_CHANGED,
            venue_id,
            view.table_id,
            {"order_id": view.id, "status": view.status},
            staff_id,
        )
        return view

    async def cancel_orders(
        self,
        venue_id: int,
        table_id: int,
        reason: str,
        order_ids: Sequence[int] | None = None,
        staff_id: int | None = None,
    ) -> list[OrderView]:
        """
        Cancel active orders at a table and mark it available, all in one
        transaction. With ``order_ids`` only those (still active) orders are
        cancelled; orders that stopped being active meanwhile are skipped.
        That targeted form is the stale-order heal: it only applies while the
        locked table still reads ``available``, otherwise nothing changes.
        """

        def write(db: Session) -> list[OrderView]:
            repo = OrderRepository(db)
            try:
                table = repo.lock_table(venue_id, table_id)
                if order_ids is not None and table.status != TableStatus.AVAILABLE:
                    db.rollback()
                    return []
                active = repo.find_active_by_table(venue_id, table_id, for_update=True)
                if order_ids is not None:
                    wanted = set(order_ids)
                    active = [order for order in active if order.id in wanted]
                cancelled = repo.cancel_orders(active, reason, staff_id)
                table.status = TableStatus.AVAILABLE
                table.set_updated_by(staff_id)
                safe_commit(db)
            except Exception:
                db.rollback()
                raise
            return [OrderView.from_model(order) for order in cancelled]

        views = await self._run("order cancellation", write)
        if order_ids is not None and not views:
            logger.info(
                "Stale order heal skipped",
                venue_id=venue_id,
                table_id=table_id,
                order_ids=list(order_ids),
            )
            return views
        logger.info(
            "Orders cancelled",
            venue_id=venue_id,
            table_id=table_id,
            order_ids=[view.id for view in views],
            reason=reason,
        )
        await self._publish(
            ORDERS_CANCELLED,
            venue_id,
            table_id,
            {"order_ids": [view.id for view in views], "table_status": TableStatus.AVAILABLE},
            staff_id,
        )
        return views

    async def settle_table(
        self,
        venue_id: int,
        table_id: int,
        instruction: DirectPayment | CreditPayment | SplitPayment,
        staff_id: int | None = None,
        expected_order_ids: Sequence[int] | None = None,
    ) -> SettlementOutcome:
        def write(db: Session) -> SettlementOutcome:
            result = PaymentService(db).settle(
                venue_id,
                table_id,
                instruction,
                staff_id=staff_id,
                expected_order_ids=expected_order_ids,
            )
            for order in result.orders:
                db.refresh(order)
            db.refresh(result.table)
            return SettlementOutcome(
                orders=tuple(OrderView.from_model(order) for order in result.orders),
                table=TableView.from_model(result.table),
                credit_id=result.credit.id if result.credit else None,
                redemption_id=result.redemption.id if result.redemption else None,
            )

        outcome = await self._run("payment settlement", write)
        await self._publish(
            ORDERS_SETTLED,
            venue_id,
            table_id,
            {
                "order_ids": [order.id for order in outcome.orders],
                "table_status": outcome.table.status,
                "credit_id": outcome.credit_id,
            },
            staff_id,
        )
        return outcome
