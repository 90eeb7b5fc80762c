"""
Tests for atomic table settlement.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from pos_api.models import Coupon, CreditTransaction, Order, Table
from pos_api.repositories import CreditRepository, OrderRepository
from pos_api.services.domain.payment_instruction import (
    CreditPayment,
    DirectPayment,
    DiscountBreakdown,
    SplitPayment,
)
from pos_api.services.domain.payment_service import PaymentService
from pos_api.services.domain.snapshots import CartLineView
from shared.config.constants import OrderStatus, PaymentMethod, PaymentStatus, TableStatus
from shared.utils.exceptions import CouponExhaustedError, SettlementConflictError, ValidationError


@pytest.fixture
def two_rounds(db_session, seed_venue, seed_table, seed_menu):
    """Two active orders at the table: 217.00 and 108.50."""
    repo = OrderRepository(db_session)
    orders = []
    for number, quantity in (("TES-000001-01", 2), ("TES-000002-01", 1)):
        paneer = seed_menu["paneer"]
        line = CartLineView(
            line_id=1,
            menu_item_id=paneer.id,
            name=paneer.name,
            unit_price=paneer.price,
            quantity=quantity,
            line_total=paneer.price * quantity,
        )
        order, _ = repo.create_order(
            venue_id=seed_venue.id,
            table_id=seed_table.id,
            staff_id=7,
            lines=[line],
            tax_rate=Decimal("8.5"),
            order_number=number,
        )
        orders.append(order)
    db_session.commit()
    return orders


def _count(db_session, model) -> int:
    return db_session.scalar(select(func.count()).select_from(model))


class TestSettle:
    def test_direct_payment_settles_every_order(self, db_session, seed_venue, seed_table, two_rounds):
        """Should mark both rounds paid and free the table in one transaction."""
        result = PaymentService(db_session).settle(
            seed_venue.id,
            seed_table.id,
            DirectPayment(final_total=Decimal("325.50"), method=PaymentMethod.UPI),
            staff_id=7,
        )

        assert [o.id for o in result.orders] == [o.id for o in two_rounds]
        assert all(o.status == OrderStatus.COMPLETED for o in result.orders)
        assert all(o.payment_status == PaymentStatus.PAID for o in result.orders)
        assert all(o.payment_method == PaymentMethod.UPI for o in result.orders)
        assert [o.final_total for o in result.orders] == [Decimal("217.00"), Decimal("108.50")]
        assert result.table.status == TableStatus.AVAILABLE
        assert result.credit is None
        assert OrderRepository(db_session).find_active_by_table(seed_venue.id, seed_table.id) == []

    def test_tip_and_discount_are_apportioned(self, db_session, seed_venue, seed_table, two_rounds):
        instruction = DirectPayment(
            final_total=Decimal("300"),
            tip=Decimal("30"),
            discount=DiscountBreakdown(manual_discount_amount=Decimal("60")),
        )

        result = PaymentService(db_session).settle(seed_venue.id, seed_table.id, instruction)

        assert sum(o.tip for o in result.orders) == Decimal("30.00")
        assert sum(o.manual_discount_amount for o in result.orders) == Decimal("60.00")
        assert [o.tip for o in result.orders] == [Decimal("20.00"), Decimal("10.00")]

    def test_credit_payment_creates_one_ledger_entry(self, db_session, seed_venue, seed_table, two_rounds):
        instruction = CreditPayment(
            final_total=Decimal("325.50"),
            received=Decimal("125.50"),
            customer_name="  Asha Rao ",
            customer_phone="+15550123456",
        )

        result = PaymentService(db_session).settle(seed_venue.id, seed_table.id, instruction)

        credit = result.credit
        assert credit.customer_name == "Asha Rao"
        assert credit.credit_amount == Decimal("200.00")
        assert credit.order_ids == [o.id for o in two_rounds]
        assert credit.payment_method == PaymentMethod.PARTIAL_CREDIT
        assert all(o.credit_id == credit.id for o in result.orders)
        assert all(o.payment_status == PaymentStatus.PAID for o in result.orders)
        assert sum(o.credit_amount for o in result.orders) == Decimal("200.00")
        assert len(CreditRepository(db_session).find_outstanding(seed_venue.id)) == 1

    def test_split_shortfall_becomes_credit(self, db_session, seed_venue, seed_table, two_rounds):
        instruction = SplitPayment(
            final_total=Decimal("325.50"),
            parts=[{"method": "cash", "amount": "100"}, {"method": "card", "amount": "200"}],
            customer_name="Ravi",
        )

        result = PaymentService(db_session).settle(seed_venue.id, seed_table.id, instruction)

        assert result.credit.credit_amount == Decimal("25.50")
        assert all(o.payment_method == PaymentMethod.SPLIT for o in result.orders)

    def test_coupon_is_redeemed_once_for_all_orders(
        self, db_session, seed_venue, seed_table, two_rounds, make_coupon
    ):
        coupon = make_coupon("FLAT50", type="fixed_amount", usage_limit=10, config={"discount_amount": "50"})
        instruction = DirectPayment(
            final_total=Decimal("271.25"),
            discount=DiscountBreakdown(coupon_discount_amount=Decimal("50"), coupon_id=coupon.id, coupon_code="FLAT50"),
        )

        result = PaymentService(db_session).settle(seed_venue.id, seed_table.id, instruction)

        assert result.redemption.order_ids == [o.id for o in two_rounds]
        assert result.redemption.order_id == two_rounds[-1].id
        assert result.redemption.discount_amount == Decimal("50.00")
        assert all(o.applied_coupon_code == "FLAT50" for o in result.orders)
        db_session.expire_all()
        assert db_session.get(Coupon, coupon.id).usage_count == 1


class TestSettleFailures:
    """Every failure leaves orders, table and ledger as they were."""

    def test_no_active_orders(self, db_session, seed_venue, seed_table):
        with pytest.raises(ValidationError):
            PaymentService(db_session).settle(seed_venue.id, seed_table.id, DirectPayment(final_total=Decimal("1")))

    def test_changed_orders_conflict(self, db_session, seed_venue, seed_table, two_rounds):
        """Should refuse to settle a bill quoted for a different set of orders."""
        with pytest.raises(SettlementConflictError):
            PaymentService(db_session).settle(
                seed_venue.id,
                seed_table.id,
                DirectPayment(final_total=Decimal("217")),
                expected_order_ids=[two_rounds[0].id],
            )

        db_session.expire_all()
        assert all(
            o.status == OrderStatus.PLACED
            for o in db_session.scalars(select(Order)).all()
        )

    def test_exhausted_coupon_rolls_everything_back(
        self, db_session, seed_venue, seed_table, two_rounds, make_coupon
    ):
        """Should leave no credit entry and no paid order when redemption fails."""
        coupon = make_coupon("GONE", usage_limit=1, usage_count=1, config={"percentage": "10"})
        instruction = CreditPayment(
            final_total=Decimal("292.95"),
            received=Decimal("100"),
            customer_name="Asha",
            discount=DiscountBreakdown(coupon_discount_amount=Decimal("30"), coupon_id=coupon.id, coupon_code="GONE"),
        )

        with pytest.raises(CouponExhaustedError):
            PaymentService(db_session).settle(seed_venue.id, seed_table.id, instruction)

        db_session.expire_all()
        assert _count(db_session, CreditTransaction) == 0
        orders = db_session.scalars(select(Order)).all()
        assert all(o.payment_status == PaymentStatus.PENDING for o in orders)
        assert all(o.status == OrderStatus.PLACED for o in orders)
        assert all(o.credit_id is None for o in orders)
        assert db_session.get(Table, seed_table.id).status == TableStatus.OCCUPIED
