"""
Seed data for development.
Creates a demo venue with tables, a small menu and a few coupons.
"""

from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from pos_api.models import Coupon, MenuItem, Table, Venue
from shared.config.constants import CouponStatus, CouponType, PaymentRestriction
from shared.config.logging import get_logger
from shared.utils.clock import utc_now

logger = get_logger(__name__)


DEMO_TABLE_COUNT = 8
DEMO_TAX_RATE = Decimal("8.50")

# Category ids used by the demo menu
CATEGORY_STARTERS = 1
CATEGORY_MAINS = 2
CATEGORY_DRINKS = 3

DEMO_MENU = [
    ("Paneer Tikka", Decimal("100.00"), CATEGORY_STARTERS, "Starters"),
    ("Veg Spring Roll", Decimal("80.00"), CATEGORY_STARTERS, "Starters"),
    ("Butter Chicken", Decimal("250.00"), CATEGORY_MAINS, "Mains"),
    ("Dal Makhani", Decimal("180.00"), CATEGORY_MAINS, "Mains"),
    ("Garlic Naan", Decimal("40.00"), CATEGORY_MAINS, "Mains"),
    ("Masala Chai", Decimal("30.00"), CATEGORY_DRINKS, "Drinks"),
    ("Fresh Lime Soda", Decimal("60.00"), CATEGORY_DRINKS, "Drinks"),
]


def _seed_coupons(db: Session, venue: Venue, menu: dict[str, MenuItem]) -> None:
    now = utc_now()
    start, end = now - timedelta(days=1), now + timedelta(days=365)
    db.add_all([
        Coupon(
            venue_id=venue.id,
            code="WELCOME20",
            name="20% off your first visit",
            type=CouponType.PERCENTAGE_DISCOUNT,
            status=CouponStatus.ACTIVE,
            start_date=start,
            end_date=end,
            per_customer_limit=1,
            config={"percentage": "20"},
        ),
        Coupon(
            venue_id=venue.id,
            code="FLAT50",
            name="50 off orders above 300",
            type=CouponType.FIXED_AMOUNT,
            status=CouponStatus.ACTIVE,
            start_date=start,
            end_date=end,
            min_order_value=Decimal("300.00"),
            payment_method_restriction=PaymentRestriction.EXCLUDE_CASH,
            config={"discount_amount": "50"},
        ),
        Coupon(
            venue_id=venue.id,
            code="CHAI2FOR1",
            name="Buy one chai, get one free",
            type=CouponType.BUY_X_GET_Y,
            status=CouponStatus.ACTIVE,
            start_date=start,
            end_date=end,
            start_time="15:00",
            end_time="18:00",
            config={"buy_x_get_y": {
                "buy_quantity": 1,
                "get_quantity": 1,
                "buy_item_id": menu["Masala Chai"].id,
            }},
        ),
    ])


def seed(db: Session) -> None:
    """
    Seed the demo venue.
    Idempotent: only inserts if no venue exists.
    """
    if db.scalar(select(Venue.id).limit(1)):
        logger.info("Venue already seeded, skipping")
        return

    logger.info("Seeding demo venue")
    venue = Venue(name="Demo Bistro", slug="demo", tax_rate=DEMO_TAX_RATE)
    db.add(venue)
    db.flush()

    db.add_all([
        Table(venue_id=venue.id, number=number, area="Main", capacity=4)
        for number in range(1, DEMO_TABLE_COUNT + 1)
    ])

    menu = {}
    for name, price, category_id, category_name in DEMO_MENU:
        item = MenuItem(
            venue_id=venue.id,
            name=name,
            price=price,
            category_id=category_id,
            category_name=category_name,
        )
        db.add(item)
        menu[name] = item
    db.flush()

    _seed_coupons(db, venue, menu)
    db.commit()
    logger.info("Demo venue seeded", venue_id=venue.id, tables=DEMO_TABLE_COUNT, menu_items=len(menu))
