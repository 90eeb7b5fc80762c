"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Settings are read at import time; point every engine at throwaway databases
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("CART_STORE_URL", "sqlite:///:memory:")
os.environ.setdefault("ORDER_FEED_BACKEND", "local")
os.environ.setdefault("SEED_DEMO_DATA", "false")

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pos_api.main import app
from pos_api.models import Base, LocalBase, Coupon, MenuItem, Table, Venue
from pos_api.services.documents import CollectingDocumentSink
from pos_api.services.domain.cart_service import CartStore
from pos_api.services.domain.order_store import OrderStore
from pos_api.services.domain.table_controller import TableOrderController
from pos_api.services.events import LocalOrderFeed
from pos_api.services.terminal import TerminalRegistry
from shared.config.constants import CouponStatus, CouponType
from shared.infrastructure.retry import RetryPolicy
from shared.utils.clock import utc_now


# SQLite in-memory databases for testing. StaticPool keeps one connection so
# worker threads started by asyncio.to_thread see the same data.
engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
cart_engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
TestingCartSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=cart_engine)

# No waiting between read retries in tests
FAST_RETRY = RetryPolicy(max_attempts=2, initial_delay=0.0, max_delay=0.0, jitter_factor=0.0)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh order database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)
    LocalBase.metadata.create_all(bind=cart_engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        LocalBase.metadata.drop_all(bind=cart_engine)


@pytest.fixture
def cart_session(db_session):
    """Session on the terminal-local cart store."""
    session = TestingCartSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def cart_session_factory(db_session):
    """Session factory for the cart store, for tests that simulate a restart."""
    return TestingCartSessionLocal


@pytest.fixture
def seed_venue(db_session):
    """Create a test venue with an 8.5% tax rate."""
    venue = Venue(
        name="Test Bistro",
        slug="test",
        tax_rate=Decimal("8.50"),
        address="12 Market Street",
        phone="+15550100",
    )
    db_session.add(venue)
    db_session.commit()
    db_session.refresh(venue)
    return venue


@pytest.fixture
def seed_table(db_session, seed_venue):
    """Create an available test table."""
    table = Table(venue_id=seed_venue.id, number=1, area="Main", capacity=4)
    db_session.add(table)
    db_session.commit()
    db_session.refresh(table)
    return table


@pytest.fixture
def seed_menu(db_session, seed_venue):
    """
    Create a small menu, keyed by short name.

    Categories: 1 starters, 2 mains, 3 drinks.
    """
    items = {
        "paneer": MenuItem(venue_id=seed_venue.id, name="Paneer Tikka", price=Decimal("100.00"), category_id=1),
        "roll": MenuItem(venue_id=seed_venue.id, name="Spring Roll", price=Decimal("80.00"), category_id=1),
        "curry": MenuItem(venue_id=seed_venue.id, name="Butter Chicken", price=Decimal("250.00"), category_id=2),
        "chai": MenuItem(venue_id=seed_venue.id, name="Masala Chai", price=Decimal("30.00"), category_id=3),
        "dessert": MenuItem(venue_id=seed_venue.id, name="Gulab Jamun", price=Decimal("60.00"), category_id=4),
    }
    db_session.add_all(items.values())
    db_session.commit()
    for item in items.values():
        db_session.refresh(item)
    return items


@pytest.fixture
def make_coupon(db_session, seed_venue):
    """Factory for active coupons valid from yesterday until next month."""

    def _make(code: str, type: str = CouponType.PERCENTAGE_DISCOUNT, **fields) -> Coupon:
        now = utc_now()
        values = {
            "venue_id": seed_venue.id,
            "code": code.upper(),
            "name": code.title(),
            "type": type,
            "status": CouponStatus.ACTIVE,
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=30),
            "config": {},
        }
        values.update(fields)
        coupon = Coupon(**values)
        db_session.add(coupon)
        db_session.commit()
        db_session.refresh(coupon)
        return coupon

    return _make


@pytest.fixture
def feed():
    """In-process order feed."""
    return LocalOrderFeed()


@pytest.fixture
def store(db_session, feed):
    """Order store over the test database."""
    return OrderStore(TestingSessionLocal, feed)


@pytest.fixture
def make_controller(store, seed_venue, seed_table):
    """
    Factory for table controllers sharing one store and feed, the way
    several terminals share one database.
    """
    created = []

    def _make(table_id: int | None = None, staff_id: int | None = 7) -> TableOrderController:
        table_id = table_id or seed_table.id
        controller = TableOrderController(
            store,
            CartStore(TestingCartSessionLocal(), seed_venue.id, table_id),
            CollectingDocumentSink(),
            venue_id=seed_venue.id,
            table_id=table_id,
            staff_id=staff_id,
            retry_policy=FAST_RETRY,
            hydration_timeout=2.0,
        )
        created.append(controller)
        return controller

    yield _make

    for controller in created:
        if controller._unsubscribe is not None:
            controller._unsubscribe()
        controller.cart.close()


@pytest.fixture
def client(db_session, store):
    """
    Create a test client whose terminal registry works on the test databases.
    """
    with TestClient(app) as test_client:
        # Swapped in after startup; the shutdown handler closes it
        app.state.registry = TerminalRegistry(
            store,
            TestingCartSessionLocal,
            retry_policy=FAST_RETRY,
            hydration_timeout=2.0,
        )
        yield test_client
