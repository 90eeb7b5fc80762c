"""
Domain Services - order lifecycle and payment reconciliation.

Structure:
    Router / command dispatch
        ↓
    TableOrderController (one table on one terminal)
        ↓
    OrderStore (async facade, publishes order events)
        ↓
    Services (CouponService, PaymentService) and Repositories
        ↓
    Model (entity)

Usage:
    from pos_api.services.domain import OrderStore, TableOrderController

    store = OrderStore(SessionLocal, feed)
    controller = TableOrderController(store, cart, sink, venue_id=1, table_id=3, staff_id=9)
    await controller.load()
"""

from .snapshots import (
    VenueView,
    TableView,
    CartLineView,
    OrderLineView,
    OrderView,
    TableSnapshot,
)
from .cart_service import CartStore
from .coupon_service import (
    CouponRules,
    CatalogueItem,
    FreeItem,
    CouponValidation,
    CouponService,
    RedemptionAmounts,
    evaluate_coupon,
    is_payment_method_allowed,
)
from .payment_instruction import (
    DiscountBreakdown,
    DirectPayment,
    CreditPayment,
    SplitPayment,
    SplitPart,
    PaymentInstruction,
    PaymentRequest,
    parse_payment_instruction,
)
from .settlement import (
    OrderSettlement,
    BillQuote,
    allocate_settlement,
    settlement_proportions,
    quote_bill,
)
from .payment_service import PaymentService, SettlementResult
from .order_lifecycle import (
    TableOrderState,
    RemoteSnapshot,
    ClearCart,
    HealStaleOrders,
    Reconciliation,
    reconcile,
)
from .order_store import OrderStore, SettlementOutcome
from .table_controller import TableOrderController

__all__ = [
    # Views
    "VenueView",
    "TableView",
    "CartLineView",
    "OrderLineView",
    "OrderView",
    "TableSnapshot",
    # Cart
    "CartStore",
    # Coupons
    "CouponRules",
    "CatalogueItem",
    "FreeItem",
    "CouponValidation",
    "CouponService",
    "RedemptionAmounts",
    "evaluate_coupon",
    "is_payment_method_allowed",
    # Payment
    "DiscountBreakdown",
    "DirectPayment",
    "CreditPayment",
    "SplitPayment",
    "SplitPart",
    "PaymentInstruction",
    "PaymentRequest",
    "parse_payment_instruction",
    "OrderSettlement",
    "BillQuote",
    "allocate_settlement",
    "settlement_proportions",
    "quote_bill",
    "PaymentService",
    "SettlementResult",
    # Lifecycle
    "TableOrderState",
    "RemoteSnapshot",
    "ClearCart",
    "HealStaleOrders",
    "Reconciliation",
    "reconcile",
    "OrderStore",
    "SettlementOutcome",
    "TableOrderController",
]
