"""
Centralized constants for the backend application.
Avoids magic strings for statuses, coupon types and payment methods.

Usage:
    from shared.config.constants import OrderStatus, is_active_order

    if order.status in OrderStatus.KITCHEN:
        ...
"""

from typing import Final


# =============================================================================
# Entity Status Constants
# =============================================================================


class OrderStatus:
    """Order status constants."""

    PLACED: Final[str] = "placed"
    CONFIRMED: Final[str] = "confirmed"
    PREPARING: Final[str] = "preparing"
    READY: Final[str] = "ready"
    COMPLETED: Final[str] = "completed"
    CANCELLED: Final[str] = "cancelled"

    ALL: Final[list[str]] = [PLACED, CONFIRMED, PREPARING, READY, COMPLETED, CANCELLED]
    # Kitchen or floor work still outstanding
    KITCHEN: Final[list[str]] = [PLACED, CONFIRMED, PREPARING, READY]


class PaymentStatus:
    """Order payment status constants."""

    PENDING: Final[str] = "pending"
    PARTIAL: Final[str] = "partial"
    PAID: Final[str] = "paid"

    ALL: Final[list[str]] = [PENDING, PARTIAL, PAID]


class TableStatus:
    """Table status constants."""

    AVAILABLE: Final[str] = "available"
    OCCUPIED: Final[str] = "occupied"
    RESERVED: Final[str] = "reserved"
    CLEANING: Final[str] = "cleaning"

    ALL: Final[list[str]] = [AVAILABLE, OCCUPIED, RESERVED, CLEANING]


class LifecycleState:
    """Per-table order lifecycle states held by a terminal."""

    CART: Final[str] = "cart"
    PLACED: Final[str] = "placed"
    ADDING_MORE: Final[str] = "adding_more"
    COMPLETED: Final[str] = "completed"

    # States in which the cart may be edited
    EDITABLE: Final[list[str]] = [CART, ADDING_MORE]


class CreditStatus:
    """Credit ledger entry status constants."""

    PENDING: Final[str] = "pending"
    PARTIALLY_PAID: Final[str] = "partially_paid"
    PAID: Final[str] = "paid"


# =============================================================================
# Payments
# =============================================================================


class PaymentMethod:
    """Tender types accepted at the counter."""

    CASH: Final[str] = "cash"
    UPI: Final[str] = "upi"
    BANK: Final[str] = "bank"
    CARD: Final[str] = "card"

    TENDERS: Final[list[str]] = [CASH, UPI, BANK, CARD]

    # Recorded on orders settled by a combined instruction
    SPLIT: Final[str] = "split"
    CREDIT: Final[str] = "credit"
    PARTIAL_CREDIT: Final[str] = "partial_credit"


class PaymentRestriction:
    """Coupon payment method restriction values."""

    ALL: Final[str] = "all"
    CASH_ONLY: Final[str] = "cash_only"
    UPI_ONLY: Final[str] = "upi_only"
    BANK_ONLY: Final[str] = "bank_only"
    EXCLUDE_CASH: Final[str] = "exclude_cash"

    VALUES: Final[list[str]] = [ALL, CASH_ONLY, UPI_ONLY, BANK_ONLY, EXCLUDE_CASH]


# =============================================================================
# Coupons
# =============================================================================


class CouponType:
    """Coupon type constants."""

    PERCENTAGE_DISCOUNT: Final[str] = "percentage_discount"
    FIXED_AMOUNT: Final[str] = "fixed_amount"
    BUY_X_GET_Y: Final[str] = "buy_x_get_y"
    FREE_ITEM: Final[str] = "free_item"
    CATEGORY_SPECIFIC: Final[str] = "category_specific"
    MINIMUM_ORDER: Final[str] = "minimum_order"

    ALL: Final[list[str]] = [
        PERCENTAGE_DISCOUNT, FIXED_AMOUNT, BUY_X_GET_Y, FREE_ITEM, CATEGORY_SPECIFIC, MINIMUM_ORDER
    ]


class CouponStatus:
    """Coupon status constants."""

    DRAFT: Final[str] = "draft"
    ACTIVE: Final[str] = "active"
    PAUSED: Final[str] = "paused"
    EXPIRED: Final[str] = "expired"
    DISABLED: Final[str] = "disabled"

    ALL: Final[list[str]] = [DRAFT, ACTIVE, PAUSED, EXPIRED, DISABLED]


class CouponError:
    """Machine-readable coupon rejection codes."""

    INVALID_CODE: Final[str] = "invalid_code"
    INACTIVE: Final[str] = "inactive"
    NOT_YET_VALID: Final[str] = "not_yet_valid"
    EXPIRED: Final[str] = "expired"
    OUTSIDE_TIME_WINDOW: Final[str] = "outside_time_window"
    INVALID_DAY: Final[str] = "invalid_day"
    USAGE_LIMIT_REACHED: Final[str] = "usage_limit_reached"
    CUSTOMER_LIMIT_REACHED: Final[str] = "customer_limit_reached"
    PAYMENT_METHOD_NOT_ALLOWED: Final[str] = "payment_method_not_allowed"
    MINIMUM_ORDER_NOT_MET: Final[str] = "minimum_order_not_met"
    INVALID_CONFIG: Final[str] = "invalid_config"
    INSUFFICIENT_QUANTITY: Final[str] = "insufficient_quantity"
    FREE_ITEM_UNAVAILABLE: Final[str] = "free_item_unavailable"
    NO_ELIGIBLE_ITEMS: Final[str] = "no_eligible_items"


WEEKDAYS: Final[list[str]] = [
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"
]


# =============================================================================
# Status helpers
# =============================================================================


def is_active_order(status: str, payment_status: str) -> bool:
    """
    An order is active while kitchen or payment work is outstanding:
    any kitchen status, or completed but not yet paid.
    """
    if status in OrderStatus.KITCHEN:
        return True
    return status == OrderStatus.COMPLETED and payment_status != PaymentStatus.PAID
