"""
Coupon Service.

Two layers:
- evaluate_coupon(): pure pipeline over explicit inputs (rules, cart,
  catalogue, clock, prior customer usage, payment method). Never writes.
- CouponService: lookup and redemption against the database. Redemption
  is the only place usage_count changes, through an atomic conditional
  UPDATE.

Usage:
    service = CouponService(db)
    result = service.validate(venue_id, "welcome20", cart_lines, customer_id=7)
    if result.is_valid:
        ...
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Sequence

from sqlalchemy.orm import Session

from pos_api.models import Coupon, MenuItem
from pos_api.repositories import CouponRepository, MenuItemRepository
from shared.config.constants import (
    CouponError,
    CouponStatus,
    CouponType,
    PaymentMethod,
    PaymentRestriction,
    WEEKDAYS,
)
from shared.config.logging import coupons_logger as logger
from shared.utils.clock import ensure_utc, utc_now, venue_local
from shared.utils.exceptions import (
    CouponExhaustedError,
    CouponNotFoundError,
    InvalidCouponConfigError,
)
from shared.utils.money import ZERO, as_decimal, clamp_money, percent_of, to_money


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True, slots=True)
class BuyXGetYConfig:
    buy_quantity: int
    get_quantity: int
    buy_item_id: int | None = None
    get_item_id: int | None = None
    buy_category_id: int | None = None
    get_discount_percentage: Decimal | None = None


def _optional_decimal(config: Mapping[str, Any], key: str, code: str) -> Decimal | None:
    value = config.get(key)
    if value is None or value == "":
        return None
    try:
        return as_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidCouponConfigError(code, f"'{key}' must be a number")


def _optional_int(config: Mapping[str, Any], key: str, code: str) -> int | None:
    value = config.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidCouponConfigError(code, f"'{key}' must be an integer")


@dataclass(frozen=True, slots=True)
class CouponRules:
    """Everything evaluate_coupon needs to know about one coupon."""

    id: int
    code: str
    name: str
    type: str
    status: str
    start_date: datetime
    end_date: datetime
    start_time: str | None = None
    end_time: str | None = None
    valid_days: tuple[str, ...] = ()
    usage_limit: int | None = None
    per_customer_limit: int | None = None
    usage_count: int = 0
    min_order_value: Decimal | None = None
    payment_method_restriction: str = PaymentRestriction.ALL
    percentage: Decimal | None = None
    discount_amount: Decimal | None = None
    minimum_order_value: Decimal | None = None
    buy_x_get_y: BuyXGetYConfig | None = None
    free_item_id: int | None = None
    target_category_id: int | None = None
    category_discount_percentage: Decimal | None = None

    @classmethod
    def from_model(cls, coupon: Coupon) -> "CouponRules":
        """
        Parse the stored row. Raises InvalidCouponConfigError when the
        config payload has values of the wrong shape or a time of day is
        not HH:MM.
        """
        config = coupon.config or {}
        if not isinstance(config, Mapping):
            raise InvalidCouponConfigError(coupon.code, "Coupon config must be an object")

        bogo = None
        raw_bogo = config.get("buy_x_get_y")
        if raw_bogo is not None:
            if not isinstance(raw_bogo, Mapping):
                raise InvalidCouponConfigError(coupon.code, "'buy_x_get_y' must be an object")
            bogo = BuyXGetYConfig(
                buy_quantity=_optional_int(raw_bogo, "buy_quantity", coupon.code) or 0,
                get_quantity=_optional_int(raw_bogo, "get_quantity", coupon.code) or 0,
                buy_item_id=_optional_int(raw_bogo, "buy_item_id", coupon.code),
                get_item_id=_optional_int(raw_bogo, "get_item_id", coupon.code),
                buy_category_id=_optional_int(raw_bogo, "buy_category_id", coupon.code),
                get_discount_percentage=_optional_decimal(raw_bogo, "get_discount_percentage", coupon.code),
            )

        for value in (coupon.start_time, coupon.end_time):
            if value:
                parse_time_of_day(value, coupon.code)

        return cls(
            id=coupon.id,
            code=coupon.code,
            name=coupon.name,
            type=coupon.type,
            status=coupon.status,
            start_date=ensure_utc(coupon.start_date),
            end_date=ensure_utc(coupon.end_date),
            start_time=coupon.start_time,
            end_time=coupon.end_time,
            valid_days=tuple(day.lower() for day in (coupon.valid_days or ())),
            usage_limit=coupon.usage_limit,
            per_customer_limit=coupon.per_customer_limit,
            usage_count=coupon.usage_count or 0,
            min_order_value=coupon.min_order_value,
            payment_method_restriction=coupon.payment_method_restriction or PaymentRestriction.ALL,
            percentage=_optional_decimal(config, "percentage", coupon.code),
            discount_amount=_optional_decimal(config, "discount_amount", coupon.code),
            minimum_order_value=_optional_decimal(config, "minimum_order_value", coupon.code),
            buy_x_get_y=bogo,
            free_item_id=_optional_int(config, "free_item_id", coupon.code),
            target_category_id=_optional_int(config, "target_category_id", coupon.code),
            category_discount_percentage=_optional_decimal(config, "category_discount_percentage", coupon.code),
        )


@dataclass(frozen=True, slots=True)
class CatalogueItem:
    id: int
    name: str
    price: Decimal
    category_id: int | None = None
    is_available: bool = True

    @classmethod
    def from_model(cls, item: MenuItem) -> "CatalogueItem":
        return cls(
            id=item.id,
            name=item.name,
            price=Decimal(item.price),
            category_id=item.category_id,
            is_available=item.is_available,
        )


# =============================================================================
# Result
# =============================================================================


@dataclass(frozen=True, slots=True)
class FreeItem:
    menu_item_id: int
    name: str
    price: Decimal
    quantity: int


@dataclass(frozen=True, slots=True)
class CouponValidation:
    is_valid: bool
    error: str | None = None
    message: str | None = None
    coupon: CouponRules | None = None
    discount_amount: Decimal = ZERO
    free_items: tuple[FreeItem, ...] = ()
    applicable_items: tuple[int, ...] = ()

    @classmethod
    def reject(cls, error: str, message: str) -> "CouponValidation":
        return cls(is_valid=False, error=error, message=message)


# =============================================================================
# Pure evaluation
# =============================================================================


_TIME_OF_DAY = re.compile(r"([01]?\d|2[0-3]):?([0-5]\d)")


def parse_time_of_day(value: Any, code: str) -> int:
    """'HH:MM' (or 'HHMM') as the HHMM integer the time window compares."""
    match = _TIME_OF_DAY.fullmatch(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidCouponConfigError(code, f"Time of day {value!r} must be HH:MM")
    return int(match.group(1)) * 100 + int(match.group(2))


def is_payment_method_allowed(payment_method: str, restriction: str) -> bool:
    if restriction == PaymentRestriction.CASH_ONLY:
        return payment_method == PaymentMethod.CASH
    if restriction == PaymentRestriction.UPI_ONLY:
        return payment_method == PaymentMethod.UPI
    if restriction == PaymentRestriction.BANK_ONLY:
        return payment_method == PaymentMethod.BANK
    if restriction == PaymentRestriction.EXCLUDE_CASH:
        return payment_method != PaymentMethod.CASH
    return True


def _category_of(line: Any, catalogue: Mapping[int, CatalogueItem]) -> int | None:
    item = catalogue.get(line.menu_item_id)
    return item.category_id if item else None


def _bogo_eligible_lines(
    config: BuyXGetYConfig,
    cart: Sequence[Any],
    catalogue: Mapping[int, CatalogueItem],
) -> list[Any]:
    if config.buy_item_id is not None:
        return [line for line in cart if line.menu_item_id == config.buy_item_id]
    if config.buy_category_id is not None:
        return [line for line in cart if _category_of(line, catalogue) == config.buy_category_id]
    return list(cart)


def _validate_type(
    rules: CouponRules,
    cart: Sequence[Any],
    catalogue: Mapping[int, CatalogueItem],
    subtotal: Decimal,
) -> CouponValidation | None:
    """Structural checks per coupon type. Returns a rejection or None."""
    if rules.type not in CouponType.ALL:
        return CouponValidation.reject(CouponError.INVALID_CONFIG, f"Unknown coupon type '{rules.type}'")

    if rules.type == CouponType.PERCENTAGE_DISCOUNT and rules.percentage is None:
        return CouponValidation.reject(CouponError.INVALID_CONFIG, "Invalid coupon configuration")

    if rules.type in (CouponType.FIXED_AMOUNT, CouponType.MINIMUM_ORDER) and rules.discount_amount is None:
        return CouponValidation.reject(CouponError.INVALID_CONFIG, "Invalid coupon configuration")

    if rules.type == CouponType.BUY_X_GET_Y:
        config = rules.buy_x_get_y
        if not config or config.buy_quantity <= 0 or config.get_quantity <= 0:
            return CouponValidation.reject(CouponError.INVALID_CONFIG, "Invalid coupon configuration")
        eligible = sum(line.quantity for line in _bogo_eligible_lines(config, cart, catalogue))
        if eligible < config.buy_quantity:
            return CouponValidation.reject(
                CouponError.INSUFFICIENT_QUANTITY,
                f"You need to buy {config.buy_quantity} eligible items to use this coupon",
            )

    if rules.type == CouponType.FREE_ITEM:
        if rules.free_item_id is None:
            return CouponValidation.reject(CouponError.INVALID_CONFIG, "Invalid coupon configuration")
        item = catalogue.get(rules.free_item_id)
        if not item or not item.is_available:
            return CouponValidation.reject(
                CouponError.FREE_ITEM_UNAVAILABLE,
                "The free item is currently not available",
            )

    if rules.type == CouponType.CATEGORY_SPECIFIC:
        if rules.target_category_id is None or rules.category_discount_percentage is None:
            return CouponValidation.reject(CouponError.INVALID_CONFIG, "Invalid coupon configuration")
        if not any(_category_of(line, catalogue) == rules.target_category_id for line in cart):
            return CouponValidation.reject(
                CouponError.NO_ELIGIBLE_ITEMS,
                "No eligible items in cart for this coupon",
            )

    if rules.type == CouponType.MINIMUM_ORDER:
        threshold = rules.minimum_order_value or ZERO
        if subtotal < threshold:
            return CouponValidation.reject(
                CouponError.MINIMUM_ORDER_NOT_MET,
                f"Minimum order of {to_money(threshold)} required",
            )

    return None


def _apply_buy_x_get_y(
    config: BuyXGetYConfig,
    cart: Sequence[Any],
    catalogue: Mapping[int, CatalogueItem],
) -> tuple[Decimal, list[FreeItem], list[int]]:
    lines = _bogo_eligible_lines(config, cart, catalogue)
    eligible = sum(line.quantity for line in lines)
    applicable = list(dict.fromkeys(line.menu_item_id for line in lines))
    free_quantity = math.floor(eligible / config.buy_quantity) * config.get_quantity
    if free_quantity <= 0:
        return ZERO, [], applicable

    get_item_id = config.get_item_id or config.buy_item_id
    if get_item_id is not None:
        item = catalogue.get(get_item_id)
        if item is None:
            return ZERO, [], applicable
        name, price = item.name, item.price
    else:
        cheapest = min(lines, key=lambda line: (line.unit_price, line.menu_item_id))
        get_item_id, name, price = cheapest.menu_item_id, cheapest.name, Decimal(cheapest.unit_price)

    pct = config.get_discount_percentage
    if pct is not None and pct < 100:
        return percent_of(price * free_quantity, pct), [], applicable

    return ZERO, [FreeItem(get_item_id, name, to_money(price), free_quantity)], applicable


def evaluate_coupon(
    rules: CouponRules,
    cart: Sequence[Any],
    catalogue: Mapping[int, CatalogueItem],
    now: datetime,
    customer_usage: int = 0,
    payment_method: str | None = None,
) -> CouponValidation:
    """
    Run the validation pipeline, short-circuiting on the first failure.

    Args:
        rules: Parsed coupon.
        cart: Lines with menu_item_id, name, unit_price, quantity, line_total.
        catalogue: Menu items by id.
        now: Current instant, timezone-aware and expressed in venue local time
            (wall-clock and weekday checks read it directly).
        customer_usage: Prior redemptions of this coupon by the customer.
        payment_method: Tender the bill will be paid with, if known.
    """
    subtotal = to_money(sum((Decimal(line.line_total) for line in cart), Decimal(0)))

    if rules.status != CouponStatus.ACTIVE:
        return CouponValidation.reject(CouponError.INACTIVE, "This coupon is not active")

    if now < rules.start_date:
        return CouponValidation.reject(CouponError.NOT_YET_VALID, "This coupon is not yet valid")
    if now > rules.end_date:
        return CouponValidation.reject(CouponError.EXPIRED, "This coupon has expired")

    if rules.start_time and rules.end_time:
        current = now.hour * 100 + now.minute
        start = parse_time_of_day(rules.start_time, rules.code)
        end = parse_time_of_day(rules.end_time, rules.code)
        if current < start or current > end:
            return CouponValidation.reject(
                CouponError.OUTSIDE_TIME_WINDOW,
                f"This coupon is only valid between {rules.start_time} and {rules.end_time}",
            )

    if rules.valid_days and WEEKDAYS[now.weekday()] not in rules.valid_days:
        return CouponValidation.reject(CouponError.INVALID_DAY, "This coupon is not valid today")

    if rules.usage_limit is not None and rules.usage_count >= rules.usage_limit:
        return CouponValidation.reject(
            CouponError.USAGE_LIMIT_REACHED, "This coupon has reached its usage limit"
        )

    if rules.per_customer_limit is not None and customer_usage >= rules.per_customer_limit:
        return CouponValidation.reject(
            CouponError.CUSTOMER_LIMIT_REACHED,
            "This customer has already used this coupon the maximum number of times",
        )

    if payment_method and not is_payment_method_allowed(payment_method, rules.payment_method_restriction):
        return CouponValidation.reject(
            CouponError.PAYMENT_METHOD_NOT_ALLOWED,
            f"This coupon is not valid for {payment_method} payments",
        )

    if rules.min_order_value is not None and subtotal < rules.min_order_value:
        return CouponValidation.reject(
            CouponError.MINIMUM_ORDER_NOT_MET,
            f"Minimum order value of {to_money(rules.min_order_value)} required",
        )

    rejection = _validate_type(rules, cart, catalogue, subtotal)
    if rejection:
        return rejection

    base = subtotal
    discount = ZERO
    free_items: list[FreeItem] = []
    applicable = [line.menu_item_id for line in cart]

    if rules.type == CouponType.PERCENTAGE_DISCOUNT:
        discount = percent_of(subtotal, rules.percentage)
    elif rules.type in (CouponType.FIXED_AMOUNT, CouponType.MINIMUM_ORDER):
        discount = to_money(rules.discount_amount)
    elif rules.type == CouponType.CATEGORY_SPECIFIC:
        lines = [line for line in cart if _category_of(line, catalogue) == rules.target_category_id]
        base = to_money(sum((Decimal(line.line_total) for line in lines), Decimal(0)))
        discount = percent_of(base, rules.category_discount_percentage)
        applicable = [line.menu_item_id for line in lines]
    elif rules.type == CouponType.BUY_X_GET_Y:
        discount, free_items, applicable = _apply_buy_x_get_y(rules.buy_x_get_y, cart, catalogue)
    elif rules.type == CouponType.FREE_ITEM:
        item = catalogue[rules.free_item_id]
        free_items = [FreeItem(item.id, item.name, to_money(item.price), 1)]
        applicable = []

    return CouponValidation(
        is_valid=True,
        coupon=rules,
        discount_amount=clamp_money(discount, base),
        free_items=tuple(free_items),
        applicable_items=tuple(dict.fromkeys(applicable)),
    )


# =============================================================================
# Persistence-backed service
# =============================================================================


@dataclass
class RedemptionAmounts:
    discount_amount: Decimal
    original_amount: Decimal
    final_amount: Decimal
    order_ids: list[int] = field(default_factory=list)


class CouponService:
    """
    Coupon lookup, validation and redemption.

    Methods never commit; redeem() runs inside the settlement transaction.
    """

    def __init__(self, db: Session):
        self._db = db
        self._coupons = CouponRepository(db)
        self._menu = MenuItemRepository(db)

    def find_by_code(self, venue_id: int, code: str) -> Coupon | None:
        return self._coupons.find_by_code(venue_id, code)

    def load_catalogue(self, venue_id: int) -> dict[int, CatalogueItem]:
        return {
            item.id: CatalogueItem.from_model(item)
            for item in self._menu.find_catalogue(venue_id)
        }

    def count_customer_redemptions(self, coupon_id: int, customer_id: int | None) -> int:
        if customer_id is None:
            return 0
        return self._coupons.count_customer_redemptions(coupon_id, customer_id)

    def validate(
        self,
        venue_id: int,
        code: str,
        cart: Sequence[Any],
        customer_id: int | None = None,
        payment_method: str | None = None,
        now: datetime | None = None,
    ) -> CouponValidation:
        """Look the code up and evaluate it against the cart at venue local time."""
        coupon = self.find_by_code(venue_id, code)
        if not coupon:
            logger.info("Coupon code not found", venue_id=venue_id, code=code.strip().upper())
            return CouponValidation.reject(CouponError.INVALID_CODE, "Invalid coupon code")

        try:
            rules = CouponRules.from_model(coupon)
        except InvalidCouponConfigError as e:
            return CouponValidation.reject(CouponError.INVALID_CONFIG, e.detail)

        result = evaluate_coupon(
            rules,
            cart,
            self.load_catalogue(venue_id),
            now=venue_local(now or utc_now()),
            customer_usage=self.count_customer_redemptions(coupon.id, customer_id),
            payment_method=payment_method,
        )
        logger.info(
            "Coupon evaluated",
            venue_id=venue_id,
            code=coupon.code,
            is_valid=result.is_valid,
            error=result.error,
            discount=str(result.discount_amount),
        )
        return result

    def increment_usage(self, coupon_id: int, venue_id: int) -> None:
        if not self._coupons.increment_usage(coupon_id, venue_id):
            raise CouponExhaustedError(coupon_id, venue_id=venue_id)

    def record_redemption(
        self,
        coupon_id: int,
        venue_id: int,
        order_id: int,
        amounts: RedemptionAmounts,
        customer_id: int | None = None,
    ):
        return self._coupons.record_redemption(
            coupon_id=coupon_id,
            venue_id=venue_id,
            order_id=order_id,
            discount_amount=amounts.discount_amount,
            original_amount=amounts.original_amount,
            final_amount=amounts.final_amount,
            customer_id=customer_id,
            order_ids=amounts.order_ids,
        )

    def redeem(
        self,
        venue_id: int,
        coupon_id: int,
        order_id: int,
        amounts: RedemptionAmounts,
        customer_id: int | None = None,
    ):
        """
        Consume one use and record the redemption.

        The per-customer limit is re-checked here because validation may
        have happened on another terminal minutes earlier.
        """
        coupon = self._coupons.find_by_id(coupon_id, venue_id)
        if not coupon:
            raise CouponNotFoundError(coupon_id, venue_id=venue_id)
        if coupon.status != CouponStatus.ACTIVE:
            raise CouponExhaustedError(coupon_id, reason="coupon is not active", venue_id=venue_id)

        if coupon.per_customer_limit is not None and customer_id is not None:
            used = self._coupons.count_customer_redemptions(coupon_id, customer_id)
            if used >= coupon.per_customer_limit:
                raise CouponExhaustedError(
                    coupon_id,
                    reason="per-customer limit reached",
                    customer_id=customer_id,
                )

        self.increment_usage(coupon_id, venue_id)
        redemption = self.record_redemption(coupon_id, venue_id, order_id, amounts, customer_id)
        logger.info(
            "Coupon redeemed",
            venue_id=venue_id,
            coupon_id=coupon_id,
            order_ids=amounts.order_ids,
            discount=str(amounts.discount_amount),
        )
        return redemption
