"""
Shared Pydantic schemas used by the HTTP API.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Common Types
# =============================================================================

LifecycleStateName = Literal["cart", "placed", "adding_more", "completed"]
OrderStatusName = Literal["placed", "confirmed", "preparing", "ready", "completed", "cancelled"]
CommandType = Literal["add_item", "place_order", "pay", "print_kot", "cancel", "add_customer"]


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str


# =============================================================================
# Cart
# =============================================================================


class CartItemInput(BaseModel):
    """Item added to a table's cart. Name and price are snapshotted as sent."""

    menu_item_id: int
    name: str = Field(min_length=1, max_length=120)
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=1, le=99)
    variants: list[dict[str, Any]] = Field(default_factory=list)
    notes: str | None = Field(default=None, max_length=200)
    force_add: bool = False


class CartQuantityUpdate(BaseModel):
    quantity: int = Field(le=99)  # 0 or less removes the line


class CartLineOutput(BaseModel):
    line_id: int
    menu_item_id: int
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    variants: list[dict[str, Any]] = Field(default_factory=list)
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Orders and table state
# =============================================================================


class OrderItemOutput(BaseModel):
    menu_item_id: int
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    variants: list[dict[str, Any]] = Field(default_factory=list)
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


class OrderOutput(BaseModel):
    id: int
    order_number: str
    table_id: int
    staff_id: int
    status: OrderStatusName
    payment_status: str
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    notes: str | None = None
    created_at: datetime
    items: list[OrderItemOutput] = Field(default_factory=list)
    payment_method: str | None = None
    final_total: Decimal | None = None
    amount_received: Decimal | None = None
    discount_amount: Decimal | None = None
    tip: Decimal | None = None
    credit_amount: Decimal | None = None
    credit_id: int | None = None
    cancel_reason: str | None = None

    model_config = ConfigDict(from_attributes=True)


class TableStateOutput(BaseModel):
    """A terminal's reconciled view of one table."""

    venue_id: int
    table_id: int
    table_number: int | None = None
    table_status: str | None = None
    lifecycle: LifecycleStateName
    current_order_id: int | None = None
    active_orders: list[OrderOutput] = Field(default_factory=list)
    cart: list[CartLineOutput] = Field(default_factory=list)
    cart_subtotal: Decimal = Decimal("0.00")
    cart_item_count: int = 0


class PlaceOrderRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=500)


class CancelOrdersRequest(BaseModel):
    reason: str = Field(default="Cancelled by staff", min_length=1, max_length=300)


class KitchenTicketOutput(BaseModel):
    order_id: int
    order_number: str
    is_additional_round: bool
    is_reprint: bool
    text: str


class PlaceOrderResponse(BaseModel):
    order: OrderOutput
    kitchen_ticket: KitchenTicketOutput


# =============================================================================
# Billing
# =============================================================================


class BillQuoteOutput(BaseModel):
    subtotal: Decimal
    original_tax: Decimal
    coupon_discount_amount: Decimal
    manual_discount_amount: Decimal
    discounted_subtotal: Decimal
    tax: Decimal
    tip: Decimal
    final_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class PaymentResponse(BaseModel):
    order_ids: list[int]
    table_status: str
    credit_id: int | None = None
    redemption_id: int | None = None
    bill_text: str


# =============================================================================
# Coupons
# =============================================================================


class CouponValidateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    table_id: int
    customer_id: int | None = None
    payment_method: Literal["cash", "upi", "bank", "card"] | None = None


class FreeItemOutput(BaseModel):
    menu_item_id: int
    name: str
    price: Decimal
    quantity: int

    model_config = ConfigDict(from_attributes=True)


class CouponValidationOutput(BaseModel):
    is_valid: bool
    error: str | None = None
    message: str | None = None
    coupon_id: int | None = None
    coupon_code: str | None = None
    discount_amount: Decimal = Decimal("0.00")
    free_items: list[FreeItemOutput] = Field(default_factory=list)
    applicable_items: list[int] = Field(default_factory=list)


# =============================================================================
# Commands
# =============================================================================


class CommandRequest(BaseModel):
    """
    One terminal command, manual or voice. Fields used depend on ``type``:
    add_item uses the item fields, pay uses ``instruction``, cancel uses
    ``reason`` and add_customer the customer fields.
    """

    type: CommandType
    source: Literal["manual", "voice"] = "manual"
    menu_item_id: int | None = None
    name: str | None = Field(default=None, max_length=120)
    unit_price: Decimal | None = Field(default=None, ge=0)
    quantity: int = Field(default=1, ge=1, le=99)
    variants: list[dict[str, Any]] = Field(default_factory=list)
    notes: str | None = Field(default=None, max_length=500)
    reason: str | None = Field(default=None, max_length=300)
    instruction: dict[str, Any] | None = None
    customer_name: str | None = Field(default=None, max_length=120)
    customer_phone: str | None = Field(default=None, max_length=30)
    customer_id: int | None = None


class CommandResponse(BaseModel):
    type: CommandType
    state: TableStateOutput
    result: dict[str, Any] = Field(default_factory=dict)
