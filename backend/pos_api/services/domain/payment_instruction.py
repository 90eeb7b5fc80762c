"""
Payment instructions: one aggregate description of how the combined
bill for a table was paid.

A tagged union on ``kind``:
- DirectPayment: paid in full with one tender (change allowed).
- CreditPayment: some or all of the bill left on the customer's credit.
- SplitPayment: two or more tenders; a shortfall becomes credit.

All amounts are decimal numbers in the venue currency.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, RootModel, TypeAdapter, field_validator, model_validator

from shared.config.constants import PaymentMethod
from shared.utils.money import ZERO, to_money


TenderMethod = Literal["cash", "upi", "bank", "card"]


class FreeItemEntry(BaseModel):
    menu_item_id: int
    name: str
    price: Decimal = Field(default=ZERO, ge=0)
    quantity: int = Field(default=1, ge=1)


class DiscountBreakdown(BaseModel):
    """Discounts applied to the combined bill. Always present, zero when unused."""

    manual_discount_amount: Decimal = Field(default=ZERO, ge=0)
    coupon_discount_amount: Decimal = Field(default=ZERO, ge=0)
    coupon_id: int | None = None
    coupon_code: str | None = None
    free_items: list[FreeItemEntry] = Field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return to_money(self.manual_discount_amount + self.coupon_discount_amount)

    @model_validator(mode="after")
    def coupon_fields_consistent(self) -> "DiscountBreakdown":
        if self.coupon_discount_amount > 0 and self.coupon_id is None:
            raise ValueError("coupon_discount_amount requires coupon_id")
        return self


class _InstructionBase(BaseModel):
    final_total: Decimal = Field(ge=0)
    tip: Decimal = Field(default=ZERO, ge=0)
    discount: DiscountBreakdown = Field(default_factory=DiscountBreakdown)
    customer_id: int | None = None
    customer_name: str | None = Field(default=None, max_length=120)
    customer_phone: str | None = Field(default=None, max_length=30)
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("customer_name")
    @classmethod
    def strip_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @property
    def credit_amount(self) -> Decimal:
        return ZERO

    @property
    def is_credit(self) -> bool:
        return self.credit_amount > 0


class DirectPayment(_InstructionBase):
    kind: Literal["direct"] = "direct"
    method: TenderMethod = PaymentMethod.CASH
    received: Decimal | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def covers_bill(self) -> "DirectPayment":
        if self.received is not None and self.received < self.final_total:
            raise ValueError("amount received is below the bill; use a credit payment")
        return self

    @property
    def amount_received(self) -> Decimal:
        return to_money(self.final_total if self.received is None else self.received)

    @property
    def recorded_method(self) -> str:
        return self.method


class CreditPayment(_InstructionBase):
    kind: Literal["credit"] = "credit"
    method: TenderMethod = PaymentMethod.CASH
    received: Decimal = Field(default=ZERO, ge=0)
    add_whole_amount_as_credit: bool = False

    @model_validator(mode="after")
    def leaves_balance(self) -> "CreditPayment":
        if not self.customer_name:
            raise ValueError("customer_name is required for credit payments")
        if not self.add_whole_amount_as_credit and self.received >= self.final_total:
            raise ValueError("amount received covers the bill; use a direct payment")
        return self

    @property
    def amount_received(self) -> Decimal:
        return ZERO if self.add_whole_amount_as_credit else to_money(self.received)

    @property
    def credit_amount(self) -> Decimal:
        return to_money(self.final_total - self.amount_received)

    @property
    def recorded_method(self) -> str:
        return PaymentMethod.CREDIT if self.add_whole_amount_as_credit else PaymentMethod.PARTIAL_CREDIT


class SplitPart(BaseModel):
    method: TenderMethod
    amount: Decimal = Field(gt=0)


class SplitPayment(_InstructionBase):
    kind: Literal["split"] = "split"
    parts: list[SplitPart] = Field(min_length=2)

    @model_validator(mode="after")
    def shortfall_needs_customer(self) -> "SplitPayment":
        if self.credit_amount > 0 and not self.customer_name:
            raise ValueError("customer_name is required when split parts leave a balance")
        return self

    @property
    def amount_received(self) -> Decimal:
        return to_money(sum((part.amount for part in self.parts), Decimal(0)))

    @property
    def credit_amount(self) -> Decimal:
        shortfall = to_money(self.final_total - self.amount_received)
        return shortfall if shortfall > 0 else ZERO

    @property
    def recorded_method(self) -> str:
        return PaymentMethod.SPLIT


PaymentInstruction = Annotated[
    Union[DirectPayment, CreditPayment, SplitPayment],
    Field(discriminator="kind"),
]

payment_instruction_adapter: TypeAdapter = TypeAdapter(PaymentInstruction)


def parse_payment_instruction(data: dict) -> DirectPayment | CreditPayment | SplitPayment:
    """Build the right instruction class from a plain payload."""
    return payment_instruction_adapter.validate_python(data)


class PaymentRequest(RootModel[PaymentInstruction]):
    """Request body wrapper so the union can be posted directly."""

    @property
    def instruction(self) -> DirectPayment | CreditPayment | SplitPayment:
        return self.root
