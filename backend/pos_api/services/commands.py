"""
Terminal commands.

Voice and manual input both produce a Command; dispatch() routes it to the
same controller entry points the buttons use. Voice-originated adds carry
force_add so an item said after placing reopens the table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Union

from pos_api.services.domain.payment_instruction import (
    CreditPayment,
    DirectPayment,
    SplitPayment,
    parse_payment_instruction,
)
from pos_api.services.domain.table_controller import TableOrderController
from shared.config.logging import get_logger
from shared.utils.exceptions import ValidationError

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AddItem:
    menu_item_id: int
    name: str
    unit_price: Decimal
    quantity: int = 1
    variants: list[dict[str, Any]] = field(default_factory=list)
    notes: str | None = None
    force_add: bool = False


@dataclass(frozen=True, slots=True)
class PlaceOrder:
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class Pay:
    """A payment instruction, or its raw payload (parsed once the customer is merged in)."""

    instruction: DirectPayment | CreditPayment | SplitPayment | dict[str, Any]


@dataclass(frozen=True, slots=True)
class PrintKot:
    pass


@dataclass(frozen=True, slots=True)
class Cancel:
    reason: str = "Cancelled by staff"


@dataclass(frozen=True, slots=True)
class AddCustomer:
    """Attach a customer to the table's next payment."""

    name: str
    phone: str | None = None
    customer_id: int | None = None


Command = Union[AddItem, PlaceOrder, Pay, PrintKot, Cancel, AddCustomer]


async def dispatch(controller: TableOrderController, command: Command) -> Any:
    """Run one command against a table controller and return its result."""
    logger.info(
        "Dispatching command",
        command=type(command).__name__,
        venue_id=controller.venue_id,
        table_id=controller.table_id,
    )

    if isinstance(command, AddItem):
        return await controller.add_to_cart(
            command.menu_item_id,
            command.name,
            command.unit_price,
            quantity=command.quantity,
            variants=list(command.variants) or None,
            notes=command.notes,
            force_add=command.force_add,
        )
    if isinstance(command, PlaceOrder):
        return await controller.place_order(notes=command.notes)
    if isinstance(command, Pay):
        payload = command.instruction
        if not isinstance(payload, dict):
            payload = payload.model_dump()
        customer = controller.customer
        if customer is not None and not payload.get("customer_name"):
            payload = {
                **payload,
                "customer_name": customer.name,
                "customer_phone": customer.phone,
                "customer_id": customer.customer_id,
            }
        return await controller.handle_payment(parse_payment_instruction(payload))
    if isinstance(command, PrintKot):
        return await controller.print_kot()
    if isinstance(command, Cancel):
        return await controller.cancel_all_orders(command.reason)
    if isinstance(command, AddCustomer):
        if not command.name.strip():
            raise ValidationError("Customer name is required")
        controller.customer = command
        return command

    raise ValidationError(f"Unsupported command {type(command).__name__}")
