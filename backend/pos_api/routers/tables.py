"""
Tables router.
One table on this terminal: cart, order rounds, kitchen tickets, payment.

Every endpoint goes through the table's TableOrderController, so the
lifecycle rules are the same for buttons, voice commands and the API.
"""

from decimal import Decimal
from typing import Literal

import pydantic
from fastapi import APIRouter, Depends, Query

from pos_api.services.commands import (
    AddCustomer,
    AddItem,
    Cancel,
    Command,
    Pay,
    PlaceOrder,
    PrintKot,
    dispatch,
)
from pos_api.core.dependencies import get_controller
from pos_api.services.documents import KitchenTicketRequest, render_bill, render_kitchen_ticket
from pos_api.services.domain.payment_instruction import PaymentRequest
from pos_api.services.domain.snapshots import OrderView
from pos_api.services.domain.table_controller import TableOrderController
from shared.config.logging import pos_api_logger as logger
from shared.utils.exceptions import ValidationError
from shared.utils.schemas import (
    BillQuoteOutput,
    CancelOrdersRequest,
    CartItemInput,
    CartLineOutput,
    CartQuantityUpdate,
    CommandRequest,
    CommandResponse,
    KitchenTicketOutput,
    OrderOutput,
    PaymentResponse,
    PlaceOrderRequest,
    PlaceOrderResponse,
    TableStateOutput,
)


router = APIRouter(prefix="/api/venues/{venue_id}/tables/{table_id}", tags=["tables"])


# =============================================================================
# Output builders
# =============================================================================


def _order_output(order: OrderView) -> OrderOutput:
    return OrderOutput.model_validate(order, from_attributes=True)


def _table_state(controller: TableOrderController) -> TableStateOutput:
    subtotal, item_count = controller.cart.totals()
    table = controller.table
    state = controller.state
    return TableStateOutput(
        venue_id=controller.venue_id,
        table_id=controller.table_id,
        table_number=table.number if table else None,
        table_status=table.status if table else None,
        lifecycle=state.lifecycle,
        current_order_id=state.current_order_id,
        active_orders=[_order_output(order) for order in state.active_orders],
        cart=[CartLineOutput.model_validate(line, from_attributes=True) for line in controller.cart_lines()],
        cart_subtotal=subtotal,
        cart_item_count=item_count,
    )


def _ticket_output(request: KitchenTicketRequest) -> KitchenTicketOutput:
    return KitchenTicketOutput(
        order_id=request.order.id,
        order_number=request.order.order_number,
        is_additional_round=request.is_additional_round,
        is_reprint=request.is_reprint,
        text=render_kitchen_ticket(request),
    )


def _last_bill_text(controller: TableOrderController) -> str:
    bills = controller.sink.bills
    return render_bill(bills[-1]) if bills else ""


# =============================================================================
# State and cart
# =============================================================================


@router.get("/state", response_model=TableStateOutput)
async def get_table_state(
    controller: TableOrderController = Depends(get_controller),
) -> TableStateOutput:
    """Current reconciled state of the table on this terminal."""
    return _table_state(controller)


@router.post("/cart/items", response_model=TableStateOutput)
async def add_cart_item(
    body: CartItemInput,
    controller: TableOrderController = Depends(get_controller),
) -> TableStateOutput:
    await controller.add_to_cart(
        body.menu_item_id,
        body.name,
        body.unit_price,
        quantity=body.quantity,
        variants=body.variants or None,
        notes=body.notes,
        force_add=body.force_add,
    )
    return _table_state(controller)


@router.patch("/cart/items/{item_id}", response_model=TableStateOutput)
async def update_cart_item(
    item_id: int,
    body: CartQuantityUpdate,
    controller: TableOrderController = Depends(get_controller),
) -> TableStateOutput:
    await controller.update_cart_quantity(item_id, body.quantity)
    return _table_state(controller)


@router.delete("/cart/items/{item_id}", response_model=TableStateOutput)
async def remove_cart_item(
    item_id: int,
    controller: TableOrderController = Depends(get_controller),
) -> TableStateOutput:
    await controller.remove_from_cart(item_id)
    return _table_state(controller)


@router.delete("/cart", response_model=TableStateOutput)
async def clear_cart(
    controller: TableOrderController = Depends(get_controller),
) -> TableStateOutput:
    await controller.clear_cart()
    return _table_state(controller)


# =============================================================================
# Orders
# =============================================================================


@router.post("/orders", response_model=PlaceOrderResponse, status_code=201)
async def place_order(
    body: PlaceOrderRequest,
    controller: TableOrderController = Depends(get_controller),
) -> PlaceOrderResponse:
    """
    Place the cart as a new order round.

    Requires X-Staff-Id. The kitchen ticket is flagged as an additional
    round when the table already had active orders.
    """
    order = await controller.place_order(notes=body.notes)
    ticket = controller.sink.kitchen_tickets[-1]
    return PlaceOrderResponse(order=_order_output(order), kitchen_ticket=_ticket_output(ticket))


@router.post("/add-more", response_model=TableStateOutput)
async def add_more(
    controller: TableOrderController = Depends(get_controller),
) -> TableStateOutput:
    await controller.add_more()
    return _table_state(controller)


@router.post("/kot", response_model=KitchenTicketOutput)
async def reprint_kitchen_ticket(
    controller: TableOrderController = Depends(get_controller),
) -> KitchenTicketOutput:
    return _ticket_output(await controller.print_kot())


@router.post("/new-order", response_model=TableStateOutput)
async def start_new_order(
    controller: TableOrderController = Depends(get_controller),
) -> TableStateOutput:
    await controller.start_new_order()
    return _table_state(controller)


@router.post("/cancel", response_model=list[OrderOutput])
async def cancel_orders(
    body: CancelOrdersRequest,
    controller: TableOrderController = Depends(get_controller),
) -> list[OrderOutput]:
    """Cancel every active order at the table and free it."""
    cancelled = await controller.cancel_all_orders(body.reason)
    return [_order_output(order) for order in cancelled]


# =============================================================================
# Billing
# =============================================================================


@router.get("/bill-quote", response_model=BillQuoteOutput)
async def get_bill_quote(
    coupon_discount: Decimal = Query(Decimal("0"), ge=0),
    manual_discount: Decimal = Query(Decimal("0"), ge=0),
    manual_discount_type: Literal["fixed", "percentage"] = Query("fixed"),
    tip: Decimal = Query(Decimal("0"), ge=0),
    controller: TableOrderController = Depends(get_controller),
) -> BillQuoteOutput:
    """Combined bill for the active orders with discounts, recomputed tax and tip."""
    quote = await controller.quote(
        coupon_discount=coupon_discount,
        manual_discount=manual_discount,
        manual_discount_type=manual_discount_type,
        tip=tip,
    )
    return BillQuoteOutput.model_validate(quote, from_attributes=True)


@router.post("/payment", response_model=PaymentResponse)
async def settle_payment(
    body: PaymentRequest,
    controller: TableOrderController = Depends(get_controller),
) -> PaymentResponse:
    """
    Settle every active order with one combined payment.

    The body is a direct, credit or split instruction selected by ``kind``.
    """
    outcome = await controller.handle_payment(body.instruction)
    return PaymentResponse(
        order_ids=[order.id for order in outcome.orders],
        table_status=outcome.table.status,
        credit_id=outcome.credit_id,
        redemption_id=outcome.redemption_id,
        bill_text=_last_bill_text(controller),
    )


# =============================================================================
# Commands
# =============================================================================


def _to_command(body: CommandRequest) -> Command:
    if body.type == "add_item":
        if body.menu_item_id is None or body.name is None or body.unit_price is None:
            raise ValidationError("add_item requires menu_item_id, name and unit_price")
        return AddItem(
            menu_item_id=body.menu_item_id,
            name=body.name,
            unit_price=body.unit_price,
            quantity=body.quantity,
            variants=body.variants,
            notes=body.notes,
            force_add=body.source == "voice",
        )
    if body.type == "place_order":
        return PlaceOrder(notes=body.notes)
    if body.type == "pay":
        if body.instruction is None:
            raise ValidationError("pay requires an instruction")
        return Pay(instruction=body.instruction)
    if body.type == "print_kot":
        return PrintKot()
    if body.type == "cancel":
        return Cancel(reason=body.reason or "Cancelled by staff")
    return AddCustomer(
        name=body.customer_name or "",
        phone=body.customer_phone,
        customer_id=body.customer_id,
    )


@router.post("/commands", response_model=CommandResponse)
async def run_command(
    body: CommandRequest,
    controller: TableOrderController = Depends(get_controller),
) -> CommandResponse:
    """
    Run one manual or voice command.

    Voice item adds reopen a placed or completed table instead of failing.
    """
    command = _to_command(body)
    try:
        result = await dispatch(controller, command)
    except pydantic.ValidationError as e:
        raise ValidationError(
            f"Invalid payment instruction: {e.errors()[0].get('msg', 'invalid value')}",
            table_id=controller.table_id,
        ) from e

    logger.info(
        "Command handled",
        command=body.type,
        source=body.source,
        venue_id=controller.venue_id,
        table_id=controller.table_id,
    )

    details: dict = {}
    if isinstance(command, PlaceOrder):
        details = {"order_id": result.id, "order_number": result.order_number}
    elif isinstance(command, Pay):
        details = {
            "order_ids": [order.id for order in result.orders],
            "credit_id": result.credit_id,
            "bill_text": _last_bill_text(controller),
        }
    elif isinstance(command, PrintKot):
        details = {"order_id": result.order.id, "text": render_kitchen_ticket(result)}
    elif isinstance(command, Cancel):
        details = {"order_ids": [order.id for order in result]}
    elif isinstance(command, AddCustomer):
        details = {"customer_name": result.name}

    return CommandResponse(type=body.type, state=_table_state(controller), result=details)
