"""
Coupons router.
Validates a coupon code against a table's billable lines without redeeming it.
"""

from fastapi import APIRouter, Depends

from pos_api.core.dependencies import get_registry
from pos_api.services.terminal import TerminalRegistry
from shared.utils.schemas import (
    CouponValidateRequest,
    CouponValidationOutput,
    FreeItemOutput,
)


router = APIRouter(tags=["coupons"])


@router.post("/api/venues/{venue_id}/coupons/validate", response_model=CouponValidationOutput)
async def validate_coupon(
    venue_id: int,
    body: CouponValidateRequest,
    registry: TerminalRegistry = Depends(get_registry),
) -> CouponValidationOutput:
    """
    Check a coupon against the table's active orders, or its cart before
    the first order is placed.

    A rejected coupon is a normal 200 response with ``is_valid`` false and
    a machine-readable ``error``; unknown venues and tables are 404.
    """
    controller = await registry.get(venue_id, body.table_id)
    result = await controller.validate_coupon(
        body.code,
        customer_id=body.customer_id,
        payment_method=body.payment_method,
    )
    return CouponValidationOutput(
        is_valid=result.is_valid,
        error=result.error,
        message=result.message,
        coupon_id=result.coupon.id if result.coupon else None,
        coupon_code=result.coupon.code if result.coupon else None,
        discount_amount=result.discount_amount,
        free_items=[FreeItemOutput.model_validate(item, from_attributes=True) for item in result.free_items],
        applicable_items=list(result.applicable_items),
    )
