"""
Centralized HTTP exceptions for consistent error handling.

Every engine failure a caller can act on derives from AppException, so
routers can let them propagate and FastAPI renders the status code.

Usage:
    from shared.utils.exceptions import NotFoundError, ValidationError

    raise NotFoundError("Order", order_id)
    raise ValidationError("Cart is empty", table_id=table_id)
"""

from fastapi import HTTPException, status
from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404). Terminal, never retried.

    Usage:
        raise NotFoundError("Order", 123)
        raise NotFoundError("Table", table_id, venue_id=venue_id)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} with ID {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class VenueNotFoundError(NotFoundError):
    """Venue not found."""

    def __init__(self, venue_id: int | None = None, **log_context: Any):
        super().__init__("Venue", venue_id, **log_context)


class TableNotFoundError(NotFoundError):
    """Table not found in the venue."""

    def __init__(self, table_id: int | None = None, **log_context: Any):
        super().__init__("Table", table_id, **log_context)


class OrderNotFoundError(NotFoundError):
    """Order not found in the venue."""

    def __init__(self, order_id: int | None = None, **log_context: Any):
        super().__init__("Order", order_id, **log_context)


class CouponNotFoundError(NotFoundError):
    """Coupon not found."""

    def __init__(self, coupon: int | str | None = None, **log_context: Any):
        super().__init__("Coupon", coupon, **log_context)


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400). Reported to the caller, never retried.

    Usage:
        raise ValidationError("Quantity must be positive")
        raise ValidationError("Invalid quantity", field="quantity", value=-1)
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class EmptyCartError(ValidationError):
    """Attempted to place an order from an empty cart."""

    def __init__(self, **log_context: Any):
        super().__init__("Cannot place an order from an empty cart", **log_context)


class MissingStaffError(ValidationError):
    """Order placement requires an identified staff member."""

    def __init__(self, **log_context: Any):
        super().__init__("A staff identity is required to place an order", **log_context)


class InvalidStateError(ValidationError):
    """Entity is in an invalid state for the operation."""

    def __init__(self, entity: str, current_state: str, expected_states: list[str] | None = None, **log_context: Any):
        if expected_states:
            states_str = ", ".join(expected_states)
            detail = f"{entity} is in state '{current_state}', expected: {states_str}"
        else:
            detail = f"{entity} cannot be in state '{current_state}' for this operation"

        super().__init__(detail, entity=entity, current_state=current_state, **log_context)


class InvalidCouponConfigError(ValidationError):
    """Coupon configuration payload is malformed for its type."""

    def __init__(self, code: str, reason: str = "Invalid coupon configuration", **log_context: Any):
        super().__init__(f"{reason} ({code})", coupon_code=code, **log_context)


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    Resource conflict error (409).

    Usage:
        raise ConflictError("Table already has a settlement in progress")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class CouponExhaustedError(ConflictError):
    """Coupon usage limit reached at redemption time."""

    def __init__(self, coupon_id: int, reason: str = "usage limit reached", **log_context: Any):
        super().__init__(f"Coupon {coupon_id} cannot be redeemed: {reason}", coupon_id=coupon_id, **log_context)


class SettlementConflictError(ConflictError):
    """The table's active orders changed between quoting and settling the bill."""

    def __init__(self, table_id: int, expected: list[int], actual: list[int], **log_context: Any):
        super().__init__(
            f"Active orders for table {table_id} changed, re-open the bill and retry",
            table_id=table_id,
            expected_order_ids=expected,
            actual_order_ids=actual,
            **log_context,
        )


# =============================================================================
# 5xx Errors
# =============================================================================


class TransientBackendError(AppException):
    """
    Network or persistence failure (503).

    Reads may be retried once by the caller. Writes that move money
    (order placement, settlement, credit creation) surface it immediately.
    """

    def __init__(
        self,
        operation: str,
        retry_after: int | None = None,
        **log_context: Any,
    ):
        headers = None
        if retry_after:
            headers = {"Retry-After": str(retry_after)}

        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Backend temporarily unavailable during {operation}. Please try again.",
            log_level="error",
            headers=headers,
            operation=operation,
            **log_context,
        )


# =============================================================================
# Internal (never rendered to a client)
# =============================================================================


class InconsistentStateError(Exception):
    """
    Table and order records disagree (an available table with active orders).

    Raised and handled inside the lifecycle controller, which heals the
    table instead of reporting a failure to the user.
    """

    def __init__(self, table_id: int, order_ids: list[int]):
        self.table_id = table_id
        self.order_ids = order_ids
        super().__init__(
            f"Table {table_id} is available but has active orders {order_ids}"
        )
