"""
Utilities module: Exceptions, money and clock helpers, schemas.
"""

from shared.utils.exceptions import (
    AppException,
    NotFoundError,
    ValidationError,
    ConflictError,
    TransientBackendError,
)
from shared.utils.money import to_money, apportion
from shared.utils.clock import utc_now, ensure_utc
from shared.utils.schemas import ErrorResponse

__all__ = [
    # exceptions
    "AppException",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "TransientBackendError",
    # money
    "to_money",
    "apportion",
    # clock
    "utc_now",
    "ensure_utc",
    # schemas
    "ErrorResponse",
]
