"""
Shared module for common utilities used by the POS API.

STRUCTURE:
- shared.infrastructure: Database and messaging
  - db.py: SQLAlchemy sessions (order database and local cart store), get_db_context(), safe_commit()
  - retry.py: Bounded retry for reads
  - correlation.py: Request correlation IDs
  - events/: Redis pub/sub, event publishing

- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging
  - constants.py: OrderStatus, TableStatus, CouponType, enums

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - money.py: Decimal rounding and apportioning
  - clock.py: UTC and venue-local time
  - schemas.py: Shared Pydantic schemas

IMPORT EXAMPLES:
    from shared.infrastructure.db import get_db_context, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import OrderStatus, TableStatus
    from shared.utils.exceptions import NotFoundError, ValidationError
    from shared.utils.money import to_money, apportion
"""

# This module provides no re-exports.
# All imports should use the canonical paths as documented above.
