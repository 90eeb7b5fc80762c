"""
Infrastructure module: Database, retries and Redis/events.

Provides:
- Database sessions and transactions (db.py)
- Bounded retry policy (retry.py)
- Redis pub/sub for real-time order sync (events/)
"""

from shared.infrastructure.db import (
    engine,
    cart_engine,
    SessionLocal,
    CartSessionLocal,
    get_db_context,
    safe_commit,
)
from shared.infrastructure.retry import RetryPolicy, call_with_retry

__all__ = [
    # db
    "engine",
    "cart_engine",
    "SessionLocal",
    "CartSessionLocal",
    "get_db_context",
    "safe_commit",
    # retry
    "RetryPolicy",
    "call_with_retry",
]
