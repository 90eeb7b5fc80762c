"""
Database configuration and session management.
Uses SQLAlchemy 2.0 patterns.

Two engines exist:
- engine / SessionLocal: the shared order database every terminal writes to
- cart_engine / CartSessionLocal: the terminal-local durable cart store
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from shared.config.settings import DATABASE_URL, CART_STORE_URL


def _build_engine(url: str) -> Engine:
    """Create an engine with pooling options suited to the backend."""
    if url.startswith("sqlite"):
        # SQLite connections are handed to worker threads by asyncio.to_thread
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=False,
        )
    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=10,
        pool_timeout=30,  # Wait max 30s for connection from pool
        pool_recycle=1800,  # Recycle connections after 30 minutes
        echo=False,
    )


engine = _build_engine(DATABASE_URL)
cart_engine = _build_engine(CART_STORE_URL)

# Session factories
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)
CartSessionLocal = sessionmaker(
    bind=cart_engine,
    autoflush=False,
    autocommit=False,
)


@contextmanager
def get_db_context(
    session_factory: sessionmaker[Session] = SessionLocal,
) -> Generator[Session, None, None]:
    """
    Session for work outside a request, closed on exit.

    Usage:
        with get_db_context() as db:
            seed(db)

        with get_db_context(CartSessionLocal) as cart_db:
            cart_db.execute(text("SELECT 1"))
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def safe_commit(db: Session) -> None:
    """
    Commit with automatic rollback on failure.

    Raises the original exception after rolling back.
    """
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
