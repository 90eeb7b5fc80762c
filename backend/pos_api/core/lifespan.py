"""
Application lifespan handler.
Manages startup and shutdown events for the FastAPI application.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from pos_api.models import Base, LocalBase
from pos_api.seed import seed
from pos_api.services.domain.order_store import OrderStore
from pos_api.services.events import create_order_feed
from pos_api.services.terminal import TerminalRegistry
from shared.config.logging import setup_logging, pos_api_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import CartSessionLocal, SessionLocal, cart_engine, engine, get_db_context
from shared.infrastructure.events import close_redis_pool


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Runs on startup and shutdown.
    """
    # Initialize logging
    setup_logging()

    # Validate production settings before startup
    config_errors = settings.validate_production_settings()
    if config_errors:
        for error in config_errors:
            logger.error("Configuration error", error=error)
        if settings.environment == "production":
            raise RuntimeError(
                f"Production configuration errors: {'; '.join(config_errors)}. "
                "Server will not start with an unsafe configuration."
            )
        logger.warning("Running with development defaults")

    logger.info(
        "Starting POS API",
        port=settings.rest_api_port,
        env=settings.environment,
        order_feed=settings.order_feed_backend,
    )

    # Create database tables (order database and local cart store)
    Base.metadata.create_all(bind=engine)
    LocalBase.metadata.create_all(bind=cart_engine)
    logger.info("Database tables created/verified")

    if settings.seed_demo_data:
        with get_db_context() as db:
            seed(db)

    feed = create_order_feed(settings.order_feed_backend)
    await feed.start()
    app.state.order_feed = feed
    app.state.registry = TerminalRegistry(OrderStore(SessionLocal, feed), CartSessionLocal)

    yield

    # Shutdown
    logger.info("Shutting down POS API")
    await app.state.registry.close_all()
    await feed.stop()

    await close_redis_pool()
    logger.info("Redis connection pool closed")
