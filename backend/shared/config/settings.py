"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    # Shared order database (single source of truth for orders, tables, coupons)
    database_url: str = "sqlite:///./tableside.db"

    # Terminal-local durable store for in-progress carts
    cart_store_url: str = "sqlite:///./tableside_cart.db"

    # Redis push channel for multi-terminal order sync
    redis_url: str = "redis://localhost:6379"
    # "redis" publishes order changes to every terminal, "local" keeps them in-process
    order_feed_backend: str = "local"
    order_channel_prefix: str = "venue"

    # Comma-separated list of allowed origins (empty uses default localhost list)
    allowed_origins: str = ""

    # Server port
    rest_api_port: int = 8000

    # Environment
    environment: str = "development"
    debug: bool = True

    # Seed a demo venue, menu and coupons on startup when the database is empty
    seed_demo_data: bool = True

    # Venue defaults
    default_tax_rate: float = 8.5  # Percentage applied when a venue has no rate of its own
    venue_timezone: str = "UTC"  # Coupon time windows and valid days are evaluated here

    # Lifecycle controller
    hydration_timeout_seconds: float = 5.0  # Bounded wait for the initial table read
    reconcile_retry_attempts: int = 2  # First read plus one retry
    reconcile_retry_delay_seconds: float = 0.5
    reconcile_retry_max_delay_seconds: float = 2.0

    # Redis
    redis_pool_max_connections: int = 20
    redis_socket_timeout: int = 5
    redis_publish_max_retries: int = 3
    redis_publish_retry_delay: float = 0.1
    redis_pubsub_cleanup_timeout: float = 5.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    def validate_production_settings(self) -> list[str]:
        """
        Validate that settings are safe for a production deployment.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if self.environment == "production":
            if self.debug:
                errors.append("DEBUG must be False in production")

            if not self.allowed_origins:
                errors.append(
                    "ALLOWED_ORIGINS must be set in production (comma-separated list of allowed domains)"
                )

            if self.order_feed_backend != "redis":
                errors.append(
                    "ORDER_FEED_BACKEND must be 'redis' in production so terminals stay in sync"
                )

        if self.default_tax_rate < 0:
            errors.append("DEFAULT_TAX_RATE cannot be negative")

        if self.reconcile_retry_attempts < 1:
            errors.append("RECONCILE_RETRY_ATTEMPTS must be at least 1")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()

# Direct access to commonly used settings
DATABASE_URL = settings.database_url
CART_STORE_URL = settings.cart_store_url
