"""
Structured logging for the POS terminal.

Keyword arguments given to any log call become the record's structured
data. Records are stamped (by CorrelationIdFilter) with the request id and
the staff member operating the terminal, so one action can be followed
across the controller, the order store and the feed.

JSON lines in production, coloured single lines everywhere else.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings


def _record_context(record: logging.LogRecord) -> dict[str, str]:
    """Request and staff ids set by CorrelationIdFilter, without placeholders."""
    context = {}
    for key in ("request_id", "staff_id"):
        value = getattr(record, key, None)
        if value and value != "-":
            context[key] = value
    return context


def _record_data(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "extra_data", None) or {}


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_record_context(record),
        }
        data = _record_data(record)
        if data:
            entry["data"] = data
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            entry["source"] = f"{record.pathname}:{record.lineno}"
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Coloured, human-readable lines."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        context = _record_context(record)

        tags = []
        if "request_id" in context:
            tags.append(context["request_id"][:8])
        if "staff_id" in context:
            tags.append(f"staff {context['staff_id']}")
        prefix = f"{self.DIM}[{' '.join(tags)}]{self.RESET} " if tags else ""

        line = f"{color}[{clock}] {record.levelname:8}{self.RESET} {prefix}{record.name}: {record.getMessage()}"
        data = _record_data(record)
        if data:
            line += " (" + " | ".join(f"{k}={v}" for k, v in data.items()) + ")"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """
    Logger accepting structured keyword data on every level method.

        logger.info("Order placed", order_id=12, table_id=4)
        logger.error("Settlement failed", table_id=4, exc_info=True)
    """

    def _log(
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **data: Any,
    ) -> None:
        extra = dict(extra or {})
        extra["extra_data"] = data or None
        # One extra frame (this override) between the caller and the stdlib
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """Install the terminal's handler on the root logger. Call once at startup."""
    # Import here to avoid circular imports
    from shared.infrastructure.correlation import CorrelationIdFilter

    level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        StructuredFormatter() if settings.environment == "production" else DevelopmentFormatter()
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name, quiet_level in (
        ("uvicorn.access", logging.WARNING),
        ("sqlalchemy.engine", logging.WARNING),
        ("httpx", logging.WARNING),
    ):
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> StructuredLogger:
    """Module logger: ``logger = get_logger(__name__)``."""
    return logging.getLogger(name)  # type: ignore


def mask_phone(phone: str | None) -> str:
    """
    Mask a customer phone number for logging.

    "+919876543210" becomes "***3210", enough to match a credit ledger
    entry without writing the full number to the logs.
    """
    if not phone:
        return "<no-phone>"

    digits = "".join(ch for ch in phone if ch.isdigit())
    if len(digits) <= 4:
        return "***"
    return f"***{digits[-4:]}"


# Loggers for the engine's main concerns
pos_api_logger = get_logger("pos_api")
orders_logger = get_logger("pos_api.orders")
payments_logger = get_logger("pos_api.payments")
coupons_logger = get_logger("pos_api.coupons")
