"""
Tests for infrastructure components: correlation ids, logging, CORS,
commits, retries, health probes and money helpers.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from pos_api.core.cors import cors_origins
from pos_api.services.domain.snapshots import CartLineView
from shared.config.logging import DevelopmentFormatter, StructuredFormatter, get_logger, mask_phone
from shared.config.settings import Settings
from shared.infrastructure.correlation import (
    CorrelationIdFilter,
    CorrelationIdMiddleware,
    get_request_id,
    get_staff_id,
    request_id_var,
    staff_id_var,
)
from shared.infrastructure.db import get_db_context, safe_commit
from shared.infrastructure.retry import RetryPolicy, call_with_retry
from shared.utils.clock import ensure_utc, venue_local
from shared.utils.exceptions import TransientBackendError, ValidationError
from shared.utils.health import (
    HealthCheckResult,
    HealthStatus,
    blocking_health_check,
    health_check_with_timeout,
    overall_status,
)
from shared.utils.money import clamp_money, percent_of, to_money
from shared.utils.schemas import CartLineOutput


# =============================================================================
# CorrelationIdMiddleware Tests
# =============================================================================


class TestCorrelationIdMiddleware:
    """Tests for correlation ID middleware."""

    @pytest.fixture
    def app_with_correlation(self):
        app = FastAPI()
        app.add_middleware(CorrelationIdMiddleware)

        @app.get("/test")
        def test_endpoint():
            return {"request_id": get_request_id(), "staff_id": get_staff_id()}

        return app

    def test_generates_request_id_when_not_provided(self, app_with_correlation):
        """Should generate a new request ID when not provided."""
        client = TestClient(app_with_correlation)
        response = client.get("/test")

        request_id = response.headers.get("X-Request-ID")
        assert request_id is not None
        assert len(request_id) == 36  # UUID v4 length
        assert response.json()["request_id"] == request_id

    def test_uses_provided_request_id(self, app_with_correlation):
        client = TestClient(app_with_correlation)
        response = client.get("/test", headers={"X-Request-ID": "terminal-2-abc"})

        assert response.headers.get("X-Request-ID") == "terminal-2-abc"

    def test_binds_staff_id(self, app_with_correlation):
        client = TestClient(app_with_correlation)

        assert client.get("/test", headers={"X-Staff-Id": "7"}).json()["staff_id"] == "7"
        assert client.get("/test").json()["staff_id"] == ""


class TestCorrelationIdFilter:
    def test_adds_request_id_to_log_record(self):
        filter_obj = CorrelationIdFilter()
        token = request_id_var.set("test-request-123")

        try:
            record = MagicMock()
            assert filter_obj.filter(record) is True
            assert record.request_id == "test-request-123"
        finally:
            request_id_var.reset(token)

    def test_uses_dash_when_no_request_id(self):
        filter_obj = CorrelationIdFilter()
        token = request_id_var.set("")

        try:
            record = MagicMock()
            filter_obj.filter(record)
            assert record.request_id == "-"
            assert record.staff_id == "-"
        finally:
            request_id_var.reset(token)

    def test_adds_staff_id_to_log_record(self):
        token = staff_id_var.set("12")

        try:
            record = MagicMock()
            CorrelationIdFilter().filter(record)
            assert record.staff_id == "12"
        finally:
            staff_id_var.reset(token)


# =============================================================================
# Logging and CORS Tests
# =============================================================================


def make_record(**attributes):
    record = logging.LogRecord("pos_api.orders", logging.INFO, __file__, 1, "Order placed", None, None)
    for key, value in attributes.items():
        setattr(record, key, value)
    return record


class TestStructuredLogging:
    def test_keyword_arguments_become_structured_data(self):
        logger = get_logger("pos_api.tests.structured")
        captured = []
        handler = logging.Handler()
        handler.emit = captured.append
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

        try:
            logger.info("Order placed", order_id=12, table_id=4)
        finally:
            logger.removeHandler(handler)

        assert captured[0].extra_data == {"order_id": 12, "table_id": 4}
        assert captured[0].funcName == "test_keyword_arguments_become_structured_data"

    def test_json_formatter_includes_context(self):
        record = make_record(request_id="req-1", staff_id="-", extra_data={"order_id": 12})

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["request_id"] == "req-1"
        assert "staff_id" not in entry
        assert entry["data"] == {"order_id": 12}
        assert entry["logger"] == "pos_api.orders"

    def test_development_formatter_tags(self):
        record = make_record(request_id="abcdef123456", staff_id="7", extra_data={"table_id": 4})

        line = DevelopmentFormatter().format(record)

        assert "abcdef12 staff 7" in line
        assert "(table_id=4)" in line

    def test_mask_phone(self):
        assert mask_phone("+91 98765 43210") == "***3210"
        assert mask_phone(None) == "<no-phone>"


class TestCorsOrigins:
    def test_configured_origins(self):
        config = Settings(allowed_origins="https://pos.example.com, https://bar.example.com ,")

        assert cors_origins(config) == ["https://pos.example.com", "https://bar.example.com"]

    def test_dev_defaults(self):
        origins = cors_origins(Settings(allowed_origins=""))

        assert "http://localhost:5173" in origins
        assert "http://127.0.0.1:3000" in origins


class TestModelConfig:
    def test_settings_read_env_file(self):
        assert Settings.model_config["env_file"] == ".env"
        assert Settings.model_config["case_sensitive"] is False

    def test_output_schemas_read_attributes(self):
        view = CartLineView(
            line_id=1,
            menu_item_id=3,
            name="Masala Chai",
            unit_price=Decimal("30"),
            quantity=2,
            line_total=Decimal("60"),
        )

        output = CartLineOutput.model_validate(view)

        assert output.line_total == Decimal("60")
        assert output.variants == []


# =============================================================================
# safe_commit Tests
# =============================================================================


class TestSafeCommit:
    def test_commits_successfully(self):
        mock_db = MagicMock()

        safe_commit(mock_db)

        mock_db.commit.assert_called_once()
        mock_db.rollback.assert_not_called()

    def test_rollbacks_and_reraises(self):
        """Should rollback and re-raise the original exception."""
        mock_db = MagicMock()

        class CustomDBError(Exception):
            pass

        mock_db.commit.side_effect = CustomDBError("Custom error")

        with pytest.raises(CustomDBError):
            safe_commit(mock_db)
        mock_db.rollback.assert_called_once()


class TestDbContext:
    def test_closes_session_even_on_error(self):
        session = MagicMock()
        factory = MagicMock(return_value=session)

        with pytest.raises(RuntimeError):
            with get_db_context(factory) as db:
                assert db is session
                raise RuntimeError("seed failed")

        session.close.assert_called_once()


# =============================================================================
# Retry Tests
# =============================================================================


NO_WAIT = RetryPolicy(max_attempts=2, initial_delay=0.0, max_delay=0.0, jitter_factor=0.0)


class TestRetryPolicy:
    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            RetryPolicy(initial_delay=2.0, max_delay=1.0)

    def test_backoff_is_capped(self):
        policy = RetryPolicy(max_attempts=5, initial_delay=0.5, max_delay=1.5, jitter_factor=0.0)

        assert [policy.delay_for(i) for i in range(4)] == [0.5, 1.0, 1.5, 1.5]

    def test_jitter_stays_in_range(self):
        policy = RetryPolicy(initial_delay=1.0, max_delay=1.0, jitter_factor=0.25)

        for _ in range(20):
            assert 0.75 <= policy.delay_for(0) <= 1.25

    @pytest.mark.asyncio
    async def test_retries_transient_failures_once(self):
        operation = AsyncMock(side_effect=[TransientBackendError("table read"), "snapshot"])

        result = await call_with_retry(operation, NO_WAIT, retry_on=(TransientBackendError,))

        assert result == "snapshot"
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        operation = AsyncMock(side_effect=TransientBackendError("table read"))

        with pytest.raises(TransientBackendError):
            await call_with_retry(operation, NO_WAIT, retry_on=(TransientBackendError,))
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self):
        operation = AsyncMock(side_effect=ValidationError("bad input"))

        with pytest.raises(ValidationError):
            await call_with_retry(operation, NO_WAIT, retry_on=(TransientBackendError,))
        assert operation.await_count == 1


# =============================================================================
# Health probe Tests
# =============================================================================


class TestHealthCheckDecorator:
    @pytest.mark.asyncio
    async def test_healthy_probe_with_details(self):
        @health_check_with_timeout(timeout=1.0)
        async def check_cart_store():
            return {"tables": 3}

        result = await check_cart_store()

        assert result.is_healthy
        assert result.component == "cart_store"
        assert result.to_dict()["details"] == {"tables": 3}

    @pytest.mark.asyncio
    async def test_failing_probe_is_unhealthy(self):
        @health_check_with_timeout(timeout=1.0, component="redis")
        async def probe():
            raise ConnectionError("refused")

        result = await probe()

        assert result.status == HealthStatus.UNHEALTHY
        assert result.error == "refused"

    @pytest.mark.asyncio
    async def test_slow_probe_times_out(self):
        @health_check_with_timeout(timeout=0.01, component="order_database")
        async def probe():
            await asyncio.sleep(1)

        result = await probe()

        assert not result.is_healthy
        assert "timeout" in result.error

    @pytest.mark.asyncio
    async def test_blocking_probe_runs_in_thread(self):
        @blocking_health_check(timeout=1.0)
        def check_order_database():
            return {"engine": "sqlite"}

        result = await check_order_database()

        assert result.component == "order_database"
        assert result.details == {"engine": "sqlite"}

    def test_overall_status(self):
        healthy = HealthCheckResult(HealthStatus.HEALTHY, "order_database")
        down = HealthCheckResult(HealthStatus.UNHEALTHY, "redis", error="refused")

        assert overall_status([healthy]) == HealthStatus.HEALTHY
        assert overall_status([healthy, down]) == HealthStatus.DEGRADED


# =============================================================================
# Money and clock Tests
# =============================================================================


class TestMoney:
    def test_rounds_half_up(self):
        assert to_money("2.345") == Decimal("2.35")
        assert to_money(0.1 + 0.2) == Decimal("0.30")

    def test_percent_of(self):
        assert percent_of(Decimal("200"), Decimal("8.5")) == Decimal("17.00")

    def test_clamp(self):
        assert clamp_money(Decimal("-5"), Decimal("10")) == Decimal("0.00")
        assert clamp_money(Decimal("15"), Decimal("10")) == Decimal("10.00")


class TestClock:
    def test_naive_values_are_utc(self):
        assert ensure_utc(datetime(2024, 6, 5, 12, 0)).tzinfo == timezone.utc

    def test_venue_local_keeps_the_instant(self):
        instant = datetime(2024, 6, 5, 12, 0, tzinfo=timezone.utc)

        local = venue_local(instant, "Asia/Kolkata")

        assert (local.hour, local.minute) == (17, 30)
        assert local == instant
