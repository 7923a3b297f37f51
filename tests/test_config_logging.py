"""
Test suite for configuration and structured logging
"""

import json
import logging
import pytest
import sys
from decimal import Decimal

from loan_engine.config import EngineConfig, get_config, reload_config
from loan_engine.logging_config import (
    JSONFormatter, setup_logging, setup_logging_from_config, get_logger, log_calculation
)


class TestEngineConfig:
    """Test environment-based configuration"""

    def test_defaults(self):
        """Test built-in defaults"""
        config = EngineConfig()

        assert config.default_projection_months == 120
        assert config.max_projection_months == 600
        assert config.payoff_epsilon == Decimal('0.01')
        assert config.divergence_fallback_months == 360
        assert config.default_grace_period_months == 6
        assert config.default_currency == "USD"

    def test_environment_override(self, monkeypatch):
        """Test LOAN_ENGINE_ variables override defaults"""
        monkeypatch.setenv("LOAN_ENGINE_MAX_PROJECTION_MONTHS", "240")
        monkeypatch.setenv("LOAN_ENGINE_PAYOFF_EPSILON", "0.001")

        config = EngineConfig()

        assert config.max_projection_months == 240
        assert config.payoff_epsilon == Decimal('0.001')

    def test_reload_config(self, monkeypatch):
        """Test reloading replaces the global configuration"""
        monkeypatch.setenv("LOAN_ENGINE_DEFAULT_GRACE_PERIOD_MONTHS", "9")
        try:
            reloaded = reload_config()
            assert reloaded.default_grace_period_months == 9
            assert get_config() is reloaded
        finally:
            monkeypatch.delenv("LOAN_ENGINE_DEFAULT_GRACE_PERIOD_MONTHS")
            reload_config()

        assert get_config().default_grace_period_months == 6


class TestStructuredLogging:
    """Test JSON logging helpers"""

    def teardown_method(self):
        """Restore the engine logger for other tests"""
        logger = logging.getLogger("loan_engine")
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
        logger.propagate = True

    def test_json_formatter_fields(self):
        """Test structured fields appear in the JSON entry"""
        record = logging.LogRecord("loan_engine.payments", logging.INFO, __file__, 1,
                                   "Payment recorded", None, None)
        record.loan_id = "loan-1"
        record.payment_id = "p1"
        record.operation = "record_payment"
        record.extra = {"amount": "100.00"}

        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "loan_engine.payments"
        assert entry["message"] == "Payment recorded"
        assert entry["loan_id"] == "loan-1"
        assert entry["payment_id"] == "p1"
        assert entry["extra"] == {"amount": "100.00"}
        assert "timestamp" in entry

    def test_json_formatter_omits_missing_fields(self):
        """Test absent structured fields are left out"""
        record = logging.LogRecord("loan_engine", logging.WARNING, __file__, 1, "plain", None, None)
        entry = json.loads(JSONFormatter().format(record))

        assert "loan_id" not in entry
        assert "exception" not in entry

    def test_json_formatter_exception(self):
        """Test exception tracebacks are included"""
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("loan_engine", logging.ERROR, __file__, 1, "failed", None,
                                       sys.exc_info())

        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in entry["exception"]

    def test_setup_logging(self):
        """Test the engine logger is configured once per call"""
        logger = setup_logging(level="DEBUG", log_format="json")
        logger = setup_logging(level="WARNING", log_format="text")

        assert logger.name == "loan_engine"
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert not logger.propagate

    def test_setup_logging_from_config(self):
        """Test logging follows the configured level and format"""
        logger = setup_logging_from_config()

        assert logger.level == getattr(logging, get_config().log_level.upper())
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_log_calculation(self, caplog):
        """Test structured fields are attached to the record"""
        logger = get_logger("loan_engine.test")
        with caplog.at_level(logging.INFO, logger="loan_engine"):
            log_calculation(logger, "info", "Applied payment", loan_id="loan-1", payment_id="p1",
                            operation="apply_payment", extra={"interest": "20.53"})

        record = caplog.records[-1]
        assert record.loan_id == "loan-1"
        assert record.payment_id == "p1"
        assert record.operation == "apply_payment"
        assert record.extra == {"interest": "20.53"}

    def test_invalid_level(self):
        """Test unknown level names are rejected"""
        with pytest.raises(AttributeError):
            setup_logging(level="LOUD")
