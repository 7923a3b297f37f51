"""
Structured Logging Configuration Module

Provides JSON-formatted structured logging for loan calculations.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Optional


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.module if hasattr(record, 'module') else record.name,
            "logger": record.name,
            "message": record.getMessage(),
            "loan_id": getattr(record, 'loan_id', None),
            "payment_id": getattr(record, 'payment_id', None),
            "operation": getattr(record, 'operation', None),
            "extra": getattr(record, 'extra', None)
        }

        # Remove None values
        log_entry = {k: v for k, v in log_entry.items() if v is not None}

        # Add exception info if present
        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(level: str = "INFO", logger_name: str = "loan_engine",
                  log_format: str = "json") -> logging.Logger:
    """
    Setup structured logging for the engine.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Name of the logger
        log_format: "json" for structured output, "text" for human-readable lines

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Remove existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))

    # Prevent propagation to avoid duplicate logs
    logger.propagate = False

    return logger


def setup_logging_from_config() -> logging.Logger:
    """Configure the engine logger from the global EngineConfig"""
    from .config import get_config

    cfg = get_config()
    return setup_logging(level=cfg.log_level, log_format=cfg.log_format)


def get_logger(name: str = "loan_engine") -> logging.Logger:
    """Get logger instance"""
    return logging.getLogger(name)


def log_calculation(logger: logging.Logger, level: str, message: str,
                    loan_id: Optional[str] = None, payment_id: Optional[str] = None,
                    operation: Optional[str] = None, extra: Optional[dict] = None,
                    exc_info: bool = False):
    """
    Log a calculation event with structured data.

    Args:
        logger: Logger instance
        level: Log level (debug, info, warning, error)
        message: Log message
        loan_id: Loan the calculation ran for
        payment_id: Payment being applied, if any
        operation: Engine operation name (e.g. "apply_payment")
        extra: Additional structured data
        exc_info: Attach the exception currently being handled
    """
    fields = {}
    if loan_id:
        fields['loan_id'] = loan_id
    if payment_id:
        fields['payment_id'] = payment_id
    if operation:
        fields['operation'] = operation
    if extra:
        fields['extra'] = extra

    logger.log(getattr(logging, level.upper()), message, extra=fields, exc_info=exc_info)
