"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from obligation_engine.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_operation(
    operation: str,
    outcome: str,
    duration_ms: float,
    **fields: Any,
) -> None:
    """Log structured lifecycle operation outcome for analysis"""
    level = logging.INFO
    if outcome == "store_failure":
        level = logging.ERROR
    elif outcome != "ok":
        level = logging.WARNING

    logging.getLogger("obligation_engine.lifecycle").log(
        level,
        "Lifecycle operation completed" if outcome == "ok" else "Lifecycle operation rejected",
        extra={
            "step": operation,
            "outcome": outcome,
            "duration_ms": duration_ms,
            **{key: str(value) if value is not None else None for key, value in fields.items()},
        },
    )
