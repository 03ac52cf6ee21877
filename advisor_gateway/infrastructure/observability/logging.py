"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from advisor_gateway.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name
        log_record["version"] = settings.service_version


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

    # httpx logs every model call at INFO; the advice client logs its own summary
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def log_recommendation(
    recommendation_type: str,
    owner_id: str | None,
    success: bool,
    from_cache: bool,
    duration_ms: float,
    error: str | None = None,
) -> None:
    """Log structured recommendation outcome for analysis"""
    logging.info(
        "Recommendation completed",
        extra={
            "owner_id": owner_id,
            "step": "recommendation_complete",
            "recommendation_type": recommendation_type,
            "outcome": "success" if success else "failure",
            "from_cache": from_cache,
            "error_code": error,
            "duration_ms": duration_ms,
        },
    )
