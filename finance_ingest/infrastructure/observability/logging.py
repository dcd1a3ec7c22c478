"""Structured JSON logging for the ingestion pipeline"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from finance_ingest.config import settings


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

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_ingestion(
    message_id: str,
    source_type: str,
    success: bool,
    duration_ms: float,
    reason: Optional[str] = None,
    record_id: Optional[str] = None,
) -> None:
    """One structured line per finished ingest() call"""
    logging.info(
        "Ingestion completed",
        extra={
            "message_id": message_id,
            "source_type": source_type,
            "step": "ingest_complete",
            "outcome": "recorded" if success else "rejected",
            "reason": reason,
            "record_id": record_id,
            "duration_ms": duration_ms,
        },
    )
