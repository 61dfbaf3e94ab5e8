"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from savings_agent.config import settings


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


def log_analysis(
    request_id: str,
    endpoint: str,
    transaction_count: int,
    opportunity_kinds: list[str],
    total_potential_savings: str,
    duration_ms: float,
) -> None:
    """Log structured analysis outcome"""
    logging.info(
        "Savings analysis completed",
        extra={
            "request_id": request_id,
            "step": "analysis_complete",
            "endpoint": endpoint,
            "transaction_count": transaction_count,
            "opportunities": opportunity_kinds,
            "total_potential_savings": total_potential_savings,
            "duration_ms": duration_ms,
        },
    )


def log_withdrawal_decision(
    request_id: str,
    vault_id: str,
    allowed: bool,
    reason: str | None,
    hours_remaining: int | None = None,
) -> None:
    """Log structured soft-lock decision"""
    logging.info(
        "Withdrawal decision",
        extra={
            "request_id": request_id,
            "vault_id": vault_id,
            "step": "soft_lock_check",
            "outcome": "allowed" if allowed else reason,
            "hours_remaining": hours_remaining,
        },
    )
