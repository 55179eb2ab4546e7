"""
Structured Logging Configuration

Provides JSON-formatted logging with:
- Request ID and company (tenant) tracking
- Domain events for the reservation write path
- Data-integrity alerts for invariant violations
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Optional, Any, Dict
from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar('request_id', default='')
company_id_var: ContextVar[str] = ContextVar('company_id', default='')

# Record attributes copied into the JSON line when a call site sets them
STRUCTURED_FIELDS = ("entity_type", "entity_id", "duration_ms")


class JSONFormatter(logging.Formatter):
    """One JSON object per line, tagged with the current request and company."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        for key, var in (("request_id", request_id_var), ("company_id", company_id_var)):
            value = var.get()
            if value:
                entry[key] = value

        for field in STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        details = getattr(record, 'extra_data', None)
        if details:
            entry["data"] = details
        if getattr(record, 'alert', False):
            entry["alert"] = "data_integrity"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class StructuredLogger(logging.LoggerAdapter):
    """Adapter carrying the engine's domain events."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs

    def log_with_context(
        self,
        level: int,
        msg: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        duration_ms: Optional[float] = None,
        **extra_data
    ):
        extra = {
            key: value
            for key, value in (("entity_type", entity_type), ("entity_id", entity_id), ("duration_ms", duration_ms))
            if value is not None
        }
        if extra_data:
            extra['extra_data'] = extra_data
        self.log(level, msg, extra=extra)

    def reservation_created(self, reservation_id: str, room_id: str, nights: int, total_price, duration_ms: float = None):
        self.log_with_context(
            logging.INFO,
            f"Reservation created: {nights} nights on room {room_id}",
            entity_type="reservation",
            entity_id=reservation_id,
            duration_ms=duration_ms,
            room_id=room_id,
            nights=nights,
            total_price=total_price
        )

    def reservation_cancelled(self, reservation_id: str, released_nights: int, reason: Optional[str] = None):
        self.log_with_context(
            logging.INFO,
            f"Reservation cancelled, released {released_nights} nights",
            entity_type="reservation",
            entity_id=reservation_id,
            released_nights=released_nights,
            reason=reason
        )

    def conflict_detected(self, room_id: str, check_in, check_out, reason: str, **details):
        self.log_with_context(
            logging.WARNING,
            f"Availability conflict on room {room_id}: {reason}",
            entity_type="room",
            entity_id=room_id,
            check_in=check_in,
            check_out=check_out,
            reason=reason,
            **details
        )

    def block_period_applied(self, block_period_id: str, blocked: int, released: int, reserved_overlap: int = 0):
        self.log_with_context(
            logging.INFO,
            f"Block period applied: +{blocked} / -{released} cells",
            entity_type="block_period",
            entity_id=block_period_id,
            blocked=blocked,
            released=released,
            reserved_overlap=reserved_overlap
        )

    def invariant_violation(self, message: str, entity_type: str, entity_id: str, **details):
        """Fatal data-integrity alert. The caller aborts the operation."""
        extra = {
            'entity_type': entity_type,
            'entity_id': entity_id,
            'alert': True,
        }
        if details:
            extra['extra_data'] = details
        self.log(logging.CRITICAL, f"INVARIANT VIOLATION: {message}", extra=extra)


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """
    Route roomstay, uvicorn and root logging to stdout.

    Args:
        level: DEBUG, INFO, WARNING or ERROR
        json_format: JSON lines (production) or plain text (local runs)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(
        JSONFormatter() if json_format
        else logging.Formatter('%(asctime)s %(levelname)-8s %(name)s: %(message)s')
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).handlers = [handler]

    # SQL echo only when explicitly asked for
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(logging.getLogger(name), {})


def set_request_context(request_id: str, company_id: Optional[str] = None):
    request_id_var.set(request_id)
    if company_id:
        company_id_var.set(company_id)


def clear_request_context():
    request_id_var.set('')
    company_id_var.set('')
