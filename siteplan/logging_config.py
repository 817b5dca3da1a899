"""
Structured logging for the scheduler.

Service, routes and scripts log through structlog with key/value context. The
pure engine modules log through the standard library; both end up in the same
handlers because structlog renders into stdlib logging.
"""
import logging.config
import os
import sys
import time
import uuid
from typing import Optional

import structlog

LOGGER_NAMESPACE = "siteplan"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def _structlog_processors():
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def _handlers(log_level: str, log_file: Optional[str]) -> dict:
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": "plain",
            "stream": sys.stdout,
        }
    }
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "plain",
            "filename": log_file,
            "maxBytes": LOG_FILE_MAX_BYTES,
            "backupCount": LOG_FILE_BACKUPS,
        }
    return handlers


def configure_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """
    Configure structlog and the stdlib handlers it renders into.
    
    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        log_file: Optional path for a rotating log file; stdout only if None
    """
    log_level = log_level.upper()
    structlog.configure(
        processors=_structlog_processors(),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers = _handlers(log_level, log_file)
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
        },
        "handlers": handlers,
        "root": {"level": log_level, "handlers": list(handlers)},
    })

    logger = get_logger(LOGGER_NAMESPACE)
    logger.info("Logging configured", level=log_level, file=log_file)
    return logger


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class ScheduleContext:
    """
    Wraps one schedule operation on a location.
    
    Every line logged through `ctx.log` carries the operation name, location
    and a short correlation id. On exit a single summary line is written:
    the error kind for a rejected operation, the change count and resulting
    schedule version for an accepted one, or the exception for a crash.
    
    Usage:
        with ScheduleContext('reorder', location_id=12) as ctx:
            return ctx.record(result)
    """

    def __init__(self, operation: str, location_id: Optional[int] = None,
                 operation_id: Optional[str] = None):
        self.operation = operation
        self.location_id = location_id
        self.operation_id = operation_id or uuid.uuid4().hex[:8]
        self.log = get_logger(f"{LOGGER_NAMESPACE}.schedule").bind(
            operation=operation,
            location_id=location_id,
            operation_id=self.operation_id,
        )
        self.outcome = {}
        self._started = None

    def record(self, result):
        """Remember a ScheduleResult for the summary line and hand it back."""
        if result.ok:
            self.outcome = {
                "status": "applied" if result.changes else "unchanged",
                "changes": len(result.changes),
                "version": result.version,
            }
        else:
            self.outcome = {
                "status": "rejected",
                "error_kind": result.error.kind.value,
                "task_id": result.error.task_id,
            }
        return result

    def __enter__(self):
        self._started = time.monotonic()
        self.log.info("Schedule operation started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = round((time.monotonic() - self._started) * 1000, 1)
        if exc_type is None:
            self.log.info("Schedule operation finished", duration_ms=duration_ms, **self.outcome)
        else:
            self.log.error(
                "Schedule operation failed",
                duration_ms=duration_ms,
                error_type=exc_type.__name__,
                error_message=str(exc_val),
            )
        return False
