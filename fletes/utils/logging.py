"""Structured logging configuration.

Events are built with structlog and handed to the standard library root
logger, so uvicorn and application logs share one handler. In JSON mode the
event fields become top-level keys of each python-json-logger record.
"""

import logging
import sys
from typing import Any

import structlog
from pythonjsonlogger.json import JsonFormatter

from fletes.config import get_settings

SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.filter_by_level,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def _json_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"levelname": "level", "asctime": "timestamp"},
        )
    )
    return handler


def _text_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return handler


def setup_logging() -> None:
    """Configure structlog and the root logger from settings."""
    settings = get_settings()
    log_level = getattr(logging, settings.log_level)
    json_output = settings.log_format == "json"

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(_json_handler() if json_output else _text_handler())

    if json_output:
        renderer = structlog.stdlib.render_to_log_kwargs
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[*SHARED_PROCESSORS, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class ServiceLogger:
    """Logger for the recurring events of a dispatch service."""

    def __init__(self, service: str):
        self.service = service
        self.logger = get_logger(service)

    def log_transition(
        self,
        job_id: str,
        from_status: str,
        to_status: str,
        changed: bool,
        **kwargs: Any,
    ) -> None:
        """Log a job status transition."""
        self.logger.info(
            "job_transitioned",
            service=self.service,
            job_id=job_id,
            from_status=from_status,
            to_status=to_status,
            changed=changed,
            **kwargs,
        )

    def log_rejection(
        self,
        job_id: str,
        code: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        """Log a rejected request."""
        self.logger.info(
            "request_rejected",
            service=self.service,
            job_id=job_id,
            code=code,
            reason=reason,
            **kwargs,
        )

    def log_fix(
        self,
        job_id: str,
        outcome: str,
        distance_meters: int,
        **kwargs: Any,
    ) -> None:
        """Log a position fix after filtering."""
        self.logger.debug(
            "position_fix_filtered",
            service=self.service,
            job_id=job_id,
            outcome=outcome,
            distance_meters=distance_meters,
            **kwargs,
        )
