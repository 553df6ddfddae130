"""Structured logging configuration."""

import logging
import sys
from typing import Any

import structlog
from pythonjsonlogger import jsonlogger

from tiffin.config import get_settings


def setup_logging() -> None:
    """Configure structured logging for the application."""
    settings = get_settings()

    log_level = getattr(logging, settings.log_level)

    handler = logging.StreamHandler(sys.stdout)
    if settings.log_format == "json":
        formatter = jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"levelname": "level", "asctime": "timestamp"},
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer() if settings.log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class TransitionLogger:
    """Logs state transitions and delivery claims for one lifecycle."""

    def __init__(self, entity: str):
        self.entity = entity
        self.logger = get_logger(f"tiffin.transitions.{entity}")

    def log_transition(
        self,
        entity_id: str,
        from_status: str,
        to_status: str,
        actor_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Log a status change that was committed."""
        self.logger.info(
            f"{self.entity}_status_changed",
            entity_id=entity_id,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            **kwargs,
        )

    def log_rejected(
        self,
        entity_id: str,
        from_status: str,
        to_status: str,
        reason: str,
        actor_id: str | None = None,
    ) -> None:
        """Log a transition refused by the workflow rules."""
        self.logger.warning(
            f"{self.entity}_transition_rejected",
            entity_id=entity_id,
            from_status=from_status,
            to_status=to_status,
            reason=reason,
            actor_id=actor_id,
        )

    def log_claim(
        self,
        entity_id: str,
        partner_id: str,
        won: bool,
        code: str | None = None,
    ) -> None:
        """Log the outcome of a delivery claim attempt."""
        event = "delivery_claim_won" if won else "delivery_claim_lost"
        log = self.logger.info if won else self.logger.warning
        log(event, entity_id=entity_id, partner_id=partner_id, code=code)
