"""Structured logging for the Trust & Settlement core, built on structlog.

JSON lines in production, coloured console output in development. Every
entry carries the request_id bound by the middleware (or the sweep's run id),
so a whole cascade (vote -> stats -> trust score -> suspension) shares one
correlation key.

Payment and payout references are masked before rendering: only their last
four characters reach the log sink.

Usage:
    from trust_settlement.logging_config import setup_logging, get_logger
    setup_logging(log_level="INFO", json_logs=True, component="api")
    logger = get_logger(__name__)
    logger.info("escrow.released", transaction_id="abc-123", net_amount_xaf=90000)
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping

SERVICE_NAME = "trust-settlement-core"

# Event keys whose values identify money movements outside the core.
MASKED_KEYS = frozenset({"reference", "payment_reference", "payout_reference"})

QUIET_LOGGERS = (
    "uvicorn.access",
    "sqlalchemy.engine",
    "aiosqlite",
    "alembic.runtime.migration",
    "httpx",
    "httpcore",
)


def mask_reference(value: object) -> object:
    """Keep the last four characters of a reference, star out the rest."""
    if not isinstance(value, str) or len(value) <= 4:
        return value
    return "*" * (len(value) - 4) + value[-4:]


def _mask_references(
    logger: object, method_name: str, event_dict: MutableMapping[str, object]
) -> MutableMapping[str, object]:
    for key in MASKED_KEYS & event_dict.keys():
        event_dict[key] = mask_reference(event_dict[key])
    return event_dict


def _service_tagger(component: str) -> structlog.types.Processor:
    def _tag(
        logger: object, method_name: str, event_dict: MutableMapping[str, object]
    ) -> MutableMapping[str, object]:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("component", component)
        return event_dict

    return _tag


def setup_logging(
    log_level: str = "DEBUG",
    json_logs: bool = False,
    component: str = "api",
) -> None:
    """Configure structlog and route the standard library through it.

    Args:
        log_level: Standard level name (DEBUG, INFO, WARNING, ...).
        json_logs: JSON lines when True, coloured console otherwise.
        component: Which process is logging ("api" or "auto_release").
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_tagger(component),
        _mask_references,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.DEBUG))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to `name`."""
    return structlog.get_logger(name)
