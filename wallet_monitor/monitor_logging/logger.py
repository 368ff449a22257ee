"""
Structured logging: timestamp, event_type, address, blockchain.

structlog with ISO timestamps, log level, and consistent keys so monitor
output can be grepped or shipped to an aggregator. All modules should use
get_logger() and log with an event_type first argument (plus address /
blockchain where relevant).

Uses only Python stdlib logging and structlog; no wallet_monitor imports to avoid circular imports.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)

# JSON output for production (LOG_FORMAT=json); human-readable for local runs
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Ensure timestamp is always present (ISO 8601, UTC)."""
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _rename_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Expose structlog's 'event' as event_type; monitor events keep their own message."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def configure_structlog(log_format: str = LOG_FORMAT, level: int = LOG_LEVEL_VALUE) -> None:
    """Configure structlog: contextvars, level, timestamp, event_type, renderer."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _rename_event,
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

        logger = get_logger(__name__)
        logger.info("poll_completed", address=addr, balance="1.5")
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_address(address: str, blockchain: str | None = None) -> structlog.BoundLogger:
    """Return a logger with the monitored address (and blockchain) bound to every call."""
    log = get_logger("wallet_monitor").bind(address=address)
    if blockchain:
        log = log.bind(blockchain=blockchain)
    return log
