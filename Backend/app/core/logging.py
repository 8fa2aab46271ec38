# Backend/app/core/logging.py
from __future__ import annotations

import logging
import sys
from typing import Any, Dict
from datetime import datetime, timezone

import structlog

from app.core.request_id import get_run_id


# -------- Processors ---------------------------------------------------------

def _add_ts(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    # ISO 8601 UTC, short and sortable
    event_dict.setdefault("ts", datetime.now(timezone.utc).isoformat(timespec="milliseconds"))
    return event_dict

def _add_level(_: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    level = event_dict.get("level") or method_name or "info"
    if level == "exception":
        level = "error"
    event_dict["level"] = str(level).lower()
    return event_dict

def _add_service(service_name: str):
    def _inner(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict
    return _inner

def _add_run_id(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    run = get_run_id()
    if run:
        event_dict.setdefault("run_id", run)
    return event_dict

# Key-based redaction of provider credentials.
_SECRET_KEYS = {
    "authorization", "auth", "token", "access_token", "api_key", "apikey",
    "password", "pwd", "secret", "dsn", "database_url",
}

def _secret_guard(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for k in list(event_dict.keys()):
        if str(k).lower() in _SECRET_KEYS:
            event_dict[k] = "***redacted***"
    return event_dict


# -------- Public API ---------------------------------------------------------

_logger: structlog.BoundLogger | None = None

def configure_logging(service_name: str = "worker", *, level: int = logging.INFO) -> None:
    """
    Configure one global structlog stack for all workers and scripts.
    """
    global _logger

    # stdlib loggers (asyncpg, httpx) share the same stream
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stdout,
        force=True,
    )

    processors = [
        _add_ts,
        _add_level,
        _add_service(service_name),
        _add_run_id,
        _secret_guard,
        structlog.processors.EventRenamer("event"),
        structlog.processors.dict_tracebacks,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _logger = structlog.get_logger()

def get_logger() -> structlog.BoundLogger:
    global _logger
    if _logger is None:
        configure_logging("worker")
    return _logger
