"""
Structured logging configuration.

- Development: human-readable colored format
- Production: JSON format (log aggregator compatible)
- Log level: controlled via LOG_LEVEL env variable

Every record emitted while a request is active is stamped with the
request id, the acting user and the project/tier/field ids the route
addresses, so a tier's history can be followed across log lines.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

# Request-scoped extras copied into JSON log lines when present on the record
_EXTRA_KEYS = (
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "request_id",
    "user_id",
    "project_id",
    "tier_id",
    "field_id",
)

# Scope ids shown inline by the readable formatter, in this order
_SCOPE_TAGS = (("request_id", "req"), ("project_id", "project"), ("tier_id", "tier"), ("field_id", "field"))


def request_scope() -> dict:
    """Ids the current request addresses, from the URL rule or the ``fieldId`` query arg."""
    view_args = request.view_args or {}
    field_id = view_args.get("field_id")
    if field_id is None:
        field_id = request.args.get("fieldId", type=int)
    actor = getattr(g, "current_user", None)
    return {
        "request_id": getattr(g, "request_id", None),
        "user_id": actor["id"] if actor else None,
        "project_id": view_args.get("project_id"),
        "tier_id": view_args.get("tier_id"),
        "field_id": field_id,
    }


class RequestContextFilter(logging.Filter):
    """Stamp request scope onto records; explicit ``extra=`` values win."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        for key, val in request_scope().items():
            if getattr(record, key, None) is None:
                setattr(record, key, val)
        return True


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production / log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        for key in _EXTRA_KEYS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val
        return json.dumps(log_entry, ensure_ascii=False)


class ReadableFormatter(logging.Formatter):
    """Human-readable colored formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",      # cyan
        "INFO": "\033[32m",       # green
        "WARNING": "\033[33m",    # yellow
        "ERROR": "\033[31m",      # red
        "CRITICAL": "\033[35m",   # magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.now().strftime("%H:%M:%S")
        duration = getattr(record, "duration_ms", None)
        dur_str = f" [{duration:.0f}ms]" if duration is not None else ""
        tags = [
            f"{label}={getattr(record, key)}"
            for key, label in _SCOPE_TAGS
            if getattr(record, key, None) is not None
        ]
        scope = f" ({' '.join(tags)})" if tags else ""
        msg = record.getMessage()
        base = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {msg}{scope}{dur_str}"
        if record.exc_info and record.exc_info[0] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


def configure_logging(app):
    """
    Set up structured logging for the Flask app.

    Reads LOG_LEVEL from env (default: DEBUG in dev, INFO in prod).
    Development  → ReadableFormatter on stderr
    Production   → JSONFormatter on stderr
    Both attach RequestContextFilter to the handler.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG")
    level = getattr(logging, level_name.upper(), logging.INFO)

    formatter = JSONFormatter() if is_prod else ReadableFormatter()

    # Single stream handler on the root logger; cleared first so repeated
    # create_app() calls in tests do not stack handlers
    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("urllib3", "werkzeug", "sqlalchemy.engine", "alembic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "JSON" if is_prod else "readable")
