"""
Structured logging configuration for the contact form API.

JSON logs in production (for log aggregation), colourised human-readable
logs in development and minimal logging in test. Every record emitted inside
a request carries the request_id, method, path and client address; request
start and completion are logged as ``request.started`` / ``request.completed``
events with status code and response time.
"""

import logging
import sys
import time
import uuid
from typing import Any, Dict
from datetime import datetime, timezone

from flask import Flask, g, has_request_context, request
from pythonjsonlogger import jsonlogger


class ContextualJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter that adds contextual fields from Flask's request context.

    Includes timestamp (ISO-8601), level, logger name, app_env and, inside a
    request, request_id, method, path, query_string, remote_addr, user_agent
    and response_time_ms.
    """

    def __init__(self, *args, app_env: str = "production", **kwargs):
        super().__init__(*args, **kwargs)
        self.app_env = app_env

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["app_env"] = self.app_env

        if has_request_context():
            log_record["request_id"] = getattr(g, "request_id", None)
            log_record["method"] = request.method
            log_record["path"] = request.path

            if request.query_string:
                log_record["query_string"] = request.query_string.decode("utf-8", "replace")

            log_record["remote_addr"] = request.remote_addr

            if request.user_agent and request.user_agent.string:
                log_record["user_agent"] = request.user_agent.string

            request_start_time = getattr(g, "request_start_time", None)
            if request_start_time:
                response_time_ms = (time.time() - request_start_time) * 1000
                log_record["response_time_ms"] = round(response_time_ms, 2)

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable, colour-coded formatter for the development environment."""

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        reset = self.COLORS["RESET"]

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        base = f"{color}[{timestamp}] {record.levelname:8s}{reset} {record.name:30s} | {record.getMessage()}"

        context_parts = []
        if has_request_context():
            request_id = getattr(g, "request_id", None)
            if request_id:
                context_parts.append(f"request_id={request_id[:8]}")
            context_parts.append(f"{request.method} {request.path}")
            context_parts.append(f"ip={request.remote_addr}")

        if context_parts:
            base += f" [{' | '.join(context_parts)}]"

        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)

        return base


def configure_logging(app: Flask) -> None:
    """
    Configure logging for the Flask application.

    Picks the formatter and level from APP_ENV (overridable with LOG_LEVEL
    and LOG_JSON_ENABLED) and attaches one stdout handler to app.logger and
    the root logger.
    """
    app_env = app.config.get("APP_ENV", "production")
    log_level_str = app.config.get("LOG_LEVEL", None)

    if log_level_str:
        log_level = getattr(logging, log_level_str.upper(), logging.INFO)
    elif app_env == "test":
        log_level = logging.WARNING
    elif app_env == "development":
        log_level = logging.DEBUG
    else:
        log_level = logging.INFO

    json_enabled = app.config.get("LOG_JSON_ENABLED", None)
    if json_enabled is None:
        json_enabled = app_env == "production"

    if json_enabled:
        formatter = ContextualJsonFormatter(fmt="%(message)s", app_env=app_env)
    else:
        formatter = DevelopmentFormatter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)

    # In test mode, don't clear handlers to preserve pytest's caplog handler
    if app_env != "test":
        app.logger.handlers.clear()
    app.logger.addHandler(handler)
    app.logger.setLevel(log_level)
    app.logger.propagate = (app_env == "test")

    root_logger = logging.getLogger()
    if app_env != "test":
        root_logger.handlers.clear()
        root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    if app_env == "development":
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

    app.logger.info(
        "Logging configured",
        extra={
            "app_env": app_env,
            "log_level": logging.getLevelName(log_level),
            "json_enabled": json_enabled,
        },
    )


def setup_request_logging(app: Flask) -> None:
    """Attach a request_id to every request and log its start and completion."""

    @app.before_request
    def before_request_logging():
        g.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        g.request_start_time = time.time()

        app.logger.info(
            "Request started",
            extra={
                "event": "request.started",
                "method": request.method,
                "path": request.path,
            },
        )

    @app.after_request
    def after_request_logging(response):
        if hasattr(g, "request_start_time"):
            response_time_ms = (time.time() - g.request_start_time) * 1000
            app.logger.info(
                "Request completed",
                extra={
                    "event": "request.completed",
                    "status_code": response.status_code,
                    "response_time_ms": round(response_time_ms, 2),
                },
            )
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers.setdefault("X-Request-ID", request_id)
        return response
