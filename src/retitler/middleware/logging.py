"""Structured logging setup and request tracing middleware."""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"

# Context variable for request ID
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Extra record attributes copied into JSON log lines when present
EXTRA_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "error_type",
    "error_code",
    "backend",
    "state",
)


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        request_id = getattr(record, "request_id", None) or request_id_var.get()
        if request_id:
            log_entry["request_id"] = request_id

        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


class TextFormatter(logging.Formatter):
    """Text log formatter for development."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format as text, prefixed with the short request ID when there is one."""
        line = super().format(record)
        request_id = request_id_var.get()
        if request_id:
            return f"[{request_id[:8]}] {line}"
        return line


def configure_logging(
    level: str = "INFO",
    format: str = "json",
) -> None:
    """Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        format: Output format (json or text).
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))
    handler.setFormatter(JsonFormatter() if format == "json" else TextFormatter())

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def resolve_request_id(header_value: str | None) -> str:
    """Keep a caller-supplied UUID request ID, otherwise generate one."""
    if header_value:
        try:
            return str(uuid.UUID(header_value))
        except (ValueError, TypeError):
            pass
    return str(uuid.uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a request ID and logs each request with its timing.

    The ID is taken from X-Request-ID when it is a valid UUID, stored on
    request.state and in request_id_var, and echoed on the response.
    """

    def __init__(self, app, logger: logging.Logger | None = None):
        super().__init__(app)
        self.logger = logger or logging.getLogger("retitler.access")

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        start_time = time.perf_counter()
        log_extra = {"method": request.method, "path": request.url.path}

        try:
            response = await call_next(request)
        except Exception as e:
            self.logger.exception(
                "Request failed",
                extra={
                    **log_extra,
                    "duration_ms": int((time.perf_counter() - start_time) * 1000),
                    "error_type": type(e).__name__,
                },
            )
            raise
        else:
            self.logger.info(
                "Request completed",
                extra={
                    **log_extra,
                    "status_code": response.status_code,
                    "duration_ms": int((time.perf_counter() - start_time) * 1000),
                },
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_var.reset(token)
