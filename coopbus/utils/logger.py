# coopbus/utils/logger.py

import uuid
import sys
import logging
from typing import Optional, Any, List
from datetime import datetime, timezone

import structlog
from fastapi import Request, FastAPI
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

APP_NAME = "Cooperative Bus Surplus Engine"

# Fields stamped on every event, set once by setup_logging
_app_context = {"app": APP_NAME, "environment": "development"}


def add_app_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Stamp application name and environment on the event."""
    for key, value in _app_context.items():
        event_dict.setdefault(key, value)
    return event_dict


def _build_formatter(shared_processors: List[Any], renderer) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )


def setup_logging(
    log_level: str = "INFO",
    use_json: bool = True,
    log_file: Optional[str] = None,
    app_name: str = APP_NAME,
    environment: str = "development",
) -> None:
    """
    Route structlog and stdlib logging through one set of handlers.

    Console output is JSON or plain text; the optional log file is always
    JSON. Request ids bound through structlog.contextvars appear on every
    event logged while the request is handled.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        use_json: JSON console output instead of plain text
        log_file: Optional path of a JSON log file
        app_name: Value of the "app" field
        environment: Value of the "environment" field
    """
    _app_context.update(app=app_name, environment=environment)
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if use_json:
        console_renderer = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(
            colors=False, exception_formatter=structlog.dev.plain_traceback
        )

    handlers: List[logging.Handler] = []
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(_build_formatter(shared_processors, console_renderer))
    handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(_build_formatter(shared_processors, structlog.processors.JSONRenderer()))
        handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers = []
    root.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        root.addHandler(handler)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger bound to the given name."""
    return structlog.get_logger(name)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request and tags its log lines with a request id.

    The id comes from the X-Request-ID header when the caller sends one and
    is echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id)
        access_logger = get_logger("coopbus.access")
        started = datetime.now(timezone.utc)

        def elapsed_ms() -> float:
            return round((datetime.now(timezone.utc) - started).total_seconds() * 1000, 2)

        try:
            response = await call_next(request)
            access_logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=elapsed_ms(),
            )
            response.headers["X-Request-ID"] = request_id
            return response
        except Exception as e:
            access_logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                duration_ms=elapsed_ms(),
                error=str(e),
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "request_id": request_id},
                headers={"X-Request-ID": request_id},
            )
        finally:
            structlog.contextvars.unbind_contextvars("request_id")


def setup_app_logging(
    app: FastAPI,
    log_level: str = "INFO",
    use_json: bool = True,
    log_file: Optional[str] = None,
    app_name: Optional[str] = None,
    environment: str = "development",
) -> None:
    """Configure logging and install the request logging middleware on app."""
    setup_logging(
        log_level=log_level,
        use_json=use_json,
        log_file=log_file,
        app_name=app_name or app.title or APP_NAME,
        environment=environment,
    )
    app.add_middleware(RequestLoggingMiddleware)
