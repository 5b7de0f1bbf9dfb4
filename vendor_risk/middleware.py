"""Application middleware: rate limiting, CORS, request logging, lifespan."""

from __future__ import annotations

import logging
import signal
import threading
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from vendor_risk.config import Settings
from vendor_risk.services.jobs import InMemoryJobQueue

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


def get_limiter(settings: Settings) -> Limiter:
    """Create a rate limiter instance."""
    return Limiter(key_func=get_remote_address)


def configure_cors(app: FastAPI, settings: Settings) -> None:
    """Add CORS middleware to the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, "X-RateLimit-Remaining"],
    )


def configure_rate_limiting(app: FastAPI, settings: Settings) -> None:
    """Apply the per-client default and burst limits to every route.

    Must run before the routers are included: the limit is a router-wide
    dependency rather than middleware, so it does not depend on route lookup.
    """
    limiter = get_limiter(settings)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @limiter.limit(f"{settings.rate_limit_default};{settings.rate_limit_burst}")
    def enforce_rate_limit(request: Request, response: Response) -> None:
        return None

    app.router.dependencies.append(Depends(enforce_rate_limit))


async def logging_middleware(request: Request, call_next) -> Response:
    """Log every request with a request id bound into the log context."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)

    start_time = time.monotonic()
    response = await call_next(request)
    duration_ms = round((time.monotonic() - start_time) * 1000, 2)
    response.headers[REQUEST_ID_HEADER] = request_id

    logger.info(
        "http_request",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms,
        client_ip=request.client.host if request.client else "unknown",
    )
    return response


def configure_request_logging(app: FastAPI) -> None:
    app.middleware("http")(logging_middleware)


def configure_structured_logging(settings: Settings) -> None:
    """Configure structlog for JSON or console output."""
    logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


_shutdown_requested = False


def is_shutdown_requested() -> bool:
    """Check if graceful shutdown has been requested."""
    return _shutdown_requested


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: logging, in-process worker, shutdown."""
    global _shutdown_requested

    _shutdown_requested = False
    settings = app.state.settings
    services = app.state.services
    configure_structured_logging(settings)

    logger.info("application_starting", version=settings.app_version, environment=settings.environment)

    if settings.auto_create_schema:
        services.store.create_schema()

    queue = services.job_queue
    run_worker = isinstance(queue, InMemoryJobQueue) and app.state.owns_job_queue
    if run_worker:
        queue.start(should_stop=is_shutdown_requested)
        logger.info("inprocess_worker_started")

    # Signal handlers can only be installed from the main thread.
    if threading.current_thread() is threading.main_thread():

        def _handle_signal(signum, frame):
            global _shutdown_requested
            _shutdown_requested = True
            logger.info("shutdown_signal_received", signal=signum)

        signal.signal(signal.SIGTERM, _handle_signal)
        signal.signal(signal.SIGINT, _handle_signal)

    yield

    logger.info("application_shutting_down")
    _shutdown_requested = True
    if run_worker:
        queue.stop()
    services.store.dispose()
