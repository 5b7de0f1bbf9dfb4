"""Error taxonomy and the JSON error envelope.

Every failure the service can surface maps onto one class here. Handlers
registered by ``register_exception_handlers`` render them as::

    {"success": false, "message": "...", "statusCode": 404}

Caller-recoverable failures (authentication, permission, not found,
validation, invariant) are never logged as incidents. Only unexpected
exceptions are logged at error level.
"""

from __future__ import annotations

import traceback
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger()


class VendorRiskError(Exception):
    """Base class for errors that carry an HTTP status."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationMissing(VendorRiskError):
    status_code = 401
    default_message = "Missing or invalid authorization header"


class PermissionDenied(VendorRiskError):
    status_code = 403
    default_message = "Forbidden: insufficient permissions"


class NotFound(VendorRiskError):
    """Resource absent or owned by another tenant. The two are never distinguished."""

    status_code = 404
    default_message = "Resource not found"


class ValidationFailed(VendorRiskError):
    status_code = 422
    default_message = "Validation failed"

    def __init__(self, message: str | None = None, errors: dict[str, list[str]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or {}


class InvariantViolation(VendorRiskError):
    status_code = 400
    default_message = "Operation rejected"


class EnrichmentFailed(VendorRiskError):
    """The analysis capability failed. Recorded on the supplier, re-raised to the job system."""

    default_message = "AI analysis failed"


class AuditLogImmutable(VendorRiskError):
    default_message = "Audit log entries are append-only"


def error_body(status_code: int, message: str, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": message, "statusCode": status_code}
    body.update(extra)
    return body


def _field_name(loc: tuple[Any, ...]) -> str:
    # ("body", "riskLevel") -> "riskLevel"
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "unknown"


def register_exception_handlers(app: FastAPI, *, expose_stack: bool = False) -> None:
    """Install JSON envelope handlers for the whole taxonomy."""

    async def handle_validation_failed(request: Request, exc: ValidationFailed) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.status_code, exc.message, errors=exc.errors),
        )

    async def handle_domain_error(request: Request, exc: VendorRiskError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("unhandled_domain_error", error=exc.message, path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.status_code, exc.message))

    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors: dict[str, list[str]] = {}
        for err in exc.errors():
            errors.setdefault(_field_name(tuple(err.get("loc", ()))), []).append(err.get("msg", "Invalid value"))
        return JSONResponse(status_code=422, content=error_body(422, "Validation failed", errors=errors))

    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        extra: dict[str, Any] = {}
        if expose_stack:
            extra["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return JSONResponse(status_code=500, content=error_body(500, "Internal server error", **extra))

    app.add_exception_handler(ValidationFailed, handle_validation_failed)
    app.add_exception_handler(VendorRiskError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)
