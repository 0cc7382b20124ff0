"""
ReDPlAD — API error taxonomy and exception handlers

Every error leaving the service has the same JSON shape::

    {"error": "<human message>", "code": "<MACHINE_CODE>", "details": ...}

Routes raise the ``APIError`` subclasses below; framework and database
errors are translated by the handlers registered in ``register_exception_handlers``.
"""

from __future__ import annotations

import traceback
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from redplad.config import get_settings

logger = structlog.get_logger("redplad.errors")

UNIQUE_VIOLATION = "23505"

_DEFAULT_CODES: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_409_CONFLICT: "CONFLICT",
    status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: "PAYLOAD_TOO_LARGE",
    status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: "UNSUPPORTED_MEDIA_TYPE",
}


# ── Error classes ─────────────────────────────────────────────────────────────

class APIError(HTTPException):
    """HTTP error with a machine-readable ``code`` and optional ``details``."""

    status_code_default: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        code: str,
        details: Any = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(status_code=status_code or self.status_code_default, detail=message)
        self.message = message
        self.code = code
        self.details = details


class BadRequestError(APIError):
    status_code_default = status.HTTP_400_BAD_REQUEST


class AuthenticationError(APIError):
    status_code_default = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str, code: str, details: Any = None) -> None:
        super().__init__(message, code, details)
        self.headers = {"WWW-Authenticate": "Bearer"}


class PermissionDeniedError(APIError):
    status_code_default = status.HTTP_403_FORBIDDEN


class NotFoundError(APIError):
    status_code_default = status.HTTP_404_NOT_FOUND


class ConflictError(APIError):
    status_code_default = status.HTTP_409_CONFLICT


class PayloadTooLargeError(APIError):
    status_code_default = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


def error_body(message: str, code: str, details: Any = None) -> dict:
    body: dict[str, Any] = {"error": message, "code": code}
    if details is not None:
        body["details"] = details
    return body


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when the driver reports SQLSTATE 23505."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate == UNIQUE_VIOLATION


# ── Handlers ──────────────────────────────────────────────────────────────────

async def _api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    logger.info(
        "api_error",
        path=request.url.path,
        status=exc.status_code,
        code=exc.code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.code, exc.details),
        headers=getattr(exc, "headers", None),
    )


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc.detail, str):
        message = exc.detail
    else:
        message = "Request failed"
    code = _DEFAULT_CODES.get(exc.status_code, "HTTP_ERROR")
    details = None if isinstance(exc.detail, str) else exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, code, details),
        headers=getattr(exc, "headers", None),
    )


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    logger.info("validation_error", path=request.url.path, fields=len(details))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation failed", "VALIDATION_ERROR", details),
    )


async def _integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    if is_unique_violation(exc):
        logger.warning("duplicate_resource", path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=error_body("Resource already exists", "DUPLICATE_RESOURCE"),
        )
    return await _unhandled_error_handler(request, exc)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_error",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
    )
    if get_settings().is_development:
        body = error_body(
            str(exc) or type(exc).__name__,
            "INTERNAL_ERROR",
            {"traceback": traceback.format_exception(type(exc), exc, exc.__traceback__)},
        )
    else:
        body = error_body("Something went wrong", "INTERNAL_ERROR")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, _api_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(IntegrityError, _integrity_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
