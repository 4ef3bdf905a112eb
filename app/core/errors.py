"""
Error taxonomy and FastAPI exception handlers.

Every JSON error leaves the service as ``{success: false, message,
...}`` with one status-code convention:

===========================  =====
client input error           400
bad callback signature       401
unknown code / key           404
illegal status transition    409
unhandled exception          500
===========================  =====

The 500 body carries the exception text only outside production.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.clock import utc_now
from app.core.config import get_settings
from app.core.constants import AVAILABLE_ENDPOINTS
from app.core.security import SignatureError
from app.services.state_machine import InvalidTransitionError

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base class for errors rendered as ``{success: false, ...}``."""

    status_code: int = 400

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra


class BadRequestError(ApiError):
    """Missing or malformed client input."""

    status_code = 400


class NotFoundError(ApiError):
    """Unknown or expired selfie code, record, or blob key."""

    status_code = 404


def error_body(message: str, **extra: Any) -> dict[str, Any]:
    """Build the standard error envelope."""
    return {"success": False, "message": message, **extra}


def _format_validation_errors(exc: RequestValidationError) -> list[str]:
    """Flatten pydantic errors into ``"field: message"`` strings."""
    problems: list[str] = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query")]
        field = ".".join(loc) or "request"
        msg = str(err.get("msg", "invalid value"))
        problems.append(f"{field}: {msg.removeprefix('Value error, ')}")
    return problems


# ── Handlers ────────────────────────────────────────────────


async def _api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, **exc.extra),
    )


async def _validation_error_handler(
    _request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    problems = _format_validation_errors(exc)
    return JSONResponse(
        status_code=400,
        content=error_body("; ".join(problems), errors=problems),
    )


async def _signature_error_handler(
    _request: Request,
    exc: SignatureError,
) -> JSONResponse:
    return JSONResponse(status_code=401, content=error_body(str(exc)))


async def _transition_error_handler(
    _request: Request,
    exc: InvalidTransitionError,
) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content=error_body(
            str(exc),
            current_status=exc.current,
            requested_status=exc.target,
        ),
    )


async def _http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(
            status_code=404,
            content=error_body(
                "Endpoint not found",
                requested_url=str(request.url.path),
                method=request.method,
                available_endpoints=AVAILABLE_ENDPOINTS,
            ),
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error on %s %s",
        request.method,
        request.url.path,
    )
    settings = get_settings()
    return JSONResponse(
        status_code=500,
        content=error_body(
            "Internal server error",
            error=None if settings.is_production else str(exc),
            timestamp=utc_now().isoformat(),
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach every handler in this module to *app*."""
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(SignatureError, _signature_error_handler)
    app.add_exception_handler(InvalidTransitionError, _transition_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
