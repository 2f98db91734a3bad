"""Unified error handling — ServiceError + RequestValidationError → JSON."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from confsys.services import (
    SERVER_ERROR_MSG,
    AccessDeniedError,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ServerError,
    ServiceError,
    UnsupportedFileError,
    ValidationError,
)

log = structlog.get_logger(__name__)

_STATUS_MAP: dict[type[ServiceError], int] = {
    ValidationError: 400,
    AuthenticationError: 401,
    AccessDeniedError: 403,
    NotFoundError: 404,
    ConflictError: 409,
    UnsupportedFileError: 415,
    ServerError: 500,
}


def status_for(exc: ServiceError) -> int:
    """Return the HTTP status of the closest mapped class in *exc*'s MRO."""
    for cls in type(exc).__mro__:
        if cls in _STATUS_MAP:
            return _STATUS_MAP[cls]
    return 500


async def _service_error_handler(_request: Request, exc: ServiceError) -> JSONResponse:
    status = status_for(exc)
    detail = str(exc)
    if status >= 500:
        log.error("request.server_error", error_type=type(exc).__name__, detail=detail)
        detail = SERVER_ERROR_MSG
    return JSONResponse(status_code=status, content={"detail": detail})


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    messages = []
    for err in errors:
        loc = " → ".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}")
    return JSONResponse(
        status_code=422,
        content={"detail": "; ".join(messages)},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register exception handlers on the app."""
    app.add_exception_handler(ServiceError, _service_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
