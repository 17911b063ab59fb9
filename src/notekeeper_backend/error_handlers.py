"""Unified exception handling (ErrorResponse).

Every error leaves the API as {error, message, request_id, details}:
- NoteKeeperError subclasses carry their own status/error code.
- Starlette HTTPException and request validation errors are reshaped.
- Anything else is logged and returned as a generic 500.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import cast

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from notekeeper_backend.errors import DispatchFailure, NoteKeeperError, StorageFailure
from notekeeper_backend.schemas import ErrorResponse

logger = logging.getLogger(__name__)

_HTTP_ERROR_CODES: dict[int, str] = {
    400: "bad_request",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
    422: "validation_error",
    502: "upstream_error",
}


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _error_response(
    request: Request,
    *,
    status_code: int,
    error: str,
    message: str,
    details: object | None = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    payload = ErrorResponse(
        error=error, message=message, request_id=_request_id(request), details=details
    )
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(payload, exclude_none=True),
        headers=headers,
    )


async def _domain_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    domain_exc = cast(NoteKeeperError, exc)
    if isinstance(domain_exc, (StorageFailure, DispatchFailure)):
        logger.error(
            "%s request_id=%s method=%s path=%s",
            domain_exc.error,
            _request_id(request),
            request.method,
            request.url.path,
            exc_info=domain_exc.__cause__ or domain_exc,
        )
    return _error_response(
        request,
        status_code=domain_exc.status_code,
        error=domain_exc.error,
        message=domain_exc.message,
        details=domain_exc.details,
    )


async def _http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    http_exc = cast(StarletteHTTPException, exc)

    message = str(http_exc.detail)
    details: object | None = None
    if isinstance(http_exc.detail, dict):
        # {'message': str, 'details': object} is unpacked; any other dict goes to details.
        msg = http_exc.detail.get("message")
        if isinstance(msg, str):
            message = msg
            details = http_exc.detail.get("details")
        else:
            details = http_exc.detail
    elif isinstance(http_exc.detail, list):
        details = http_exc.detail

    return _error_response(
        request,
        status_code=http_exc.status_code,
        error=_HTTP_ERROR_CODES.get(http_exc.status_code, f"http_{http_exc.status_code}"),
        message=message,
        details=details,
        headers=getattr(http_exc, "headers", None),
    )


async def _validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(
        request,
        status_code=422,
        error="validation_error",
        message="Request validation error",
        details=cast(RequestValidationError, exc).errors(),
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled exception request_id=%s method=%s path=%s",
        _request_id(request),
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return _error_response(
        request, status_code=500, error="internal_error", message="Internal server error"
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(NoteKeeperError, _domain_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
