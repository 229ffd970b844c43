"""
Custom exception handlers for FastAPI.
Every error leaves the API as ``{"error": "<short message>"}``; internal
exception detail is logged, never returned.
"""

import logging

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import HTTPException, RequestValidationError
from starlette.status import HTTP_422_UNPROCESSABLE_ENTITY, HTTP_500_INTERNAL_SERVER_ERROR

from invoice_api.core.errors import InvoiceAPIError, Unauthenticated
from invoice_api.core.observability import sentry_capture

logger = logging.getLogger(__name__)


def invoice_api_error_handler(request: Request, exc: InvoiceAPIError):
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s (cause: %r)",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc.__cause__,
        )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=headers)


def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation error",
            "details": jsonable_encoder(exc.errors()),
        },
    )


def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    sentry_capture(exc)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )
