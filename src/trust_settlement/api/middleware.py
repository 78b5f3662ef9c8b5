"""HTTP middleware: request correlation, domain error mapping, CORS.

Every domain failure leaves the API as the same ErrorResponse body. The
status code comes from ERROR_STATUS, checked most specific class first:

    NotFoundError              404
    ValidationError            422  (self vote, vote cap, declined payment)
    SequenceError              409  (level order, terminal escrow, eligibility)
    ConcurrencyConflictError   409  retryable
    DependencyFailureError     503  retryable
    any other TrustCoreError   400
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from trust_settlement.config import get_settings
from trust_settlement.domain.exceptions import (
    ConcurrencyConflictError,
    DependencyFailureError,
    NotFoundError,
    SequenceError,
    TrustCoreError,
    ValidationError,
)
from trust_settlement.schemas.common import ErrorResponse

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# (exception class, status code, retryable); first match wins.
ERROR_STATUS: tuple[tuple[type[TrustCoreError], int, bool], ...] = (
    (NotFoundError, 404, False),
    (ConcurrencyConflictError, 409, True),
    (DependencyFailureError, 503, True),
    (ValidationError, 422, False),
    (SequenceError, 409, False),
)


def status_for(exc: TrustCoreError) -> tuple[int, bool]:
    for error_cls, status_code, retryable in ERROR_STATUS:
        if isinstance(exc, error_cls):
            return status_code, retryable
    return 400, False


def error_response(exc: TrustCoreError) -> JSONResponse:
    status_code, retryable = status_for(exc)
    body = ErrorResponse(error=exc.code, message=exc.message, retryable=retryable)
    return JSONResponse(status_code=status_code, content=body.model_dump())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the structlog context and echo it back."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turn domain exceptions into ErrorResponse bodies."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except TrustCoreError as exc:
            response = error_response(exc)
            log = logger.error if response.status_code >= 500 else logger.warning
            log(
                "request.rejected",
                error_type=type(exc).__name__,
                code=exc.code,
                error=exc.message,
                status_code=response.status_code,
            )
            return response
        except Exception as exc:
            logger.exception("request.unhandled_error", error=str(exc))
            return JSONResponse(
                status_code=500,
                content=ErrorResponse(
                    error="INTERNAL_ERROR", message="An unexpected error occurred"
                ).model_dump(),
            )


def setup_middleware(app: FastAPI) -> None:
    """Register middleware. The last one added is the outermost."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_settings().cors_allow_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIDMiddleware)
