"""Exception handlers rendering RFC 7807 problem documents."""

import logging
from http import HTTPStatus

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from gateway.core.exceptions import (
    BadRequestError,
    GatewayError,
    InternalError,
    NotFoundError,
    RateLimitedError,
)
from gateway.middleware.request_id import REQUEST_ID_HEADER, request_id_var
from gateway.models.entries import ProblemDetails

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"


def _trace_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request_id_var.get() or ""


def problem_response(request: Request, exc: GatewayError) -> JSONResponse:
    """Render ``exc`` and remember its outcome label for the audit record."""
    trace_id = _trace_id(request)
    request.state.audit_status = exc.audit_status
    problem = ProblemDetails(
        type=exc.type_uri,
        title=exc.title,
        status=exc.status_code,
        detail=exc.detail,
        trace_id=trace_id,
        **exc.extensions,
    )
    headers = dict(exc.headers)
    if trace_id:
        headers[REQUEST_ID_HEADER] = trace_id
    return JSONResponse(
        status_code=exc.status_code,
        content=problem.model_dump(),
        headers=headers,
        media_type=PROBLEM_MEDIA_TYPE,
    )


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return problem_response(request, exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework-raised HTTP errors rendered in the same problem format."""
    if exc.status_code == 404:
        error: GatewayError = NotFoundError(f"Endpoint not found: {request.method} {request.url.path}")
    elif exc.status_code < 500:
        error = BadRequestError(str(exc.detail) if exc.detail else HTTPStatus(exc.status_code).phrase)
        error.status_code = exc.status_code
        error.title = HTTPStatus(exc.status_code).phrase
    else:
        error = InternalError()
    return problem_response(request, error)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return problem_response(request, InternalError())


def preauth_rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handler for the per-address throttle; SlowAPIMiddleware calls it synchronously."""
    retry_after = max(1, int(exc.limit.limit.get_expiry()))
    logger.warning("Pre-auth throttle hit for %s: %s", request.client.host if request.client else "-", exc.detail)
    return problem_response(request, RateLimitedError(retry_after))


def register_exception_handlers(app) -> None:
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RateLimitExceeded, preauth_rate_limit_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
