"""Middleware to propagate X-Request-Id through the request lifecycle."""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-Id"
MAX_REQUEST_ID_LENGTH = 128

# Module-level ContextVar so background tasks can read the current request ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def resolve_request_id(supplied: str | None) -> str:
    """Use the caller's trace id when it is sane, otherwise generate one."""
    if supplied:
        supplied = supplied.strip()
        if (
            supplied
            and len(supplied) <= MAX_REQUEST_ID_LENGTH
            and supplied.isprintable()
        ):
            return supplied
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Reads or generates an X-Request-Id for every request.
    Sets it on request.state.request_id and echoes it back in the response header.
    Also stores it in a ContextVar so audit writes launched during the request
    carry it in their log messages.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        req_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = req_id
        token = request_id_var.set(req_id)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = req_id
            return response
        finally:
            request_id_var.reset(token)
