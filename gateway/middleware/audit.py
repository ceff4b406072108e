"""Middleware writing one audit record and request metrics per completed request."""

import logging
import time
from typing import Iterable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from gateway.core import metrics
from gateway.core.audit import status_label
from gateway.core.collaborators import AuditRecord

logger = logging.getLogger(__name__)

DEFAULT_EXEMPT_PATHS = ("/health", "/metrics")


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


class AuditMiddleware(BaseHTTPMiddleware):
    """
    Schedules an audit write after the response is produced.

    The write is fire-and-forget through the container's AuditLogger, so a
    slow or failing sink never delays or alters the response. Preflight
    requests and the health/metrics endpoints are not audited.
    """

    def __init__(self, app, exempt_paths: Iterable[str] = DEFAULT_EXEMPT_PATHS):
        super().__init__(app)
        self.exempt_paths = frozenset(exempt_paths)

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS" or request.url.path in self.exempt_paths:
            return await call_next(request)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._finish(request, 500, start)
            raise
        self._finish(request, response.status_code, start)
        return response

    def _finish(self, request: Request, status_code: int, start: float) -> None:
        duration = time.perf_counter() - start
        route = request.scope.get("route")
        metrics.record_http_request(request.method, getattr(route, "path", "unmatched"), status_code, duration)

        container = getattr(request.app.state, "container", None)
        if container is None:
            return
        state = request.state
        principal = getattr(state, "principal", None)
        record = AuditRecord(
            request_id=getattr(state, "request_id", "") or "",
            user_id=principal.user_id if principal else None,
            key_id=principal.key_id if principal else getattr(state, "key_id", None),
            ip_address=client_ip(request),
            method=request.method,
            path=request.url.path,
            status=getattr(state, "audit_status", None) or status_label(status_code),
            status_code=status_code,
            duration_ms=int(duration * 1000),
            input_hash=getattr(state, "input_hash", None),
            tool_name=getattr(state, "tool_name", None),
        )
        container.audit_logger.record(record)
