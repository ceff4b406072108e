"""Exception classes for the gateway.

HTTP-facing errors carry everything needed to render a structured problem
response:
  status:  HTTP status code
  title:   short, stable summary of the problem type
  slug:    last path segment of the problem ``type`` URI
  detail:  human-readable explanation for this occurrence

Tool-protocol errors carry a JSON-RPC error code instead and are always
returned as protocol payloads, never raised through the transport.
"""

from typing import Any, Dict, Optional

PROBLEM_TYPE_BASE = "https://api.oneline.app/errors/"


class GatewayError(Exception):
    """Base exception for errors surfaced to HTTP callers."""

    status_code: int = 500
    title: str = "Internal Server Error"
    slug: str = "internal"

    def __init__(
        self,
        detail: str,
        headers: Optional[Dict[str, str]] = None,
        extensions: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(detail)
        self.detail = detail
        self.headers = headers or {}
        self.extensions = extensions or {}

    @property
    def type_uri(self) -> str:
        return PROBLEM_TYPE_BASE + self.slug

    @property
    def audit_status(self) -> str:
        """Outcome label written to the audit log."""
        return self.slug.replace("-", "_")


class UnauthorizedError(GatewayError):
    """Credential missing, malformed, unresolvable, revoked or expired."""

    status_code = 401
    title = "Unauthorized"
    slug = "unauthorized"

    def __init__(self, detail: str, key_id: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})
        self.key_id = key_id


class ForbiddenError(GatewayError):
    """Valid credential without the scope the operation requires."""

    status_code = 403
    title = "Forbidden"
    slug = "forbidden"

    def __init__(self, required_scope: str):
        super().__init__(f"Missing scope: {required_scope}")
        self.required_scope = required_scope


class BadRequestError(GatewayError):
    """Malformed or out-of-range input."""

    status_code = 400
    title = "Bad Request"
    slug = "bad-request"


class NotFoundError(GatewayError):
    """Unrecognized route or method."""

    status_code = 404
    title = "Not Found"
    slug = "not-found"


class RateLimitedError(GatewayError):
    """Quota exceeded; retryable after ``retry_after_seconds``."""

    status_code = 429
    title = "Rate Limit Exceeded"
    slug = "rate-limited"

    def __init__(self, retry_after_seconds: int):
        super().__init__(
            f"Too many requests. Retry after {retry_after_seconds} seconds.",
            headers={"Retry-After": str(retry_after_seconds)},
            extensions={"retry_after_seconds": retry_after_seconds},
        )
        self.retry_after_seconds = retry_after_seconds


class InternalError(GatewayError):
    """Unexpected collaborator failure. Detail is always generic."""

    def __init__(self, detail: str = "An unexpected error occurred"):
        super().__init__(detail)

    @property
    def audit_status(self) -> str:
        return "error"


class EntryStoreError(Exception):
    """Data error reported by the entry persistence collaborator.

    The message is meant for the caller (e.g. "Date range cannot exceed 90
    days"), unlike arbitrary collaborator exceptions which are Internal.
    """


# ---------------------------------------------------------------------------
# JSON-RPC / tool protocol errors
# ---------------------------------------------------------------------------

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_ERROR = -32000


class ToolError(Exception):
    """Base class for errors returned as JSON-RPC error payloads."""

    code: int = INTERNAL_ERROR

    def __init__(self, message: str, data: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.data = data

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload


class ParseError(ToolError):
    code = PARSE_ERROR


class InvalidRequestError(ToolError):
    """Bad envelope, missing scope, or exhausted call budget."""

    code = INVALID_REQUEST


class MethodNotFoundError(ToolError):
    """Unknown JSON-RPC method or unknown tool name."""

    code = METHOD_NOT_FOUND


class ToolInputError(ToolError):
    """Tool arguments failed the executor's own validation."""

    code = INVALID_PARAMS


class ToolExecutionError(ToolError):
    """Collaborator data error raised while executing a tool."""

    code = SERVER_ERROR
