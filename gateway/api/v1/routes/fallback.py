"""Catch-all routes. Must be included after every other router."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from gateway.api.deps import authenticate
from gateway.core.api_keys import Principal
from gateway.core.exceptions import NotFoundError

router = APIRouter(include_in_schema=False)

PREFLIGHT_HEADERS = {
    "Allow": "GET, POST, OPTIONS",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Authorization, Content-Type, X-Request-Id",
}


@router.options("/{path:path}")
async def preflight(path: str):
    """Answer bare OPTIONS requests without authentication."""
    return Response(status_code=204, headers=PREFLIGHT_HEADERS)


@router.api_route("/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def not_found(request: Request, path: str, principal: Principal = Depends(authenticate)):
    """Unknown route or method: authenticated and charged like any other call."""
    raise NotFoundError(f"Endpoint not found: {request.method} {request.url.path}")
