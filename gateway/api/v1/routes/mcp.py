"""Tool-protocol endpoints: the SSE stream and its message channel."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from gateway.api.deps import authenticate, get_container
from gateway.core.api_keys import Principal
from gateway.core.exceptions import BadRequestError, UnauthorizedError
from gateway.core.services import ServiceContainer
from gateway.mcp.dispatcher import parse_error_response
from gateway.mcp.stream import session_event_stream

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mcp", tags=["mcp"])

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


@router.get("/sse")
async def open_stream(
    request: Request,
    principal: Principal = Depends(authenticate),
    container: ServiceContainer = Depends(get_container),
):
    """
    Open a tool-protocol session.

    The first event names the endpoint to POST JSON-RPC messages to. The
    stream then sends heartbeats until the session expires, its credential
    is revoked, or the client disconnects.
    """
    settings = container.settings
    sessions = container.session_manager
    session = sessions.create_session(principal)
    authorization = request.headers.get("Authorization")

    async def revalidate() -> Principal:
        return await container.key_validator.validate(authorization)

    endpoint = f"{settings.mcp_public_base_path.rstrip('/')}/message?session_id={session.session_id}"
    return StreamingResponse(
        session_event_stream(
            session,
            sessions,
            revalidate,
            endpoint,
            settings.heartbeat_interval_seconds,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/message")
async def post_message(
    request: Request,
    session_id: Optional[str] = Query(None),
    principal: Principal = Depends(authenticate),
    container: ServiceContainer = Depends(get_container),
):
    """
    Deliver one JSON-RPC message to a live session owned by the same key.

    Protocol errors come back as JSON-RPC error payloads with HTTP 200;
    notifications are acknowledged with 202 and no body.
    """
    if not session_id:
        raise BadRequestError("Missing required query parameter: session_id")
    session = container.session_manager.get_session(session_id)
    if session is None or session.key_id != principal.key_id:
        raise UnauthorizedError("Session expired or invalid", key_id=principal.key_id)

    try:
        payload = await request.json()
    except ValueError:
        request.state.audit_status = "tool_error"
        return JSONResponse(parse_error_response())

    outcome = await container.dispatcher.handle(session, payload)
    request.state.tool_name = outcome.tool_name
    request.state.input_hash = outcome.input_hash
    if outcome.is_error:
        request.state.audit_status = "tool_error"
    if outcome.response is None:
        return Response(status_code=202)
    return JSONResponse(outcome.response)
