"""JSON-RPC dispatcher for the tool protocol.

Supported methods: ``initialize``, ``tools/list``, ``tools/call``. Every
failure, including an executor crash, becomes a JSON-RPC error payload so a
single bad call never tears down the session's stream.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from gateway.core import metrics
from gateway.core.audit import hash_input
from gateway.core.exceptions import (
    InvalidRequestError,
    MethodNotFoundError,
    ParseError,
    ToolError,
)
from gateway.core.sessions import Session, SessionManager
from gateway.core.tool_registry import ToolName, get_definition, tools_for_scopes
from gateway.core.tools import JournalTool
from gateway.models.jsonrpc import JsonRpcRequest, error_response, success_response

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"


@dataclass
class DispatchOutcome:
    """Response payload (None for notifications) plus audit details."""

    response: Optional[Dict[str, Any]]
    tool_name: Optional[str] = None
    input_hash: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return bool(self.response and "error" in self.response)


def parse_error_response() -> Dict[str, Any]:
    return error_response(None, ParseError("Parse error").to_payload())


class ToolDispatcher:
    """Routes JSON-RPC requests for one session to the registered tools."""

    def __init__(
        self,
        tools: Mapping[ToolName, JournalTool],
        sessions: SessionManager,
        server_name: str = "oneline-mcp",
        server_version: str = "1.0.0",
    ):
        self.tools = tools
        self.sessions = sessions
        self.server_info = {"name": server_name, "version": server_version}

    async def handle(self, session: Session, payload: Any) -> DispatchOutcome:
        """
        Handle one decoded JSON-RPC message.

        Args:
            session: Live session the message was posted to
            payload: Decoded JSON body

        Returns:
            DispatchOutcome; ``response`` is None for notifications
        """
        raw_id = payload.get("id") if isinstance(payload, dict) else None
        if isinstance(raw_id, bool) or not isinstance(raw_id, (str, int, type(None))):
            raw_id = None
        try:
            request = JsonRpcRequest.model_validate(payload)
        except ValidationError:
            return DispatchOutcome(error_response(raw_id, InvalidRequestError("Invalid Request").to_payload()))

        if request.is_notification:
            logger.debug("Ignoring notification %s on session %s", request.method, session.session_id)
            return DispatchOutcome(None)

        if request.method == "initialize":
            return DispatchOutcome(success_response(request.id, self._initialize()))
        if request.method == "tools/list":
            return DispatchOutcome(success_response(request.id, self._list_tools(session)))
        if request.method == "tools/call":
            return await self._call_tool(session, request)

        error = MethodNotFoundError(f"Unknown method: {request.method}")
        return DispatchOutcome(error_response(request.id, error.to_payload()))

    def _initialize(self) -> Dict[str, Any]:
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": dict(self.server_info),
        }

    def _list_tools(self, session: Session) -> Dict[str, Any]:
        return {"tools": [d.to_listing() for d in tools_for_scopes(session.scopes)]}

    async def _call_tool(self, session: Session, request: JsonRpcRequest) -> DispatchOutcome:
        params = request.params or {}
        name = params.get("name")
        arguments = params.get("arguments")
        tool_name = name if isinstance(name, str) else None
        input_hash = hash_input(json.dumps(arguments, sort_keys=True, default=str))

        def fail(error: ToolError, outcome: str) -> DispatchOutcome:
            metrics.record_tool_call(tool_name or "unknown", outcome)
            return DispatchOutcome(error_response(request.id, error.to_payload()), tool_name, input_hash)

        definition = get_definition(name)
        if definition is None:
            return fail(MethodNotFoundError(f"Unknown tool: {name}"), "unknown_tool")

        if not session.has_scope(definition.required_scope):
            return fail(InvalidRequestError(f"Missing scope: {definition.required_scope}"), "forbidden")

        if not self.sessions.register_tool_call(session):
            logger.info("Session %s exceeded its tool call budget", session.session_id)
            return fail(InvalidRequestError("Tool call limit exceeded for this session"), "budget_exceeded")

        try:
            result = await self.tools[definition.name].run(session.user_id, arguments)
        except ToolError as e:
            logger.info("Tool %s failed on session %s: %s", definition.name.value, session.session_id, e.message)
            return fail(e, "error")
        except Exception:
            logger.exception("Tool %s crashed on session %s", definition.name.value, session.session_id)
            return fail(ToolError("Internal error"), "error")

        metrics.record_tool_call(definition.name.value, "success")
        content = [{"type": "text", "text": json.dumps(result, default=str)}]
        return DispatchOutcome(success_response(request.id, {"content": content}), tool_name, input_hash)
