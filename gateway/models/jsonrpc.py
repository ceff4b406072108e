"""Pydantic models for the JSON-RPC 2.0 tool protocol."""

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictInt, StrictStr

RequestId = Union[StrictStr, StrictInt, None]


class JsonRpcRequest(BaseModel):
    """Request envelope posted to the message endpoint."""

    jsonrpc: Literal["2.0"] = Field(..., description="Protocol version, always '2.0'")
    id: RequestId = Field(None, description="Request id; absent for notifications")
    method: StrictStr = Field(..., description="Method name")
    params: Optional[Dict[str, Any]] = Field(None, description="Method parameters")

    @property
    def is_notification(self) -> bool:
        return "id" not in self.model_fields_set


def success_response(request_id: RequestId, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def error_response(request_id: RequestId, error: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": error}
