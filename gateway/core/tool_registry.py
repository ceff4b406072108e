"""Static registry of the tools exposed over the tool protocol.

Tool names form a closed enum; looking up an unknown name fails the enum
conversion and is reported as method-not-found by the dispatcher.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional

from gateway.core.api_keys import SCOPE_READ_ENTRIES, SCOPE_READ_INSIGHTS, SCOPE_WRITE_ENTRIES


class ToolName(str, Enum):
    SEARCH_JOURNAL = "search_journal"
    GET_ENTRY = "get_entry"
    APPEND_ENTRY = "append_entry"
    SUMMARIZE_PERIOD = "summarize_period"

    @classmethod
    def lookup(cls, name: Any) -> Optional["ToolName"]:
        try:
            return cls(name)
        except ValueError:
            return None


class RiskTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class ToolDefinition:
    name: ToolName
    description: str
    required_scope: str
    input_schema: Mapping[str, Any]
    risk: RiskTier

    def to_listing(self) -> dict:
        """Shape returned by tools/list."""
        return {
            "name": self.name.value,
            "description": self.description,
            "inputSchema": _thaw(self.input_schema),
        }


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


_DEFINITIONS = [
    ToolDefinition(
        name=ToolName.SEARCH_JOURNAL,
        description="Search journal entries using full-text search",
        required_scope=SCOPE_READ_ENTRIES,
        risk=RiskTier.LOW,
        input_schema=_freeze({
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query (2-200 characters)"},
                "limit": {"type": "number", "description": "Max results (1-10)", "default": 5},
            },
            "required": ["query"],
        }),
    ),
    ToolDefinition(
        name=ToolName.GET_ENTRY,
        description="Get a specific journal entry by date",
        required_scope=SCOPE_READ_ENTRIES,
        risk=RiskTier.LOW,
        input_schema=_freeze({
            "type": "object",
            "properties": {
                "date": {"type": "string", "description": "Date in YYYY-MM-DD format"},
            },
            "required": ["date"],
        }),
    ),
    ToolDefinition(
        name=ToolName.APPEND_ENTRY,
        description="Append content to a journal entry",
        required_scope=SCOPE_WRITE_ENTRIES,
        risk=RiskTier.HIGH,
        input_schema=_freeze({
            "type": "object",
            "properties": {
                "date": {"type": "string", "description": "Date in YYYY-MM-DD format"},
                "content": {"type": "string", "description": "Content to append (max 5KB)"},
            },
            "required": ["date", "content"],
        }),
    ),
    ToolDefinition(
        name=ToolName.SUMMARIZE_PERIOD,
        description="Generate AI summary of entries over a period",
        required_scope=SCOPE_READ_INSIGHTS,
        risk=RiskTier.MEDIUM,
        input_schema=_freeze({
            "type": "object",
            "properties": {
                "start_date": {"type": "string", "description": "Start date YYYY-MM-DD"},
                "end_date": {"type": "string", "description": "End date YYYY-MM-DD"},
            },
            "required": ["start_date", "end_date"],
        }),
    ),
]

TOOL_REGISTRY: Mapping[ToolName, ToolDefinition] = MappingProxyType(
    {definition.name: definition for definition in _DEFINITIONS}
)

# Every enum member must have exactly one definition
assert set(TOOL_REGISTRY) == set(ToolName)


def get_definition(name: Any) -> Optional[ToolDefinition]:
    tool = ToolName.lookup(name)
    return TOOL_REGISTRY[tool] if tool is not None else None


def tools_for_scopes(scopes: Iterable[str]) -> List[ToolDefinition]:
    """Definitions whose required scope is granted, in registry order."""
    granted = set(scopes)
    return [d for d in TOOL_REGISTRY.values() if d.required_scope in granted]
