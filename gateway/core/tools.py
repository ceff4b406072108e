"""Tool executors for the tool protocol.

Each executor validates its own arguments before touching the entry store and
sanitizes any free text it persists or echoes. Validation failures surface as
``ToolInputError``; entry-store data errors as ``ToolExecutionError``.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from gateway.core.collaborators import EntryStore, Summarizer, call_collaborator
from gateway.core.exceptions import (
    BadRequestError,
    EntryStoreError,
    InternalError,
    ToolError,
    ToolExecutionError,
    ToolInputError,
)
from gateway.core.sanitizer import sanitize
from gateway.core.tool_registry import TOOL_REGISTRY, ToolDefinition, ToolName
from gateway.core.validation import (
    MAX_APPEND_BYTES,
    MAX_SEARCH_LIMIT,
    parse_entry_date,
    parse_limit,
    validate_content_size,
    validate_search_query,
)

logger = logging.getLogger(__name__)

DEFAULT_TOOL_SEARCH_LIMIT = 5
SUMMARIZE_ENTRY_LIMIT = 100
SUMMARIZER_MISSING_NOTE = "AI summarization requires a configured text-generation provider"


@dataclass
class ToolContext:
    """Collaborators and guardrails shared by all executors."""

    entry_store: EntryStore
    timeout_seconds: float = 10.0
    summarizer: Optional[Summarizer] = None
    summarize_max_days: int = 30
    summarize_max_tokens: int = 4096
    summarize_cost_ceiling_usd: float = 0.05

    async def call(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await call_collaborator(fn, *args, timeout=self.timeout_seconds)


class JournalTool(ABC):
    """Base class for journal tools."""

    name: ToolName

    def __init__(self, context: ToolContext):
        self.context = context

    @property
    def definition(self) -> ToolDefinition:
        return TOOL_REGISTRY[self.name]

    async def run(self, user_id: str, arguments: Any) -> Dict[str, Any]:
        """
        Validate and execute, translating failures into tool-protocol errors.

        Args:
            user_id: Owner of the session
            arguments: Raw ``arguments`` object from the tools/call request

        Returns:
            JSON-serializable tool result

        Raises:
            ToolError: Always a protocol-level error, never a transport failure
        """
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            raise ToolInputError("Tool arguments must be an object")
        try:
            return await self.execute(user_id, arguments)
        except BadRequestError as e:
            raise ToolInputError(e.detail)
        except EntryStoreError as e:
            raise ToolExecutionError(str(e))
        except InternalError as e:
            raise ToolError(e.detail)

    @abstractmethod
    async def execute(self, user_id: str, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        pass


class SearchJournalTool(JournalTool):
    name = ToolName.SEARCH_JOURNAL

    async def execute(self, user_id: str, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        query = validate_search_query(arguments.get("query"))
        limit = parse_limit(arguments.get("limit"), DEFAULT_TOOL_SEARCH_LIMIT, MAX_SEARCH_LIMIT)
        entries = await self.context.call(self.context.entry_store.search_journal, user_id, query, limit)
        return {"entries": entries}


class GetEntryTool(JournalTool):
    name = ToolName.GET_ENTRY

    async def execute(self, user_id: str, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        entry_date = parse_entry_date(arguments.get("date"))
        entries = await self.context.call(
            self.context.entry_store.get_entries, user_id, entry_date, entry_date, 1
        )
        return {"entry": entries[0] if entries else None}


class AppendEntryTool(JournalTool):
    """Appends sanitized text to the day's entry, separated by a blank line."""

    name = ToolName.APPEND_ENTRY

    async def execute(self, user_id: str, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        entry_date = parse_entry_date(arguments.get("date"))
        content = arguments.get("content")
        if not isinstance(content, str):
            raise BadRequestError("content must be a string")
        cleaned = validate_content_size(sanitize(content), MAX_APPEND_BYTES, " for append_entry")
        if not cleaned.strip():
            raise BadRequestError("content must not be empty")

        store = self.context.entry_store
        existing = await self.context.call(store.get_entries, user_id, entry_date, entry_date, 1)
        existing_content = existing[0].get("content") if existing else ""
        new_content = f"{existing_content}\n\n{cleaned}" if existing_content else cleaned

        entry = await self.context.call(store.upsert_entry, user_id, entry_date, new_content)
        return {"entry": entry}


class SummarizePeriodTool(JournalTool):
    """Summarizes a bounded span of entries.

    Generation is delegated to the Summarizer collaborator with the configured
    token and cost ceilings. Without one, the entries are returned as-is.
    """

    name = ToolName.SUMMARIZE_PERIOD

    async def execute(self, user_id: str, arguments: Mapping[str, Any]) -> Dict[str, Any]:
        start = parse_entry_date(arguments.get("start_date"), "start_date")
        end = parse_entry_date(arguments.get("end_date"), "end_date")
        if start > end:
            raise BadRequestError("start_date must not be after end_date")
        max_days = self.context.summarize_max_days
        if (end - start).days > max_days:
            raise BadRequestError(f"Period cannot exceed {max_days} days")

        entries = await self.context.call(
            self.context.entry_store.get_entries, user_id, start, end, SUMMARIZE_ENTRY_LIMIT
        )
        result: Dict[str, Any] = {
            "period": {"start": start.isoformat(), "end": end.isoformat()},
            "entry_count": len(entries),
        }

        summarizer = self.context.summarizer
        if summarizer is None or not entries:
            result["entries"] = entries
            result["note"] = SUMMARIZER_MISSING_NOTE if summarizer is None else "No entries in period"
            return result

        summary = await self.context.call(
            summarizer.summarize,
            entries,
            self.context.summarize_max_tokens,
            self.context.summarize_cost_ceiling_usd,
        )
        result["summary"] = sanitize(summary or "")
        return result


_TOOL_CLASSES = {
    ToolName.SEARCH_JOURNAL: SearchJournalTool,
    ToolName.GET_ENTRY: GetEntryTool,
    ToolName.APPEND_ENTRY: AppendEntryTool,
    ToolName.SUMMARIZE_PERIOD: SummarizePeriodTool,
}


def build_tools(context: ToolContext) -> Dict[ToolName, JournalTool]:
    """Instantiate one executor per registered tool."""
    return {name: cls(context) for name, cls in _TOOL_CLASSES.items()}
