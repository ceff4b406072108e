"""Interfaces of the external collaborators the gateway calls.

The gateway never depends on a concrete store. The SQLAlchemy adapters in
``gateway.db.stores`` implement these protocols for local deployments and
tests; a hosted backend can be swapped in through ``ServiceContainer``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, TypeVar, Union

from gateway.core.exceptions import EntryStoreError, InternalError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class KeyRecord:
    """Key store row as seen by the Key Validator."""

    key_id: str
    user_id: str
    key_hash: Union[str, bytes, None]
    scopes: Sequence[str] = field(default_factory=tuple)
    revoked_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class AuditRecord:
    """One request outcome, written once per completed request."""

    request_id: str
    user_id: Optional[str]
    key_id: Optional[str]
    ip_address: Optional[str]
    method: str
    path: str
    status: str
    status_code: int
    duration_ms: int
    input_hash: Optional[str] = None
    tool_name: Optional[str] = None


class KeyStore(Protocol):
    def lookup(self, key_id: str) -> Optional[KeyRecord]:
        ...


class EntryStore(Protocol):
    """Stored-procedure style entry persistence, already scoped to ``user_id``.

    Implementations raise ``EntryStoreError`` for data errors the caller
    should see; anything else is treated as an internal failure.
    """

    def get_entries(self, user_id: str, start_date: date, end_date: date, limit: int) -> List[Dict[str, Any]]:
        ...

    def upsert_entry(self, user_id: str, entry_date: date, content: str) -> Dict[str, Any]:
        ...

    def search_journal(self, user_id: str, query: str, limit: int) -> List[Dict[str, Any]]:
        ...


class AuditSink(Protocol):
    def insert_audit_log(self, record: AuditRecord) -> None:
        ...


class Summarizer(Protocol):
    """Text-generation collaborator used by ``summarize_period``."""

    def summarize(self, entries: List[Dict[str, Any]], max_tokens: int, cost_ceiling_usd: float) -> str:
        ...


async def call_collaborator(fn: Callable[..., T], *args: Any, timeout: float) -> T:
    """Run a sync collaborator call in a worker thread, bounded by ``timeout``.

    ``EntryStoreError`` passes through unchanged. Timeouts and any other
    exception become a generic ``InternalError``; the cause is logged here.
    """
    name = getattr(fn, "__qualname__", repr(fn))
    try:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=timeout)
    except EntryStoreError:
        raise
    except asyncio.TimeoutError:
        logger.error("Collaborator call %s timed out after %.1fs", name, timeout)
        raise InternalError()
    except Exception:
        logger.exception("Collaborator call %s failed", name)
        raise InternalError()
