"""In-memory collaborators and helpers shared by the test suite."""

import threading
from datetime import date
from typing import Any, Dict, List

from gateway.core.api_keys import Principal
from gateway.core.collaborators import AuditRecord


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingAuditSink:
    """Audit sink keeping records in memory."""

    def __init__(self):
        self.records: List[AuditRecord] = []
        self._lock = threading.Lock()

    def insert_audit_log(self, record: AuditRecord) -> None:
        with self._lock:
            self.records.append(record)


class InMemoryEntryStore:
    """Entry store over a dict keyed by (user_id, date)."""

    def __init__(self):
        self.entries: Dict[tuple, Dict[str, Any]] = {}
        self.calls: List[tuple] = []

    def get_entries(self, user_id: str, start_date: date, end_date: date, limit: int) -> List[Dict[str, Any]]:
        self.calls.append(("get_entries", user_id, start_date, end_date, limit))
        rows = [
            entry for (owner, day), entry in self.entries.items()
            if owner == user_id and start_date <= day <= end_date
        ]
        rows.sort(key=lambda e: e["date"], reverse=True)
        return rows[:limit]

    def upsert_entry(self, user_id: str, entry_date: date, content: str) -> Dict[str, Any]:
        self.calls.append(("upsert_entry", user_id, entry_date, content))
        entry = {"date": entry_date.isoformat(), "content": content}
        self.entries[(user_id, entry_date)] = entry
        return entry

    def search_journal(self, user_id: str, query: str, limit: int) -> List[Dict[str, Any]]:
        self.calls.append(("search_journal", user_id, query, limit))
        return [
            {"date": e["date"], "content": e["content"], "score": 1.0}
            for (owner, _), e in self.entries.items()
            if owner == user_id and query.lower() in e["content"].lower()
        ][:limit]


def auth_header(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def principal_for(record) -> Principal:
    return Principal(user_id=record.user_id, scopes=tuple(record.scopes), key_id=record.key_id)
