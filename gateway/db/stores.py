"""SQLAlchemy implementations of the key store, entry store and audit sink.

These adapters mirror the stored procedures of the hosted backend: every
entry query is scoped to one ``user_id`` and the entry store re-checks the
90-day range, 100KB size and result-count ceilings itself. Provisioning
helpers (``create_api_key`` / ``revoke_api_key``) are used by the
``scripts/create_api_key.py`` CLI and by tests.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from gateway.core.api_keys import DEFAULT_SCOPES, KNOWN_SCOPES, generate_api_key
from gateway.core.collaborators import AuditRecord, KeyRecord
from gateway.core.exceptions import EntryStoreError
from gateway.db.models import ApiKeyRecord, AuditLogRecord, JournalEntryRecord

logger = logging.getLogger(__name__)

STORE_MAX_RANGE_DAYS = 90
STORE_MAX_ENTRIES = 100
STORE_MAX_CONTENT_BYTES = 100 * 1024
STORE_MAX_SEARCH_RESULTS = 10
SEARCH_CANDIDATE_LIMIT = 200


def create_api_key(
    db: Session,
    user_id: str,
    name: str,
    scopes: Optional[Iterable[str]] = None,
    expires_in_days: Optional[int] = None,
    prefix: str = "oline",
) -> tuple[str, ApiKeyRecord]:
    """Create and persist a new API key.

    Returns (token, record). The token is shown to the owner once and is
    never retrievable again.
    """
    scopes = list(scopes) if scopes else list(DEFAULT_SCOPES)
    unknown = [s for s in scopes if s not in KNOWN_SCOPES]
    if unknown:
        raise ValueError(f"Unknown scope(s): {', '.join(unknown)}. Must be among: {', '.join(KNOWN_SCOPES)}")

    key_id, token, key_hash = generate_api_key(prefix)
    expires_at = None
    if expires_in_days is not None:
        expires_at = datetime.now(timezone.utc) + timedelta(days=expires_in_days)
    record = ApiKeyRecord(
        key_id=key_id,
        user_id=user_id,
        name=name,
        key_hash=key_hash,
        scopes=scopes,
        expires_at=expires_at,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("Created API key %s for user %s with scopes %s", key_id, user_id, scopes)
    return token, record


def revoke_api_key(db: Session, key_id: str) -> bool:
    """Revoke a key by key_id. Returns True if found and revoked."""
    record = db.query(ApiKeyRecord).filter(ApiKeyRecord.key_id == key_id).first()
    if record is None or record.revoked_at is not None:
        return False
    record.revoked_at = datetime.now(timezone.utc)
    db.commit()
    logger.info("Revoked API key %s", key_id)
    return True


class SqlKeyStore:
    """Key store lookups by key_id."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def lookup(self, key_id: str) -> Optional[KeyRecord]:
        db = self._session_factory()
        try:
            record = db.query(ApiKeyRecord).filter(ApiKeyRecord.key_id == key_id).first()
            return record.to_key_record() if record else None
        finally:
            db.close()


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqlEntryStore:
    """User-scoped journal entry persistence."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get_entries(self, user_id: str, start_date: date, end_date: date, limit: int) -> List[Dict[str, Any]]:
        if (end_date - start_date).days > STORE_MAX_RANGE_DAYS:
            raise EntryStoreError(f"Date range cannot exceed {STORE_MAX_RANGE_DAYS} days")
        limit = max(1, min(limit, STORE_MAX_ENTRIES))

        db = self._session_factory()
        try:
            rows = (
                db.query(JournalEntryRecord)
                .filter(
                    JournalEntryRecord.user_id == user_id,
                    JournalEntryRecord.entry_date >= start_date,
                    JournalEntryRecord.entry_date <= end_date,
                )
                .order_by(JournalEntryRecord.entry_date.desc())
                .limit(limit)
                .all()
            )
            return [row.to_dict() for row in rows]
        finally:
            db.close()

    def upsert_entry(self, user_id: str, entry_date: date, content: str) -> Dict[str, Any]:
        if len(content.encode("utf-8")) > STORE_MAX_CONTENT_BYTES:
            raise EntryStoreError("Content exceeds 100KB limit")

        db = self._session_factory()
        try:
            try:
                record = self._write(db, user_id, entry_date, content)
            except IntegrityError:
                # Concurrent insert for the same day won; update that row instead
                db.rollback()
                record = self._write(db, user_id, entry_date, content)
            return record.to_dict()
        finally:
            db.close()

    @staticmethod
    def _write(db: Session, user_id: str, entry_date: date, content: str) -> JournalEntryRecord:
        record = (
            db.query(JournalEntryRecord)
            .filter(JournalEntryRecord.user_id == user_id, JournalEntryRecord.entry_date == entry_date)
            .first()
        )
        if record is None:
            record = JournalEntryRecord(user_id=user_id, entry_date=entry_date, content=content)
            db.add(record)
        else:
            record.content = content
            record.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(record)
        return record

    def search_journal(self, user_id: str, query: str, limit: int) -> List[Dict[str, Any]]:
        """Case-insensitive substring search ranked by occurrence count, newest first on ties."""
        limit = max(1, min(limit, STORE_MAX_SEARCH_RESULTS))
        pattern = f"%{_escape_like(query)}%"

        db = self._session_factory()
        try:
            rows = (
                db.query(JournalEntryRecord)
                .filter(
                    JournalEntryRecord.user_id == user_id,
                    JournalEntryRecord.content.ilike(pattern, escape="\\"),
                )
                .order_by(JournalEntryRecord.entry_date.desc())
                .limit(SEARCH_CANDIDATE_LIMIT)
                .all()
            )
        finally:
            db.close()

        needle = query.lower()
        scored = [(row.content.lower().count(needle), row) for row in rows]
        scored.sort(key=lambda pair: (pair[0], pair[1].entry_date), reverse=True)
        return [
            {"date": row.entry_date.isoformat(), "content": row.content, "score": float(score)}
            for score, row in scored[:limit]
        ]


class SqlAuditSink:
    """Appends audit records to the audit_logs table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def insert_audit_log(self, record: AuditRecord) -> None:
        db = self._session_factory()
        try:
            db.add(
                AuditLogRecord(
                    request_id=record.request_id,
                    user_id=record.user_id,
                    key_id=record.key_id,
                    ip_address=record.ip_address,
                    method=record.method,
                    path=record.path,
                    tool_name=record.tool_name,
                    status=record.status,
                    status_code=record.status_code,
                    input_hash=record.input_hash,
                    duration_ms=record.duration_ms,
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
