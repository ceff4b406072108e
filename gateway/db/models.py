"""Database models backing the reference key store, entry store and audit sink."""

import uuid

from sqlalchemy import JSON, Column, Date, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from gateway.core.collaborators import KeyRecord
from gateway.db.database import Base


class ApiKeyRecord(Base):
    """Issued API key. Only the SHA-256 of the secret is stored."""

    __tablename__ = "api_keys"

    id = Column(Integer, primary_key=True, index=True)
    key_id = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)
    key_hash = Column(String(64), nullable=False)
    scopes = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    def to_key_record(self) -> KeyRecord:
        return KeyRecord(
            key_id=self.key_id,
            user_id=self.user_id,
            key_hash=self.key_hash,
            scopes=tuple(self.scopes or ()),
            revoked_at=self.revoked_at,
            expires_at=self.expires_at,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary (never includes the hash)."""
        return {
            "key_id": self.key_id,
            "user_id": self.user_id,
            "name": self.name,
            "scopes": list(self.scopes or []),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "revoked_at": self.revoked_at.isoformat() if self.revoked_at else None,
        }


class JournalEntryRecord(Base):
    """One journal entry per user per calendar day."""

    __tablename__ = "journal_entries"
    __table_args__ = (UniqueConstraint("user_id", "entry_date", name="uq_journal_entries_user_date"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, index=True, nullable=False)
    entry_date = Column(Date, index=True, nullable=False)
    content = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.entry_date.isoformat(),
            "content": self.content,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class AuditLogRecord(Base):
    """Persisted audit record. ``user_id`` is empty for unauthenticated requests."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(String, index=True, nullable=False)
    user_id = Column(String, index=True, nullable=True)
    key_id = Column(String, index=True, nullable=True)
    ip_address = Column(String, nullable=True)
    method = Column(String(16), nullable=False)
    path = Column(String, nullable=False)
    tool_name = Column(String, nullable=True)
    status = Column(String(32), nullable=False)
    status_code = Column(Integer, nullable=False)
    input_hash = Column(String(64), nullable=True)
    duration_ms = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "user_id": self.user_id,
            "key_id": self.key_id,
            "ip_address": self.ip_address,
            "method": self.method,
            "path": self.path,
            "tool_name": self.tool_name,
            "status": self.status,
            "status_code": self.status_code,
            "input_hash": self.input_hash,
            "duration_ms": self.duration_ms,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
