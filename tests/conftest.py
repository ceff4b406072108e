"""Pytest configuration and shared fixtures."""

from typing import Iterable, Optional

import pytest
from fastapi.testclient import TestClient

from gateway.core.config import Settings
from gateway.core.services import ServiceContainer
from gateway.db.database import build_engine, build_session_factory, init_db
from gateway.db.stores import SqlEntryStore, SqlKeyStore, create_api_key
from gateway.main import create_app
from tests.fixtures.fakes import FakeClock, RecordingAuditSink


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_factory():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite://")
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        preauth_rate_limit_enabled=False,
        log_level="WARNING",
        log_format="text",
        collaborator_timeout_seconds=2.0,
        audit_drain_timeout_seconds=2.0,
        heartbeat_interval_seconds=0.01,
    )


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def container(test_settings, session_factory, audit_sink) -> ServiceContainer:
    return ServiceContainer(
        test_settings,
        key_store=SqlKeyStore(session_factory),
        entry_store=SqlEntryStore(session_factory),
        audit_sink=audit_sink,
    )


@pytest.fixture
def app(test_settings, container):
    return create_app(test_settings, container)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def issue_key(db):
    """Factory creating a key and returning (token, record)."""

    def _issue(
        scopes: Optional[Iterable[str]] = None,
        user_id: str = "user-1",
        expires_in_days: Optional[int] = None,
    ):
        return create_api_key(
            db, user_id=user_id, name="test key", scopes=scopes, expires_in_days=expires_in_days
        )

    return _issue
