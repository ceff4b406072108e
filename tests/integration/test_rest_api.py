"""Integration tests for the REST surface, driven through TestClient."""

from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from gateway.core.audit import hash_input
from gateway.core.rate_limit import RequestClass
from gateway.core.services import ServiceContainer
from gateway.db.stores import SqlEntryStore, revoke_api_key
from gateway.main import create_app
from tests.fixtures.fakes import RecordingAuditSink, auth_header

READ = ["read:entries"]
READ_WRITE = ["read:entries", "write:entries"]


def _problem(response):
    assert response.headers["content-type"].startswith("application/problem+json")
    return response.json()


@pytest.mark.integration
class TestAuthentication:
    def test_missing_header(self, client):
        response = client.get("/v1/entries")
        assert response.status_code == 401
        body = _problem(response)
        assert body["type"] == "https://api.oneline.app/errors/unauthorized"
        assert body["title"] == "Unauthorized"
        assert body["status"] == 401
        assert "Bearer oline_<key_id>.<secret>" in body["detail"]
        assert response.headers["www-authenticate"] == "Bearer"

    def test_malformed_token(self, client):
        response = client.get("/v1/entries", headers={"Authorization": "Bearer oline_abc.short"})
        assert response.status_code == 401
        assert _problem(response)["detail"] == "Invalid key format"

    def test_unknown_key(self, client):
        response = client.get("/v1/entries", headers=auth_header("oline_nope." + "a" * 64))
        assert response.status_code == 401
        assert _problem(response)["detail"] == "Invalid API key"

    def test_wrong_secret(self, client, issue_key):
        token, record = issue_key(READ)
        forged = f"oline_{record.key_id}." + "0" * 64
        response = client.get("/v1/entries", headers=auth_header(forged))
        assert _problem(response)["detail"] == "Invalid API key"

    def test_revoked_key(self, client, issue_key, db):
        token, record = issue_key(READ)
        revoke_api_key(db, record.key_id)
        response = client.get("/v1/entries", headers=auth_header(token))
        assert response.status_code == 401
        assert _problem(response)["detail"] == "API key has been revoked"

    def test_expired_key(self, client, issue_key):
        token, _ = issue_key(READ, expires_in_days=-1)
        response = client.get("/v1/entries", headers=auth_header(token))
        assert response.status_code == 401
        assert _problem(response)["detail"] == "API key has expired"

    def test_key_store_outage_is_generic_500(self, test_settings, session_factory):
        key_store = MagicMock()
        key_store.lookup.side_effect = ConnectionError("db at 10.0.0.5 unreachable")
        container = ServiceContainer(
            test_settings, key_store, SqlEntryStore(session_factory), RecordingAuditSink()
        )
        with TestClient(create_app(test_settings, container)) as client:
            response = client.get("/v1/entries", headers=auth_header("oline_abc." + "a" * 64))
        assert response.status_code == 500
        body = _problem(response)
        assert body["detail"] == "An unexpected error occurred"
        assert "10.0.0.5" not in response.text


@pytest.mark.integration
class TestScopes:
    def test_read_only_key_cannot_write(self, client, issue_key):
        token, _ = issue_key(READ)
        response = client.post(
            "/v1/entries", json={"date": "2024-01-02", "content": "hi"}, headers=auth_header(token)
        )
        assert response.status_code == 403
        body = _problem(response)
        assert "write:entries" in body["detail"]
        assert body["type"].endswith("/forbidden")

    def test_read_only_key_can_search(self, client, issue_key):
        token, _ = issue_key(READ)
        response = client.get("/v1/search", params={"q": "hi"}, headers=auth_header(token))
        assert response.status_code == 200
        body = response.json()
        assert isinstance(body["data"], list)
        assert body["_meta"]["query"] == "hi"
        assert body["_meta"]["result_count"] == len(body["data"])

    def test_write_only_key_cannot_read(self, client, issue_key):
        token, _ = issue_key(["write:entries"])
        response = client.get("/v1/entries", headers=auth_header(token))
        assert response.status_code == 403


@pytest.mark.integration
class TestEntries:
    def test_write_then_list(self, client, issue_key):
        token, _ = issue_key(READ_WRITE)
        today = date.today().isoformat()
        response = client.post(
            "/v1/entries", json={"date": today, "content": "Good day"}, headers=auth_header(token)
        )
        assert response.status_code == 201
        assert response.headers["location"] == f"/v1/entries?date={today}"
        assert response.json()["data"]["content"] == "Good day"

        response = client.get("/v1/entries", headers=auth_header(token))
        assert response.status_code == 200
        body = response.json()
        assert [e["content"] for e in body["data"]] == ["Good day"]
        assert body["pagination"] == {"has_more": False, "limit": 30}
        assert body["_meta"]["date_range"]["end"] == today
        assert body["_meta"]["date_range"]["start"] == (date.today() - timedelta(days=30)).isoformat()

    def test_has_more_when_limit_met(self, client, issue_key):
        token, _ = issue_key(READ_WRITE)
        for day in ("2024-01-01", "2024-01-02"):
            client.post("/v1/entries", json={"date": day, "content": "x"}, headers=auth_header(token))
        response = client.get(
            "/v1/entries",
            params={"start_date": "2024-01-01", "end_date": "2024-01-31", "limit": "2"},
            headers=auth_header(token),
        )
        assert response.json()["pagination"] == {"has_more": True, "limit": 2}

    def test_limit_capped_at_100(self, client, issue_key):
        token, _ = issue_key(READ)
        response = client.get("/v1/entries", params={"limit": "1000"}, headers=auth_header(token))
        assert response.json()["pagination"]["limit"] == 100

    def test_ninety_day_range_accepted(self, client, issue_key):
        token, _ = issue_key(READ)
        response = client.get(
            "/v1/entries",
            params={"start_date": "2024-01-01", "end_date": "2024-03-31"},
            headers=auth_header(token),
        )
        assert response.status_code == 200

    def test_range_over_ninety_days_rejected(self, client, issue_key):
        token, _ = issue_key(READ)
        response = client.get(
            "/v1/entries",
            params={"start_date": "2024-01-01", "end_date": "2024-06-01"},
            headers=auth_header(token),
        )
        assert response.status_code == 400
        assert "90 days" in _problem(response)["detail"]

    def test_bad_date_param(self, client, issue_key):
        token, _ = issue_key(READ)
        response = client.get("/v1/entries", params={"start_date": "01/01/2024"}, headers=auth_header(token))
        assert response.status_code == 400

    def test_content_size_limit(self, client, issue_key):
        token, _ = issue_key(READ_WRITE)
        big = client.post(
            "/v1/entries", json={"date": "2024-01-02", "content": "a" * (101 * 1024)}, headers=auth_header(token)
        )
        assert big.status_code == 400
        assert _problem(big)["detail"] == "Content exceeds 100KB limit"

        ok = client.post(
            "/v1/entries", json={"date": "2024-01-02", "content": "a" * (99 * 1024)}, headers=auth_header(token)
        )
        assert ok.status_code == 201

    def test_content_is_sanitized_before_storage(self, client, issue_key):
        token, _ = issue_key(READ_WRITE)
        response = client.post(
            "/v1/entries",
            json={"date": "2024-01-02", "content": "Hi <script>alert(1)</script><a href='javascript:x'>l</a>"},
            headers=auth_header(token),
        )
        stored = response.json()["data"]["content"]
        assert "<script" not in stored
        assert "javascript:" not in stored

    @pytest.mark.parametrize(
        "body",
        [{"date": "2024-01-02"}, {"content": "hi"}, {"date": "2024-01-02", "content": 5}, ["x"]],
    )
    def test_missing_fields(self, client, issue_key, body):
        token, _ = issue_key(READ_WRITE)
        response = client.post("/v1/entries", json=body, headers=auth_header(token))
        assert response.status_code == 400
        assert _problem(response)["detail"] == "Missing required fields: date, content"

    def test_invalid_json_body(self, client, issue_key):
        token, _ = issue_key(READ_WRITE)
        response = client.post(
            "/v1/entries",
            content=b"{not json",
            headers={**auth_header(token), "Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_bad_date_shape(self, client, issue_key):
        token, _ = issue_key(READ_WRITE)
        response = client.post(
            "/v1/entries", json={"date": "2024-1-2", "content": "x"}, headers=auth_header(token)
        )
        assert response.status_code == 400
        assert "YYYY-MM-DD" in _problem(response)["detail"]


@pytest.mark.integration
class TestSearch:
    def test_finds_own_entries(self, client, issue_key):
        token, _ = issue_key(READ_WRITE)
        client.post("/v1/entries", json={"date": "2024-01-02", "content": "went hiking"}, headers=auth_header(token))
        other, _ = issue_key(READ_WRITE, user_id="user-2")
        client.post("/v1/entries", json={"date": "2024-01-02", "content": "hiking too"}, headers=auth_header(other))

        response = client.get("/v1/search", params={"q": "hiking"}, headers=auth_header(token))
        body = response.json()
        assert [r["content"] for r in body["data"]] == ["went hiking"]
        assert body["_meta"]["result_count"] == 1

    @pytest.mark.parametrize("params", [{}, {"q": "h"}, {"q": "x" * 201}])
    def test_query_bounds(self, client, issue_key, params):
        token, _ = issue_key(READ)
        response = client.get("/v1/search", params=params, headers=auth_header(token))
        assert response.status_code == 400


@pytest.mark.integration
class TestRateLimiting:
    def test_sixty_first_write_is_rejected(self, client, issue_key):
        token, _ = issue_key(READ_WRITE)
        statuses = [
            client.post(
                "/v1/entries", json={"date": "2024-01-02", "content": f"n{i}"}, headers=auth_header(token)
            ).status_code
            for i in range(60)
        ]
        assert set(statuses) == {201}

        response = client.post(
            "/v1/entries", json={"date": "2024-01-02", "content": "one more"}, headers=auth_header(token)
        )
        assert response.status_code == 429
        body = _problem(response)
        assert 1 <= body["retry_after_seconds"] <= 60
        assert response.headers["retry-after"] == str(body["retry_after_seconds"])

        # Read quota is separate
        assert client.get("/v1/entries", headers=auth_header(token)).status_code == 200

    def test_rejected_credentials_do_not_consume_quota(self, client, issue_key, container):
        client.get("/v1/entries", headers=auth_header("oline_nope." + "a" * 64))
        assert container.rate_limiter.remaining("nope", RequestClass.READ) == 120

    def test_preauth_throttle(self, test_settings, container):
        settings = test_settings.model_copy(update={"preauth_rate_limit_enabled": True, "preauth_rate_limit": "2/minute"})
        with TestClient(create_app(settings, container)) as client:
            statuses = [client.get("/v1/entries").status_code for _ in range(3)]
        assert statuses == [401, 401, 429]


@pytest.mark.integration
class TestRoutingAndHeaders:
    def test_unknown_route_requires_auth(self, client):
        assert client.get("/v2/whatever").status_code == 401

    def test_unknown_route_with_valid_key(self, client, issue_key):
        token, _ = issue_key(READ)
        response = client.get("/v2/whatever", headers=auth_header(token))
        assert response.status_code == 404
        assert _problem(response)["type"].endswith("/not-found")

    def test_wrong_method_on_known_path(self, client, issue_key):
        token, _ = issue_key(READ_WRITE)
        response = client.put("/v1/entries", json={}, headers=auth_header(token))
        assert response.status_code == 404

    def test_request_id_echoed(self, client, issue_key):
        token, _ = issue_key(READ)
        response = client.get("/v1/entries", headers={**auth_header(token), "X-Request-Id": "trace-123"})
        assert response.headers["x-request-id"] == "trace-123"
        assert response.json()["_meta"]["request_id"] == "trace-123"

    def test_request_id_generated_and_in_problem(self, client):
        response = client.get("/v1/entries")
        request_id = response.headers["x-request-id"]
        assert len(request_id) == 36
        assert response.json()["trace_id"] == request_id

    def test_oversized_request_id_replaced(self, client):
        response = client.get("/v1/entries", headers={"X-Request-Id": "x" * 200})
        assert response.headers["x-request-id"] != "x" * 200

    def test_cors_preflight(self, client):
        response = client.options(
            "/v1/entries",
            headers={"Origin": "https://app.example", "Access-Control-Request-Method": "POST"},
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_bare_options(self, client):
        response = client.options("/v1/entries")
        assert response.status_code == 204
        assert "POST" in response.headers["allow"]

    def test_health_unauthenticated(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_metrics(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "gateway_requests_total" in response.text


@pytest.mark.integration
class TestAuditTrail:
    def test_records_written_after_response(self, app, audit_sink, issue_key):
        token, record = issue_key(READ_WRITE)
        with TestClient(app) as client:
            client.get("/v1/entries")
            client.post(
                "/v1/entries",
                json={"date": "2024-01-02", "content": "x<script>y</script>"},
                headers={**auth_header(token), "X-Request-Id": "req-write"},
            )
            client.get("/health")
            client.options("/v1/entries")

        records = sorted(audit_sink.records, key=lambda r: r.method)
        assert len(records) == 2

        unauthenticated, write = records
        assert unauthenticated.status == "unauthorized"
        assert unauthenticated.status_code == 401
        assert unauthenticated.user_id is None

        assert write.request_id == "req-write"
        assert write.status == "success"
        assert write.status_code == 201
        assert write.user_id == "user-1"
        assert write.key_id == record.key_id
        assert write.path == "/v1/entries"
        assert write.input_hash == hash_input("x")

    def test_rejected_key_id_recorded(self, app, audit_sink, issue_key, db):
        token, record = issue_key(READ)
        revoke_api_key(db, record.key_id)
        with TestClient(app) as client:
            client.get("/v1/entries", headers=auth_header(token))
        (entry,) = audit_sink.records
        assert entry.key_id == record.key_id
        assert entry.user_id is None

    def test_audit_failure_does_not_change_response(self, test_settings, session_factory, issue_key):
        from gateway.db.stores import SqlKeyStore

        class BrokenSink:
            def insert_audit_log(self, record):
                raise RuntimeError("audit store down")

        container = ServiceContainer(
            test_settings, SqlKeyStore(session_factory), SqlEntryStore(session_factory), BrokenSink()
        )
        token, _ = issue_key(READ)
        with TestClient(create_app(test_settings, container)) as client:
            response = client.get("/v1/entries", headers=auth_header(token))
        assert response.status_code == 200
