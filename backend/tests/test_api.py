"""
Tests for the HTTP surface: chat, usage, templates, auth and health.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from chatguard.core import auth as session_auth
from chatguard.core.clock import utc_now
from chatguard.core.config import SESSION_MAX_AGE_HOURS
from chatguard.core.database import get_db
from chatguard.core.exceptions import UpstreamProviderError
from chatguard.models import User
from chatguard.services.rag import VectorDB

from conftest import FakeLLMClient, FakeVectorBackend


PASSWORD = "s3cret-pass"


def _register_and_login(client, email="bob@example.com"):
    response = client.post("/api/auth/register", json={"email": email, "password": PASSWORD})
    assert response.status_code == 201
    response = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200
    return response.json()["user"]


class TestChatEndpoint:
    def test_unconfigured_store_still_answers(self, api_client, orchestrator_factory, unconfigured_retriever):
        client = api_client(orchestrator_factory(retriever=unconfigured_retriever))

        response = client.post("/api/chat", json={"message": "Hello"})

        assert response.status_code == 200
        body = response.json()
        assert body["response"] == "Hello from the model"
        assert body["conversationId"]
        assert body["templateId"] is None
        assert body["metadata"]["model"] == "gpt-3.5-turbo"
        assert body["metadata"]["tokensUsed"] == 70
        assert body["metadata"]["processingTime"] >= 0

    def test_camel_case_body(self, api_client, orchestrator_factory):
        llm = FakeLLMClient()
        client = api_client(orchestrator_factory(llm=llm))

        response = client.post("/api/chat", json={
            "message": "Review please",
            "templateId": "code-reviewer",
            "templateVariables": {"programming_language": "Rust"},
            "conversationHistory": [{"role": "user", "content": "earlier"}],
            "conversationId": "conv-7",
        })

        assert response.status_code == 200
        assert response.json()["templateId"] == "code-reviewer"
        assert response.json()["conversationId"] == "conv-7"
        messages = llm.calls[0]["messages"]
        assert "Rust" in messages[0]["content"]
        assert messages[1] == {"role": "user", "content": "earlier"}

    def test_missing_message(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        response = client.post("/api/chat", json={})
        assert response.status_code == 400
        assert response.json()["detail"] == {"error": "No message provided"}

    def test_unknown_template(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        response = client.post("/api/chat", json={"message": "Hi", "templateId": "missing"})
        assert response.status_code == 404

    def test_template_render_error(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        response = client.post("/api/chat", json={
            "message": "Hi",
            "templateId": "code-reviewer",
            "templateVariables": {"experience_years": "lots"},
        })
        assert response.status_code == 400

    def test_invalid_history_role(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        response = client.post("/api/chat", json={
            "message": "Hi",
            "conversationHistory": [{"role": "wizard", "content": "x"}],
        })
        assert response.status_code == 422

    def test_provider_failure(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory(llm=FakeLLMClient(error=UpstreamProviderError("down"))))

        response = client.post("/api/chat", json={"message": "Hi"})

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "Error communicating with the chat provider."

    def test_quota_exceeded(self, api_client, orchestrator_factory, db, add_quota, add_usage):
        llm = FakeLLMClient()
        client = api_client(orchestrator_factory(llm=llm))
        _register_and_login(client)
        user = db.query(User).filter(User.email == "bob@example.com").one()
        now = utc_now()
        add_quota(user.id, last_reset_daily=now)
        add_usage(user.id, "0.045", now)

        response = client.post("/api/chat", json={"message": "Hi"})

        assert response.status_code == 429
        detail = response.json()["detail"]
        assert detail["error"] == "Usage limit exceeded"
        assert detail["reason"].startswith("Daily limit exceeded.")
        assert detail["usage"]["dailyUsage"] == pytest.approx(0.045)
        assert detail["usage"]["dailyLimit"] == pytest.approx(0.045)
        assert llm.calls == []

    def test_authenticated_turn_is_charged(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        _register_and_login(client)

        assert client.post("/api/chat", json={"message": "Hi"}).status_code == 200

        usage = client.get("/api/usage").json()
        assert usage["daily"]["spent"] > 0
        assert usage["daily"]["limit"] == pytest.approx(0.045)


class TestUsageEndpoints:
    def test_requires_login(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        assert client.get("/api/usage").status_code == 401
        assert client.get("/api/usage/stats").status_code == 401
        assert client.get("/api/usage/history").status_code == 401

    def test_fresh_user_status(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        _register_and_login(client)

        response = client.get("/api/usage")

        assert response.status_code == 200
        body = response.json()
        assert body["daily"] == {"spent": 0.0, "limit": pytest.approx(0.045),
                                 "remaining": pytest.approx(0.045), "percentage": 0.0}
        assert body["monthly"]["limit"] == pytest.approx(1.35)

    def test_internal_error(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        _register_and_login(client)

        with patch("chatguard.api.usage.get_user_limit_status", side_effect=RuntimeError("database gone")):
            response = client.get("/api/usage")

        assert response.status_code == 500
        assert response.json()["detail"] == {"error": "Failed to fetch usage data"}

    def test_stats_and_history(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        _register_and_login(client)
        client.post("/api/chat", json={"message": "Hi", "conversationId": "conv-9"})

        stats = client.get("/api/usage/stats").json()
        assert stats["total"] > 0
        assert set(stats["byService"]) == {"openai"}
        assert set(stats["byOperation"]) == {"chat_completion"}

        history = client.get("/api/usage/history", params={"limit": 10}).json()
        assert history["limit"] == 10
        assert len(history["items"]) == 1
        assert history["items"][0]["operation"] == "chat_completion"
        assert history["items"][0]["conversationId"] == "conv-9"


class TestTemplateEndpoints:
    def test_list(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        body = client.get("/api/templates").json()
        assert len(body["templates"]) == 7
        assert "role" in body["categories"]

    def test_filter_by_category(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        body = client.get("/api/templates", params={"category": "role"}).json()
        assert body["templates"]
        assert all(template["category"] == "role" for template in body["templates"])

    def test_get_one(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        body = client.get("/api/templates/code-reviewer").json()
        assert body["id"] == "code-reviewer"
        assert {variable["name"] for variable in body["variables"]} == {"programming_language", "experience_years"}

    def test_unknown(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        assert client.get("/api/templates/nope").status_code == 404


class TestAuthEndpoints:
    def test_register_login_me_logout(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        user = _register_and_login(client, email="carol@example.com")
        assert user["email"] == "carol@example.com"

        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["email"] == "carol@example.com"

        assert client.post("/api/auth/logout").status_code == 200
        assert client.get("/api/auth/me").status_code == 401

    def test_duplicate_email(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        payload = {"email": "dave@example.com", "password": PASSWORD}
        assert client.post("/api/auth/register", json=payload).status_code == 201
        assert client.post("/api/auth/register", json=payload).status_code == 409

    def test_short_password(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        response = client.post("/api/auth/register", json={"email": "erin@example.com", "password": "123"})
        assert response.status_code == 400

    def test_wrong_password(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        client.post("/api/auth/register", json={"email": "frank@example.com", "password": PASSWORD})
        response = client.post("/api/auth/login", json={"email": "frank@example.com", "password": "wrong-pass"})
        assert response.status_code == 401

    def test_tampered_cookie(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        client.cookies.set("chatguard_session", "e30.deadbeef")
        assert client.get("/api/auth/me").status_code == 401


class TestSessionRevocation:
    def test_logout_revokes_token(self):
        token = session_auth.create_session(42, "gina@example.com")
        assert session_auth.verify_session(token) is not None

        with patch.dict(session_auth._revoked, clear=True):
            session_auth.delete_session(token)
            assert session_auth.verify_session(token) is None

    def test_expired_revocations_are_pruned(self):
        stale = datetime.now(timezone.utc) - timedelta(hours=SESSION_MAX_AGE_HOURS + 1)
        with patch.dict(session_auth._revoked, {"stale-token": stale}, clear=True):
            session_auth.delete_session("fresh-token")

            assert "stale-token" not in session_auth._revoked
            assert "fresh-token" in session_auth._revoked


class TestHealth:
    def test_healthy(self, api_client, orchestrator_factory):
        client = api_client(orchestrator_factory())
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["vectorStore"] == {"status": "not_configured"}

    def test_reports_vector_count(self, api_client, orchestrator_factory):
        backend = FakeVectorBackend()
        backend.upsert(["a", "b"], [[0.1], [0.2]], ["x", "y"], [{}, {}])
        client = api_client(orchestrator_factory(), vector_db=VectorDB(backend))

        body = client.get("/health").json()

        assert body["vectorStore"] == {"status": "connected", "vectors": 2}

    def test_vector_store_failure_keeps_service_healthy(self, api_client, orchestrator_factory):
        class BrokenBackend(FakeVectorBackend):
            def count(self):
                raise ConnectionError("vector store unreachable")

        client = api_client(orchestrator_factory(), vector_db=VectorDB(BrokenBackend()))

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["vectorStore"] == {"status": "unavailable"}

    def test_database_down(self, api_client, orchestrator_factory):
        from chatguard.main import app

        class BrokenSession:
            def execute(self, *args, **kwargs):
                raise ConnectionError("database unreachable")

        client = api_client(orchestrator_factory())
        app.dependency_overrides[get_db] = lambda: BrokenSession()

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
        assert response.json()["database"] == "disconnected"
