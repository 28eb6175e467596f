"""
End-to-end API tests.

Run the full application (in-memory storage, deterministic agents) with
the background worker started by the lifespan.
"""

import time

import pytest
from fastapi.testclient import TestClient

import uvicorn

from helpdesk import main
from helpdesk.config import Settings
from helpdesk.main import create_app


def _wait_for(client, path, attempts=100, delay=0.02):
    """Poll a GET endpoint until it answers 200."""
    response = client.get(path)
    for _ in range(attempts):
        if response.status_code == 200:
            return response
        time.sleep(delay)
        response = client.get(path)
    return response


def _wait_for_audit(client, ticket_id, action, attempts=100, delay=0.02):
    for _ in range(attempts):
        entries = client.get(f"/tickets/{ticket_id}/audit").json()["entries"]
        if any(entry["action"] == action for entry in entries):
            return entries
        time.sleep(delay)
    return client.get(f"/tickets/{ticket_id}/audit").json()["entries"]


@pytest.fixture
def client():
    settings = Settings(
        storage_backend="memory",
        agent_provider="stub",
        config_source="database",
        log_level="WARNING"
    )
    with TestClient(create_app(settings)) as test_client:
        yield test_client


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"]["storage"] == "memory"
        assert data["checks"]["agent_provider"] == "stub"
        assert data["checks"]["worker"]["running"] is True

    def test_root(self, client):
        assert client.get("/").json()["docs"] == "/docs"

    def test_correlation_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "req-123"})
        assert response.headers["X-Correlation-ID"] == "req-123"


class TestTriageFlow:

    def test_confident_ticket_is_auto_closed(self, client):
        article = client.post("/kb/articles", json={
            "title": "Refund policy",
            "body": "Refunds are issued within five business days.",
            "tags": ["billing"],
            "status": "published"
        }).json()
        config = client.put("/config", json={"auto_close_enabled": True, "confidence_threshold": 0.5})
        assert config.status_code == 200

        created = client.post("/tickets", json={
            "title": "Charged twice",
            "description": "Please refund my payment"
        })
        assert created.status_code == 201
        ticket_id = created.json()["ticket"]["id"]
        correlation_id = created.json()["correlation_id"]
        assert correlation_id

        suggestion = _wait_for(client, f"/agent/suggestion/{ticket_id}")
        assert suggestion.status_code == 200
        data = suggestion.json()
        assert data["predicted_category"] == "billing"
        assert data["article_ids"] == [article["id"]]
        assert data["articles"][0]["title"] == "Refund policy"

        entries = _wait_for_audit(client, ticket_id, "AUTO_CLOSED")
        assert [entry["action"] for entry in entries] == [
            "AUTO_CLOSED",
            "DRAFT_GENERATED",
            "KB_RETRIEVED",
            "AGENT_CLASSIFIED",
            "TICKET_CREATED",
        ]
        assert {entry["correlation_id"] for entry in entries} == {correlation_id}

        ticket = client.get(f"/tickets/{ticket_id}").json()
        assert ticket["status"] == "resolved"
        assert ticket["suggestion_id"] == data["id"]
        assert ticket["replies"][0]["author_id"] is None
        assert ticket["replies"][0]["content"] == data["draft_reply"]

    def test_default_config_hands_ticket_to_human(self, client):
        created = client.post("/tickets", json={"title": "Question", "description": "Where is my order?"})
        ticket_id = created.json()["ticket"]["id"]

        entries = _wait_for_audit(client, ticket_id, "ASSIGNED_TO_HUMAN")

        assert entries[0]["action"] == "ASSIGNED_TO_HUMAN"
        assert entries[0]["metadata"]["reason"] == "auto_close_disabled"
        assert client.get(f"/tickets/{ticket_id}").json()["status"] == "waiting_human"

    def test_manual_triage_of_unknown_ticket_is_audited(self, client):
        response = client.post("/agent/triage", json={"ticket_id": "does-not-exist"})

        assert response.status_code == 202
        assert response.json()["status"] == "accepted"

        entries = _wait_for_audit(client, "does-not-exist", "TRIAGE_FAILED")
        assert entries[0]["action"] == "TRIAGE_FAILED"
        assert entries[0]["correlation_id"] == response.json()["correlation_id"]

    def test_manual_rerun_replaces_suggestion(self, client):
        created = client.post("/tickets", json={"title": "Login broken", "description": "error on sign in"})
        ticket_id = created.json()["ticket"]["id"]
        first = _wait_for(client, f"/agent/suggestion/{ticket_id}").json()

        rerun = client.post("/agent/triage", json={"ticket_id": ticket_id})
        assert rerun.status_code == 202

        for _ in range(100):
            current = client.get(f"/agent/suggestion/{ticket_id}").json()
            if current["id"] != first["id"]:
                break
            time.sleep(0.02)
        assert current["id"] != first["id"]
        assert current["confidence"] == first["confidence"]


class TestTicketRoutes:

    def test_reply_and_assign(self, client):
        ticket_id = client.post("/tickets", json={"title": "Help", "description": "Please help"}).json()["ticket"]["id"]

        assigned = client.post(f"/tickets/{ticket_id}/assign", json={"assignee_id": "agent-1"})
        replied = client.post(
            f"/tickets/{ticket_id}/reply",
            json={"content": "Done", "author_id": "agent-1", "status": "closed"},
            headers={"X-Correlation-ID": "req-reply"}
        )

        assert assigned.json()["assignee_id"] == "agent-1"
        assert replied.json()["status"] == "closed"
        entries = _wait_for_audit(client, ticket_id, "REPLY_SENT")
        reply_entry = next(entry for entry in entries if entry["action"] == "REPLY_SENT")
        assert reply_entry["correlation_id"] == "req-reply"
        assert reply_entry["actor"] == "agent"

    def test_list_tickets(self, client):
        client.post("/tickets", json={"title": "One", "description": "First"})
        response = client.get("/tickets", params={"limit": 10})

        assert response.status_code == 200
        assert response.json()["count"] >= 1

    def test_unknown_ticket(self, client):
        response = client.get("/tickets/missing", headers={"X-Correlation-ID": "req-404"})

        assert response.status_code == 404
        assert response.json() == {
            "error": "not_found",
            "detail": "Ticket with id 'missing' not found",
            "correlation_id": "req-404",
        }
        assert client.get("/agent/suggestion/missing").status_code == 404

    @pytest.mark.parametrize("payload", [
        {"title": "   ", "description": "Body"},
        {"title": "Title"},
        {"title": "Title", "description": "Body", "category": "unknown"},
    ])
    def test_invalid_ticket_payload(self, client, payload):
        assert client.post("/tickets", json=payload).status_code == 422


class TestConfigAndKnowledgeBase:

    def test_config_defaults_and_update(self, client):
        defaults = client.get("/config").json()
        assert defaults == {"auto_close_enabled": False, "confidence_threshold": 0.78, "sla_hours": 24}

        updated = client.put("/config", json={"sla_hours": 8}).json()
        assert updated == {"auto_close_enabled": False, "confidence_threshold": 0.78, "sla_hours": 8}

    def test_config_rejects_out_of_range_threshold(self, client):
        assert client.put("/config", json={"confidence_threshold": 1.5}).status_code == 422

    def test_article_search(self, client):
        client.post("/kb/articles", json={
            "title": "Password reset", "body": "Reset your password", "tags": ["tech"], "status": "published"
        })
        client.post("/kb/articles", json={"title": "Draft note", "body": "password", "tags": ["tech"]})

        found = client.get("/kb/articles", params={"query": "password"}).json()

        assert [article["title"] for article in found["articles"]] == ["Password reset"]
        assert client.get("/kb/articles/missing").status_code == 404


class TestEntryPoint:

    def test_run_serves_on_configured_host_and_port(self, monkeypatch):
        calls = []
        monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
        settings = Settings(host="127.0.0.1", port=9001, environment="production", log_level="INFO")
        monkeypatch.setattr(main, "default_settings", settings)

        main.run()

        [(app_path, kwargs)] = calls
        assert app_path == "helpdesk.main:app"
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 9001
        assert kwargs["reload"] is False
        assert kwargs["log_level"] == "info"
