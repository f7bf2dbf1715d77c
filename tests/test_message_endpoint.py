"""Integration tests for the HTTP endpoints."""
import pytest
from fastapi.testclient import TestClient

from conftest import ScriptedEndpoint, gemini_reply
from services.errors import USER_MESSAGES, ErrorKind


@pytest.fixture
def endpoint():
    return ScriptedEndpoint(gemini_reply("Hello from Gemini"))


@pytest.fixture
def client(make_context, endpoint):
    """Test client whose chat context uses in-memory services."""
    import main
    from main import app

    client = TestClient(app)
    main.chat_context = make_context(endpoint)
    yield client
    main.chat_context = None


class TestMessageEndpoint:

    def test_reply(self, client, endpoint):
        response = client.post("/message", json={"user_id": "u1", "message": "hello"})

        assert response.status_code == 200
        assert response.json() == {"reply": "Hello from Gemini", "user_id": "u1"}
        assert endpoint.calls == 1

    def test_empty_message_is_bad_request(self, client, endpoint):
        response = client.post("/message", json={"user_id": "u1", "message": ""})

        assert response.status_code == 400
        assert endpoint.calls == 0

    def test_missing_field_is_rejected(self, client):
        response = client.post("/message", json={"user_id": "u1"})
        assert response.status_code == 422

    def test_missing_prompt_is_server_error(self, client, prompt_file):
        prompt_file.unlink()

        response = client.post("/message", json={"user_id": "u1", "message": "hello"})

        assert response.status_code == 500
        assert "System prompt" in response.json()["detail"]

    def test_upstream_failure_is_a_friendly_reply(self, client, endpoint):
        endpoint.steps = [400]

        response = client.post("/message", json={"user_id": "u1", "message": "hello"})

        assert response.status_code == 200
        assert response.json()["reply"] == USER_MESSAGES[ErrorKind.API]


class TestHistoryAndExport:

    def test_clear_history(self, client):
        import main
        client.post("/message", json={"user_id": "u1", "message": "hello"})

        response = client.delete("/history", params={"user_id": "u1"})

        assert response.status_code == 200
        assert response.json() == {"status": "cleared", "user_id": "u1"}
        assert main.chat_context.history_store.load() == {}

    def test_export_csv(self, client):
        client.post("/message", json={"user_id": "u1", "message": "hello"})

        response = client.get("/export/u1", params={"format": "csv"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["mime_type"] == "text/csv"
        assert "Hello from Gemini" in data["content"]

    def test_export_unknown_format(self, client):
        response = client.get("/export/u1", params={"format": "pdf"})
        assert response.status_code == 400


class TestOperationalEndpoints:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_metrics(self, client):
        client.post("/message", json={"user_id": "u1", "message": "hello"})

        data = client.get("/metrics").json()

        assert data["api_calls"] == 1


class TestSessionEndpoints:

    def test_create_and_get(self, client):
        created = client.post("/sessions", json={"user_id": "u1", "metadata": {"channel": "web"}})
        assert created.status_code == 200
        session_id = created.json()["id"]

        fetched = client.get(f"/sessions/{session_id}")

        assert fetched.status_code == 200
        assert fetched.json()["metadata"] == {"channel": "web"}
        assert fetched.json()["status"] == "active"

    def test_unknown_session(self, client):
        assert client.get("/sessions/missing").status_code == 404
        assert client.get("/sessions/missing/export").status_code == 404

    def test_user_sessions(self, client):
        client.post("/sessions", json={"user_id": "u1"})
        client.post("/sessions", json={"user_id": "u2"})

        response = client.get("/users/u1/sessions")

        assert [s["user_id"] for s in response.json()] == ["u1"]

    def test_export_then_import(self, client):
        session_id = client.post("/sessions", json={"user_id": "u1"}).json()["id"]
        exported = client.get(f"/sessions/{session_id}/export").json()["data"]

        imported = client.post("/sessions/import", json={"data": exported})

        assert imported.status_code == 200
        assert imported.json()["id"] != session_id
        assert imported.json()["import_date"] is not None

    def test_import_garbage(self, client):
        response = client.post("/sessions/import", json={"data": "not json"})
        assert response.status_code == 400

    def test_cleanup(self, client):
        client.post("/sessions", json={"user_id": "u1"})

        response = client.post("/sessions/cleanup")

        assert response.json() == {"expired": 0}


class TestLogCleanupEndpoint:

    def test_cleanup(self, client):
        client.post("/message", json={"user_id": "u1", "message": "hello"})

        response = client.post("/logs/cleanup", params={"days": 30})

        assert response.status_code == 200
        assert response.json() == {"deleted": 0, "kept": 2}

    @pytest.mark.parametrize("days", [0, -1])
    def test_non_positive_days_is_bad_request(self, client, days):
        response = client.post("/logs/cleanup", params={"days": days})
        assert response.status_code == 400

    def test_missing_days_is_rejected(self, client):
        assert client.post("/logs/cleanup").status_code == 422
