import json

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from chatbot.config import Settings
from chatbot.errors import LLMTransportError
from conftest import FakeLLMClient, text_reply, tool_reply


class ScriptedFactory:
    """Hands out FakeLLMClients that share one reply script."""

    def __init__(self):
        self.replies = []
        self.clients = []

    def __call__(self):
        client = FakeLLMClient()
        client.replies = self.replies
        self.clients.append(client)
        return client


@pytest.fixture
def llm_factory():
    return ScriptedFactory()


@pytest.fixture
def client(llm_factory):
    app = create_app(Settings(), llm_factory=llm_factory)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def connected(client, temp_sqlite_db):
    response = client.post("/api/connect", json={"type": "sqlite", "filename": temp_sqlite_db})
    assert response.status_code == 200
    return client


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_connect_missing_file_argument(client):
    response = client.post("/api/connect", json={"type": "sqlite"})
    assert response.status_code == 400
    assert "filename" in response.json()["detail"]


def test_connect_rejects_unknown_engine(client):
    response = client.post("/api/connect", json={"type": "oracle"})
    assert response.status_code == 422


def test_requires_connection(client):
    assert client.get("/api/schemas").status_code == 400
    assert client.post("/api/scan", json={}).status_code == 400


def test_chat_requires_scan(connected):
    response = connected.post("/api/chat", json={"message": "How many customers?"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Schema not scanned. Please scan the database first."


def test_schema_requires_scan(connected):
    assert connected.get("/api/schema").status_code == 404


def test_catalog_endpoints(connected):
    assert connected.get("/api/schemas").json() == {"success": True, "schemas": ["main"]}
    databases = connected.get("/api/databases").json()["databases"]
    assert len(databases) == 1


def test_scan_then_chat(connected, llm_factory):
    scan = connected.post("/api/scan", json={"database": "shop"})
    assert scan.status_code == 200
    body = scan.json()
    assert [table["name"] for table in body["metadata"]["tables"]] == ["customers", "orders"]
    assert body["summary"].startswith("# Database Schema Summary")
    assert connected.get("/api/schema").json()["metadata"]["name"] == "shop"

    llm_factory.replies.extend(
        [
            tool_reply("run_sql", json.dumps({"sql": "SELECT COUNT(*) AS n FROM customers"})),
            text_reply('{"response_type": "text", "description": "There are 2 customers."}'),
        ]
    )
    response = connected.post("/api/chat", json={"message": "How many customers?"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "response": {"response_type": "text", "description": "There are 2 customers."},
    }
    tool_message = llm_factory.clients[-1].calls[1]["messages"][-1]
    assert json.loads(tool_message.content)["rows"] == [{"n": 2}]


def test_chat_transport_error_is_bad_gateway(temp_sqlite_db):
    class BrokenLLM:
        def chat(self, messages, tools):
            raise LLMTransportError("LLM API error: 503 - unavailable", 503)

    app = create_app(Settings(), llm_factory=BrokenLLM)
    with TestClient(app) as broken:
        broken.post("/api/connect", json={"type": "sqlite", "filename": temp_sqlite_db})
        broken.post("/api/scan", json={})
        response = broken.post("/api/chat", json={"message": "hi"})

    assert response.status_code == 502
    assert "503" in response.json()["detail"]


def test_chat_max_iterations_is_server_error(connected, llm_factory):
    connected.post("/api/scan", json={})
    llm_factory.replies.extend([tool_reply("list_tables")] * 5)

    response = connected.post("/api/chat", json={"message": "loop"})

    assert response.status_code == 500
    assert "Max iterations" in response.json()["detail"]


def test_query_is_gated_by_read_only_mode(connected):
    blocked = connected.post("/api/query", json={"sql": "DELETE FROM orders"})
    assert blocked.status_code == 400
    assert "read-only" in blocked.json()["detail"]

    toggled = connected.post("/api/read-only", json={"read_only": False})
    assert toggled.json() == {"success": True, "read_only": False}

    allowed = connected.post("/api/query", json={"sql": "DELETE FROM orders"})
    assert allowed.status_code == 200
    assert allowed.json()["result"]["row_count"] == 1


def test_query_returns_rows(connected):
    response = connected.post("/api/query", json={"sql": "SELECT email FROM customers ORDER BY id"})

    assert response.status_code == 200
    assert response.json()["result"]["rows"] == [
        {"email": "alice@example.com"},
        {"email": "bob@example.com"},
    ]


def test_sessions_are_separate(connected):
    other = {"X-Session-Id": "other"}
    assert connected.get("/api/schemas", headers=other).status_code == 400
    assert connected.get("/api/schemas").status_code == 200


def test_clear_and_disconnect(connected, llm_factory):
    connected.post("/api/scan", json={})
    llm_factory.replies.append(text_reply("hi there"))
    connected.post("/api/chat", json={"message": "hello"})

    assert connected.post("/api/chat/clear").json()["success"] is True
    assert connected.post("/api/disconnect").status_code == 200
    assert connected.get("/api/schemas").status_code == 400
