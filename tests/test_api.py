import pytest
from fastapi.testclient import TestClient

from taskpilot.application.api.api_server import create_app
from taskpilot.infrastructure.config import Settings
from taskpilot.infrastructure.storage.key_value_store import InMemoryStore


class CannedChatClient:
    def __init__(self, reply):
        self.reply = reply
        self.closed = False

    async def complete(self, prompt: str) -> str:
        return self.reply

    async def close(self):
        self.closed = True


@pytest.fixture
def chat_client():
    return CannedChatClient(
        'Done!\n```json\n[{"action": "add", "task": "Buy milk", "datetime": "2025-08-16T17:00"}]\n```'
    )


@pytest.fixture
def client(chat_client):
    app = create_app(Settings(), storage=InMemoryStore(), chat_client=chat_client)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["conversations"] == 1


def test_lifespan_closes_chat_client(chat_client):
    app = create_app(Settings(), storage=InMemoryStore(), chat_client=chat_client)
    with TestClient(app):
        pass

    assert chat_client.closed


def test_conversation_lifecycle(client):
    listed = client.get("/api/v1/conversations").json()
    first = listed["active_id"]
    assert [c["title"] for c in listed["conversations"]] == ["New Chat"]

    created = client.post("/api/v1/conversations")
    assert created.status_code == 201
    second = created.json()["active_id"]
    assert second != first

    activated = client.post(f"/api/v1/conversations/{first}/activate").json()
    assert activated["active_id"] == first

    deleted = client.delete(f"/api/v1/conversations/{first}").json()
    assert deleted["active_id"] == second
    assert [c["id"] for c in deleted["conversations"]] == [second]


def test_deleting_last_conversation_is_rejected(client):
    only = client.get("/api/v1/conversations").json()["active_id"]

    response = client.delete(f"/api/v1/conversations/{only}")

    assert response.status_code == 400
    assert response.json() == {"detail": "Cannot delete the last chat. Create a new one first."}


def test_unknown_conversation_is_404(client):
    assert client.post("/api/v1/conversations/missing/activate").status_code == 404


def test_task_crud(client):
    created = client.post("/api/v1/tasks", json={"text": "Buy milk", "datetime": "2025-08-16T17:00"})
    assert created.status_code == 201
    assert created.json() == {"id": "t1", "text": "Buy milk"}

    edited = client.patch("/api/v1/tasks/t1", json={"text": "Buy oat milk"})
    assert edited.json() == {"id": "t1", "text": "Buy oat milk"}

    groups = client.get("/api/v1/tasks").json()["groups"]
    assert groups == [{
        "key": "2025-08-16T17:00",
        "label": "08/16/2025, 05:00:00 PM",
        "tasks": [{"id": "t1", "text": "Buy oat milk"}],
    }]

    assert client.delete("/api/v1/tasks/t1").status_code == 200
    assert client.get("/api/v1/tasks").json()["groups"] == []
    assert client.delete("/api/v1/tasks/t1").status_code == 404


def test_task_guards(client):
    response = client.post("/api/v1/tasks", json={"text": "  "})
    assert response.status_code == 400
    assert response.json() == {"detail": "Please enter a task description."}

    client.post("/api/v1/tasks", json={"text": "Buy milk", "datetime": "2025-08-16T17:00"})
    response = client.patch("/api/v1/tasks/t1", json={"text": ""})
    assert response.status_code == 400
    assert response.json() == {"detail": "Task text cannot be empty."}


def test_chat_applies_actions(client):
    response = client.post("/api/v1/chat", json={"message": "add buy milk tomorrow 5pm"})

    assert response.status_code == 200
    body = response.json()
    assert body["reply"] == '✅ Completed 1 task operation(s):\n• Created: "Buy milk"\n\nDone!'
    assert body["handled_locally"] is False
    assert body["results"][0]["operation"] == "created"

    transcript = client.get("/api/v1/conversations/active/messages").json()
    assert transcript["title"] == "add buy milk tomorrow 5pm"
    assert [m["role"] for m in transcript["messages"]] == ["user", "assistant"]
    assert client.get("/api/v1/tasks").json()["groups"][0]["key"] == "2025-08-16T17:00"


def test_empty_chat_message_is_rejected(client):
    response = client.post("/api/v1/chat", json={"message": " "})

    assert response.status_code == 400
    assert response.json() == {"detail": "Please enter a message first!"}
