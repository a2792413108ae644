import pytest

from stackchat import chat_service
from stackchat.models import ErrorResponse

VALID_CHAT_PAYLOAD = {
    "participants": ["user1", "user2"],
    "messages": [{"msg": "Hello!", "msgFrom": "user1", "msgDateTime": "2025-01-01T00:00:00Z"}],
}


def returning(value):
    async def fake(*args, **kwargs):
        return value
    return fake


@pytest.fixture
def chat(client, signup):
    signup("user1")
    signup("user2")
    response = client.post("/chat/createChat", json=VALID_CHAT_PAYLOAD)
    assert response.status_code == 200
    return response.json()


class TestCreateChat:
    def test_creates_enriched_chat(self, client, signup):
        signup("a")
        signup("b")

        response = client.post(
            "/chat/createChat",
            json={"participants": ["a", "b"], "messages": [{"msg": "hi", "msgFrom": "a"}]},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["id"]
        assert body["participants"] == ["a", "b"]
        assert len(body["messages"]) == 1
        message = body["messages"][0]
        assert message["id"]
        assert message["msg"] == "hi"
        assert message["type"] == "direct"
        assert message["user"]["username"] == "a"
        assert message["user"]["id"]

    def test_keeps_message_timestamp(self, client, chat):
        assert chat["messages"][0]["msgDateTime"].startswith("2025-01-01T00:00:00")

    def test_allows_chat_without_messages(self, client):
        response = client.post("/chat/createChat", json={"participants": ["user1"], "messages": []})

        assert response.status_code == 200
        assert response.json()["messages"] == []

    @pytest.mark.parametrize("payload", [
        {"messages": []},
        {"participants": [], "messages": []},
        {"participants": ["user1"]},
        {"participants": ["user1"], "messages": [{"msgFrom": "user1"}]},
        {"participants": ["user1"], "messages": [{"msg": "Hello!"}]},
        {"participants": "user1", "messages": []},
    ])
    def test_returns_400_for_invalid_payload(self, client, payload):
        response = client.post("/chat/createChat", json=payload)

        assert response.status_code == 400
        assert response.text == "Invalid request body"

    def test_returns_500_if_save_chat_fails(self, client, monkeypatch):
        monkeypatch.setattr(chat_service, "save_chat", returning(ErrorResponse(error="DB error")))

        response = client.post("/chat/createChat", json=VALID_CHAT_PAYLOAD)

        assert response.status_code == 500
        assert response.text == "DB error"

    def test_returns_500_if_populate_fails(self, client, monkeypatch):
        monkeypatch.setattr(chat_service, "populate_chat", returning(ErrorResponse(error="Population failed")))

        response = client.post("/chat/createChat", json=VALID_CHAT_PAYLOAD)

        assert response.status_code == 500
        assert response.text == "Population failed"


class TestAddMessage:
    def test_adds_message(self, client, chat):
        response = client.post(
            f"/chat/{chat['id']}/addMessage",
            json={"msg": "Second", "msgFrom": "user2", "type": "direct"},
        )

        assert response.status_code == 200
        messages = response.json()["messages"]
        assert [m["msg"] for m in messages] == ["Hello!", "Second"]
        assert messages[1]["user"]["username"] == "user2"

    def test_returns_400_for_missing_msg(self, client, chat):
        response = client.post(f"/chat/{chat['id']}/addMessage", json={"msgFrom": "user1"})

        assert response.status_code == 400
        assert response.text == "Invalid request body"

    def test_returns_500_for_unknown_chat(self, client):
        response = client.post("/chat/missing/addMessage", json={"msg": "Hi", "msgFrom": "user1"})

        assert response.status_code == 500
        assert response.text == "Chat not found"

    def test_returns_500_if_create_message_fails(self, client, chat, monkeypatch):
        monkeypatch.setattr(chat_service, "create_message", returning(ErrorResponse(error="Create message failed")))

        response = client.post(f"/chat/{chat['id']}/addMessage", json={"msg": "Hi", "msgFrom": "user1"})

        assert response.status_code == 500
        assert response.text == "Create message failed"

    def test_returns_500_if_add_message_fails(self, client, chat, monkeypatch):
        monkeypatch.setattr(chat_service, "add_message_to_chat", returning(ErrorResponse(error="Add message failed")))

        response = client.post(f"/chat/{chat['id']}/addMessage", json={"msg": "Hi", "msgFrom": "user1"})

        assert response.status_code == 500
        assert response.text == "Add message failed"


class TestGetChat:
    def test_retrieves_chat(self, client, chat):
        response = client.get(f"/chat/{chat['id']}")

        assert response.status_code == 200
        assert response.json() == chat

    def test_returns_500_if_not_found(self, client):
        response = client.get("/chat/missing")

        assert response.status_code == 500
        assert response.text == "Chat not found"

    def test_returns_500_if_populate_fails(self, client, chat, monkeypatch):
        monkeypatch.setattr(chat_service, "populate_chat", returning(ErrorResponse(error="Population failed")))

        response = client.get(f"/chat/{chat['id']}")

        assert response.status_code == 500
        assert response.text == "Population failed"


class TestAddParticipant:
    def test_adds_participant_once(self, client, chat):
        client.post(f"/chat/{chat['id']}/addParticipant", json={"userId": "user3"})
        response = client.post(f"/chat/{chat['id']}/addParticipant", json={"userId": "user3"})

        assert response.status_code == 200
        assert response.json()["participants"] == ["user1", "user2", "user3"]

    def test_returns_400_for_missing_user(self, client, chat):
        response = client.post(f"/chat/{chat['id']}/addParticipant", json={})

        assert response.status_code == 400
        assert response.text == "Invalid request body"

    def test_returns_500_for_unknown_chat(self, client):
        response = client.post("/chat/missing/addParticipant", json={"userId": "user3"})

        assert response.status_code == 500
        assert response.text == "Chat not found"


class TestGetChatsByUser:
    def test_returns_users_chats(self, client, chat):
        client.post("/chat/createChat", json={"participants": ["user2", "user3"], "messages": []})

        response = client.get("/chat/getChatsByUser/user1")

        assert response.status_code == 200
        assert response.json() == [chat]

    def test_returns_empty_list_when_none_found(self, client, chat):
        response = client.get("/chat/getChatsByUser/user-with-no-chats")

        assert response.status_code == 200
        assert response.json() == []

    def test_returns_500_if_populate_fails(self, client, chat, monkeypatch):
        monkeypatch.setattr(chat_service, "populate_chat", returning(ErrorResponse(error="Service error")))

        response = client.get("/chat/getChatsByUser/user1")

        assert response.status_code == 500
        assert response.text == "Error retrieving chat: Failed populating chats"

    def test_returns_500_if_lookup_raises(self, client, monkeypatch):
        async def broken(*args, **kwargs):
            raise RuntimeError("Database error")

        monkeypatch.setattr(chat_service, "get_chats_by_participants", broken)

        response = client.get("/chat/getChatsByUser/user1")

        assert response.status_code == 500
        assert response.text == "Database error"
