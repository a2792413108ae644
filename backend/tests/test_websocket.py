import pytest
from starlette.websockets import WebSocketDisconnect

from conftest import join


@pytest.fixture
def users(signup):
    for username in ("a", "b", "c"):
        signup(username)


@pytest.fixture
def chat_id(client, users):
    response = client.post("/chat/createChat", json={"participants": ["a", "b", "c"], "messages": []})
    return response.json()["id"]


def test_rejects_unregistered_user(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/ghost"):
            pass
    assert exc_info.value.code == 4001


def test_join_and_leave_are_acknowledged(client, chat_id):
    with client.websocket_connect("/ws/a") as ws:
        assert join(ws, "joinChat", chat_id)["type"] == "chatJoined"
        assert join(ws, "leaveChat", chat_id)["type"] == "chatLeft"


def test_new_message_reaches_room_members_only(client, chat_id):
    with client.websocket_connect("/ws/a") as ws_a, \
            client.websocket_connect("/ws/b") as ws_b, \
            client.websocket_connect("/ws/c") as ws_c:
        for ws in (ws_a, ws_b, ws_c):
            join(ws, "joinChat", chat_id)
        join(ws_c, "leaveChat", chat_id)

        response = client.post(f"/chat/{chat_id}/addMessage", json={"msg": "hi", "msgFrom": "a"})
        assert response.status_code == 200

        for ws in (ws_a, ws_b):
            event = ws.receive_json()
            assert event["type"] == "chatUpdate"
            assert event["data"]["type"] == "newMessage"
            assert event["data"]["chat"] == response.json()

        # The next frame c sees is its own ack, not the chat update
        assert join(ws_c, "joinChat", "another-room")["type"] == "chatJoined"


def test_created_chat_reaches_participants_once(client, users):
    with client.websocket_connect("/ws/a") as ws_a, client.websocket_connect("/ws/c") as ws_c:
        join(ws_a, "joinChat", "lobby")
        join(ws_c, "joinChat", "lobby")

        response = client.post(
            "/chat/createChat",
            json={"participants": ["a", "b"], "messages": [{"msg": "hi", "msgFrom": "a"}]},
        )

        event = ws_a.receive_json()
        assert event["type"] == "chatUpdate"
        assert event["data"] == {"type": "created", "chat": response.json()}
        # Not a participant
        assert join(ws_c, "joinChat", "next")["type"] == "chatJoined"
        # Delivered once even though a is in several target rooms
        assert join(ws_a, "joinChat", "next")["type"] == "chatJoined"


def test_leave_without_id_is_ignored(client, users):
    with client.websocket_connect("/ws/a") as ws:
        ws.send_json({"type": "leaveChat"})
        assert join(ws, "joinChat", "room")["type"] == "chatJoined"


def test_unknown_event_returns_error(client, users):
    with client.websocket_connect("/ws/a") as ws:
        ws.send_json({"type": "dance", "data": None})

        event = ws.receive_json()

        assert event["type"] == "error"
        assert "dance" in event["data"]["message"]


def test_invalid_json_closes_connection(client, users):
    with client.websocket_connect("/ws/a") as ws:
        ws.send_text("not json")
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()
    assert exc_info.value.code == 1003


def test_user_updates_are_broadcast(client, users):
    with client.websocket_connect("/ws/a") as ws:
        join(ws, "joinChat", "lobby")

        client.patch("/user/updateBiography", json={"username": "b", "biography": "new bio"})

        event = ws.receive_json()
        assert event["type"] == "userUpdate"
        assert event["data"]["type"] == "updated"
        assert event["data"]["user"]["username"] == "b"
        assert "password" not in event["data"]["user"]


def test_disconnect_removes_connection_from_rooms(client, app, chat_id):
    with client.websocket_connect("/ws/a") as ws:
        join(ws, "joinChat", chat_id)
        assert len(app.state.rooms.members(chat_id)) == 1

    # Wait for the server side to finish cleaning up
    with client.websocket_connect("/ws/b") as ws:
        join(ws, "joinChat", "lobby")
    assert app.state.rooms.members(chat_id) == set()
