from datetime import datetime, timezone

from stackchat import eventgrid
from stackchat.eventgrid import EventGridPublisher
from stackchat.models import ChatUpdate, EnrichedChat

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_update():
    chat = EnrichedChat(id="chat-1", participants=["a"], messages=[], createdAt=NOW, updatedAt=NOW)
    return ChatUpdate(type="newMessage", chat=chat)


class FakeResponse:
    def __init__(self, status):
        self.status = status

    async def text(self):
        return "boom"

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    posted = []
    status = 200

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def post(self, url, headers=None, json=None):
        FakeSession.posted.append((url, headers, json))
        return FakeResponse(FakeSession.status)


async def test_disabled_without_configuration():
    publisher = EventGridPublisher()

    assert publisher.enabled is False
    assert await publisher.publish_chat_update(make_update()) is False


async def test_publishes_chat_update(monkeypatch):
    monkeypatch.setattr(eventgrid.aiohttp, "ClientSession", FakeSession)
    FakeSession.posted = []
    FakeSession.status = 200
    publisher = EventGridPublisher(endpoint="https://topic.example", key="secret")

    assert await publisher.publish_chat_update(make_update()) is True

    url, headers, body = FakeSession.posted[0]
    assert url == "https://topic.example"
    assert headers["aeg-sas-key"] == "secret"
    assert body[0]["eventType"] == "Chat.NewMessage"
    assert body[0]["subject"] == "/chats/chat-1"
    assert body[0]["data"]["chat"]["id"] == "chat-1"


async def test_reports_rejected_event(monkeypatch):
    monkeypatch.setattr(eventgrid.aiohttp, "ClientSession", FakeSession)
    FakeSession.status = 401
    publisher = EventGridPublisher(endpoint="https://topic.example", key="secret")

    assert await publisher.publish_chat_update(make_update()) is False
