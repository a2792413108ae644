import pytest
from fastapi.testclient import TestClient

from stackchat.database import CosmosDBConnection
from stackchat.eventgrid import EventGridPublisher
from stackchat.games.manager import GameManager
from stackchat.main import create_app


@pytest.fixture(autouse=True)
def clear_eventgrid_env(monkeypatch):
    monkeypatch.delenv("EVENTGRID_TOPIC_ENDPOINT", raising=False)
    monkeypatch.delenv("EVENTGRID_TOPIC_KEY", raising=False)


@pytest.fixture
def db():
    return CosmosDBConnection(dev_mode=True)


@pytest.fixture
def games():
    return GameManager(nim_starting_objects=7)


@pytest.fixture
def app(db, games):
    return create_app(db=db, games=games, publisher=EventGridPublisher())


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signup(client):
    def _signup(username, password="password", **extra):
        response = client.post("/user/signup", json={"username": username, "password": password, **extra})
        assert response.status_code == 200, response.text
        return response.json()
    return _signup


async def raise_db_error(*args, **kwargs):
    raise RuntimeError("DB error")


def join(ws, event, room):
    """Send a room event and return its acknowledgement."""
    ws.send_json({"type": event, "data": room})
    ack = ws.receive_json()
    assert ack["data"] == room
    return ack
