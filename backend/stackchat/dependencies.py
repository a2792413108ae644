"""
Request-scoped access to the per-application services created in main.create_app.
"""
from fastapi.requests import HTTPConnection

from stackchat.database import CosmosDBConnection
from stackchat.eventgrid import EventGridPublisher
from stackchat.games.manager import GameManager
from stackchat.realtime import RoomManager


def get_db(conn: HTTPConnection) -> CosmosDBConnection:
    return conn.app.state.db


def get_room_manager(conn: HTTPConnection) -> RoomManager:
    return conn.app.state.rooms


def get_game_manager(conn: HTTPConnection) -> GameManager:
    return conn.app.state.games


def get_publisher(conn: HTTPConnection) -> EventGridPublisher:
    return conn.app.state.publisher
