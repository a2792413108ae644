"""
WebSocket endpoint for the stackchat application.
This module handles room membership (chats and games) and game moves.

Frames in both directions are JSON objects of the form
{"type": <event name>, "data": <payload>}.
"""
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
import logging
import json
from typing import Any

from stackchat.database import CosmosDBConnection
from stackchat.dependencies import get_db, get_game_manager, get_room_manager
from stackchat.games.manager import GameManager
from stackchat.games.nim import GameError, GameMove
from stackchat.realtime import RoomManager

# Get logger for this module
logger = logging.getLogger("stackchat.websocket")

# Create router for WebSocket endpoints
router = APIRouter(tags=["websocket"])

# Room membership events and the acknowledgement sent back for each
ROOM_EVENTS = {
    "joinChat": ("join", "chatJoined"),
    "leaveChat": ("leave", "chatLeft"),
    "joinGame": ("join", "gameJoined"),
    "leaveGame": ("leave", "gameLeft"),
}


async def send_event(websocket: WebSocket, event: str, data: Any):
    await websocket.send_json({"type": event, "data": data})


async def handle_room_event(websocket: WebSocket, rooms: RoomManager, connection_id: str, event: str, room: Any):
    action, ack = ROOM_EVENTS[event]
    if not room or not isinstance(room, str):
        if action == "leave":
            # Leaving without an id is a no-op
            return
        await send_event(websocket, "error", {"message": f"{event} requires a room id"})
        return

    if action == "join":
        rooms.join(connection_id, room)
    else:
        rooms.leave(connection_id, room)
    await send_event(websocket, ack, room)


async def handle_make_move(websocket: WebSocket, rooms: RoomManager, games: GameManager, username: str, data: Any):
    async def reject(reason: str):
        logger.info(f"Rejected move from {username}: {reason}")
        await send_event(websocket, "gameError", {"player": username, "error": reason})

    try:
        game_id = data["gameID"]
        move = GameMove(**data["move"])
    except (KeyError, TypeError, ValidationError):
        game_id = None
    if not isinstance(game_id, str):
        await reject("Invalid move: malformed move payload")
        return

    game = games.get_game(game_id)
    if not game or move.gameID != game_id:
        await reject("Game requested does not exist.")
        return
    if move.playerID != username:
        await reject("Invalid move: player does not match connection")
        return

    try:
        game.apply_move(move)
    except GameError as e:
        await reject(str(e))
        return

    instance = game.to_model()
    await rooms.emit(game_id, "gameUpdate", {"gameInstance": instance.model_dump(mode="json")})
    logger.debug(f"Applied move by {username} in game {game_id}: {move.move.numObjects} object(s)")
    games.discard_if_over(game)


@router.websocket("/ws/{username}")
async def websocket_endpoint(
    websocket: WebSocket,
    username: str,
    db: CosmosDBConnection = Depends(get_db),
    rooms: RoomManager = Depends(get_room_manager),
    games: GameManager = Depends(get_game_manager),
):
    """
    One connection per client tab. The connection starts in the user's
    personal room and joins chat and game rooms on request.
    """
    if rooms.is_shutting_down:
        logger.info(f"Server is shutting down, rejecting WebSocket connection for user {username}")
        await websocket.close(code=1001, reason="Server shutting down")
        return

    user = await db.get_user_by_username(username)
    if not user:
        logger.warning(f"WebSocket connection rejected for unregistered user: {username}")
        await websocket.close(code=4001, reason="Unauthorized: User not registered")
        return

    await websocket.accept()
    connection_id = rooms.connect(websocket, username)
    logger.info(f"WebSocket connection accepted for user: {username}")

    try:
        while True:
            frame = await websocket.receive_json()
            if not isinstance(frame, dict):
                await send_event(websocket, "error", {"message": "Frames must be JSON objects"})
                continue

            event = frame.get("type")
            data = frame.get("data")
            logger.debug(f"Received {event} from {username}")

            if event in ROOM_EVENTS:
                await handle_room_event(websocket, rooms, connection_id, event, data)
            elif event == "makeMove":
                await handle_make_move(websocket, rooms, games, username, data)
            else:
                logger.warning(f"Received unknown event type '{event}' from {username}")
                await send_event(websocket, "error", {"message": f"Unknown event type: {event}"})

    except WebSocketDisconnect:
        logger.info(f"WebSocket connection closed for user: {username}")
    except json.JSONDecodeError:
        logger.error(f"Invalid JSON received from {username}, closing connection.")
        await websocket.close(code=1003)  # 1003: unsupported data
    except Exception as e:
        logger.error(f"Error in WebSocket handler for {username}: {e}")
        try:
            await websocket.close(code=1011)  # 1011: internal server error
        except Exception as close_e:
            logger.error(f"Error trying to close WebSocket for {username} after an error: {close_e}")
    finally:
        rooms.disconnect(connection_id)
