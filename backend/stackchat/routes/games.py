"""
Game endpoints for the stackchat application.
Games are created, joined and left over HTTP; moves are made over the socket.
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
import logging
from typing import List, Optional

from stackchat.dependencies import get_game_manager, get_room_manager
from stackchat.games.manager import GAME_TYPES, GameManager
from stackchat.games.nim import GameError, GameInstance, GameStatus
from stackchat.realtime import RoomManager

# Get logger for this module
logger = logging.getLogger("stackchat.games.routes")


class CreateGameRequest(BaseModel):
    gameType: Optional[str] = None


class GameMembershipRequest(BaseModel):
    gameID: Optional[str] = None
    playerID: Optional[str] = None


class CreateGameResponse(BaseModel):
    gameID: str


# Create router for game endpoints
router = APIRouter(prefix="/games", tags=["games"])


@router.post("/create", response_model=CreateGameResponse)
async def create_game(body: CreateGameRequest, games: GameManager = Depends(get_game_manager)):
    if body.gameType not in GAME_TYPES:
        raise HTTPException(status_code=400, detail="Invalid request")
    game = games.add_game(body.gameType)
    return CreateGameResponse(gameID=game.id)


@router.post("/join", response_model=GameInstance)
async def join_game(
    body: GameMembershipRequest,
    games: GameManager = Depends(get_game_manager),
    rooms: RoomManager = Depends(get_room_manager),
):
    if not body.gameID or not body.playerID:
        raise HTTPException(status_code=400, detail="Invalid request")

    game = games.get_game(body.gameID)
    if not game:
        raise HTTPException(status_code=500, detail="Error when joining game: Game requested does not exist.")
    try:
        game.join(body.playerID)
    except GameError as e:
        raise HTTPException(status_code=500, detail=f"Error when joining game: {e}")

    instance = game.to_model()
    await rooms.emit(game.id, "gameUpdate", {"gameInstance": instance.model_dump(mode="json")})
    logger.info(f"Player {body.playerID} joined game {game.id}")
    return instance


@router.post("/leave", response_model=GameInstance)
async def leave_game(
    body: GameMembershipRequest,
    games: GameManager = Depends(get_game_manager),
    rooms: RoomManager = Depends(get_room_manager),
):
    if not body.gameID or not body.playerID:
        raise HTTPException(status_code=400, detail="Invalid request")

    game = games.get_game(body.gameID)
    if not game:
        raise HTTPException(status_code=500, detail="Error when leaving game: Game requested does not exist.")
    try:
        game.leave(body.playerID)
    except GameError as e:
        raise HTTPException(status_code=500, detail=f"Error when leaving game: {e}")

    instance = game.to_model()
    await rooms.emit(game.id, "gameUpdate", {"gameInstance": instance.model_dump(mode="json")})
    logger.info(f"Player {body.playerID} left game {game.id}")
    games.discard_if_over(game)
    return instance


@router.get("/games", response_model=List[GameInstance])
async def get_games(
    gameType: Optional[str] = None,
    status: Optional[GameStatus] = None,
    games: GameManager = Depends(get_game_manager),
):
    return games.get_games(gameType, status)
