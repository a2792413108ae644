"""
Nim game logic.

Players take turns removing 1 to 3 objects from a single pile. The player who
removes the last object loses.
"""
import uuid
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, StrictInt

MAX_OBJECTS_PER_MOVE = 3
DEFAULT_STARTING_OBJECTS = 21


class GameError(Exception):
    """Raised when a join, leave or move is not allowed in the current game state."""


class GameStatus(str, Enum):
    WAITING = "WAITING"
    IN_PROGRESS = "IN_PROGRESS"
    GAME_OVER = "GAME_OVER"


class NimMove(BaseModel):
    numObjects: StrictInt


class GameMove(BaseModel):
    gameID: str
    playerID: str
    move: NimMove


class NimGameState(BaseModel):
    status: GameStatus = GameStatus.WAITING
    player1: Optional[str] = None
    player2: Optional[str] = None
    moves: List[NimMove] = []
    remainingObjects: int = DEFAULT_STARTING_OBJECTS
    winners: List[str] = []


class GameInstance(BaseModel):
    gameID: str
    gameType: str
    players: List[str]
    state: NimGameState


class NimGame:
    game_type = "Nim"

    def __init__(self, starting_objects: int = DEFAULT_STARTING_OBJECTS, game_id: Optional[str] = None):
        if starting_objects < 1:
            raise ValueError("A Nim game needs at least one object")
        self.id = game_id or str(uuid.uuid4())
        self.state = NimGameState(remainingObjects=starting_objects)

    @property
    def players(self) -> List[str]:
        return [p for p in (self.state.player1, self.state.player2) if p]

    @property
    def current_player(self) -> Optional[str]:
        # Even number of moves: player 1 to move
        if len(self.state.moves) % 2 == 0:
            return self.state.player1
        return self.state.player2

    def join(self, player_id: str):
        if player_id in self.players:
            raise GameError("Cannot join game: player already in game")
        if self.state.status != GameStatus.WAITING:
            raise GameError("Cannot join game: already started")

        if self.state.player1 is None:
            self.state.player1 = player_id
        else:
            self.state.player2 = player_id

        if self.state.player1 and self.state.player2:
            self.state.status = GameStatus.IN_PROGRESS

    def leave(self, player_id: str):
        if player_id not in self.players:
            raise GameError("Cannot leave game: player is not in the game")
        if self.state.status == GameStatus.GAME_OVER:
            raise GameError("Cannot leave game: game is already over")

        if self.state.status == GameStatus.IN_PROGRESS:
            # Forfeit
            other = self.state.player2 if player_id == self.state.player1 else self.state.player1
            self.state.winners = [other]
            self.state.status = GameStatus.GAME_OVER
        elif player_id == self.state.player1:
            self.state.player1 = None
        else:
            self.state.player2 = None

    def validate_move(self, move: GameMove):
        if self.state.status != GameStatus.IN_PROGRESS:
            raise GameError("Invalid move: game is not in progress")
        if move.playerID != self.current_player:
            raise GameError("Invalid move: it is not your turn")
        num_objects = move.move.numObjects
        if num_objects < 1 or num_objects > MAX_OBJECTS_PER_MOVE:
            raise GameError(f"Invalid move: you can only remove 1 to {MAX_OBJECTS_PER_MOVE} objects")
        if num_objects > self.state.remainingObjects:
            raise GameError("Invalid move: cannot remove more objects than remain")

    def apply_move(self, move: GameMove):
        """Validate and apply a move; taking the last object loses."""
        self.validate_move(move)

        self.state.moves.append(move.move)
        self.state.remainingObjects -= move.move.numObjects

        if self.state.remainingObjects == 0:
            winner = self.state.player2 if move.playerID == self.state.player1 else self.state.player1
            self.state.winners = [winner]
            self.state.status = GameStatus.GAME_OVER

    def to_model(self) -> GameInstance:
        return GameInstance(
            gameID=self.id,
            gameType=self.game_type,
            players=self.players,
            state=self.state.model_copy(deep=True),
        )
