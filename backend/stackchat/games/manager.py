"""
In-memory registry of running games.
"""
import logging
import os
from typing import Dict, List, Optional

from stackchat.games.nim import DEFAULT_STARTING_OBJECTS, GameInstance, GameStatus, NimGame

logger = logging.getLogger("stackchat.games")

GAME_TYPES = {"Nim": NimGame}


class GameManager:
    def __init__(self, nim_starting_objects: Optional[int] = None):
        if nim_starting_objects is None:
            nim_starting_objects = int(os.getenv("NIM_STARTING_OBJECTS", str(DEFAULT_STARTING_OBJECTS)))
        self.nim_starting_objects = nim_starting_objects
        self.games: Dict[str, NimGame] = {}

    def add_game(self, game_type: str) -> NimGame:
        if game_type not in GAME_TYPES:
            raise ValueError(f"Unknown game type: {game_type}")
        game = GAME_TYPES[game_type](starting_objects=self.nim_starting_objects)
        self.games[game.id] = game
        logger.info(f"Created {game_type} game {game.id}")
        return game

    def get_game(self, game_id: str) -> Optional[NimGame]:
        return self.games.get(game_id)

    def discard_if_over(self, game: NimGame) -> bool:
        """Drop a finished game from the registry. Returns True if it was removed."""
        if game.state.status != GameStatus.GAME_OVER:
            return False
        removed = self.games.pop(game.id, None) is not None
        if removed:
            logger.info(f"Removed finished {game.game_type} game {game.id}")
        return removed

    def get_games(self, game_type: Optional[str] = None, status: Optional[GameStatus] = None) -> List[GameInstance]:
        return [
            game.to_model()
            for game in self.games.values()
            if (game_type is None or game.game_type == game_type)
            and (status is None or game.state.status == status)
        ]
