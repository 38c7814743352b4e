"""SQLite persistence for the game catalog."""

from .connection import Database
from .game_repository import GameRepository, row_to_game

__all__ = ['Database', 'GameRepository', 'row_to_game']
