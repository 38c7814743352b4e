"""Store adapters for Epic, GOG, Amazon and Steam."""

from .base import Game, Store, StoreAdapter, StoreError, AuthStatus, format_size, make_game_id
from .epic import EpicStore
from .gog import GogStore
from .amazon import AmazonStore, LoginResult, requires_second_factor
from .steam import SteamStore
from .manager import StoreManager

__all__ = [
    'Game', 'Store', 'StoreAdapter', 'StoreError', 'AuthStatus', 'format_size', 'make_game_id',
    'EpicStore', 'GogStore', 'AmazonStore', 'LoginResult', 'requires_second_factor',
    'SteamStore', 'StoreManager',
]
