"""Metadata providers: IGDB, HowLongToBeat, ProtonDB and SteamGridDB."""

from .http import HttpProvider, ProviderError
from .igdb import IgdbClient
from .hltb import HltbClient
from .protondb import ProtonDbClient
from .steamgriddb import SteamGridDbClient

__all__ = ['HttpProvider', 'ProviderError', 'IgdbClient', 'HltbClient', 'ProtonDbClient', 'SteamGridDbClient']
