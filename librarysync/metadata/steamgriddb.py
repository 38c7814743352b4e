"""
SteamGridDB artwork provider.

Uses python-steamgriddb for API access. The library is synchronous, so every
call runs in the default executor. Artwork categories are fetched in
parallel and each one is optional: a failed category leaves only that slot
empty.
Requires: pip install python-steamgriddb
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from steamgrid import SteamGridDB

logger = logging.getLogger(__name__)

# Artwork slot -> python-steamgriddb method name
ARTWORK_METHODS = {
    'hero': 'get_heroes_by_gameid',
    'grid': 'get_grids_by_gameid',
    'logo': 'get_logos_by_gameid',
    'icon': 'get_icons_by_gameid',
}


def _is_nsfw(asset: Any) -> bool:
    return bool(getattr(asset, '_nsfw', False) or getattr(asset, 'nsfw', False))


def select_best_artwork(assets: Optional[List[Any]]) -> Optional[Any]:
    """
    Select the best artwork from a list of assets.

    NSFW assets are never chosen. Of the rest, the highest community score
    wins; ties keep the API's order.
    """
    if not assets:
        return None
    safe = [a for a in assets if not _is_nsfw(a)]
    if not safe:
        return None
    return sorted(safe, key=lambda a: -(getattr(a, 'score', 0) or 0))[0]


class SteamGridDbClient:
    """SteamGridDB artwork lookups"""

    name = "SteamGridDB"

    def __init__(self, api_key: Optional[str], client: Optional[SteamGridDB] = None):
        self.api_key = api_key
        self.client = client
        if self.client is None and api_key:
            self.client = SteamGridDB(api_key)

    @property
    def configured(self) -> bool:
        return self.client is not None

    async def _call(self, method: str, *args):
        loop = asyncio.get_running_loop()
        # Run blocking synchronous call in thread pool
        return await loop.run_in_executor(None, getattr(self.client, method), *args)

    async def find_game_id(self, title: str) -> Optional[int]:
        """Search for game by title and return the SteamGridDB game id"""
        results = await self._call('search_game', title)
        if results:
            game_id = results[0].id
            logger.debug(f"[SteamGridDB] Found ID {game_id} for '{title}'")
            return game_id
        logger.debug(f"[SteamGridDB] No game found for '{title}'")
        return None

    async def get_artwork(self, sgdb_id: int) -> Dict[str, Optional[str]]:
        """
        Fetch the best hero, grid, logo and icon URLs for a game - ALL IN PARALLEL

        Returns:
            Dict of slot -> URL (None where nothing usable was found)
        """
        slots = list(ARTWORK_METHODS)
        results = await asyncio.gather(
            *(self._call(ARTWORK_METHODS[slot], [sgdb_id]) for slot in slots),
            return_exceptions=True,
        )

        artwork: Dict[str, Optional[str]] = {}
        for slot, assets in zip(slots, results):
            if isinstance(assets, Exception):
                logger.warning(f"[SteamGridDB] Failed to fetch {slot} for {sgdb_id}: {assets}")
                artwork[slot] = None
                continue
            best = select_best_artwork(assets)
            artwork[slot] = best.url if best else None
        return artwork

    async def search(self, title: str) -> Optional[Dict[str, Any]]:
        """
        Find artwork for a title.

        Returns:
            Dict with game_id and hero/grid/logo/icon URLs, or None when the
            title is not on SteamGridDB
        """
        sgdb_id = await self.find_game_id(title)
        if sgdb_id is None:
            return None
        return await self.get_by_id(sgdb_id)

    async def get_by_id(self, sgdb_id: int) -> Dict[str, Any]:
        artwork = await self.get_artwork(sgdb_id)
        return {'game_id': sgdb_id, **artwork}
