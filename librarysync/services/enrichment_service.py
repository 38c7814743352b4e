"""
Enrichment service - fills in metadata for library records.

For every game it either reuses a fresh merged cache entry or queries IGDB,
HowLongToBeat, ProtonDB and SteamGridDB concurrently, caches the merged
result, downloads artwork and writes the enrichment columns.

Responsibilities:
- Cache-first lookups with a single merged entry per game
- Per-provider failure isolation (a failing provider contributes nothing)
- Per-game failure isolation inside a batch
- Re-enrichment by stored provider ids when an old entry carries them
"""
import asyncio
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..cache.enrichment_cache import EnrichmentCache, MERGED_PROVIDER, DEFAULT_TTL
from ..database.game_repository import GameRepository
from ..metadata.hltb import HltbClient
from ..metadata.igdb import IgdbClient
from ..metadata.protondb import ProtonDbClient
from ..metadata.steamgriddb import SteamGridDbClient
from ..stores.base import Game
from .image_cache import ImageCache

logger = logging.getLogger(__name__)

PROVIDERS = ('igdb', 'hltb', 'protondb', 'steamgriddb')

ARTWORK_SLOTS = ('hero', 'grid', 'logo', 'icon')

ProgressCallback = Callable[[Game, "EnrichmentResult"], Awaitable[None]]


@dataclass
class EnrichmentResult:
    """Outcome of enriching one game"""
    game_id: str
    success: bool
    from_cache: bool = False
    matched: List[str] = field(default_factory=list)  # providers that returned data
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def resolve_steam_app_id(game: Game) -> Optional[int]:
    """Steam app id for ProtonDB: the stored one, or the native id of a Steam title."""
    if game.steam_app_id:
        return int(game.steam_app_id)
    if game.store == 'steam' and str(game.store_id).isdigit():
        return int(game.store_id)
    return None


def _release_date(timestamp: Any) -> Optional[str]:
    if not timestamp:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).date().isoformat()


def map_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a merged provider payload into enrichment column values.

    Only values a provider actually supplied are included, so a provider
    with no data never blanks a column.
    """
    fields: Dict[str, Any] = {}

    igdb = payload.get('igdb')
    if igdb:
        fields['description'] = igdb.get('summary')
        fields['summary'] = igdb.get('summary')
        if igdb.get('rating') is not None:
            fields['igdb_rating'] = round(igdb['rating'])
        if igdb.get('aggregated_rating') is not None:
            fields['metacritic_score'] = round(igdb['aggregated_rating'])
        if igdb.get('genres'):
            fields['genres'] = igdb['genres']
        fields['developer'] = igdb.get('developer')
        fields['publisher'] = igdb.get('publisher')
        fields['release_date'] = _release_date(igdb.get('first_release_date'))
        fields['cover_url'] = igdb.get('cover_url')

    hltb = payload.get('hltb')
    if hltb:
        fields['hltb_main'] = hltb.get('main')
        fields['hltb_main_extra'] = hltb.get('main_extra')
        fields['hltb_complete'] = hltb.get('completionist')

    proton = payload.get('protondb')
    if proton:
        fields['proton_tier'] = proton.get('tier')
        fields['proton_confidence'] = proton.get('confidence')
        fields['proton_trending_tier'] = proton.get('trending_tier')

    if payload.get('steam_app_id'):
        fields['steam_app_id'] = payload['steam_app_id']

    sgdb = payload.get('steamgriddb')
    if sgdb:
        for slot in ARTWORK_SLOTS:
            fields[f'{slot}_path'] = sgdb.get(slot)
        fields['background_url'] = sgdb.get('hero')

    return {k: v for k, v in fields.items() if v is not None}


class EnrichmentService:
    """Enriches library records with metadata from external providers."""

    def __init__(
        self,
        repository: GameRepository,
        cache: EnrichmentCache,
        igdb: Optional[IgdbClient] = None,
        hltb: Optional[HltbClient] = None,
        protondb: Optional[ProtonDbClient] = None,
        steamgriddb: Optional[SteamGridDbClient] = None,
        image_cache: Optional[ImageCache] = None,
        ttl: timedelta = DEFAULT_TTL,
        concurrency: int = 4,
    ):
        self.repository = repository
        self.cache = cache
        self.igdb = igdb
        self.hltb = hltb
        self.protondb = protondb
        self.steamgriddb = steamgriddb
        self.image_cache = image_cache
        self.ttl = ttl
        self.concurrency = max(1, concurrency)

    async def fetch_all(self, game: Game, known_ids: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Query every configured provider concurrently.

        Returns:
            Merged payload {'igdb', 'hltb', 'protondb', 'steamgriddb',
            'steam_app_id', 'queried', 'errors'}; a provider that failed or
            found nothing maps to None, and 'errors' lists the providers that raised.
        """
        known_ids = known_ids or {}
        steam_app_id = resolve_steam_app_id(game)
        calls: Dict[str, Awaitable[Any]] = {}

        if self.igdb is not None and self.igdb.configured:
            if known_ids.get('igdb'):
                calls['igdb'] = self.igdb.get_by_id(known_ids['igdb'])
            else:
                calls['igdb'] = self.igdb.search(game.title)

        if self.hltb is not None:
            if known_ids.get('hltb'):
                calls['hltb'] = self.hltb.get_by_id(known_ids['hltb'])
            else:
                calls['hltb'] = self.hltb.search(game.title)

        # ProtonDB is keyed by Steam app id only
        if self.protondb is not None and steam_app_id is not None:
            calls['protondb'] = self.protondb.get_summary(steam_app_id)

        if self.steamgriddb is not None and self.steamgriddb.configured:
            if known_ids.get('steamgriddb'):
                calls['steamgriddb'] = self.steamgriddb.get_by_id(known_ids['steamgriddb'])
            else:
                calls['steamgriddb'] = self.steamgriddb.search(game.title)

        names = list(calls)
        results = await asyncio.gather(*calls.values(), return_exceptions=True)

        payload: Dict[str, Any] = {name: None for name in PROVIDERS}
        payload['steam_app_id'] = steam_app_id
        payload['errors'] = []
        payload['queried'] = names
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.warning(f"[Enrichment] {name} failed for '{game.title}': {result}")
                payload['errors'].append(name)
            else:
                payload[name] = result
        return payload

    @staticmethod
    def provider_ids(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Provider-native ids recorded in a merged payload."""
        if not payload:
            return {}
        ids = {}
        if payload.get('igdb') and payload['igdb'].get('id'):
            ids['igdb'] = payload['igdb']['id']
        if payload.get('hltb') and payload['hltb'].get('game_id'):
            ids['hltb'] = payload['hltb']['game_id']
        if payload.get('steamgriddb') and payload['steamgriddb'].get('game_id'):
            ids['steamgriddb'] = payload['steamgriddb']['game_id']
        return ids

    async def _localize_artwork(self, game_id: str, payload: Dict[str, Any],
                                fields: Dict[str, Any]) -> None:
        """Swap artwork URLs in fields for local file paths."""
        if self.image_cache is None:
            return

        urls = {slot: fields.get(f'{slot}_path') for slot in ARTWORK_SLOTS if fields.get(f'{slot}_path')}
        if fields.get('cover_url'):
            urls['cover'] = fields['cover_url']
        if urls:
            local = await self.image_cache.cache_artwork(game_id, urls)
            for slot, path in local.items():
                if path:
                    fields[f'{slot}_path'] = path

        screenshots = (payload.get('igdb') or {}).get('screenshots') or []
        if screenshots:
            fields['screenshot_paths'] = await self.image_cache.cache_screenshots(game_id, screenshots)

    async def enrich_game(self, game: Game, refresh: bool = False) -> EnrichmentResult:
        """
        Enrich one game, reusing a fresh cache entry unless refresh is set.

        Never raises: failures are reported in the returned result.
        """
        try:
            payload = None
            from_cache = False
            if not refresh:
                payload = await self.cache.get_if_fresh(game.id, MERGED_PROVIDER, self.ttl)
                from_cache = payload is not None

            if payload is None:
                previous = await self.cache.get(game.id, MERGED_PROVIDER)
                payload = await self.fetch_all(game, self.provider_ids(previous))
                if payload['errors'] and len(payload['errors']) == len(payload['queried']):
                    # Every provider that was asked failed - try again next time
                    return EnrichmentResult(
                        game.id, False,
                        error=f"all providers failed: {', '.join(payload['errors'])}",
                    )
                await self.cache.set(game.id, MERGED_PROVIDER, payload)
            else:
                logger.debug(f"[Enrichment] Using cached metadata for '{game.title}'")

            fields = map_payload(payload)
            await self._localize_artwork(game.id, payload, fields)
            await self.repository.update_enrichment(game.id, fields)

            matched = [p for p in PROVIDERS if payload.get(p)]
            logger.info(f"[Enrichment] Enriched '{game.title}' ({', '.join(matched) or 'no matches'})")
            return EnrichmentResult(game.id, True, from_cache=from_cache, matched=matched)

        except Exception as e:
            logger.error(f"[Enrichment] Failed to enrich '{game.title}': {e}")
            return EnrichmentResult(game.id, False, error=str(e))

    async def enrich_games(self, games: List[Game], refresh: bool = False,
                           on_progress: Optional[ProgressCallback] = None) -> List[EnrichmentResult]:
        """Enrich a batch concurrently; one game's failure never affects another."""
        if not games:
            return []

        semaphore = asyncio.Semaphore(self.concurrency)
        logger.info(f"[Enrichment] Enriching {len(games)} games (concurrency {self.concurrency})")

        async def run(game: Game) -> EnrichmentResult:
            async with semaphore:
                result = await self.enrich_game(game, refresh=refresh)
            if on_progress is not None:
                await on_progress(game, result)
            return result

        results = await asyncio.gather(*(run(g) for g in games))
        succeeded = sum(1 for r in results if r.success)
        logger.info(f"[Enrichment] Completed: {succeeded}/{len(games)} enriched")
        return list(results)

    async def enrich_unenriched(self) -> List[EnrichmentResult]:
        """Enrich every record that has never been enriched."""
        return await self.enrich_games(await self.repository.get_unenriched())

    async def close(self) -> None:
        for client in (self.igdb, self.hltb, self.protondb, self.image_cache):
            if client is not None:
                await client.close()
