"""
LibraryService - the entry points the UI calls.

Wraps sync, catalog queries, user metadata, install operations and cache
maintenance behind one object. Everything it needs is passed in by the
composition root (librarysync.app.build_library).
"""

import logging
from typing import Any, Dict, List, Optional

from ..cache.enrichment_cache import EnrichmentCache, CacheStats
from ..database.connection import Database
from ..database.game_repository import GameRepository
from ..stores.base import Game
from ..stores.manager import StoreManager
from .enrichment_service import EnrichmentService
from .install_service import InstallService, InstallResult, ProgressCallback
from .sync_service import SyncService, LibrarySyncResult, LAST_SYNC_KEY

logger = logging.getLogger(__name__)


class LibraryService:
    """Facade over the library engine."""

    def __init__(
        self,
        database: Database,
        repository: GameRepository,
        cache: EnrichmentCache,
        store_manager: StoreManager,
        sync_service: SyncService,
        install_service: InstallService,
        enrichment_service: Optional[EnrichmentService] = None,
    ):
        self.database = database
        self.repository = repository
        self.cache = cache
        self.store_manager = store_manager
        self.sync_service = sync_service
        self.install_service = install_service
        self.enrichment_service = enrichment_service

    async def initialize(self) -> None:
        await self.database.initialize()

    async def close(self) -> None:
        await self.install_service.cancel_all()
        if self.enrichment_service is not None:
            await self.enrichment_service.close()
        await self.database.close()

    # ---- sync ----

    async def sync_library(self, stores: Optional[List[str]] = None, force_enrich: bool = False,
                           skip_enrichment: bool = False) -> LibrarySyncResult:
        return await self.sync_service.sync(stores, force_enrich=force_enrich,
                                            skip_enrichment=skip_enrichment)

    def cancel_sync(self) -> None:
        self.sync_service.cancel_sync()

    def get_sync_progress(self) -> Dict[str, Any]:
        return self.sync_service.sync_progress.to_dict()

    # ---- queries ----

    async def get_all_games(self) -> List[Game]:
        return await self.repository.get_all()

    async def get_game_by_id(self, game_id: str) -> Optional[Game]:
        return await self.repository.get_by_id(game_id)

    async def get_games_by_store(self, store: str) -> List[Game]:
        return await self.repository.get_by_store(store)

    async def search_games(self, query: str) -> List[Game]:
        return await self.repository.search(query)

    async def get_recently_played(self, limit: int = 10) -> List[Game]:
        return await self.repository.get_recently_played(limit)

    async def get_favorites(self) -> List[Game]:
        return await self.repository.get_favorites()

    # ---- user metadata ----

    async def update_game_metadata(self, game_id: str, is_favorite: Optional[bool] = None,
                                   play_time_minutes: Optional[int] = None,
                                   last_played: Optional[str] = None) -> bool:
        return await self.repository.update_user_metadata(
            game_id,
            is_favorite=is_favorite,
            play_time_minutes=play_time_minutes,
            last_played=last_played,
        )

    async def remove_game_from_library(self, game_id: str) -> bool:
        """Delete a record and its cached metadata. The store still owns the game."""
        removed = await self.repository.delete(game_id)
        if removed:
            await self.cache.clear_for_entity(game_id)
            logger.info(f"[Library] Removed {game_id}")
        return removed

    # ---- removal reconciliation (never run by sync) ----

    async def find_missing_games(self, stores: Optional[List[str]] = None) -> Dict[str, List[str]]:
        """
        Ids in the catalog that a store no longer lists.

        Stores whose listing fails are left out of the result, so a broken
        client never makes its whole library look missing.
        """
        missing: Dict[str, List[str]] = {}
        for name, adapter in self.store_manager.select(stores).items():
            try:
                listed = {g.id for g in await adapter.list_games()}
            except Exception as e:
                logger.warning(f"[Library] Skipping {name} for removal check: {e}")
                continue
            stored = await self.repository.get_ids(store=name)
            missing[name] = sorted(stored - listed)
        return missing

    async def remove_missing_games(self, stores: Optional[List[str]] = None,
                                   dry_run: bool = True) -> List[str]:
        """Remove records whose store no longer lists them. Returns the affected ids."""
        missing = await self.find_missing_games(stores)
        ids = [game_id for ids in missing.values() for game_id in ids]
        if dry_run:
            logger.info(f"[Library] {len(ids)} games would be removed")
            return ids
        for game_id in ids:
            await self.remove_game_from_library(game_id)
        return ids

    # ---- stores ----

    async def get_stores_status(self) -> Dict[str, Dict[str, Any]]:
        """Client availability, auth state, catalog size and last sync time per store."""
        auth = await self.store_manager.get_auth_status()
        available = await self.store_manager.get_availability()
        status = {}
        for name in self.store_manager.stores:
            status[name] = {
                'available': available[name],
                'authenticated': auth[name].authenticated,
                'auth_source': auth[name].source,
                'game_count': await self.repository.count(store=name),
                'last_sync': await self.repository.get_setting(LAST_SYNC_KEY.format(store=name)),
            }
        return status

    async def prepare_launch(self, game_id: str) -> Dict[str, Any]:
        """
        Build the command that launches an installed game.

        Returns:
            Dict with 'client', 'binary' and 'args'

        Raises:
            ValueError: if the game is unknown, not installed, or its client is missing
        """
        game = await self.repository.get_by_id(game_id)
        if game is None:
            raise ValueError(f"Unknown game: {game_id}")
        if not game.installed:
            raise ValueError(f"{game.title} is not installed")
        adapter = self.store_manager.get_store(game.store)
        if adapter is None:
            raise ValueError(f"No adapter registered for store '{game.store}'")

        binary = adapter.runner.resolve(adapter.client)
        if binary is None:
            raise ValueError(f"{adapter.client} executable not found")
        return {
            'client': adapter.client,
            'binary': binary,
            'args': adapter.launch_args(game.store_id, game.install_path),
        }

    # ---- installs ----

    async def install_game(self, game_id: str, install_path: Optional[str] = None,
                           on_progress: Optional[ProgressCallback] = None) -> InstallResult:
        return await self.install_service.install_game(game_id, install_path, on_progress)

    async def uninstall_game(self, game_id: str) -> InstallResult:
        return await self.install_service.uninstall_game(game_id)

    async def cancel_installation(self, game_id: str) -> bool:
        return await self.install_service.cancel_installation(game_id)

    def is_installing(self, game_id: str) -> bool:
        return self.install_service.is_installing(game_id)

    # ---- cache ----

    async def get_cache_stats(self) -> CacheStats:
        return await self.cache.get_stats()

    async def clear_cache(self, game_id: Optional[str] = None, provider: Optional[str] = None) -> int:
        if game_id is not None:
            return await self.cache.clear_for_entity(game_id)
        if provider is not None:
            return await self.cache.clear_for_provider(provider)
        return await self.cache.clear_all()
