"""
SyncService - Handles library synchronization orchestration.

Responsibilities:
- Fan out library listing to every requested store in parallel
- Isolate store failures (one broken client never aborts the others)
- Reconcile fetched records against the catalog (added vs updated)
- Persist each store's batch in a single transaction
- Enrich newly added and never-enriched records
- Track sync progress and handle cancellation
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List, Optional, Set

from ..controllers.sync_progress import SyncProgress
from ..database.game_repository import GameRepository
from ..stores.base import Game, utc_now
from ..stores.manager import StoreManager
from .enrichment_service import EnrichmentService, EnrichmentResult

logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "last_sync:{store}"


class SyncInProgressError(Exception):
    """A sync was requested while another one is running."""


@dataclass
class SyncError:
    """One failure recorded during a sync"""
    store: Optional[str]
    phase: str  # 'fetch', 'persist' or 'enrich'
    message: str
    game_title: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LibrarySyncResult:
    """Summary of a library sync"""
    total: int = 0
    added: int = 0
    updated: int = 0
    removed: int = 0
    enriched: int = 0
    errors: List[SyncError] = field(default_factory=list)
    synced_stores: List[str] = field(default_factory=list)
    duration_ms: int = 0
    cancelled: bool = False

    @property
    def success(self) -> bool:
        """False only when no requested store was fetched and persisted."""
        if self.synced_stores:
            return True
        return not any(e.phase in ('fetch', 'persist') for e in self.errors)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['success'] = self.success
        return data


class SyncService:
    """Service for orchestrating library synchronization."""

    def __init__(
        self,
        store_manager: StoreManager,
        repository: GameRepository,
        enrichment_service: Optional[EnrichmentService] = None,
        sync_progress: Optional[SyncProgress] = None,
    ):
        """Initialize SyncService with all required dependencies.

        Args:
            store_manager: StoreManager holding the registered adapters
            repository: GameRepository for the catalog
            enrichment_service: EnrichmentService, or None to never enrich
            sync_progress: SyncProgress tracker instance
        """
        self.store_manager = store_manager
        self.repository = repository
        self.enrichment_service = enrichment_service
        self.sync_progress = sync_progress or SyncProgress()

        # Sync state
        self._sync_lock = asyncio.Lock()
        self._is_syncing = False
        self._cancel_sync = False

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    def cancel_sync(self):
        """Request cancellation of current sync operation.

        Stores already persisted stay persisted; enrichment is skipped.
        """
        if self._is_syncing:
            self._cancel_sync = True
            logger.info("[Sync] Sync cancellation requested")

    async def _fetch_store(self, name: str) -> List[Game]:
        adapter = self.store_manager.get_store(name)
        games = await adapter.list_games()
        logger.info(f"[Sync] Fetched {len(games)} games from {name}")
        return games

    async def sync(self, stores: Optional[List[str]] = None, force_enrich: bool = False,
                   skip_enrichment: bool = False) -> LibrarySyncResult:
        """
        Sync the library from the given stores (all registered when None).

        Args:
            stores: Store names to sync
            force_enrich: Enrich every fetched record, not only new ones
            skip_enrichment: Persist only

        Returns:
            LibrarySyncResult; per-store and per-game failures are listed in
            errors rather than raised

        Raises:
            SyncInProgressError: if a sync is already running
        """
        if self._is_syncing:
            logger.warning("[Sync] Sync already in progress, ignoring request")
            raise SyncInProgressError("A library sync is already in progress")

        async with self._sync_lock:
            self._is_syncing = True
            self._cancel_sync = False
            started = time.monotonic()
            result = LibrarySyncResult()
            try:
                await self._run(result, stores, force_enrich, skip_enrichment)
                self.sync_progress.finish(cancelled=result.cancelled)
            except Exception as e:
                logger.error(f"[Sync] Sync failed: {e}", exc_info=True)
                self.sync_progress.finish(error=str(e))
                raise
            finally:
                result.duration_ms = int((time.monotonic() - started) * 1000)
                self._is_syncing = False

            logger.info(
                f"[Sync] Complete: {result.total} total, {result.added} added, "
                f"{result.updated} updated, {result.enriched} enriched, "
                f"{len(result.errors)} errors in {result.duration_ms}ms"
            )
            return result

    async def _run(self, result: LibrarySyncResult, stores: Optional[List[str]],
                   force_enrich: bool, skip_enrichment: bool) -> None:
        adapters = self.store_manager.select(stores)
        names = list(adapters)
        self.sync_progress.start(names)
        for unknown in [s for s in stores or [] if s not in adapters]:
            result.errors.append(SyncError(unknown, 'fetch', f"store '{unknown}' is not registered"))

        # === PHASE 1: SNAPSHOT + FETCH (parallel, isolated per store) ===
        existing_ids: Set[str] = await self.repository.get_ids()
        unenriched_ids = {g.id for g in await self.repository.get_unenriched()}

        fetched = await asyncio.gather(
            *(self._fetch_store(name) for name in names),
            return_exceptions=True,
        )

        store_games: Dict[str, List[Game]] = {}
        for name, outcome in zip(names, fetched):
            if isinstance(outcome, Exception):
                logger.error(f"[Sync] {name} failed: {outcome}")
                result.errors.append(SyncError(name, 'fetch', str(outcome)))
            else:
                store_games[name] = outcome

        # === PHASE 2: RECONCILE + PERSIST (one transaction per store) ===
        self.sync_progress.set_phase('persisting')
        to_enrich: List[Game] = []
        for name, games in store_games.items():
            adapter = self.store_manager.get_store(name)
            try:
                await adapter.persist_games(games)
                await self.repository.set_setting(LAST_SYNC_KEY.format(store=name), utc_now())
            except Exception as e:
                logger.error(f"[Sync] Failed to save {name} games: {e}")
                result.errors.append(SyncError(name, 'persist', str(e)))
                continue

            added = [g for g in games if g.id not in existing_ids]
            result.added += len(added)
            result.updated += len(games) - len(added)
            result.total += len(games)
            result.synced_stores.append(name)

            if force_enrich:
                to_enrich.extend(games)
            else:
                to_enrich.extend(g for g in games if g.id not in existing_ids or g.id in unenriched_ids)

        self.sync_progress.total_games = result.total

        if self._cancel_sync:
            logger.info("[Sync] Cancelled before enrichment")
            result.cancelled = True
            return

        # === PHASE 3: ENRICH ===
        if skip_enrichment or self.enrichment_service is None or not to_enrich:
            return

        # Enrich the stored records so the pipeline sees persisted ids and steam_app_id
        stored = []
        for game in to_enrich:
            record = await self.repository.get_by_id(game.id)
            if record is not None:
                stored.append(record)

        self.sync_progress.start_enrichment(len(stored))

        async def on_progress(game: Game, enrich_result: EnrichmentResult) -> None:
            await self.sync_progress.increment_enriched(game.title)

        enrich_results = await self.enrichment_service.enrich_games(stored, on_progress=on_progress)
        titles = {g.id: g.title for g in stored}
        for enrich_result in enrich_results:
            if enrich_result.success:
                result.enriched += 1
            else:
                result.errors.append(SyncError(
                    None, 'enrich', enrich_result.error or 'enrichment failed',
                    game_title=titles.get(enrich_result.game_id),
                ))
