"""
Composition root.

build_library() wires every component from Settings. Nothing else in the
package constructs shared services, so tests and embedders can build their
own graph with fakes.
"""
import logging
from datetime import timedelta
from typing import Optional

from .cache.enrichment_cache import EnrichmentCache
from .config import Settings, load_settings, save_settings
from .controllers.sync_progress import SyncProgress
from .database.connection import Database
from .database.game_repository import GameRepository
from .metadata.hltb import HltbClient
from .metadata.igdb import IgdbClient
from .metadata.protondb import ProtonDbClient
from .metadata.steamgriddb import SteamGridDbClient
from .services.enrichment_service import EnrichmentService
from .services.image_cache import ImageCache
from .services.install_service import InstallService
from .services.library_service import LibraryService
from .services.sync_service import SyncService
from .stores import AmazonStore, EpicStore, GogStore, SteamStore, StoreManager
from .utils.cli_runner import CliRunner
from .utils.paths import SETTINGS_PATH

logger = logging.getLogger(__name__)

# Only the refreshed token goes back to disk; keys may have come from the environment
TOKEN_KEYS = ('igdb_access_token', 'igdb_token_expires_at')


def build_library(settings: Optional[Settings] = None,
                  settings_path: str = SETTINGS_PATH) -> LibraryService:
    """Construct a LibraryService and all of its collaborators.

    Call initialize() on the result before use.
    """
    settings = settings or load_settings(settings_path)

    database = Database(settings.database_path)
    repository = GameRepository(database)
    cache = EnrichmentCache(database)

    runner = CliRunner(bin_dir=settings.bin_dir, binaries=settings.binaries)
    store_manager = StoreManager([
        EpicStore(runner, repository),
        GogStore(runner, repository, auth_config_path=settings.gog_auth_config_path),
        AmazonStore(runner, repository),
        SteamStore(runner, repository),
    ])

    def remember_token(token: str, expires_at: float) -> None:
        settings.igdb_access_token = token
        settings.igdb_token_expires_at = expires_at
        try:
            save_settings(settings, settings_path, keys=TOKEN_KEYS)
        except OSError as e:
            logger.warning(f"[Settings] Could not persist IGDB token: {e}")

    igdb = None
    if settings.has_igdb:
        igdb = IgdbClient(
            settings.igdb_client_id,
            client_secret=settings.igdb_client_secret,
            access_token=settings.igdb_access_token,
            token_expires_at=settings.igdb_token_expires_at,
            on_token_refresh=remember_token,
            timeout=settings.http_timeout,
        )
    else:
        logger.info("[Enrichment] IGDB credentials not configured - catalog metadata disabled")

    steamgriddb = None
    if settings.has_steamgriddb:
        steamgriddb = SteamGridDbClient(settings.steamgriddb_api_key)
    else:
        logger.info("[Enrichment] SteamGridDB API key not configured - artwork disabled")

    enrichment = EnrichmentService(
        repository,
        cache,
        igdb=igdb,
        hltb=HltbClient(timeout=settings.http_timeout),
        protondb=ProtonDbClient(timeout=settings.http_timeout),
        steamgriddb=steamgriddb,
        image_cache=ImageCache(settings.artwork_dir, timeout=settings.http_timeout),
        ttl=timedelta(days=settings.cache_ttl_days),
        concurrency=settings.enrichment_concurrency,
    )

    sync_service = SyncService(store_manager, repository, enrichment, SyncProgress())
    install_service = InstallService(store_manager, repository, runner, settings.install_base_path)

    return LibraryService(
        database=database,
        repository=repository,
        cache=cache,
        store_manager=store_manager,
        sync_service=sync_service,
        install_service=install_service,
        enrichment_service=enrichment,
    )
