"""Business logic services for the library engine."""

from .enrichment_service import EnrichmentService, EnrichmentResult
from .image_cache import ImageCache
from .install_service import InstallService, InstallResult, InstallError
from .sync_service import SyncService, LibrarySyncResult, SyncError, SyncInProgressError
from .library_service import LibraryService

__all__ = [
    'EnrichmentService', 'EnrichmentResult', 'ImageCache',
    'InstallService', 'InstallResult', 'InstallError',
    'SyncService', 'LibrarySyncResult', 'SyncError', 'SyncInProgressError',
    'LibraryService',
]
