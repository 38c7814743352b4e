"""Enrichment cache."""

from .enrichment_cache import EnrichmentCache, CacheEntry, CacheStats, MERGED_PROVIDER, DEFAULT_TTL

__all__ = ['EnrichmentCache', 'CacheEntry', 'CacheStats', 'MERGED_PROVIDER', 'DEFAULT_TTL']
