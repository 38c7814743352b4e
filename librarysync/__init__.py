"""Multi-store game library synchronization and metadata enrichment."""

__version__ = "0.3.0"
