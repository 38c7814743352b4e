"""
Store Manager - Manages the registered store adapters.

Provides a unified interface for interacting with Epic, GOG, Amazon and Steam.
"""
import asyncio
from typing import List, Dict, Optional
import logging

from .base import StoreAdapter, AuthStatus


logger = logging.getLogger(__name__)


class StoreManager:
    """
    Manages multiple store adapters.

    Provides unified access to every registered store with common operations
    like checking auth status and client availability.
    """

    def __init__(self, adapters: Optional[List[StoreAdapter]] = None):
        self._stores: Dict[str, StoreAdapter] = {}
        for adapter in adapters or []:
            self.register_store(adapter)

    def register_store(self, store: StoreAdapter):
        """Register a store adapter."""
        self._stores[store.store_name] = store
        logger.info(f"Registered store: {store.store_name}")

    def get_store(self, store_name: str) -> Optional[StoreAdapter]:
        """Get a specific store adapter by name."""
        return self._stores.get(store_name)

    @property
    def stores(self) -> Dict[str, StoreAdapter]:
        """Get all registered stores."""
        return self._stores

    def select(self, store_names: Optional[List[str]] = None) -> Dict[str, StoreAdapter]:
        """Registered adapters for the given names (all when None). Unknown names are skipped."""
        if store_names is None:
            return dict(self._stores)
        selected = {}
        for name in store_names:
            adapter = self._stores.get(name)
            if adapter is None:
                logger.warning(f"Unknown store requested: {name}")
                continue
            selected[name] = adapter
        return selected

    async def get_auth_status(self) -> Dict[str, AuthStatus]:
        """
        Get authentication status for all stores.

        Returns:
            Dict mapping store_name to AuthStatus. A store whose probe blows
            up is reported as unauthenticated with source 'error'.
        """
        names = list(self._stores)
        results = await asyncio.gather(
            *(self._stores[name].is_authenticated() for name in names),
            return_exceptions=True,
        )
        status = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.error(f"Error checking auth for {name}: {result}")
                status[name] = AuthStatus(authenticated=False, source='error')
            else:
                status[name] = AuthStatus(authenticated=bool(result), source='cli')
        return status

    async def get_availability(self) -> Dict[str, bool]:
        """Whether each store's CLI client can be invoked."""
        status = {}
        for name, store in self._stores.items():
            status[name] = await store.runner.is_available(store.client)
        return status
