"""Sync progress tracking for library synchronization.

Tracks overall progress through the sync phases with percentage-based
progress calculation so a UI can poll to_dict() for a progress bar.
"""

import asyncio
from typing import Dict, Any, List, Optional


class SyncProgress:
    """Track library sync progress with phase-based percentage tracking.

    Each sync phase has an allocated percentage range; the enriching phase
    advances within its range as games complete.
    """

    # Phase percentage allocations: (start_pct, end_pct)
    PHASE_RANGES = {
        'idle': (0, 0),
        'fetching': (0, 30),
        'persisting': (30, 40),
        'enriching': (40, 99),
        'complete': (100, 100),
        'error': (100, 100),
        'cancelled': (100, 100),
    }

    def __init__(self):
        self.status = "idle"
        self.stores: List[str] = []
        self.total_games = 0
        self.enrich_total = 0
        self.enrich_done = 0
        self.current_game: Optional[str] = None
        self.error: Optional[str] = None

        # Enrichment finishes games concurrently
        self._lock = asyncio.Lock()

    def start(self, stores: List[str]) -> None:
        self.status = 'fetching'
        self.stores = list(stores)
        self.total_games = 0
        self.enrich_total = 0
        self.enrich_done = 0
        self.current_game = None
        self.error = None

    def set_phase(self, status: str) -> None:
        if status not in self.PHASE_RANGES:
            raise ValueError(f"Unknown sync phase: {status}")
        self.status = status

    def start_enrichment(self, total: int) -> None:
        self.status = 'enriching'
        self.enrich_total = total
        self.enrich_done = 0

    async def increment_enriched(self, game_title: str) -> int:
        """Safe counter increment from concurrent enrichment tasks"""
        async with self._lock:
            self.enrich_done += 1
            self.current_game = game_title
            return self.enrich_done

    def finish(self, error: Optional[str] = None, cancelled: bool = False) -> None:
        if error:
            self.status = 'error'
        elif cancelled:
            self.status = 'cancelled'
        else:
            self.status = 'complete'
        self.error = error
        self.current_game = None

    @property
    def is_running(self) -> bool:
        return self.status in ('fetching', 'persisting', 'enriching')

    def _calculate_progress(self) -> int:
        """Calculate progress based on current phase and its percentage allocation."""
        start_pct, end_pct = self.PHASE_RANGES.get(self.status, (0, 0))

        if self.status == 'enriching' and self.enrich_total > 0:
            sub_progress = self.enrich_done / self.enrich_total
            return int(start_pct + (end_pct - start_pct) * sub_progress)

        return start_pct

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'stores': self.stores,
            'total_games': self.total_games,
            'enrich_total': self.enrich_total,
            'enrich_done': self.enrich_done,
            'current_game': self.current_game,
            'progress_percent': self._calculate_progress(),
            'error': self.error,
        }
