"""Enrichment cache backed by the library database.

Stores provider responses keyed by (game_id, provider) with the time they
were fetched. The enrichment pipeline caches its merged result under the
provider name "all", so the whole payload is fresh or stale together.

A cache is an optimization: read and write failures are logged and behave
like a miss, they never reach the caller.

Table: enrichment_cache (game_id, provider, data, fetched_at)
"""

import json
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from ..database.connection import Database

logger = logging.getLogger(__name__)

# Provider key for the merged multi-provider payload
MERGED_PROVIDER = "all"

DEFAULT_TTL = timedelta(days=7)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class CacheEntry:
    """A cached payload and when it was fetched"""
    data: Any
    fetched_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.fetched_at


@dataclass
class CacheStats:
    total_entries: int = 0
    by_provider: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EnrichmentCache:
    """TTL cache for provider payloads."""

    def __init__(self, db: Database, clock: Clock = _utc_now):
        self.db = db
        self.clock = clock

    async def get_entry(self, game_id: str, provider: str) -> Optional[CacheEntry]:
        """Get a cached payload with its fetch time, regardless of age."""
        try:
            row = await self.db.fetch_one(
                "SELECT data, fetched_at FROM enrichment_cache WHERE game_id = ? AND provider = ?",
                (game_id, provider),
            )
            if row is None:
                return None
            return CacheEntry(json.loads(row['data']), _parse_timestamp(row['fetched_at']))
        except Exception as e:
            logger.warning(f"[Cache] Error reading {provider} entry for {game_id}: {e}")
            return None

    async def get(self, game_id: str, provider: str) -> Optional[Any]:
        """Get a cached payload regardless of age."""
        entry = await self.get_entry(game_id, provider)
        return entry.data if entry else None

    async def get_if_fresh(self, game_id: str, provider: str,
                           ttl: timedelta = DEFAULT_TTL) -> Optional[Any]:
        """Get a cached payload only if it is younger than ttl.

        An entry exactly ttl old is stale.
        """
        entry = await self.get_entry(game_id, provider)
        if entry is None:
            return None
        if entry.age(self.clock()) >= ttl:
            logger.debug(f"[Cache] {provider} entry for {game_id} is stale")
            return None
        return entry.data

    async def set(self, game_id: str, provider: str, data: Any) -> bool:
        """Store a payload, replacing any previous entry for the same key."""
        try:
            await self.db.execute(
                "INSERT OR REPLACE INTO enrichment_cache (game_id, provider, data, fetched_at) "
                "VALUES (?, ?, ?, ?)",
                (game_id, provider, json.dumps(data), self.clock().isoformat()),
            )
            return True
        except Exception as e:
            logger.warning(f"[Cache] Error writing {provider} entry for {game_id}: {e}")
            return False

    async def clear_for_entity(self, game_id: str) -> int:
        count = await self.db.execute("DELETE FROM enrichment_cache WHERE game_id = ?", (game_id,))
        logger.info(f"[Cache] Cleared {count} entries for {game_id}")
        return count

    async def clear_for_provider(self, provider: str) -> int:
        count = await self.db.execute("DELETE FROM enrichment_cache WHERE provider = ?", (provider,))
        logger.info(f"[Cache] Cleared {count} {provider} entries")
        return count

    async def clear_all(self) -> int:
        count = await self.db.execute("DELETE FROM enrichment_cache")
        logger.info(f"[Cache] Cleared all {count} entries")
        return count

    async def get_stats(self) -> CacheStats:
        rows = await self.db.fetch_all(
            "SELECT provider, COUNT(*) AS n FROM enrichment_cache GROUP BY provider"
        )
        by_provider = {r['provider']: r['n'] for r in rows}
        return CacheStats(total_entries=sum(by_provider.values()), by_provider=by_provider)
