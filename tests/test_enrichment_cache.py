"""
Tests for EnrichmentCache TTL handling using an injected clock.
"""
from datetime import datetime, timedelta, timezone

import pytest

from librarysync.cache.enrichment_cache import DEFAULT_TTL, MERGED_PROVIDER, EnrichmentCache
from librarysync.database.connection import Database

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def timed_cache(database, clock):
    return EnrichmentCache(database, clock=clock)


@pytest.mark.asyncio
async def test_fresh_entry_is_returned(timed_cache, clock):
    await timed_cache.set('epic-Fortnite', MERGED_PROVIDER, {'igdb': {'id': 1}})

    clock.now = T0 + timedelta(days=6, hours=23)
    assert await timed_cache.get_if_fresh('epic-Fortnite', MERGED_PROVIDER) == {'igdb': {'id': 1}}


@pytest.mark.asyncio
async def test_entry_exactly_ttl_old_is_stale(timed_cache, clock):
    await timed_cache.set('epic-Fortnite', MERGED_PROVIDER, {'x': 1})

    clock.now = T0 + DEFAULT_TTL
    assert await timed_cache.get_if_fresh('epic-Fortnite', MERGED_PROVIDER) is None
    # Still available without the freshness check
    assert await timed_cache.get('epic-Fortnite', MERGED_PROVIDER) == {'x': 1}


@pytest.mark.asyncio
async def test_custom_ttl(timed_cache, clock):
    await timed_cache.set('g', 'hltb', [1, 2])
    clock.now = T0 + timedelta(hours=2)
    assert await timed_cache.get_if_fresh('g', 'hltb', ttl=timedelta(hours=1)) is None
    assert await timed_cache.get_if_fresh('g', 'hltb', ttl=timedelta(hours=3)) == [1, 2]


@pytest.mark.asyncio
async def test_set_replaces_and_restamps(timed_cache, clock):
    await timed_cache.set('g', MERGED_PROVIDER, {'v': 1})
    clock.now = T0 + timedelta(days=10)
    await timed_cache.set('g', MERGED_PROVIDER, {'v': 2})

    entry = await timed_cache.get_entry('g', MERGED_PROVIDER)
    assert entry.data == {'v': 2}
    assert entry.fetched_at == T0 + timedelta(days=10)


@pytest.mark.asyncio
async def test_miss_returns_none(cache):
    assert await cache.get('nope', MERGED_PROVIDER) is None
    assert await cache.get_if_fresh('nope', MERGED_PROVIDER) is None


@pytest.mark.asyncio
async def test_clears_and_stats(cache):
    await cache.set('a', MERGED_PROVIDER, {})
    await cache.set('a', 'igdb', {})
    await cache.set('b', MERGED_PROVIDER, {})

    stats = await cache.get_stats()
    assert stats.total_entries == 3
    assert stats.by_provider == {MERGED_PROVIDER: 2, 'igdb': 1}

    assert await cache.clear_for_entity('a') == 2
    assert await cache.clear_for_provider(MERGED_PROVIDER) == 1
    await cache.set('c', 'hltb', {})
    assert await cache.clear_all() == 1
    assert (await cache.get_stats()).total_entries == 0


@pytest.mark.asyncio
async def test_read_and_write_failures_behave_like_a_miss():
    broken = EnrichmentCache(Database(':memory:'))
    assert await broken.get('a', MERGED_PROVIDER) is None
    assert await broken.set('a', MERGED_PROVIDER, {}) == False
