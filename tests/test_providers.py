"""
Tests for the IGDB, ProtonDB and SteamGridDB providers with HTTP mocked out.
"""
import time
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import pytest

from librarysync.metadata.http import ProviderError
from librarysync.metadata.igdb import IgdbClient, fix_image_url, map_igdb_game
from librarysync.metadata.protondb import ProtonDbClient, normalize_tier
from librarysync.metadata.steamgriddb import SteamGridDbClient, select_best_artwork

IGDB_GAME = {
    'id': 1942,
    'name': 'The Witcher 3: Wild Hunt',
    'summary': 'Geralt of Rivia...',
    'rating': 93.4,
    'aggregated_rating': 91.2,
    'genres': [{'name': 'Role-playing (RPG)'}, {'name': 'Adventure'}],
    'involved_companies': [
        {'company': {'name': 'Bandai Namco'}, 'developer': False, 'publisher': True},
        {'company': {'name': 'CD Projekt RED'}, 'developer': True, 'publisher': False},
    ],
    'first_release_date': 1431993600,
    'cover': {'url': '//images.igdb.com/igdb/image/upload/t_thumb/co1wyy.jpg'},
}


def test_fix_image_url():
    assert fix_image_url('//images.igdb.com/igdb/image/upload/t_thumb/x.jpg') == \
        'https://images.igdb.com/igdb/image/upload/t_cover_big/x.jpg'
    assert fix_image_url(None) is None


def test_map_igdb_game():
    mapped = map_igdb_game(IGDB_GAME)
    assert mapped['developer'] == 'CD Projekt RED'
    assert mapped['publisher'] == 'Bandai Namco'
    assert mapped['genres'] == ['Role-playing (RPG)', 'Adventure']
    assert mapped['cover_url'].startswith('https://')
    assert mapped['screenshots'] == []


@pytest.mark.asyncio
async def test_igdb_search_uses_existing_token():
    client = IgdbClient('cid', access_token='tok')
    with patch.object(client, '_request_json', AsyncMock(return_value=[IGDB_GAME])) as request:
        result = await client.search('The "Witcher" 3')

    assert result['id'] == 1942
    call = request.await_args
    assert call.kwargs['headers']['Authorization'] == 'Bearer tok'
    assert call.kwargs['headers']['Client-ID'] == 'cid'
    assert 'search "The \\"Witcher\\" 3";' in call.kwargs['data']


@pytest.mark.asyncio
async def test_igdb_refreshes_expired_token_and_reports_it():
    on_refresh = Mock()
    client = IgdbClient('cid', client_secret='secret', access_token='old',
                        token_expires_at=time.time() - 10, on_token_refresh=on_refresh)
    responses = [{'access_token': 'new', 'expires_in': 3600}, [IGDB_GAME]]
    with patch.object(client, '_request_json', AsyncMock(side_effect=responses)):
        result = await client.get_by_id(1942)

    assert result['name'] == 'The Witcher 3: Wild Hunt'
    assert client.access_token == 'new'
    on_refresh.assert_called_once()
    assert on_refresh.call_args.args[0] == 'new'


@pytest.mark.asyncio
async def test_igdb_expired_token_without_secret_raises():
    client = IgdbClient('cid', access_token='old', token_expires_at=time.time() - 10)
    with pytest.raises(ProviderError):
        await client.search('Hades')


@pytest.mark.asyncio
async def test_igdb_retries_once_on_401():
    client = IgdbClient('cid', client_secret='secret', access_token='revoked')
    responses = [
        ProviderError('IGDB', 'HTTP 401', 401),
        {'access_token': 'fresh', 'expires_in': 3600},
        [IGDB_GAME],
    ]
    with patch.object(client, '_request_json', AsyncMock(side_effect=responses)):
        result = await client.search('Witcher 3')

    assert result['id'] == 1942
    assert client.access_token == 'fresh'


@pytest.mark.asyncio
async def test_igdb_no_results():
    client = IgdbClient('cid', access_token='tok')
    with patch.object(client, '_request_json', AsyncMock(return_value=[])):
        assert await client.search('zzzz') is None


def test_igdb_configured():
    assert IgdbClient(None).configured == False
    assert IgdbClient('cid').configured == False
    assert IgdbClient('cid', client_secret='s').configured == True


def test_normalize_tier():
    assert normalize_tier('Gold') == 'gold'
    assert normalize_tier('mythril') == 'unknown'
    assert normalize_tier(None) == 'unknown'


@pytest.mark.asyncio
async def test_protondb_summary():
    client = ProtonDbClient()
    data = {'tier': 'platinum', 'confidence': 'strong', 'trendingTier': 'Gold', 'score': 0.87}
    with patch.object(client, '_request_json', AsyncMock(return_value=data)) as request:
        summary = await client.get_summary(292030)

    assert summary == {'tier': 'platinum', 'confidence': 'strong', 'trending_tier': 'gold', 'score': 0.87}
    assert request.await_args.args[1].endswith('/292030.json')


@pytest.mark.asyncio
async def test_protondb_not_found():
    client = ProtonDbClient()
    with patch.object(client, '_request_json', AsyncMock(return_value=None)):
        assert await client.get_summary(1) is None


@pytest.mark.asyncio
async def test_protondb_without_tier():
    client = ProtonDbClient()
    with patch.object(client, '_request_json', AsyncMock(return_value={'confidence': 'low'})):
        assert await client.get_summary(1) is None


def asset(url, score=0, nsfw=False):
    return SimpleNamespace(url=url, score=score, _nsfw=nsfw)


def test_select_best_artwork_skips_nsfw_and_picks_highest_score():
    assets = [asset('a', 5), asset('b', 50, nsfw=True), asset('c', 10)]
    assert select_best_artwork(assets).url == 'c'
    assert select_best_artwork([asset('x', 99, nsfw=True)]) is None
    assert select_best_artwork([]) is None
    assert select_best_artwork(None) is None


@pytest.mark.asyncio
async def test_sgdb_failed_slot_leaves_only_that_slot_empty():
    sgdb = Mock()
    sgdb.search_game.return_value = [SimpleNamespace(id=5248)]
    sgdb.get_heroes_by_gameid.return_value = [asset('hero.png', 3)]
    sgdb.get_grids_by_gameid.side_effect = RuntimeError('HTTP 500')
    sgdb.get_logos_by_gameid.return_value = [asset('logo.png')]
    sgdb.get_icons_by_gameid.return_value = None
    client = SteamGridDbClient('key', client=sgdb)

    result = await client.search('Hades')

    assert result == {'game_id': 5248, 'hero': 'hero.png', 'grid': None, 'logo': 'logo.png', 'icon': None}
    sgdb.get_heroes_by_gameid.assert_called_once_with([5248])


@pytest.mark.asyncio
async def test_sgdb_unknown_title():
    sgdb = Mock()
    sgdb.search_game.return_value = []
    client = SteamGridDbClient('key', client=sgdb)
    assert await client.search('Nothing') is None


def test_sgdb_configured():
    assert SteamGridDbClient(None).configured == False
    assert SteamGridDbClient('key', client=Mock()).configured == True
