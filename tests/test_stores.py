"""
Tests for the store adapters: JSON dialects, install-state merging and auth.
"""
import json

import pytest
from unittest.mock import AsyncMock, Mock

from librarysync.stores import (
    AmazonStore, EpicStore, GogStore, SteamStore, StoreError, StoreManager, format_size,
)
from conftest import fail, make_runner, ok

GB30 = 32212254720


def epic_responses(owned, installed):
    return {
        ('legendary', 'list', '--json'): owned,
        ('legendary', 'list-installed', '--json'): installed,
    }


def test_format_size():
    assert format_size(GB30) == "30.0 GB"
    assert format_size("1610612736") == "1.5 GB"
    assert format_size(None) is None
    assert format_size(0) is None
    assert format_size("12.3 GB") == "12.3 GB"


@pytest.mark.asyncio
async def test_epic_list_games_merges_installed_state():
    owned = [
        {'app_name': 'Fortnite', 'app_title': 'Fortnite', 'metadata': {'developer': 'Epic Games'}},
        {'app_name': 'Sugar', 'app_title': 'Rocket League'},
        {'app_name': 'Quail', 'app_title': 'Hades'},
    ]
    installed = [
        {'app_name': 'Quail', 'title': 'Hades', 'install_path': '/games/Hades',
         'install_size': GB30, 'executable': 'Hades.exe'},
    ]
    store = EpicStore(make_runner(epic_responses(ok(json.dumps(owned)), ok(json.dumps(installed)))))

    games = await store.list_games()

    assert [g.id for g in games] == ['epic-Fortnite', 'epic-Sugar', 'epic-Quail']
    hades = games[2]
    assert hades.installed == True
    assert hades.install_path == '/games/Hades'
    assert hades.install_size == "30.0 GB"
    assert hades.executable_path == 'Hades.exe'
    assert games[0].installed == False
    assert games[0].install_path is None
    assert games[0].developer == 'Epic Games'


@pytest.mark.asyncio
async def test_list_games_owned_failure_raises_with_stderr():
    store = EpicStore(make_runner(epic_responses(fail('token expired'), ok('[]'))))
    with pytest.raises(StoreError) as exc:
        await store.list_games()
    assert 'token expired' in str(exc.value)
    assert exc.value.store == 'epic'


@pytest.mark.asyncio
async def test_list_games_unparseable_owned_output_raises():
    store = EpicStore(make_runner(epic_responses(ok('not json'), ok('[]'))))
    with pytest.raises(StoreError):
        await store.list_games()


@pytest.mark.asyncio
async def test_list_games_owned_must_be_array():
    store = EpicStore(make_runner(epic_responses(ok('{"app_name": "x"}'), ok('[]'))))
    with pytest.raises(StoreError):
        await store.list_games()


@pytest.mark.asyncio
async def test_list_games_tolerates_installed_failure():
    owned = [{'app_name': 'Fortnite', 'app_title': 'Fortnite'}]
    store = EpicStore(make_runner(epic_responses(ok(json.dumps(owned)), fail('disk error'))))

    games = await store.list_games()

    assert len(games) == 1
    assert games[0].installed == False


@pytest.mark.asyncio
async def test_list_games_skips_entries_without_id_and_duplicates():
    owned = [{'app_title': 'No id'}, {'app_name': 'A', 'app_title': 'A'}, {'app_name': 'A', 'app_title': 'A again'}]
    store = EpicStore(make_runner(epic_responses(ok(json.dumps(owned)), ok('[]'))))
    games = await store.list_games()
    assert [g.store_id for g in games] == ['A']


@pytest.mark.asyncio
async def test_epic_auth_check_reads_account():
    runner = make_runner({('legendary', 'status', '--json'): ok('{"account": "player1"}')})
    assert await EpicStore(runner).is_authenticated() == True

    runner = make_runner({('legendary', 'status', '--json'): ok('{"account": "<not logged in>"}')})
    assert await EpicStore(runner).is_authenticated() == False

    runner = make_runner({('legendary', 'status', '--json'): ok('{"account": null}')})
    assert await EpicStore(runner).is_authenticated() == False


@pytest.mark.asyncio
async def test_is_authenticated_never_raises():
    runner = Mock()
    runner.run = AsyncMock(side_effect=RuntimeError("spawn exploded"))
    assert await SteamStore(runner).is_authenticated() == False


@pytest.mark.asyncio
async def test_authenticate_raises_on_failure():
    runner = make_runner({('legendary', 'auth', '--code', 'abc'): fail('invalid code')})
    with pytest.raises(StoreError) as exc:
        await EpicStore(runner).authenticate('abc')
    assert 'invalid code' in str(exc.value)


@pytest.mark.asyncio
async def test_authenticate_and_logout_succeed():
    runner = make_runner({
        ('legendary', 'auth', '--code', 'abc'): ok(),
        ('legendary', 'auth', '--delete'): ok(),
    })
    store = EpicStore(runner)
    await store.authenticate('abc')
    await store.logout()
    assert runner.run.await_count == 2


@pytest.mark.asyncio
async def test_gog_passes_auth_config_path():
    prefix = ('gogdl', '--auth-config-path', '/tmp/gog.json')
    owned = [{'id': 1207658924, 'title': 'The Witcher 3'}]
    installed = [{'id': '1207658924', 'install_path': '/games/w3', 'install_size': GB30}]
    runner = make_runner({
        prefix + ('list', '--json'): ok(json.dumps(owned)),
        prefix + ('list-installed', '--json'): ok(json.dumps(installed)),
        prefix + ('auth', '--check'): ok(),
    })
    store = GogStore(runner, auth_config_path='/tmp/gog.json')

    games = await store.list_games()

    assert games[0].id == 'gog-1207658924'
    assert games[0].installed == True
    assert games[0].install_size == "30.0 GB"
    assert await store.is_authenticated() == True


@pytest.mark.asyncio
async def test_gog_auth_check_failure():
    runner = make_runner({('gogdl', '--auth-config-path', '/tmp/gog.json', 'auth', '--check'): fail()})
    assert await GogStore(runner, auth_config_path='/tmp/gog.json').is_authenticated() == False


@pytest.mark.asyncio
async def test_amazon_syncs_before_listing_and_tolerates_sync_failure():
    owned = [{'id': 'amzn1.adg.product.1', 'product': {'title': 'Tomb Raider',
              'productDetail': {'details': {'developer': 'Crystal Dynamics'}}}}]
    runner = make_runner({
        ('nile', 'library', 'sync'): fail('network down'),
        ('nile', 'library', 'list', '--json'): ok(json.dumps(owned)),
        ('nile', 'library', 'list', '--installed', '--json'): ok('[]'),
    })

    games = await AmazonStore(runner).list_games()

    assert games[0].id == 'amazon-amzn1.adg.product.1'
    assert games[0].title == 'Tomb Raider'
    assert games[0].developer == 'Crystal Dynamics'
    first_call = runner.run.await_args_list[0]
    assert first_call.args == ('nile', ['library', 'sync'])


@pytest.mark.asyncio
async def test_steam_parses_appids():
    runner = make_runner({
        ('steam', 'list', '--json'): ok(json.dumps([{'appid': 620, 'name': 'Portal 2'}, {'appid': 400, 'name': 'Portal'}])),
        ('steam', 'list-installed', '--json'): ok(json.dumps([{'appid': 620, 'install_path': '/steam/Portal 2',
                                                               'size_on_disk': 12884901888}])),
    })

    games = await SteamStore(runner).list_games()

    portal2 = next(g for g in games if g.store_id == '620')
    assert portal2.id == 'steam-620'
    assert portal2.installed == True
    assert portal2.install_size == "12.0 GB"
    assert next(g for g in games if g.store_id == '400').installed == False


def test_install_argument_vocabulary():
    runner = make_runner({})
    assert EpicStore(runner).install_args('Fortnite', '/games') == ['install', 'Fortnite', '--base-path', '/games', '--yes']
    assert EpicStore(runner).uninstall_args('Fortnite') == ['uninstall', 'Fortnite', '--yes']
    assert AmazonStore(runner).install_args('x', '/games') == ['install', 'x', '--path', '/games']
    assert GogStore(runner, auth_config_path='/a').install_args('1', '/g')[-4:] == ['install', '1', '--path', '/g']
    assert SteamStore(runner).install_args('620') == ['install', '620']


@pytest.mark.asyncio
async def test_persist_games_uses_repository_batch():
    repository = Mock(upsert_many=AsyncMock())
    store = EpicStore(make_runner({}), repository)
    games = [Mock(), Mock()]

    assert await store.persist_games(games) == 2
    repository.upsert_many.assert_awaited_once_with(games)


@pytest.mark.asyncio
async def test_store_manager_auth_status_isolates_errors():
    good = Mock(store_name='epic', is_authenticated=AsyncMock(return_value=True))
    bad = Mock(store_name='gog', is_authenticated=AsyncMock(side_effect=RuntimeError("boom")))
    manager = StoreManager([good, bad])

    status = await manager.get_auth_status()

    assert status['epic'].authenticated == True
    assert status['epic'].source == 'cli'
    assert status['gog'].authenticated == False
    assert status['gog'].source == 'error'


def test_store_manager_select_skips_unknown():
    manager = StoreManager([Mock(store_name='epic'), Mock(store_name='gog')])
    assert list(manager.select(['gog', 'origin'])) == ['gog']
    assert list(manager.select(None)) == ['epic', 'gog']
