"""
Tests for InstallService: install/uninstall outcomes, progress and cancellation.
"""
import asyncio
import json

import pytest
from unittest.mock import AsyncMock

from librarysync.services.install_service import InstallError, InstallService, parse_progress
from librarysync.stores import EpicStore, StoreManager
from librarysync.utils.cli_runner import CliResult
from conftest import make_game, make_runner, ok

INSTALLED = [{'app_name': 'Quail', 'install_path': '/games/Hades', 'install_size': 32212254720,
              'executable': 'Hades.exe'}]


@pytest.fixture
def runner():
    return make_runner({('legendary', 'list-installed', '--json'): ok(json.dumps(INSTALLED))})


@pytest.fixture
def service(repository, runner):
    manager = StoreManager([EpicStore(runner, repository)])
    return InstallService(manager, repository, runner, install_base_path='/games')


def test_parse_progress():
    assert parse_progress('[DLManager] INFO: = Progress: 42.50% (1234/5000)') == 42.5
    assert parse_progress('[Installation] [7%]') == 7.0
    assert parse_progress('Downloading manifest') is None
    assert parse_progress('Progress: 250%') is None


@pytest.mark.asyncio
async def test_install_success_writes_install_state(service, repository, runner):
    await repository.upsert(make_game('epic', 'Quail', 'Hades'))
    seen = []

    async def fake_stream(client, args, on_line=None):
        for line in ('Progress: 10%', 'noise', 'Progress: 100%'):
            await on_line(line)
        return CliResult('', '', 0)

    runner.stream = AsyncMock(side_effect=fake_stream)

    result = await service.install_game('epic-Quail', on_progress=lambda gid, pct: seen.append(pct))

    assert result.success == True
    assert result.install_path == '/games/Hades'
    assert seen == [10.0, 100.0]
    assert runner.stream.await_args.args[:2] == ('legendary', ['install', 'Quail', '--base-path', '/games', '--yes'])
    game = await repository.get_by_id('epic-Quail')
    assert game.installed == True
    assert game.install_size == '30.0 GB'
    assert game.executable_path == 'Hades.exe'
    assert service.is_installing('epic-Quail') == False


@pytest.mark.asyncio
async def test_install_failure_leaves_record_untouched(service, repository, runner):
    await repository.upsert(make_game('epic', 'Quail', 'Hades'))
    runner.stream = AsyncMock(return_value=CliResult('', 'not enough disk space', 1))

    result = await service.install_game('epic-Quail')

    assert result.success == False
    assert 'disk space' in result.error
    assert (await repository.get_by_id('epic-Quail')).installed == False


@pytest.mark.asyncio
async def test_cancelled_install_keeps_previous_state(service, repository, runner):
    await repository.upsert(make_game('epic', 'Quail', 'Hades'))
    started = asyncio.Event()

    async def never_finishes(client, args, on_line=None):
        started.set()
        await asyncio.Event().wait()

    runner.stream = AsyncMock(side_effect=never_finishes)

    install = asyncio.create_task(service.install_game('epic-Quail'))
    await started.wait()
    assert service.get_active_installations() == {'epic-Quail': 'install'}

    assert await service.cancel_installation('epic-Quail') == True
    result = await install

    assert result.cancelled == True
    assert result.success == False
    assert (await repository.get_by_id('epic-Quail')).installed == False
    assert service.is_installing('epic-Quail') == False
    assert await service.cancel_installation('epic-Quail') == False


@pytest.mark.asyncio
async def test_second_operation_on_same_game_is_rejected(service, repository, runner):
    await repository.upsert(make_game('epic', 'Quail', 'Hades'))
    started = asyncio.Event()

    async def never_finishes(client, args, on_line=None):
        started.set()
        await asyncio.Event().wait()

    runner.stream = AsyncMock(side_effect=never_finishes)
    install = asyncio.create_task(service.install_game('epic-Quail'))
    await started.wait()

    with pytest.raises(InstallError):
        await service.uninstall_game('epic-Quail')

    assert await service.cancel_all() == ['epic-Quail']
    await install


@pytest.mark.asyncio
async def test_unknown_game_is_rejected(service):
    with pytest.raises(InstallError):
        await service.install_game('epic-Missing')


@pytest.mark.asyncio
async def test_uninstall_clears_install_state(service, repository, runner):
    await repository.upsert(make_game('epic', 'Quail', 'Hades', installed=True, install_path='/games/Hades'))
    runner.stream = AsyncMock(return_value=CliResult('', '', 0))

    result = await service.uninstall_game('epic-Quail')

    assert result.success == True
    assert runner.stream.await_args.args[:2] == ('legendary', ['uninstall', 'Quail', '--yes'])
    game = await repository.get_by_id('epic-Quail')
    assert game.installed == False
    assert game.install_path is None
