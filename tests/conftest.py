from __future__ import annotations

from pathlib import Path
import sys
from typing import Dict, Tuple
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from librarysync.cache.enrichment_cache import EnrichmentCache  # noqa: E402
from librarysync.database.connection import Database  # noqa: E402
from librarysync.database.game_repository import GameRepository  # noqa: E402
from librarysync.stores.base import Game, make_game_id  # noqa: E402
from librarysync.utils.cli_runner import CliResult, CliRunner  # noqa: E402


def ok(stdout: str = '') -> CliResult:
    return CliResult(stdout, '', 0)


def fail(stderr: str = 'boom', exit_code: int = 1) -> CliResult:
    return CliResult('', stderr, exit_code)


def make_runner(responses: Dict[Tuple[str, ...], CliResult]) -> Mock:
    """Fake CliRunner answering run() from a table keyed by (client, *args)."""
    async def run(client, args, input_text=None, timeout=None):
        return responses.get((client, *args), CliResult('', f'unexpected call: {client} {args}', 1))

    runner = Mock(spec=CliRunner)
    runner.run = AsyncMock(side_effect=run)
    runner.resolve = Mock(side_effect=lambda client: f'/usr/bin/{client}')
    runner.is_available = AsyncMock(return_value=True)
    return runner


def make_game(store: str = 'epic', store_id: str = 'Fortnite', title: str = 'Fortnite', **kwargs) -> Game:
    return Game(id=make_game_id(store, store_id), store_id=store_id, store=store, title=title, **kwargs)


@pytest_asyncio.fixture
async def database():
    db = Database(':memory:')
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
def repository(database):
    return GameRepository(database)


@pytest.fixture
def cache(database):
    return EnrichmentCache(database)
