"""
InstallService - Handles game installation and uninstallation.

Responsibilities:
- Run store installs/uninstalls through the CLI runner with progress parsing
- Track running operations per game so they can be queried and cancelled
- Write install state to the catalog only when an operation completes

A cancelled operation terminates its subprocess and skips the completion
write, so the record keeps the install state it had before.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, Union

from ..database.game_repository import GameRepository
from ..stores.base import Game, StoreAdapter, format_size
from ..stores.manager import StoreManager
from ..utils.cli_runner import CliRunner
from ..utils.paths import DEFAULT_INSTALL_PATH

logger = logging.getLogger(__name__)

PROGRESS_RE = re.compile(r'(\d{1,3}(?:\.\d+)?)\s*%')

ProgressCallback = Callable[[str, float], Union[None, Awaitable[None]]]


class InstallError(Exception):
    """An install or uninstall could not be started."""


class Operation(str, Enum):
    INSTALL = "install"
    UNINSTALL = "uninstall"


@dataclass
class InstallResult:
    """Outcome of an install or uninstall"""
    game_id: str
    operation: str
    success: bool
    cancelled: bool = False
    install_path: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def parse_progress(line: str) -> Optional[float]:
    """Extract a percentage from a CLI output line ('[Installation] [42%]' -> 42.0)"""
    match = PROGRESS_RE.search(line)
    if not match:
        return None
    value = float(match.group(1))
    return value if 0 <= value <= 100 else None


class InstallService:
    """Service for installing and uninstalling games."""

    def __init__(self, store_manager: StoreManager, repository: GameRepository,
                 runner: CliRunner, install_base_path: str = DEFAULT_INSTALL_PATH):
        """Initialize InstallService.

        Args:
            store_manager: StoreManager with the registered adapters
            repository: GameRepository for install-state writes
            runner: CliRunner used to stream the store client
            install_base_path: Default directory games are installed into
        """
        self.store_manager = store_manager
        self.repository = repository
        self.runner = runner
        self.install_base_path = install_base_path

        self._active: Dict[str, asyncio.Task] = {}
        self._operations: Dict[str, Operation] = {}
        self._cancelled: Set[str] = set()

    def is_installing(self, game_id: str) -> bool:
        return game_id in self._active

    def get_active_installations(self) -> Dict[str, str]:
        """Running operations: game_id -> 'install' | 'uninstall'"""
        return {game_id: op.value for game_id, op in self._operations.items()}

    async def _resolve(self, game_id: str) -> Tuple[Game, StoreAdapter]:
        game = await self.repository.get_by_id(game_id)
        if game is None:
            raise InstallError(f"Unknown game: {game_id}")
        adapter = self.store_manager.get_store(game.store)
        if adapter is None:
            raise InstallError(f"No adapter registered for store '{game.store}'")
        if game_id in self._active:
            raise InstallError(f"{game.title} already has an operation in progress")
        return game, adapter

    async def _track(self, game_id: str, operation: Operation, coro: Awaitable[InstallResult]) -> InstallResult:
        """Run an operation as a registered task until it completes or is cancelled."""
        task = asyncio.ensure_future(coro)
        self._active[game_id] = task
        self._operations[game_id] = operation
        try:
            return await task
        except asyncio.CancelledError:
            if game_id not in self._cancelled:
                raise
            logger.info(f"[Install] {operation.value} of {game_id} cancelled")
            return InstallResult(game_id, operation.value, success=False, cancelled=True)
        finally:
            self._active.pop(game_id, None)
            self._operations.pop(game_id, None)
            self._cancelled.discard(game_id)

    async def install_game(self, game_id: str, install_path: Optional[str] = None,
                           on_progress: Optional[ProgressCallback] = None) -> InstallResult:
        """
        Install a game.

        Args:
            game_id: Library game id
            install_path: Target directory (defaults to the configured base path)
            on_progress: Called with (game_id, percent) as the client reports progress

        Returns:
            InstallResult (cancelled=True if cancel_installation() stopped it)

        Raises:
            InstallError: unknown game, no adapter, or an operation already running
        """
        game, adapter = await self._resolve(game_id)
        path = install_path or self.install_base_path
        logger.info(f"[Install] Starting installation: {game.title} ({game.store}:{game.store_id})")
        return await self._track(game_id, Operation.INSTALL, self._install(game, adapter, path, on_progress))

    async def _install(self, game: Game, adapter: StoreAdapter, path: str,
                       on_progress: Optional[ProgressCallback]) -> InstallResult:
        async def on_line(line: str) -> None:
            percent = parse_progress(line)
            if percent is not None and on_progress is not None:
                maybe = on_progress(game.id, percent)
                if asyncio.iscoroutine(maybe):
                    await maybe

        result = await self.runner.stream(adapter.client, adapter.install_args(game.store_id, path), on_line)
        if not result.ok:
            logger.error(f"[Install] Installation failed for {game.title}: exit {result.exit_code}")
            return InstallResult(game.id, Operation.INSTALL.value, success=False,
                                 error=result.stderr.strip()[-500:] or 'installation failed')

        # Ask the store where it actually put the game
        info = (await adapter.list_installed()).get(game.store_id) or {}
        install_path = info.get('install_path') or path
        await self.repository.set_install_state(
            game.id,
            installed=True,
            install_path=install_path,
            install_size=format_size(info.get('install_size')),
            executable_path=info.get('executable_path'),
        )
        logger.info(f"[Install] Installed {game.title} to {install_path}")
        return InstallResult(game.id, Operation.INSTALL.value, success=True, install_path=install_path)

    async def uninstall_game(self, game_id: str) -> InstallResult:
        """
        Uninstall a game and clear its install state.

        Raises:
            InstallError: unknown game, no adapter, or an operation already running
        """
        game, adapter = await self._resolve(game_id)
        logger.info(f"[Install] Uninstalling: {game.title}")
        return await self._track(game_id, Operation.UNINSTALL, self._uninstall(game, adapter))

    async def _uninstall(self, game: Game, adapter: StoreAdapter) -> InstallResult:
        result = await self.runner.stream(adapter.client, adapter.uninstall_args(game.store_id))
        if not result.ok:
            return InstallResult(game.id, Operation.UNINSTALL.value, success=False,
                                 error=result.stderr.strip()[-500:] or 'uninstall failed')

        await self.repository.set_install_state(game.id, installed=False)
        logger.info(f"[Install] Uninstalled {game.title}")
        return InstallResult(game.id, Operation.UNINSTALL.value, success=True)

    async def cancel_installation(self, game_id: str) -> bool:
        """
        Cancel a running install or uninstall.

        Terminates the store client and waits for the operation to wind down.

        Returns:
            True if an operation was running and has been cancelled
        """
        task = self._active.get(game_id)
        if task is None or task.done():
            return False

        logger.info(f"[Install] Cancelling operation for {game_id}")
        self._cancelled.add(game_id)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return True

    async def cancel_all(self) -> List[str]:
        """Cancel every running operation. Returns the affected game ids."""
        game_ids = list(self._active)
        for game_id in game_ids:
            await self.cancel_installation(game_id)
        return game_ids
