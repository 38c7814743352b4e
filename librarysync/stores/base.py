"""
Base store adapter defining the interface for all storefront connectors.

All store implementations (Epic, GOG, Amazon, Steam) inherit from this and
describe their CLI dialect: which arguments list owned and installed titles,
how the JSON output is shaped, and how authentication is probed.
"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Dict, Any, Optional, Tuple, TYPE_CHECKING
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
import json
import logging

from ..utils.cli_runner import CliRunner, CliResult

if TYPE_CHECKING:
    from ..database.game_repository import GameRepository


logger = logging.getLogger(__name__)


class Store(str, Enum):
    """Supported storefronts"""
    EPIC = "epic"
    GOG = "gog"
    AMAZON = "amazon"
    STEAM = "steam"


class StoreError(Exception):
    """A store CLI call failed (listing owned titles, auth, logout)."""

    def __init__(self, store: str, message: str):
        super().__init__(f"[{store}] {message}")
        self.store = store
        self.message = message


def make_game_id(store: str, store_id: str) -> str:
    """Library id for a store title, e.g. ('epic', 'Fortnite') -> 'epic-Fortnite'"""
    return f"{store}-{store_id}"


def format_size(size_bytes: Any) -> Optional[str]:
    """Format a raw byte count for display: 32212254720 -> '30.0 GB'"""
    if size_bytes is None or size_bytes == '':
        return None
    try:
        value = float(size_bytes)
    except (TypeError, ValueError):
        # Already a display string
        return str(size_bytes)
    if value <= 0:
        return None
    return f"{value / 1024 ** 3:.1f} GB"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Game:
    """Represents a game record in the library (one row of the games table)"""
    id: str
    store_id: str
    store: str  # 'epic', 'gog', 'amazon', 'steam'
    title: str

    # Install state - owned by store adapters
    installed: bool = False
    install_path: Optional[str] = None
    install_size: Optional[str] = None
    executable_path: Optional[str] = None
    custom_executable: Optional[str] = None
    wine_prefix: Optional[str] = None
    wine_version: Optional[str] = None
    runner: Optional[str] = None

    # Enrichment - owned by the enrichment pipeline
    description: Optional[str] = None
    summary: Optional[str] = None
    metacritic_score: Optional[int] = None
    igdb_rating: Optional[int] = None
    developer: Optional[str] = None
    publisher: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    release_date: Optional[str] = None
    hltb_main: Optional[int] = None
    hltb_main_extra: Optional[int] = None
    hltb_complete: Optional[int] = None
    hltb_speedrun: Optional[int] = None
    proton_tier: Optional[str] = None
    proton_confidence: Optional[str] = None
    proton_trending_tier: Optional[str] = None
    steam_app_id: Optional[int] = None
    achievements_total: Optional[int] = None
    achievements_unlocked: Optional[int] = None
    hero_path: Optional[str] = None
    grid_path: Optional[str] = None
    logo_path: Optional[str] = None
    icon_path: Optional[str] = None
    cover_path: Optional[str] = None
    cover_url: Optional[str] = None
    background_url: Optional[str] = None
    screenshot_paths: List[str] = field(default_factory=list)

    # User state - owned by the UI
    is_favorite: bool = False
    play_time_minutes: int = 0
    last_played: Optional[str] = None

    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    enriched_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AuthStatus:
    """Authentication state of a store, recomputed on every probe"""
    authenticated: bool
    source: str  # 'cli' when probed, 'error' when the probe itself failed

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def parse_json_array(output: str) -> List[Any]:
    """Parse CLI stdout that must be a JSON array.

    Raises:
        ValueError: if the output is not JSON or not an array
    """
    data = json.loads(output)
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array, got {type(data).__name__}")
    return data


class StoreAdapter(ABC):
    """
    Abstract base class for storefront adapters.

    Each store (Epic, GOG, Amazon, Steam) implements this interface to provide
    a consistent API for authentication and library listing on top of its
    own command-line client. Adapters never spawn processes themselves; all
    calls go through the shared CliRunner.
    """

    def __init__(self, runner: CliRunner, repository: Optional["GameRepository"] = None):
        self.runner = runner
        self.repository = repository

    @property
    @abstractmethod
    def store_name(self) -> str:
        """Return the store identifier (e.g., 'epic', 'gog', 'amazon', 'steam')"""

    @property
    @abstractmethod
    def client(self) -> str:
        """Return the CLI client name (e.g., 'legendary')"""

    # ---- dialect ----

    @abstractmethod
    def owned_args(self) -> List[str]:
        """Arguments that print the owned library as a JSON array"""

    @abstractmethod
    def installed_args(self) -> List[str]:
        """Arguments that print installed titles as a JSON array"""

    @abstractmethod
    def parse_owned_entry(self, entry: Dict[str, Any]) -> Optional[Tuple[str, str, Dict[str, Any]]]:
        """
        Extract (store_id, title, extra) from one owned-list entry.

        Returns:
            Tuple, or None to skip an entry the client reported without an id.
            extra may carry adapter-provided fields such as 'developer'.
        """

    @abstractmethod
    def parse_installed_entry(self, entry: Dict[str, Any]) -> Optional[Tuple[str, Dict[str, Any]]]:
        """
        Extract (store_id, install_info) from one installed-list entry.

        install_info keys: install_path, install_size (raw bytes or display
        string), executable_path and optional runtime overrides.
        """

    @abstractmethod
    def auth_code_args(self, code: str) -> List[str]:
        """Arguments that complete authentication with an authorization code"""

    @abstractmethod
    def logout_args(self) -> List[str]:
        """Arguments that clear stored credentials"""

    @abstractmethod
    def install_args(self, store_id: str, install_path: Optional[str] = None) -> List[str]:
        """Arguments that install a title"""

    @abstractmethod
    def uninstall_args(self, store_id: str) -> List[str]:
        """Arguments that uninstall a title"""

    @abstractmethod
    def launch_args(self, store_id: str, install_path: Optional[str] = None) -> List[str]:
        """Arguments that launch an installed title"""

    def auth_check_args(self) -> List[str]:
        """Arguments whose exit code tells whether the user is logged in"""
        return ['auth', '--check']

    # ---- operations ----

    async def list_games(self) -> List[Game]:
        """
        Get the user's owned games with install state merged in.

        The owned list is authoritative; the installed list only refines it.

        Returns:
            List of Game records (not yet persisted)

        Raises:
            StoreError: if the owned list cannot be fetched or parsed
        """
        owned = await self._list_owned()
        installed = await self.list_installed()

        games: List[Game] = []
        seen = set()
        for entry in owned:
            if not isinstance(entry, dict):
                continue
            parsed = self.parse_owned_entry(entry)
            if not parsed:
                continue
            store_id, title, extra = parsed
            if store_id in seen:
                continue
            seen.add(store_id)

            game = Game(
                id=make_game_id(self.store_name, store_id),
                store_id=store_id,
                store=self.store_name,
                title=title or store_id,
                developer=extra.get('developer'),
                publisher=extra.get('publisher'),
            )

            info = installed.get(store_id)
            if info is not None:
                game.installed = True
                game.install_path = info.get('install_path')
                game.install_size = format_size(info.get('install_size'))
                game.executable_path = info.get('executable_path')
                game.custom_executable = info.get('custom_executable')
                game.wine_prefix = info.get('wine_prefix')
                game.wine_version = info.get('wine_version')
                game.runner = info.get('runner')

            games.append(game)

        logger.info(f"[{self.store_name.upper()}] Found {len(games)} games ({len(installed)} installed)")
        return games

    async def _list_owned(self) -> List[Any]:
        result = await self.runner.run(self.client, self.owned_args())
        if not result.ok:
            raise StoreError(self.store_name, f"listing owned games failed: {result.stderr.strip()}")
        try:
            return parse_json_array(result.stdout)
        except ValueError as e:
            raise StoreError(self.store_name, f"unparseable library output: {e}") from e

    async def list_installed(self) -> Dict[str, Dict[str, Any]]:
        """
        Get installed titles keyed by store id.

        Failures are tolerated: an unreadable installed list means nothing is
        reported as installed.
        """
        result = await self.runner.run(self.client, self.installed_args())
        if not result.ok:
            logger.warning(f"[{self.store_name.upper()}] Could not list installed games: {result.stderr.strip()[:200]}")
            return {}
        try:
            entries = parse_json_array(result.stdout)
        except ValueError as e:
            logger.warning(f"[{self.store_name.upper()}] Unparseable installed list: {e}")
            return {}

        installed: Dict[str, Dict[str, Any]] = {}
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            parsed = self.parse_installed_entry(entry)
            if parsed:
                store_id, info = parsed
                installed[store_id] = info
        return installed

    async def is_authenticated(self) -> bool:
        """Probe the client for a logged-in session. Never raises."""
        try:
            result = await self.runner.run(self.client, self.auth_check_args())
            return self.interpret_auth_check(result)
        except Exception as e:
            logger.error(f"[{self.store_name.upper()}] Auth check failed: {e}")
            return False

    def interpret_auth_check(self, result: CliResult) -> bool:
        return result.ok

    async def authenticate(self, code: str) -> None:
        """
        Complete authentication with an authorization code.

        Raises:
            StoreError: with the client's stderr when it rejects the code
        """
        result = await self.runner.run(self.client, self.auth_code_args(code))
        if not result.ok:
            raise StoreError(self.store_name, result.stderr.strip() or 'authentication failed')
        logger.info(f"[{self.store_name.upper()}] Authenticated")

    async def logout(self) -> None:
        """
        Logout from the store, clearing stored credentials.

        Raises:
            StoreError: if the client reports a failure
        """
        result = await self.runner.run(self.client, self.logout_args())
        if not result.ok:
            raise StoreError(self.store_name, result.stderr.strip() or 'logout failed')
        logger.info(f"[{self.store_name.upper()}] Logged out")

    async def persist_games(self, games: List[Game]) -> int:
        """Upsert a batch of records in a single transaction. Returns the row count."""
        if self.repository is None:
            raise RuntimeError(f"{self.store_name} adapter has no repository to persist into")
        if not games:
            return 0
        await self.repository.upsert_many(games)
        return len(games)
