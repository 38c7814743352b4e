"""
GOG adapter using the gogdl CLI.

gogdl keeps its credentials in a file we pass via --auth-config-path on every
call, so the adapter owns that path.
"""
import logging
from typing import Dict, Any, List, Optional, Tuple

from .base import StoreAdapter
from ..utils.cli_runner import CliRunner
from ..utils.paths import GOG_AUTH_CONFIG_PATH

logger = logging.getLogger(__name__)


class GogStore(StoreAdapter):
    """Handles GOG via gogdl CLI"""

    def __init__(self, runner: CliRunner, repository=None,
                 auth_config_path: str = GOG_AUTH_CONFIG_PATH):
        super().__init__(runner, repository)
        self.auth_config_path = auth_config_path

    @property
    def store_name(self) -> str:
        return 'gog'

    @property
    def client(self) -> str:
        return 'gogdl'

    def _base_args(self) -> List[str]:
        return ['--auth-config-path', self.auth_config_path]

    def owned_args(self) -> List[str]:
        return self._base_args() + ['list', '--json']

    def installed_args(self) -> List[str]:
        return self._base_args() + ['list-installed', '--json']

    def auth_check_args(self) -> List[str]:
        return self._base_args() + ['auth', '--check']

    def auth_code_args(self, code: str) -> List[str]:
        return self._base_args() + ['auth', '--code', code]

    def logout_args(self) -> List[str]:
        return self._base_args() + ['auth', '--delete']

    def install_args(self, store_id: str, install_path: Optional[str] = None) -> List[str]:
        args = self._base_args() + ['install', store_id]
        if install_path:
            args += ['--path', install_path]
        return args

    def uninstall_args(self, store_id: str) -> List[str]:
        return self._base_args() + ['uninstall', store_id]

    def launch_args(self, store_id: str, install_path: Optional[str] = None) -> List[str]:
        args = self._base_args() + ['launch']
        if install_path:
            args.append(install_path)
        return args + [store_id]

    def parse_owned_entry(self, entry: Dict[str, Any]) -> Optional[Tuple[str, str, Dict[str, Any]]]:
        game_id = entry.get('id') or entry.get('app_name')
        if game_id is None or game_id == '':
            return None
        game_id = str(game_id)
        return game_id, entry.get('title') or game_id, {
            'developer': entry.get('developer'),
            'publisher': entry.get('publisher'),
        }

    def parse_installed_entry(self, entry: Dict[str, Any]) -> Optional[Tuple[str, Dict[str, Any]]]:
        game_id = entry.get('id') or entry.get('appName') or entry.get('app_name')
        if game_id is None or game_id == '':
            return None
        return str(game_id), {
            'install_path': entry.get('install_path') or entry.get('path'),
            'install_size': entry.get('install_size') or entry.get('size'),
            'executable_path': entry.get('executable'),
        }
