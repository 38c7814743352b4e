"""
Steam adapter using the steam helper CLI.

The helper reports owned apps as {appid, name} objects and installed apps
with their library folder and on-disk size.
"""
import logging
from typing import Dict, Any, List, Optional, Tuple

from .base import StoreAdapter

logger = logging.getLogger(__name__)


class SteamStore(StoreAdapter):
    """Handles Steam via the steam helper CLI"""

    @property
    def store_name(self) -> str:
        return 'steam'

    @property
    def client(self) -> str:
        return 'steam'

    def owned_args(self) -> List[str]:
        return ['list', '--json']

    def installed_args(self) -> List[str]:
        return ['list-installed', '--json']

    def auth_code_args(self, code: str) -> List[str]:
        return ['auth', '--code', code]

    def logout_args(self) -> List[str]:
        return ['auth', '--logout']

    def install_args(self, store_id: str, install_path: Optional[str] = None) -> List[str]:
        return ['install', store_id]

    def uninstall_args(self, store_id: str) -> List[str]:
        return ['uninstall', store_id]

    def launch_args(self, store_id: str, install_path: Optional[str] = None) -> List[str]:
        return ['launch', store_id]

    def parse_owned_entry(self, entry: Dict[str, Any]) -> Optional[Tuple[str, str, Dict[str, Any]]]:
        appid = entry.get('appid')
        if appid is None:
            return None
        appid = str(appid)
        return appid, entry.get('name') or appid, {}

    def parse_installed_entry(self, entry: Dict[str, Any]) -> Optional[Tuple[str, Dict[str, Any]]]:
        appid = entry.get('appid')
        if appid is None:
            return None
        return str(appid), {
            'install_path': entry.get('install_path'),
            'install_size': entry.get('size_on_disk'),
            'executable_path': entry.get('executable'),
        }
