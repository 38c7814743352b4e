"""
Epic Games Store adapter using the legendary CLI.

Handles library listing and authentication for Epic via legendary's JSON
output (`list --json`, `list-installed --json`, `status --json`).
"""
import json
import logging
from typing import Dict, Any, List, Optional, Tuple

from .base import StoreAdapter
from ..utils.cli_runner import CliResult

logger = logging.getLogger(__name__)

# legendary prints this as the account name when logged out
LOGGED_OUT_ACCOUNT = "<not logged in>"


class EpicStore(StoreAdapter):
    """Handles Epic Games Store via legendary CLI"""

    @property
    def store_name(self) -> str:
        return 'epic'

    @property
    def client(self) -> str:
        return 'legendary'

    def owned_args(self) -> List[str]:
        return ['list', '--json']

    def installed_args(self) -> List[str]:
        return ['list-installed', '--json']

    def auth_check_args(self) -> List[str]:
        return ['status', '--json']

    def auth_code_args(self, code: str) -> List[str]:
        return ['auth', '--code', code]

    def logout_args(self) -> List[str]:
        return ['auth', '--delete']

    def install_args(self, store_id: str, install_path: Optional[str] = None) -> List[str]:
        args = ['install', store_id]
        if install_path:
            args += ['--base-path', install_path]
        return args + ['--yes']

    def uninstall_args(self, store_id: str) -> List[str]:
        return ['uninstall', store_id, '--yes']

    def launch_args(self, store_id: str, install_path: Optional[str] = None) -> List[str]:
        return ['launch', store_id]

    def parse_owned_entry(self, entry: Dict[str, Any]) -> Optional[Tuple[str, str, Dict[str, Any]]]:
        app_name = entry.get('app_name')
        if not app_name:
            return None
        metadata = entry.get('metadata') or {}
        title = entry.get('app_title') or entry.get('title') or metadata.get('title') or app_name
        return app_name, title, {'developer': metadata.get('developer')}

    def parse_installed_entry(self, entry: Dict[str, Any]) -> Optional[Tuple[str, Dict[str, Any]]]:
        app_name = entry.get('app_name')
        if not app_name:
            return None
        return app_name, {
            'install_path': entry.get('install_path'),
            'install_size': entry.get('install_size'),
            'executable_path': entry.get('executable'),
        }

    def interpret_auth_check(self, result: CliResult) -> bool:
        """Logged in when `status --json` reports a real account name"""
        if not result.ok:
            return False
        try:
            status = json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.warning("[EPIC] Unparseable status output")
            return False
        account = status.get('account') if isinstance(status, dict) else None
        authenticated = bool(account) and account != LOGGED_OUT_ACCOUNT
        logger.info(f"[EPIC] Status: {'Connected' if authenticated else 'Not authenticated'}")
        return authenticated
