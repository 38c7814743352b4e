"""
Amazon Games adapter using the nile CLI.

Amazon is the only store with an email/password login that may ask for a
second factor. nile does not report that condition in a structured way, so
it is recognised from stderr text by requires_second_factor().
"""
import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any, List, Optional, Tuple

from .base import StoreAdapter

logger = logging.getLogger(__name__)

# stderr phrases (lowercased) that mean "a verification code is needed"
SECOND_FACTOR_PHRASES = ('2fa', 'two-factor', 'verification code')


def requires_second_factor(stderr: str) -> bool:
    """Heuristic: does a failed login's stderr ask for a second factor?"""
    text = (stderr or '').lower()
    return any(phrase in text for phrase in SECOND_FACTOR_PHRASES)


@dataclass
class LoginResult:
    """Outcome of an Amazon login attempt"""
    success: bool
    requires_second_factor: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AmazonStore(StoreAdapter):
    """Handles Amazon Games via nile CLI"""

    @property
    def store_name(self) -> str:
        return 'amazon'

    @property
    def client(self) -> str:
        return 'nile'

    def owned_args(self) -> List[str]:
        return ['library', 'list', '--json']

    def installed_args(self) -> List[str]:
        return ['library', 'list', '--installed', '--json']

    def auth_check_args(self) -> List[str]:
        # nile has no status command; a library read only works when logged in
        return ['library', 'list', '--json']

    def auth_code_args(self, code: str) -> List[str]:
        return ['register', '--code', code]

    def logout_args(self) -> List[str]:
        return ['auth', '--logout']

    def install_args(self, store_id: str, install_path: Optional[str] = None) -> List[str]:
        args = ['install', store_id]
        if install_path:
            args += ['--path', install_path]
        return args

    def uninstall_args(self, store_id: str) -> List[str]:
        return ['uninstall', store_id, '--yes']

    def launch_args(self, store_id: str, install_path: Optional[str] = None) -> List[str]:
        return ['launch', store_id]

    def parse_owned_entry(self, entry: Dict[str, Any]) -> Optional[Tuple[str, str, Dict[str, Any]]]:
        product = entry.get('product') or {}
        game_id = entry.get('id') or product.get('id')
        if not game_id:
            return None
        details = (product.get('productDetail') or {}).get('details') or {}
        title = product.get('title') or entry.get('title') or game_id
        return game_id, title, {
            'developer': details.get('developer'),
            'publisher': details.get('publisher'),
        }

    def parse_installed_entry(self, entry: Dict[str, Any]) -> Optional[Tuple[str, Dict[str, Any]]]:
        game_id = entry.get('id')
        if not game_id:
            return None
        return game_id, {
            'install_path': entry.get('path'),
            'install_size': entry.get('size'),
            'executable_path': entry.get('executable'),
        }

    async def _list_owned(self) -> List[Any]:
        # Refresh nile's local library copy first; a stale copy is still usable
        sync = await self.runner.run(self.client, ['library', 'sync'])
        if not sync.ok:
            logger.warning(f"[AMAZON] Library sync failed, listing cached library: {sync.stderr.strip()[:200]}")
        return await super()._list_owned()

    @staticmethod
    def _credentials(email: str, password: str) -> str:
        return f"{email}\n{password}\n"

    async def login(self, email: str, password: str) -> LoginResult:
        """
        Log in with email and password.

        Credentials are written to nile's stdin, never to argv.

        Returns:
            LoginResult; requires_second_factor is set when Amazon wants a
            verification code (follow up with login_with_second_factor)
        """
        result = await self.runner.run(
            self.client,
            ['auth', '--login', '--non-interactive'],
            input_text=self._credentials(email, password),
        )
        if result.ok:
            logger.info("[AMAZON] Logged in")
            return LoginResult(success=True)

        if requires_second_factor(result.stderr):
            logger.info("[AMAZON] Second factor required")
            return LoginResult(success=False, requires_second_factor=True)

        return LoginResult(success=False, error=result.stderr.strip() or 'login failed')

    async def login_with_second_factor(self, email: str, password: str, code: str) -> LoginResult:
        """Complete a login that asked for a verification code."""
        result = await self.runner.run(
            self.client,
            self.auth_code_args(code),
            input_text=self._credentials(email, password),
        )
        if result.ok:
            logger.info("[AMAZON] Logged in with verification code")
            return LoginResult(success=True)
        return LoginResult(success=False, error=result.stderr.strip() or 'verification failed')
