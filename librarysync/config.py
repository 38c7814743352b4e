"""
Settings for the library engine.

Settings live in a flat JSON file (settings.json in the data directory).
API credentials can also come from the environment, which wins over the file
so keys never have to be written to disk.
"""
import json
import logging
import os
from dataclasses import dataclass, field, asdict, fields
from typing import Dict, Any, Iterable, Optional

from .utils.paths import (
    ARTWORK_DIR,
    BIN_DIR,
    DATABASE_PATH,
    DEFAULT_INSTALL_PATH,
    GOG_AUTH_CONFIG_PATH,
    SETTINGS_PATH,
)

logger = logging.getLogger(__name__)

# Environment variable -> settings key
ENV_OVERRIDES = {
    'STEAMGRIDDB_API_KEY': 'steamgriddb_api_key',
    'IGDB_CLIENT_ID': 'igdb_client_id',
    'IGDB_CLIENT_SECRET': 'igdb_client_secret',
}


@dataclass
class Settings:
    """Engine settings, API keys and file locations"""
    steamgriddb_api_key: Optional[str] = None
    igdb_client_id: Optional[str] = None
    igdb_client_secret: Optional[str] = None
    igdb_access_token: Optional[str] = None
    igdb_token_expires_at: Optional[float] = None  # unix seconds

    bin_dir: str = BIN_DIR
    binaries: Dict[str, str] = field(default_factory=dict)  # client name -> explicit path
    database_path: str = DATABASE_PATH
    artwork_dir: str = ARTWORK_DIR
    gog_auth_config_path: str = GOG_AUTH_CONFIG_PATH
    install_base_path: str = DEFAULT_INSTALL_PATH

    cache_ttl_days: int = 7
    enrichment_concurrency: int = 4
    http_timeout: float = 10.0

    @property
    def has_igdb(self) -> bool:
        return bool(self.igdb_client_id and (self.igdb_client_secret or self.igdb_access_token))

    @property
    def has_steamgriddb(self) -> bool:
        return bool(self.steamgriddb_api_key)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_settings(path: str = SETTINGS_PATH, environ: Optional[Dict[str, str]] = None) -> Settings:
    """
    Load settings from a JSON file, applying environment overrides.

    Unknown keys are ignored and a missing or unreadable file yields defaults.

    Args:
        path: Path to settings.json
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Settings instance
    """
    data: Dict[str, Any] = {}
    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                logger.warning(f"[Settings] {path} is not a JSON object, using defaults")
                data = {}
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"[Settings] Error reading {path}: {e}")
            data = {}

    known = {f.name for f in fields(Settings)}
    values = {k: v for k, v in data.items() if k in known}

    env = os.environ if environ is None else environ
    for env_name, key in ENV_OVERRIDES.items():
        if env.get(env_name):
            values[key] = env[env_name]

    return Settings(**values)


def save_settings(settings: Settings, path: str = SETTINGS_PATH,
                  keys: Optional[Iterable[str]] = None) -> None:
    """
    Write settings to disk, merging into any keys already in the file.

    When keys is given only those fields are written, so values that came
    from the environment are not copied into the file.
    """
    os.makedirs(os.path.dirname(path) or '.', exist_ok=True)

    existing: Dict[str, Any] = {}
    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                existing = json.load(f)
        except (OSError, json.JSONDecodeError):
            existing = {}

    data = settings.to_dict()
    if keys is not None:
        data = {k: data[k] for k in keys}
    existing.update(data)
    with open(path, 'w') as f:
        json.dump(existing, f, indent=2)

    logger.info(f"[Settings] Saved settings to {path}")
