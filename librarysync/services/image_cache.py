"""
Local artwork cache.

Downloads provider artwork into <artwork_dir>/<game_id>/<slot>_<hash>.<ext> so
the UI can show it offline. The file name is keyed on the source URL, so a
provider switching to new artwork is downloaded again instead of serving the
old file. A slot whose download fails keeps its remote URL.
"""
import asyncio
import glob
import hashlib
import logging
import os
from typing import Dict, List, Optional
from urllib.parse import urlparse

import aiofiles
import aiohttp

from ..metadata.http import HttpProvider
from ..utils.paths import ARTWORK_DIR, get_artwork_dir

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.webp', '.ico')


def _extension(url: str) -> str:
    ext = os.path.splitext(urlparse(url).path)[1].lower()
    return ext if ext in IMAGE_EXTENSIONS else '.jpg'


class ImageCache(HttpProvider):
    """Downloads artwork to disk."""

    name = "Images"

    def __init__(self, artwork_dir: str = ARTWORK_DIR, **kwargs):
        super().__init__(**kwargs)
        self.artwork_dir = artwork_dir

    def path_for(self, game_id: str, slot: str, url: str) -> str:
        digest = hashlib.sha1(url.encode('utf-8')).hexdigest()[:12]
        return os.path.join(get_artwork_dir(game_id, self.artwork_dir), f"{slot}_{digest}{_extension(url)}")

    def _remove_stale(self, game_id: str, slot: str, keep: str) -> None:
        pattern = os.path.join(glob.escape(get_artwork_dir(game_id, self.artwork_dir)), f"{slot}_*")
        for old in glob.glob(pattern):
            if old != keep:
                try:
                    os.remove(old)
                except OSError as e:
                    logger.debug(f"[Images] Could not remove {old}: {e}")

    async def download(self, url: str, save_path: str) -> bool:
        """Download image from URL to local path"""
        session = await self._get_session()
        try:
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                if response.status != 200:
                    logger.warning(f"[Images] Failed to download {url}: HTTP {response.status}")
                    return False
                content = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"[Images] Error downloading {url}: {e}")
            return False

        os.makedirs(os.path.dirname(save_path), exist_ok=True)
        async with aiofiles.open(save_path, 'wb') as f:
            await f.write(content)
        logger.debug(f"[Images] Saved {save_path}")
        return True

    async def cache_image(self, game_id: str, slot: str, url: Optional[str]) -> Optional[str]:
        """Return a local path for the image, or the remote URL if it could not be saved."""
        if not url:
            return None
        path = self.path_for(game_id, slot, url)
        if os.path.exists(path):
            return path
        try:
            saved = await self.download(url, path)
        except OSError as e:
            logger.warning(f"[Images] Could not write {path}: {e}")
            saved = False
        if not saved:
            return url
        self._remove_stale(game_id, slot, path)
        return path

    async def cache_artwork(self, game_id: str, urls: Dict[str, Optional[str]]) -> Dict[str, Optional[str]]:
        """Cache several artwork slots in parallel. Returns slot -> local path or URL."""
        slots = list(urls)
        results = await asyncio.gather(*(self.cache_image(game_id, s, urls[s]) for s in slots))
        return dict(zip(slots, results))

    async def cache_screenshots(self, game_id: str, urls: List[str]) -> List[str]:
        results = await asyncio.gather(
            *(self.cache_image(game_id, f"screenshot_{i}", url) for i, url in enumerate(urls))
        )
        return [r for r in results if r]
