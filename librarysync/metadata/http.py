"""Shared aiohttp plumbing for the metadata providers.

Each provider owns one lazily created session with a certifi-backed SSL
context, and uses _request_json() for calls with a small 429 backoff.
"""
import asyncio
import logging
import ssl
from typing import Any, Dict, Optional

import aiohttp
import certifi

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"


class ProviderError(Exception):
    """A metadata provider returned an unexpected response."""

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(f"[{provider}] {message}")
        self.provider = provider
        self.status = status


class HttpProvider:
    """Base class for metadata providers that talk JSON over HTTP."""

    # Log tag, e.g. 'IGDB'
    name = "HTTP"

    def __init__(self, timeout: float = 10.0, backoff_factor: float = 0.5,
                 session: Optional[aiohttp.ClientSession] = None):
        self.timeout = timeout
        self.backoff_factor = backoff_factor
        self.session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self.session is None or self.session.closed:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            connector = aiohttp.TCPConnector(ssl=ssl_context, limit_per_host=5)
            self.session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": USER_AGENT}
            )
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        if self._owns_session and self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None

    async def _request_json(self, method: str, url: str, *,
                            params: Optional[Dict[str, Any]] = None,
                            json_body: Any = None,
                            data: Any = None,
                            headers: Optional[Dict[str, str]] = None,
                            max_retries: int = 3) -> Optional[Any]:
        """
        Perform a request and decode the JSON response.

        Returns:
            Decoded JSON on 200, None on 404

        Raises:
            ProviderError: on any other status, or when retries run out
            aiohttp.ClientError: on connection failures
        """
        session = await self._get_session()

        for attempt in range(max_retries):
            try:
                async with session.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    data=data,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as resp:
                    if resp.status == 200:
                        return await resp.json(content_type=None)
                    if resp.status == 404:
                        return None
                    if resp.status == 429:
                        wait_time = self.backoff_factor * (2 ** attempt)
                        logger.debug(f"[{self.name}] Rate limited, backing off {wait_time}s")
                        await asyncio.sleep(wait_time)
                        continue
                    raise ProviderError(self.name, f"HTTP {resp.status} for {url}", resp.status)

            except asyncio.TimeoutError:
                logger.debug(f"[{self.name}] Timeout for {url} (attempt {attempt + 1})")
                if attempt < max_retries - 1:
                    await asyncio.sleep(self.backoff_factor)
                    continue
                raise ProviderError(self.name, f"timed out after {max_retries} attempts: {url}")

        raise ProviderError(self.name, f"rate limited after {max_retries} attempts: {url}", 429)
