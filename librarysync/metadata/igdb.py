"""IGDB catalog metadata provider.

Queries the IGDB v4 API with Apicalypse bodies. Requests are authenticated
with a Twitch client id plus an app access token; when a client secret is
configured the token is obtained (and renewed) with the client-credentials
grant.
Reference: https://api-docs.igdb.com/#getting-started
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from .http import HttpProvider, ProviderError

logger = logging.getLogger(__name__)

IGDB_API_URL = "https://api.igdb.com/v4"
TWITCH_TOKEN_URL = "https://id.twitch.tv/oauth2/token"

IGDB_FIELDS = (
    "name, summary, rating, aggregated_rating, genres.name, "
    "involved_companies.company.name, involved_companies.developer, involved_companies.publisher, "
    "first_release_date, cover.url, screenshots.url"
)

# Renew this many seconds before the token actually expires
TOKEN_EXPIRY_MARGIN = 300

TokenCallback = Callable[[str, float], None]


def fix_image_url(url: Optional[str]) -> Optional[str]:
    """Make IGDB image URLs absolute https and cover-sized.

    Example:
        "//images.igdb.com/igdb/image/upload/t_thumb/co1wyy.jpg"
        -> "https://images.igdb.com/igdb/image/upload/t_cover_big/co1wyy.jpg"
    """
    if not url:
        return url
    if url.startswith("//"):
        url = f"https:{url}"
    return url.replace("t_thumb", "t_cover_big")


def _escape(title: str) -> str:
    return title.replace('\\', '\\\\').replace('"', '\\"')


def map_igdb_game(game: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce an IGDB game object to the fields the library stores."""
    companies = game.get('involved_companies') or []
    developer = next((c.get('company', {}).get('name') for c in companies if c.get('developer')), None)
    publisher = next((c.get('company', {}).get('name') for c in companies if c.get('publisher')), None)
    cover = game.get('cover') or {}

    return {
        'id': game.get('id'),
        'name': game.get('name'),
        'summary': game.get('summary'),
        'rating': game.get('rating'),
        'aggregated_rating': game.get('aggregated_rating'),
        'genres': [g.get('name') for g in game.get('genres') or [] if g.get('name')],
        'developer': developer,
        'publisher': publisher,
        'first_release_date': game.get('first_release_date'),
        'cover_url': fix_image_url(cover.get('url')),
        'screenshots': [fix_image_url(s.get('url')) for s in game.get('screenshots') or [] if s.get('url')],
    }


class IgdbClient(HttpProvider):
    """IGDB API client."""

    name = "IGDB"

    def __init__(self, client_id: Optional[str], client_secret: Optional[str] = None,
                 access_token: Optional[str] = None, token_expires_at: Optional[float] = None,
                 on_token_refresh: Optional[TokenCallback] = None, **kwargs):
        super().__init__(**kwargs)
        self.client_id = client_id
        self.client_secret = client_secret
        self.access_token = access_token
        self.token_expires_at = token_expires_at
        self.on_token_refresh = on_token_refresh

    @property
    def configured(self) -> bool:
        return bool(self.client_id and (self.access_token or self.client_secret))

    def _token_valid(self) -> bool:
        if not self.access_token:
            return False
        if self.token_expires_at is None:
            return True
        return time.time() < self.token_expires_at - TOKEN_EXPIRY_MARGIN

    async def _get_access_token(self) -> str:
        """Return a usable app token, requesting a new one when needed."""
        if self._token_valid():
            return self.access_token
        if not self.client_secret:
            raise ProviderError(self.name, "access token expired and no client secret configured")

        logger.info("[IGDB] Requesting new Twitch app access token")
        data = await self._request_json(
            "POST",
            TWITCH_TOKEN_URL,
            params={
                'client_id': self.client_id,
                'client_secret': self.client_secret,
                'grant_type': 'client_credentials',
            },
        )
        if not data or 'access_token' not in data:
            raise ProviderError(self.name, "token request returned no access_token")

        self.access_token = data['access_token']
        self.token_expires_at = time.time() + float(data.get('expires_in', 0))
        if self.on_token_refresh:
            self.on_token_refresh(self.access_token, self.token_expires_at)
        return self.access_token

    async def _query(self, body: str) -> List[Dict[str, Any]]:
        if not self.configured:
            raise ProviderError(self.name, "IGDB is not configured")

        for attempt in range(2):
            token = await self._get_access_token()
            try:
                result = await self._request_json(
                    "POST",
                    f"{IGDB_API_URL}/games",
                    data=body,
                    headers={
                        'Client-ID': self.client_id,
                        'Authorization': f'Bearer {token}',
                        'Content-Type': 'text/plain',
                    },
                )
                return result or []
            except ProviderError as e:
                # Token revoked or expired early - renew once
                if e.status == 401 and attempt == 0 and self.client_secret:
                    self.access_token = None
                    continue
                raise
        return []

    async def search(self, title: str) -> Optional[Dict[str, Any]]:
        """
        Search IGDB for a title and return the top hit.

        Returns:
            Mapped game dict, or None when nothing matches
        """
        games = await self._query(f'search "{_escape(title)}"; fields {IGDB_FIELDS}; limit 1;')
        if not games:
            logger.debug(f"[IGDB] No results for '{title}'")
            return None
        logger.debug(f"[IGDB] Found '{games[0].get('name')}' for '{title}'")
        return map_igdb_game(games[0])

    async def get_by_id(self, igdb_id: int) -> Optional[Dict[str, Any]]:
        """Fetch a game by its IGDB id."""
        games = await self._query(f'fields {IGDB_FIELDS}; where id = {int(igdb_id)};')
        if not games:
            return None
        return map_igdb_game(games[0])
