"""HowLongToBeat completion time provider.

HLTB has no official API; this uses the JSON endpoint its website calls.
Search results are matched against the library title by normalized
Levenshtein similarity and anything under MIN_SIMILARITY is rejected, even
when it is the only result.
"""
import logging
from typing import Any, Dict, List, Optional

from .http import HttpProvider
from ..utils.titles import clean_title, title_similarity

logger = logging.getLogger(__name__)

HLTB_SEARCH_URL = "https://howlongtobeat.com/api/search"
HLTB_GAME_URL = "https://howlongtobeat.com/api/game"

MIN_SIMILARITY = 0.5

HLTB_HEADERS = {
    'Content-Type': 'application/json',
    'Accept': '*/*',
    'Accept-Language': 'en-US,en;q=0.9',
    'Origin': 'https://howlongtobeat.com',
    'Referer': 'https://howlongtobeat.com/',
}


def seconds_to_hours(seconds: Any) -> Optional[int]:
    """HLTB reports times in seconds; the library stores whole hours."""
    if not seconds:
        return None
    # half-up, so 2.5 hours shows as 3
    return int(float(seconds) / 3600 + 0.5)


def build_search_payload(title: str) -> Dict[str, Any]:
    return {
        'searchType': 'games',
        'searchTerms': title.split(),
        'searchPage': 1,
        'size': 20,
        'searchOptions': {
            'games': {
                'userId': 0,
                'platform': '',
                'sortCategory': 'popular',
                'rangeCategory': 'main',
                'rangeTime': {'min': 0, 'max': 0},
                'gameplay': {'perspective': '', 'flow': '', 'genre': ''},
                'modifier': '',
            },
            'users': {'sortCategory': 'postcount'},
            'filter': '',
            'sort': 0,
            'randomizer': 0,
        },
    }


def find_best_match(title: str, results: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Pick the most similar result, discarding anything below MIN_SIMILARITY."""
    best = None
    best_score = -1.0
    for result in results:
        score = title_similarity(title, result.get('game_name') or '')
        if score < MIN_SIMILARITY:
            continue
        if score > best_score:
            best, best_score = result, score
    if best is not None:
        logger.debug(f"[HLTB] Matched '{best.get('game_name')}' for '{title}' (similarity {best_score:.2f})")
    return best


def map_hltb_result(result: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'game_id': result.get('game_id'),
        'game_name': result.get('game_name'),
        'main': seconds_to_hours(result.get('comp_main')),
        'main_extra': seconds_to_hours(result.get('comp_plus')),
        'completionist': seconds_to_hours(result.get('comp_100')),
        'all_styles': seconds_to_hours(result.get('comp_all')),
    }


class HltbClient(HttpProvider):
    """HowLongToBeat search client."""

    name = "HLTB"

    async def search(self, title: str) -> Optional[Dict[str, Any]]:
        """
        Find completion times for a title.

        Returns:
            Dict with game_id, game_name and main/main_extra/completionist
            hours, or None when no result is similar enough
        """
        cleaned = clean_title(title)
        data = await self._request_json(
            "POST", HLTB_SEARCH_URL,
            json_body=build_search_payload(cleaned),
            headers=HLTB_HEADERS,
        )
        results = (data or {}).get('data') or []
        if not results:
            logger.debug(f"[HLTB] No results for '{title}'")
            return None

        match = find_best_match(cleaned, results)
        if match is None:
            logger.debug(f"[HLTB] No good match for '{title}'")
            return None
        return map_hltb_result(match)

    async def get_by_id(self, hltb_id: int) -> Optional[Dict[str, Any]]:
        """Fetch completion times for a known HLTB game id."""
        data = await self._request_json("GET", f"{HLTB_GAME_URL}/{int(hltb_id)}", headers=HLTB_HEADERS)
        results = (data or {}).get('data') or []
        if not results:
            return None
        return map_hltb_result(results[0])
