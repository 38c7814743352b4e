"""ProtonDB compatibility tier provider.

ProtonDB is keyed by Steam app id only. Titles without one are skipped;
there is no title search.
"""
import logging
from typing import Any, Dict, Optional

from .http import HttpProvider

logger = logging.getLogger(__name__)

PROTONDB_SUMMARY_URL = "https://www.protondb.com/api/v1/reports/summaries"

PROTONDB_TIERS = ['platinum', 'gold', 'silver', 'bronze', 'borked', 'pending', 'native']


def normalize_tier(tier: Optional[str]) -> str:
    """Lowercase a tier name, mapping anything unrecognised to 'unknown'"""
    value = (tier or '').lower()
    return value if value in PROTONDB_TIERS else 'unknown'


class ProtonDbClient(HttpProvider):
    """ProtonDB summary client."""

    name = "ProtonDB"

    async def get_summary(self, steam_app_id: int) -> Optional[Dict[str, Any]]:
        """
        Get the report summary for a Steam app.

        Returns:
            Dict with tier, confidence, trending_tier and score, or None when
            ProtonDB has no reports (404 or no tier)
        """
        data = await self._request_json("GET", f"{PROTONDB_SUMMARY_URL}/{int(steam_app_id)}.json")
        if not data:
            logger.debug(f"[ProtonDB] No data for appId {steam_app_id}")
            return None

        tier = data.get('tier') or data.get('bestReportedTier')
        if not tier:
            logger.debug(f"[ProtonDB] No tier data for appId {steam_app_id}")
            return None

        return {
            'tier': normalize_tier(tier),
            'confidence': data.get('confidence') or 'unknown',
            'trending_tier': normalize_tier(data['trendingTier']) if data.get('trendingTier') else None,
            'score': data.get('score'),
        }
