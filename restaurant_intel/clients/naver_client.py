"""
Singleton Naver local-search client: the consumer ratings provider.
"""
import re
import time
from typing import Any, Dict, List, Optional

from loguru import logger

from restaurant_intel.cache import CacheService, build_cache_key, with_cache_nullable
from restaurant_intel.clients.base_client import HttpClient
from restaurant_intel.config import (
    NAVER_CLIENT_ID,
    NAVER_CLIENT_SECRET,
    NAVER_MAX_RESULTS,
    NAVER_TIMEOUT,
    NAVER_URL,
    TTL_RATINGS,
)
from restaurant_intel.matchers.rating_matcher import find_best_rating_match, strip_html
from restaurant_intel.models import RatingMatch

HIGH_PRICE_KEYWORDS = ("파인다이닝", "오마카세", "코스요리", "스테이크", "한우", "와인바", "프렌치", "이탈리안")
LOW_PRICE_KEYWORDS = ("분식", "김밥", "떡볶이", "컵밥", "도시락", "패스트푸드", "편의점")

_PLACE_ID = re.compile(r"place/(\d+)")


def estimate_price_range(category: str, description: str = "") -> str:
    """Guess a price tier from the category and description; anything unrecognized is medium."""
    texts = ((category or "").lower(), (description or "").lower())
    if any(k in text for k in HIGH_PRICE_KEYWORDS for text in texts):
        return "high"
    if any(k in text for k in LOW_PRICE_KEYWORDS for text in texts):
        return "low"
    return "medium"


def parse_item(item: Dict[str, Any]) -> RatingMatch:
    """
    Convert one Naver local-search item. The public API exposes neither score
    nor review count, so those stay empty.
    """
    link = item.get("link") or ""
    match = _PLACE_ID.search(link)
    place_id = match.group(1) if match else f"naver-{item.get('mapx', '')}-{item.get('mapy', '')}"
    category = item.get("category", "")
    return RatingMatch(
        id=place_id,
        name=strip_html(item.get("title", "")),
        address=item.get("roadAddress") or item.get("address", ""),
        category=category,
        score=None,
        review_count=0,
        price_range=estimate_price_range(category, item.get("description", "")),
        business_hours=None,
    )


class NaverClient(HttpClient):
    """Looks a restaurant up on Naver and keeps the best-scoring candidate."""
    _instance = None
    _initialized = False

    name = "Naver"
    timeout = NAVER_TIMEOUT

    def __init__(self, cache: Optional[CacheService] = None):
        super().__init__()
        self.client_id = NAVER_CLIENT_ID
        self.client_secret = NAVER_CLIENT_SECRET
        self.base_url = NAVER_URL
        if cache is not None:
            self.cache = cache
        elif not hasattr(self, "cache"):
            self.cache = None

    def is_available(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def _search_raw(self, query: str) -> List[RatingMatch]:
        headers = {
            "X-Naver-Client-Id": self.client_id,
            "X-Naver-Client-Secret": self.client_secret,
        }
        params = {"query": query, "display": NAVER_MAX_RESULTS, "sort": "random"}
        data = await self.get_json(self.base_url, params=params, headers=headers)
        return [parse_item(item) for item in data.get("items", [])]

    async def search(self, name: str, address: str) -> Optional[RatingMatch]:
        """
        Find the Naver listing for a restaurant.

        Returns None when no candidate scores high enough, or when no
        credentials are configured. Raises ProviderError on transport
        failures (failures are not cached).
        """
        if not self.is_available():
            logger.warning("NAVER_CLIENT_ID/NAVER_CLIENT_SECRET are not set, ratings lookup disabled")
            return None

        async def fetch() -> Optional[RatingMatch]:
            start = time.perf_counter()
            logger.debug(f"▶️ Naver search '{name}' @ '{address}'")
            candidates = await self._search_raw(f"{name} {address}".strip())
            best = find_best_rating_match(candidates, name, address)
            duration = time.perf_counter() - start
            logger.debug(
                f"✅ Naver search '{name}' → {best.name if best else 'no match'} "
                f"({len(candidates)} candidates) in {duration:.2f}s"
            )
            return best

        key = build_cache_key("naver", name, address)
        return await with_cache_nullable(self.cache, key, TTL_RATINGS, fetch)
