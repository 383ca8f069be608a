"""
Singleton Kakao Local client: the map/business directory provider.
"""
import asyncio
import math
import time
from typing import Any, Dict, List

from loguru import logger

from restaurant_intel.clients.base_client import HttpClient
from restaurant_intel.config import (
    AREA_MAX_PAGES,
    AREA_PAGE_SIZE,
    AREA_TOO_MANY_THRESHOLD,
    CATEGORY_CAFE,
    CATEGORY_RESTAURANT,
    KAKAO_API_KEY,
    KAKAO_TIMEOUT,
    KAKAO_URL,
    SEARCH_PAGE_SIZE,
    get_area_suggestions,
)
from restaurant_intel.models import AreaSearchResult, DirectoryPlace

AREA_CATEGORY_GROUPS = {
    "restaurant": [CATEGORY_RESTAURANT],
    "cafe": [CATEGORY_CAFE],
    "all": [CATEGORY_RESTAURANT, CATEGORY_CAFE],
}


def parse_place(doc: Dict[str, Any]) -> DirectoryPlace:
    """Convert one Kakao `documents` entry into a DirectoryPlace."""
    return DirectoryPlace(
        id=str(doc.get("id", "")),
        name=doc.get("place_name", ""),
        address=doc.get("address_name", ""),
        road_address=doc.get("road_address_name", ""),
        phone=doc.get("phone", ""),
        category=doc.get("category_name", ""),
        longitude=doc.get("x"),
        latitude=doc.get("y"),
        place_url=doc.get("place_url"),
    )


class KakaoClient(HttpClient):
    """
    Keyword search over Kakao Local, restricted to a category group
    (FD6 restaurants, CE7 cafés).
    """
    _instance = None
    _initialized = False

    name = "Kakao"
    timeout = KAKAO_TIMEOUT

    def __init__(self):
        super().__init__()
        self.api_key = KAKAO_API_KEY
        self.base_url = KAKAO_URL

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def _search_page(self, query: str, category_group: str, page: int, size: int) -> Dict[str, Any]:
        params = {
            "query": query,
            "category_group_code": category_group,
            "page": page,
            "size": size,
        }
        headers = {"Authorization": f"KakaoAK {self.api_key}"}
        return await self.get_json(self.base_url, params=params, headers=headers)

    async def search_by_text(self, query: str, category_group: str) -> List[DirectoryPlace]:
        """
        Free-text search within one category partition.

        Returns an empty list when no API key is configured.
        Raises ProviderError on transport failures.
        """
        if not self.is_available():
            logger.warning("KAKAO_API_KEY is not set, directory search disabled")
            return []

        start = time.perf_counter()
        logger.debug(f"▶️ Kakao search '{query}' ({category_group})")
        data = await self._search_page(query, category_group, page=1, size=SEARCH_PAGE_SIZE)
        places = [parse_place(doc) for doc in data.get("documents", [])]
        duration = time.perf_counter() - start
        logger.debug(f"✅ Kakao search '{query}' ({category_group}) → {len(places)} places in {duration:.2f}s")
        return places

    async def _search_area_group(self, area: str, category_group: str):
        """First page tells us the total; remaining pages are fetched concurrently."""
        first = await self._search_page(area, category_group, page=1, size=AREA_PAGE_SIZE)
        meta = first.get("meta", {})
        total = int(meta.get("total_count", 0))
        docs = list(first.get("documents", []))
        if total == 0 or total > AREA_TOO_MANY_THRESHOLD or meta.get("is_end", True):
            return total, docs

        pageable = int(meta.get("pageable_count", total))
        last_page = min(AREA_MAX_PAGES, math.ceil(pageable / AREA_PAGE_SIZE))
        pages = await asyncio.gather(*[
            self._search_page(area, category_group, page=p, size=AREA_PAGE_SIZE)
            for p in range(2, last_page + 1)
        ])
        for page in pages:
            docs.extend(page.get("documents", []))
        return total, docs

    async def search_area(self, area: str, category: str = "restaurant") -> AreaSearchResult:
        """
        Search every place of a category in an area.

        Args:
            area (str): Area text, e.g. "강남역" or "마포구 연남동".
            category (str): "restaurant", "cafe" or "all".

        Returns:
            AreaSearchResult: `not_found` for zero hits, `too_many` (with
            narrower suggestions) above the threshold, else `ready`.
        """
        if not self.is_available():
            logger.warning("KAKAO_API_KEY is not set, area search disabled")
            return AreaSearchResult(status="not_found", total_count=0, message="카카오 API 키가 설정되지 않았습니다.")

        groups = AREA_CATEGORY_GROUPS.get(category, [CATEGORY_RESTAURANT])
        logger.debug(f"▶️ Kakao area search '{area}' ({category})")
        results = await asyncio.gather(*[self._search_area_group(area, g) for g in groups])

        total = sum(count for count, _ in results)
        if total == 0:
            return AreaSearchResult(
                status="not_found",
                total_count=0,
                message=f'"{area}" 지역에서 식당을 찾을 수 없습니다.',
            )

        if total > AREA_TOO_MANY_THRESHOLD:
            suggestions = get_area_suggestions(area)
            logger.debug(f"🔎 Kakao area search '{area}' too broad: {total} places")
            return AreaSearchResult(
                status="too_many",
                total_count=total,
                suggestions=suggestions,
                message=f'"{area}" 지역에 식당이 {total}곳 있습니다. 범위를 좁혀주세요.',
            )

        seen = set()
        candidates = []
        for _, docs in results:
            for doc in docs:
                place = parse_place(doc)
                if place.id in seen:
                    continue
                seen.add(place.id)
                candidates.append(place)

        logger.debug(f"✅ Kakao area search '{area}' → {len(candidates)} places")
        return AreaSearchResult(
            status="ready",
            total_count=total,
            candidates=candidates,
            message=f'"{area}" 지역에서 {len(candidates)}곳을 찾았습니다.',
        )
