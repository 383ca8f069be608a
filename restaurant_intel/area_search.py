import asyncio
from typing import List, Optional

from loguru import logger

from restaurant_intel.models import (
    GRADE_RANK,
    AreaSummary,
    DirectoryPlace,
    EnhancedAreaResult,
    EnhancedPlace,
    RestaurantIntelligence,
)
from restaurant_intel.providers import DirectorySearch
from restaurant_intel.resolver import IdentityResolver
from restaurant_intel.scoring import round_half_up


def enhance_place(place: DirectoryPlace, intelligence: Optional[RestaurantIntelligence]) -> EnhancedPlace:
    if intelligence is None:
        return EnhancedPlace(place=place)
    return EnhancedPlace(
        place=place,
        hygiene=intelligence.hygiene,
        ratings=intelligence.ratings,
        price_range=intelligence.price_range,
        business_hours=intelligence.business_hours,
    )


def filter_places(
    places: List[EnhancedPlace],
    min_rating: Optional[float] = None,
    hygiene_grades: Optional[List[str]] = None,
) -> List[EnhancedPlace]:
    """Places without a rating fail a min_rating filter; ungraded ones fail a grade filter."""
    filtered = list(places)
    if min_rating:
        filtered = [p for p in filtered if p.combined_rating is not None and p.combined_rating >= min_rating]
    if hygiene_grades:
        filtered = [p for p in filtered if p.grade is not None and p.grade in hygiene_grades]
    return filtered


def sort_places(places: List[EnhancedPlace], sort_by: Optional[str]) -> List[EnhancedPlace]:
    # No coordinates of the user are known, so "distance" keeps directory order
    if sort_by == "rating":
        return sorted(places, key=lambda p: p.combined_rating or 0, reverse=True)
    if sort_by == "hygiene":
        return sorted(places, key=lambda p: GRADE_RANK.get(p.grade, 0), reverse=True)
    if sort_by == "reviews":
        return sorted(places, key=lambda p: p.ratings.review_count if p.ratings else 0, reverse=True)
    return list(places)


def summarize(places: List[EnhancedPlace]) -> AreaSummary:
    ratings = [p.combined_rating for p in places if p.combined_rating is not None]
    avg_rating = round_half_up(sum(ratings) / len(ratings), 1) if ratings else None

    distribution = {"AAA": 0, "AA": 0, "A": 0}
    for p in places:
        if p.grade in distribution:
            distribution[p.grade] += 1

    clean = sum(1 for p in places if p.grade and not p.hygiene.has_violations)
    clean_ratio = f"{int(round_half_up(clean / len(places) * 100))}%" if places else "0%"

    return AreaSummary(
        avg_rating=avg_rating,
        with_hygiene_grade=sum(distribution.values()),
        clean_ratio=clean_ratio,
        grade_distribution=distribution,
    )


class AreaSearchService:
    """Directory area search with every candidate enriched by the resolver."""

    def __init__(self, directory: DirectorySearch, resolver: IdentityResolver):
        self.directory = directory
        self.resolver = resolver

    async def _resolve_safe(self, name: str, area: str) -> Optional[RestaurantIntelligence]:
        try:
            return await self.resolver.resolve(name, area)
        except Exception as e:
            logger.debug(f"⚠️ Enrichment failed for '{name}' ({area}): {e}")
            return None

    async def search_area(
        self,
        area: str,
        category: str = "restaurant",
        min_rating: Optional[float] = None,
        hygiene_grades: Optional[List[str]] = None,
        sort_by: Optional[str] = None,
    ) -> EnhancedAreaResult:
        """
        Search an area and attach hygiene/rating data to each place.

        Only a `ready` directory answer is enriched; `not_found` and
        `too_many` are passed through without any further lookups. A failing
        directory is reported as `not_found`.
        """
        try:
            base = await self.directory.search_area(area, category)
        except Exception as e:
            logger.debug(f"⚠️ Area search failed for '{area}': {e}")
            return EnhancedAreaResult(status="not_found", total_count=0, message=f'"{area}" 지역 검색에 실패했습니다.')

        if base.status == "not_found":
            return EnhancedAreaResult(status="not_found", total_count=0, message=base.message)

        if base.status == "too_many":
            return EnhancedAreaResult(
                status="too_many",
                total_count=base.total_count,
                suggestions=list(base.suggestions),
                message=base.message,
            )

        intelligences = await asyncio.gather(*[self._resolve_safe(p.name, area) for p in base.candidates])
        enhanced = [enhance_place(p, intel) for p, intel in zip(base.candidates, intelligences)]

        places = sort_places(filter_places(enhanced, min_rating, hygiene_grades), sort_by)
        return EnhancedAreaResult(
            status="ready",
            total_count=len(places),
            restaurants=places,
            summary=summarize(enhanced),
            message=f'"{area}" 지역에서 {len(places)}개의 식당을 찾았습니다.',
        )
