import asyncio
from typing import List, Optional, Tuple

from loguru import logger

from restaurant_intel.config import BATCH_DELAY, BATCH_SIZE, VIOLATION_RECENT_LIMIT
from restaurant_intel.matchers.address_matcher import parse_address
from restaurant_intel.models import (
    BulkHygieneEntry,
    BulkHygieneResult,
    DirectoryPlace,
    RegistryRecord,
    ViolationHistory,
)
from restaurant_intel.providers import RegistrySearch, ViolationRegistry

CLEAN_GRADES = ("AAA", "AA")


def region_of(place: DirectoryPlace) -> str:
    """District (sigungu) of the place's address, else its city/province."""
    parsed = parse_address(place.address or place.road_address)
    return parsed.sigungu or parsed.sido or ""


def match_filter(
    hygiene_filter: str,
    grade: Optional[RegistryRecord],
    violations: Optional[ViolationHistory],
) -> Tuple[bool, str]:
    """Whether a place passes `hygiene_filter`, and the reason shown for it."""
    if hygiene_filter == "all":
        return True, "전체 조회"

    if hygiene_filter == "clean":
        if grade is not None and grade.grade in CLEAN_GRADES and (violations is None or violations.total_count == 0):
            return True, f"{grade.grade} 등급, 행정처분 없음"
        return False, ""

    if hygiene_filter == "with_violations":
        if violations is not None and violations.total_count > 0:
            return True, f"행정처분 {violations.total_count}건"
        return False, ""

    if hygiene_filter == "no_grade":
        if grade is None or not grade.has_grade:
            return True, "위생등급 미등록"
        return False, ""

    return False, ""


class BulkHygieneService:
    """Hygiene grade and violation lookup for a list of places, filtered."""

    def __init__(self, registry: RegistrySearch, violations: ViolationRegistry):
        self.registry = registry
        self.violations = violations

    async def _lookup(self, place: DirectoryPlace):
        region = region_of(place)
        grade, violations = await asyncio.gather(
            self.registry.by_name_region(place.name, region),
            self.violations.for_restaurant(place.name, region, VIOLATION_RECENT_LIMIT),
            return_exceptions=True,
        )
        if isinstance(grade, Exception):
            logger.debug(f"⚠️ Grade lookup failed for '{place.name}': {grade}")
            grade = None
        if isinstance(violations, Exception):
            logger.debug(f"⚠️ Violation lookup failed for '{place.name}': {violations}")
            violations = None
        return place, grade, violations

    async def get_bulk_hygiene_info(
        self,
        places: List[DirectoryPlace],
        hygiene_filter: str = "all",
        limit: int = 10,
    ) -> BulkHygieneResult:
        """
        Look places up in batches and keep those matching `hygiene_filter`.

        Args:
            places (List[DirectoryPlace]): Places to check, in priority order.
            hygiene_filter (str): "all", "clean", "with_violations" or "no_grade".
            limit (int): Maximum number of matches to return. Once reached,
                         no further batches are started.

        Returns:
            BulkHygieneResult: how many places were checked and the matches.
        """
        results: List[BulkHygieneEntry] = []
        total_checked = 0

        for i in range(0, len(places), BATCH_SIZE):
            if len(results) >= limit:
                break
            batch = places[i:i + BATCH_SIZE]
            logger.debug(f"📦 Bulk hygiene batch {i // BATCH_SIZE + 1}: {len(batch)} places")

            for place, grade, violations in await asyncio.gather(*[self._lookup(p) for p in batch]):
                total_checked += 1
                matches, reason = match_filter(hygiene_filter, grade, violations)
                if matches and len(results) < limit:
                    results.append(BulkHygieneEntry(
                        place=place,
                        hygiene_grade=grade,
                        violations=violations,
                        match_reason=reason,
                    ))

            if i + BATCH_SIZE < len(places) and len(results) < limit:
                await asyncio.sleep(BATCH_DELAY)

        return BulkHygieneResult(total_checked=total_checked, matched_count=len(results), results=results)
