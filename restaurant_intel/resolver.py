"""
Identity resolution across the directory, the hygiene registry and the
ratings provider, and assembly of the RestaurantIntelligence snapshot.
"""
import asyncio
import time
from typing import List, Optional, Sequence

from loguru import logger

from restaurant_intel.cache import CacheService, build_cache_key, with_cache_nullable
from restaurant_intel.config import (
    CATEGORY_CAFE,
    CATEGORY_RESTAURANT,
    DIRECTORY_MAX_RESULTS,
    MAX_AMBIGUOUS_CANDIDATES,
    TTL_INTELLIGENCE,
    VIOLATION_RECENT_LIMIT,
)
from restaurant_intel.errors import ProviderError
from restaurant_intel.matchers.address_matcher import match_address
from restaurant_intel.models import (
    DirectoryPlace,
    HygieneInfo,
    HygieneLookupData,
    HygieneLookupResult,
    LookupCandidate,
    LookupFailure,
    PlatformRating,
    RatingMatch,
    RegistryRecord,
    Resolution,
    RestaurantIntelligence,
    ViolationHistory,
)
from restaurant_intel.providers import DirectorySearch, RatingsProvider, RegistrySearch, ViolationRegistry
from restaurant_intel.scoring import build_rating_info, compute_scores


async def search_directory(directory: DirectorySearch, name: str, region: str) -> List[DirectoryPlace]:
    """
    Query the restaurant and café partitions concurrently, dedupe by place id
    and keep the first few. A failed partition contributes nothing.
    """
    query = f"{name} {region}"
    results = await asyncio.gather(
        directory.search_by_text(query, CATEGORY_RESTAURANT),
        directory.search_by_text(query, CATEGORY_CAFE),
        return_exceptions=True,
    )

    seen = set()
    places = []
    for result in results:
        if isinstance(result, Exception):
            logger.debug(f"⚠️ Directory partition failed for '{query}': {result}")
            continue
        for place in result:
            if place.id in seen:
                continue
            seen.add(place.id)
            places.append(place)
    return places[:DIRECTORY_MAX_RESULTS]


class DirectoryStrategy:
    """Primary source: the map directory. The first hit is the most relevant one."""
    source = "directory"

    def __init__(self, directory: DirectorySearch):
        self.directory = directory

    async def resolve(self, name: str, region: str) -> Resolution:
        places = await search_directory(self.directory, name, region)
        if not places:
            return Resolution.not_found()
        return Resolution(status="found", identity=places[0].to_identity(), source=self.source)


class RegistryExactStrategy:
    """Registry record matching both name and region."""
    source = "registry_exact"

    def __init__(self, registry: RegistrySearch):
        self.registry = registry

    async def resolve(self, name: str, region: str) -> Resolution:
        record = await self.registry.by_name_region(name, region)
        if record is None:
            return Resolution.not_found()
        return Resolution(status="found", identity=record.to_identity(), registry_record=record, source=self.source)


class RegistryNameStrategy:
    """
    Broader registry search by name.

    Args:
        registry: Registry provider.
        within_region (bool): Keep only records whose address matches the region.
        pick_first (bool): Use the first record when several match instead of
                           reporting the match as ambiguous.
    """
    source = "registry_name"

    def __init__(self, registry: RegistrySearch, within_region: bool = False, pick_first: bool = True):
        self.registry = registry
        self.within_region = within_region
        self.pick_first = pick_first

    async def resolve(self, name: str, region: str) -> Resolution:
        records = await self.registry.by_name(name)
        if self.within_region:
            records = [r for r in records if match_address(r.address, region)]

        if not records:
            return Resolution.not_found()
        if len(records) > 1 and not self.pick_first:
            return Resolution(status="ambiguous", candidates=list(records), source=self.source)

        record = records[0]
        return Resolution(status="found", identity=record.to_identity(), registry_record=record, source=self.source)


async def run_strategies(strategies: Sequence, name: str, region: str) -> Resolution:
    """The first outcome that is not `not_found` wins."""
    for strategy in strategies:
        resolution = await strategy.resolve(name, region)
        if resolution.status != "not_found":
            logger.debug(f"🔎 '{name}' ({region}) resolved via {strategy.source}: {resolution.status}")
            return resolution
    return Resolution.not_found()


class IdentityResolver:
    """
    Builds RestaurantIntelligence snapshots for (name, region) queries.

    Provider failures never escape `resolve`; each secondary lookup falls back
    to "no grade", "no violations" or "no rating".
    """

    def __init__(
        self,
        directory: DirectorySearch,
        registry: RegistrySearch,
        violations: ViolationRegistry,
        ratings: Optional[RatingsProvider] = None,
        cache: Optional[CacheService] = None,
    ):
        self.directory = directory
        self.registry = registry
        self.violations = violations
        self.ratings = ratings
        self.cache = cache
        self.strategies = [
            DirectoryStrategy(directory),
            RegistryExactStrategy(registry),
            RegistryNameStrategy(registry, within_region=False, pick_first=True),
        ]

    async def resolve(self, name: str, region: str) -> Optional[RestaurantIntelligence]:
        if not name or not name.strip() or not region or not region.strip():
            return None

        key = build_cache_key("intelligence", name, region)
        try:
            return await with_cache_nullable(self.cache, key, TTL_INTELLIGENCE, lambda: self._build(name, region))
        except Exception as e:
            # failed builds are never cached
            logger.debug(f"⚠️ Resolution failed for '{name}' ({region}): {e}")
            return None

    async def _grade(self, resolution: Resolution, name: str, region: str) -> Optional[RegistryRecord]:
        if resolution.registry_record is not None:
            return resolution.registry_record
        return await self.registry.by_name_region(name, region)

    async def _rating(self, name: str, address: str) -> Optional[RatingMatch]:
        if self.ratings is None:
            return None
        return await self.ratings.search(name, address)

    async def _build(self, name: str, region: str) -> Optional[RestaurantIntelligence]:
        start = time.perf_counter()
        resolution = await run_strategies(self.strategies, name, region)

        if not resolution.is_found:
            logger.debug(f"📭 No restaurant found for '{name}' ({region})")
            return None

        identity = resolution.identity
        grade_result, violation_result, rating_result = await asyncio.gather(
            self._grade(resolution, name, region),
            self.violations.for_restaurant(name, region, VIOLATION_RECENT_LIMIT),
            self._rating(name, identity.address),
            return_exceptions=True,
        )

        if isinstance(grade_result, Exception):
            logger.debug(f"⚠️ Hygiene grade lookup failed for '{name}': {grade_result}")
            grade_result = None
        if isinstance(violation_result, Exception):
            logger.debug(f"⚠️ Violation lookup failed for '{name}': {violation_result}")
            violation_result = ViolationHistory.empty()
        if isinstance(rating_result, Exception):
            logger.debug(f"⚠️ Rating lookup failed for '{name}': {rating_result}")
            rating_result = None

        grade = grade_result.grade if grade_result is not None else None
        hygiene = HygieneInfo.build(grade, violation_result.total_count)

        # The directory exposes no ratings, so its platform entry is always empty
        platforms = [PlatformRating(platform="kakao", score=None, review_count=0)]
        if rating_result is not None:
            platforms.append(PlatformRating(
                platform="naver",
                score=rating_result.score,
                review_count=rating_result.review_count,
            ))
        ratings = build_rating_info(*platforms)

        intelligence = RestaurantIntelligence(
            identity=identity,
            hygiene=hygiene,
            ratings=ratings,
            price_range=rating_result.price_range if rating_result else None,
            business_hours=rating_result.business_hours if rating_result else None,
            scores=compute_scores(hygiene, ratings),
        )
        logger.debug(
            f"✅ Intelligence for '{name}' ({region}) via {resolution.source} "
            f"in {time.perf_counter() - start:.2f}s"
        )
        return intelligence

    async def lookup_restaurant_hygiene(
        self, name: str, region: str, include_history: bool = True
    ) -> HygieneLookupResult:
        """
        Registry-only lookup of one restaurant's hygiene grade and violations.

        Unlike `resolve`, an ambiguous name is reported back with candidates
        rather than silently narrowed, and provider failures are reported as
        API_ERROR. Nothing is raised.
        """
        strategies = [
            RegistryExactStrategy(self.registry),
            RegistryNameStrategy(self.registry, within_region=True, pick_first=False),
        ]
        try:
            resolution = await run_strategies(strategies, name, region)

            if resolution.status == "not_found":
                return HygieneLookupResult(success=False, error=LookupFailure(
                    code="NOT_FOUND",
                    message=(
                        f'"{name}" ({region})에 해당하는 식당을 찾을 수 없습니다. '
                        f"위생등급이 부여되지 않은 식당이거나 검색 조건을 확인해주세요."
                    ),
                ))

            if resolution.status == "ambiguous":
                candidates = [
                    LookupCandidate(name=r.name, address=r.address, grade=r.grade or "등급없음")
                    for r in resolution.candidates[:MAX_AMBIGUOUS_CANDIDATES]
                ]
                return HygieneLookupResult(success=False, error=LookupFailure(
                    code="MULTIPLE_RESULTS",
                    message=(
                        f'"{name}" ({region})에 해당하는 식당이 {len(resolution.candidates)}곳 있습니다. '
                        f"더 구체적인 이름이나 지역을 입력해주세요."
                    ),
                    candidates=candidates,
                ))

            record = resolution.registry_record
            if include_history:
                violations = await self.violations.for_restaurant(record.name, region, VIOLATION_RECENT_LIMIT)
            else:
                violations = ViolationHistory.empty()

            return HygieneLookupResult(success=True, data=HygieneLookupData(
                restaurant=resolution.identity,
                hygiene_grade=record,
                violations=violations,
            ))
        except ProviderError as e:
            logger.debug(f"⚠️ Hygiene lookup API error for '{name}': {e}")
            return HygieneLookupResult(success=False, error=LookupFailure(
                code="API_ERROR",
                message=f"API 오류가 발생했습니다: {e.args[0]} (코드: {e.code})",
            ))
        except Exception as e:
            logger.debug(f"⚠️ Hygiene lookup failed for '{name}': {e}")
            return HygieneLookupResult(success=False, error=LookupFailure(
                code="UNKNOWN_ERROR",
                message=f"알 수 없는 오류가 발생했습니다: {e}",
            ))
