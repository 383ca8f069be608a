"""
Side-by-side comparison of 2-5 restaurants.
"""
import asyncio
from typing import List, Optional

from loguru import logger

from restaurant_intel.errors import CompareValidationError
from restaurant_intel.models import (
    GRADE_RANK,
    ComparedRestaurant,
    CompareRequest,
    CompareResult,
    ComparisonAnalysis,
    ComparisonResult,
    RestaurantIntelligence,
)
from restaurant_intel.resolver import IdentityResolver

MIN_RESTAURANTS = 2
MAX_RESTAURANTS = 5
MIN_CRITERIA = 1
MAX_CRITERIA = 4
CRITERIA = ("hygiene", "rating", "price", "reviews")

PRICE_WEIGHTS = {"low": 1.0, "medium": 1.5, "high": 2.0}
UNKNOWN_PRICE_WEIGHT = 1.5


def validate_request(request: CompareRequest) -> None:
    restaurants = request.restaurants or []
    if len(restaurants) < MIN_RESTAURANTS:
        raise CompareValidationError(f"최소 {MIN_RESTAURANTS}개의 식당이 필요합니다.")
    if len(restaurants) > MAX_RESTAURANTS:
        raise CompareValidationError(f"최대 {MAX_RESTAURANTS}개의 식당까지 비교할 수 있습니다.")

    for r in restaurants:
        if not r.name or not r.name.strip():
            raise CompareValidationError("식당명은 필수입니다.")
        if not r.region or not r.region.strip():
            raise CompareValidationError("지역명은 필수입니다.")

    if request.criteria is not None:
        if len(request.criteria) < MIN_CRITERIA:
            raise CompareValidationError(f"최소 {MIN_CRITERIA}개의 비교 항목이 필요합니다.")
        if len(request.criteria) > MAX_CRITERIA:
            raise CompareValidationError(f"최대 {MAX_CRITERIA}개의 비교 항목까지 선택할 수 있습니다.")
        for c in request.criteria:
            if c not in CRITERIA:
                raise CompareValidationError(f"유효하지 않은 비교 항목: {c}")


def to_compared(intelligence: RestaurantIntelligence) -> ComparedRestaurant:
    ratings = intelligence.ratings
    return ComparedRestaurant(
        name=intelligence.name,
        address=intelligence.address,
        grade=intelligence.hygiene.grade,
        star_rating=intelligence.hygiene.star_rating,
        has_violations=intelligence.hygiene.has_violations,
        kakao_rating=ratings.score_for("kakao"),
        naver_rating=ratings.score_for("naver"),
        combined_rating=ratings.combined,
        review_count=ratings.review_count,
        price_range=intelligence.price_range,
        scores=intelligence.scores,
    )


def find_best_hygiene(restaurants: List[ComparedRestaurant]) -> Optional[str]:
    """Highest hygiene score, then higher grade; the first listed wins a full tie."""
    best = None
    for r in restaurants:
        if best is None:
            best = r
        elif r.scores.hygiene > best.scores.hygiene:
            best = r
        elif r.scores.hygiene == best.scores.hygiene and GRADE_RANK.get(r.grade, 0) > GRADE_RANK.get(best.grade, 0):
            best = r
    return best.name if best else None


def find_best_rating(restaurants: List[ComparedRestaurant]) -> Optional[str]:
    """Highest combined rating (none counts as 0), then more reviews."""
    best = None
    for r in restaurants:
        score = r.combined_rating or 0
        if best is None:
            best = r
            continue
        best_score = best.combined_rating or 0
        if score > best_score or (score == best_score and r.review_count > best.review_count):
            best = r
    return best.name if best else None


def find_best_value(restaurants: List[ComparedRestaurant]) -> Optional[str]:
    """Overall score per price weight; the first maximum wins."""
    best = None
    best_value = -1.0
    for r in restaurants:
        value = r.scores.overall / PRICE_WEIGHTS.get(r.price_range, UNKNOWN_PRICE_WEIGHT)
        if value > best_value:
            best, best_value = r, value
    return best.name if best else None


def build_recommendation(
    restaurants: List[ComparedRestaurant],
    best_hygiene: Optional[str],
    best_rating: Optional[str],
    best_value: Optional[str],
) -> str:
    if not restaurants:
        return "비교할 식당 정보가 없습니다."

    best_overall = restaurants[0]
    for r in restaurants[1:]:
        if r.scores.overall > best_overall.scores.overall:
            best_overall = r

    if best_hygiene == best_rating == best_overall.name:
        return f'위생과 평점 모두 고려 시 "{best_overall.name}" 추천'

    clauses = []
    if best_hygiene:
        clauses.append(f'위생 중시: "{best_hygiene}"')
    if best_rating and best_rating != best_hygiene:
        clauses.append(f'평점 중시: "{best_rating}"')
    if best_value and best_value not in (best_hygiene, best_rating):
        clauses.append(f'가성비: "{best_value}"')

    if clauses:
        return f'{", ".join(clauses)}. 종합적으로 "{best_overall.name}" 추천'
    return f'종합적으로 "{best_overall.name}" 추천'


def analyze(restaurants: List[ComparedRestaurant], criteria: List[str]) -> ComparisonAnalysis:
    best_hygiene = find_best_hygiene(restaurants) if "hygiene" in criteria else None
    best_rating = find_best_rating(restaurants) if "rating" in criteria else None
    best_value = find_best_value(restaurants) if "price" in criteria else None
    return ComparisonAnalysis(
        best_hygiene=best_hygiene,
        best_rating=best_rating,
        best_value=best_value,
        recommendation=build_recommendation(restaurants, best_hygiene, best_rating, best_value),
    )


class Comparator:
    def __init__(self, resolver: IdentityResolver):
        self.resolver = resolver

    async def _resolve_safe(self, name: str, region: str) -> Optional[RestaurantIntelligence]:
        try:
            return await self.resolver.resolve(name, region)
        except Exception as e:
            logger.debug(f"⚠️ Comparison lookup failed for '{name}' ({region}): {e}")
            return None

    async def compare(self, request: CompareRequest) -> CompareResult:
        """
        Resolve every restaurant concurrently and compare the ones found.

        Raises:
            CompareValidationError: before any lookup, on an invalid request.
        """
        validate_request(request)
        criteria = list(request.criteria) if request.criteria is not None else list(CRITERIA)

        results = await asyncio.gather(*[self._resolve_safe(r.name, r.region) for r in request.restaurants])

        found, not_found, resolved = [], [], []
        for query, intelligence in zip(request.restaurants, results):
            if intelligence is None:
                not_found.append(query.name)
            else:
                found.append(query.name)
                resolved.append(intelligence)

        if len(resolved) < MIN_RESTAURANTS:
            if not found:
                message = "비교할 식당을 찾을 수 없습니다."
            else:
                message = f'"{found[0]}"만 찾았습니다. 비교를 위해 최소 {MIN_RESTAURANTS}개의 식당이 필요합니다.'
            return CompareResult(status="partial", message=message, found=found, not_found=not_found)

        compared = [to_compared(i) for i in resolved]
        status = "complete" if not not_found else "partial"
        message = f"{len(found)}개 식당 비교 완료"
        if not_found:
            message += f" ({len(not_found)}개 식당 미발견: {', '.join(not_found)})"

        return CompareResult(
            status=status,
            message=message,
            found=found,
            not_found=not_found,
            comparison=ComparisonResult(restaurants=compared, analysis=analyze(compared, criteria)),
        )
