"""
Condition-based restaurant recommendation.

Candidates come from an area search, are narrowed by category and budget,
scored with one of three fixed weight profiles and returned best first.
"""
import asyncio
import math
from typing import List, Optional

from loguru import logger

from restaurant_intel.area_search import AreaSearchService
from restaurant_intel.errors import RecommendValidationError
from restaurant_intel.models import (
    EnhancedPlace,
    RecommendedRestaurant,
    RecommendRequest,
    RecommendResult,
    RecommendScores,
    RestaurantIntelligence,
    ScoreWeights,
    stars_for_grade,
)
from restaurant_intel.resolver import IdentityResolver
from restaurant_intel.scoring import grade_base_score, popularity_score, round_half_up

MIN_LIMIT = 1
MAX_LIMIT = 10

PRIORITY_WEIGHTS = {
    "hygiene": ScoreWeights(hygiene=0.50, rating=0.20, reviews=0.10, violation_penalty=0.20, purpose=0.20),
    "rating": ScoreWeights(hygiene=0.20, rating=0.50, reviews=0.15, violation_penalty=0.10, purpose=0.15),
    "balanced": ScoreWeights(hygiene=0.35, rating=0.35, reviews=0.10, violation_penalty=0.15, purpose=0.15),
}
PRIORITY_LABELS = {"hygiene": "위생 우선", "rating": "평점 우선", "balanced": "균형 모드"}

BUDGETS = ("low", "medium", "high", "any")

CATEGORY_KEYWORDS = {
    "한식": ["한식", "한정식", "국밥", "찌개", "불고기", "갈비", "비빔밥", "삼겹살"],
    "중식": ["중식", "중국", "짜장", "짬뽕", "탕수육", "양꼬치"],
    "일식": ["일식", "일본", "초밥", "스시", "라멘", "우동", "돈까스", "사시미"],
    "양식": ["양식", "이탈리안", "파스타", "스테이크", "피자", "프렌치", "햄버거"],
    "카페": ["카페", "커피", "디저트", "베이커리", "케이크"],
}
ALL_CATEGORIES = "전체"

PURPOSE_PREFERENCES = {
    "회식": ["한식", "고기", "삼겹살", "회", "일식", "곱창", "돼지고기", "소고기"],
    "데이트": ["이탈리안", "프렌치", "분위기", "와인", "스테이크", "파스타", "양식"],
    "가족모임": ["한정식", "중식", "뷔페", "한식", "갈비", "정식"],
    "혼밥": ["라멘", "덮밥", "국수", "분식", "우동", "카레", "백반"],
    "비즈니스미팅": ["한정식", "일식", "스테이크", "호텔", "고급", "정식", "코스"],
}

PURPOSE_EXACT_SCORE = 100
PURPOSE_PARTIAL_SCORE = 60
PURPOSE_NO_MATCH_SCORE = 30
NEUTRAL_SCORE = 50

VIOLATION_UNIT_PENALTY = 50


def validate_request(request: RecommendRequest) -> None:
    if not request.area or not request.area.strip():
        raise RecommendValidationError("지역명은 필수입니다.")
    if request.limit < MIN_LIMIT:
        raise RecommendValidationError(f"최소 {MIN_LIMIT}개 이상 요청해야 합니다.")
    if request.limit > MAX_LIMIT:
        raise RecommendValidationError(f"최대 {MAX_LIMIT}개까지 요청할 수 있습니다.")
    if request.priority not in PRIORITY_WEIGHTS:
        raise RecommendValidationError(f"유효하지 않은 우선순위: {request.priority}")
    if request.budget not in BUDGETS:
        raise RecommendValidationError(f"유효하지 않은 예산: {request.budget}")
    if request.purpose and request.purpose not in PURPOSE_PREFERENCES:
        raise RecommendValidationError(f"유효하지 않은 목적: {request.purpose}")
    if request.category and request.category != ALL_CATEGORIES and request.category not in CATEGORY_KEYWORDS:
        raise RecommendValidationError(f"유효하지 않은 카테고리: {request.category}")


def filter_by_category(places: List[EnhancedPlace], category: Optional[str]) -> List[EnhancedPlace]:
    if not category or category == ALL_CATEGORIES:
        return places
    keywords = CATEGORY_KEYWORDS.get(category, [])
    return [p for p in places if any(k in p.category.lower() for k in keywords)]


def filter_by_budget(places: List[EnhancedPlace], budget: str) -> List[EnhancedPlace]:
    """Exact tier match; a place with an unknown tier is always kept."""
    if budget == "any":
        return places
    return [p for p in places if not p.price_range or p.price_range == budget]


def purpose_score(category: str, purpose: Optional[str]) -> int:
    """
    100 when the category contains a preferred keyword, 60 when it shares
    a single character with one, 30 otherwise; 50 without a purpose.
    """
    if not purpose:
        return NEUTRAL_SCORE
    preferred = PURPOSE_PREFERENCES.get(purpose, [])
    category = (category or "").lower()
    if any(pref.lower() in category for pref in preferred):
        return PURPOSE_EXACT_SCORE
    if any(ch in category for pref in preferred for ch in pref.lower()):
        return PURPOSE_PARTIAL_SCORE
    return PURPOSE_NO_MATCH_SCORE


def reviews_score(intelligence: Optional[RestaurantIntelligence]) -> int:
    """Log-scaled: 0 reviews 30, 10 about 56, 100 about 80, 1000+ 100. Unknown 50."""
    if intelligence is None:
        return NEUTRAL_SCORE
    total = intelligence.ratings.review_count
    if total == 0:
        return 30
    if total >= 1000:
        return 100
    return min(100, int(round_half_up(30 + math.log10(total + 1) * 25)))


class _Candidate:
    """Area-search place plus whatever the resolver returned for it."""

    def __init__(self, place: EnhancedPlace, intelligence: Optional[RestaurantIntelligence]):
        self.place = place
        self.intelligence = intelligence

    @property
    def grade(self) -> Optional[str]:
        if self.intelligence is not None:
            return self.intelligence.hygiene.grade
        return self.place.grade

    @property
    def rating(self) -> Optional[float]:
        if self.intelligence is not None and self.intelligence.ratings.combined is not None:
            return self.intelligence.ratings.combined
        return self.place.combined_rating

    @property
    def has_violations(self) -> bool:
        if self.intelligence is not None:
            return self.intelligence.hygiene.has_violations
        return bool(self.place.hygiene and self.place.hygiene.has_violations)

    @property
    def violation_count(self) -> int:
        return self.intelligence.hygiene.violation_count if self.intelligence is not None else 0

    @property
    def review_count(self) -> int:
        return self.intelligence.ratings.review_count if self.intelligence is not None else 0

    @property
    def price_range(self) -> Optional[str]:
        if self.intelligence is not None and self.intelligence.price_range:
            return self.intelligence.price_range
        return self.place.price_range


def score_candidate(candidate: _Candidate, weights: ScoreWeights, purpose: Optional[str]) -> RecommendScores:
    hygiene = grade_base_score(candidate.grade) * weights.hygiene
    rating = popularity_score(candidate.rating) * weights.rating
    reviews = reviews_score(candidate.intelligence) * weights.reviews
    purpose_part = purpose_score(candidate.place.category, purpose) * weights.purpose

    penalty = 0
    if candidate.has_violations:
        penalty = min(100, candidate.violation_count * VIOLATION_UNIT_PENALTY)
    deduction = penalty * weights.violation_penalty

    total = max(0, int(round_half_up(hygiene + rating + reviews + purpose_part - deduction)))
    return RecommendScores(
        total=total,
        hygiene=int(round_half_up(hygiene)),
        rating=int(round_half_up(rating)),
        reviews=int(round_half_up(reviews)),
        purpose=int(round_half_up(purpose_part)),
    )


def build_highlights(candidate: _Candidate) -> List[str]:
    highlights = []
    if candidate.grade:
        highlights.append(f"{candidate.grade} 등급")
    if candidate.rating is not None:
        highlights.append(f"평점 {candidate.rating:.1f}")
    if not candidate.has_violations:
        highlights.append("행정처분 없음")
    if candidate.review_count >= 100:
        highlights.append(f"리뷰 {candidate.review_count}개")
    if candidate.price_range == "low":
        highlights.append("가성비 좋음")
    return highlights


class Recommender:
    def __init__(self, area_search: AreaSearchService, resolver: IdentityResolver):
        self.area_search = area_search
        self.resolver = resolver

    async def _resolve_safe(self, name: str, area: str) -> Optional[RestaurantIntelligence]:
        try:
            return await self.resolver.resolve(name, area)
        except Exception as e:
            logger.debug(f"⚠️ Intelligence lookup failed for '{name}' ({area}): {e}")
            return None

    def _result(self, request: RecommendRequest, status: str, message: str, total: int = 0, recommendations=None):
        return RecommendResult(
            status=status,
            area=request.area,
            filters={
                "purpose": request.purpose,
                "category": request.category,
                "priority": request.priority,
                "budget": request.budget,
            },
            total_candidates=total,
            recommendations=recommendations or [],
            message=message,
        )

    async def recommend(self, request: RecommendRequest) -> RecommendResult:
        """
        Recommend up to `request.limit` restaurants in an area.

        Raises:
            RecommendValidationError: before any lookup, on an invalid request.
        """
        validate_request(request)
        area = request.area

        search = await self.area_search.search_area(area, category="cafe" if request.category == "카페" else "restaurant")
        if search.status == "not_found":
            return self._result(request, "no_results", f'"{area}" 지역에서 조건에 맞는 식당을 찾을 수 없습니다.')
        if search.status == "too_many":
            if search.suggestions:
                message = f'"{area}" 지역은 범위가 너무 넓습니다. 다음 지역을 시도해 보세요: {", ".join(search.suggestions)}'
            else:
                message = f'"{area}" 지역은 범위가 너무 넓습니다. 더 좁은 지역명을 입력해 주세요.'
            return self._result(request, "area_too_broad", message, total=search.total_count)

        places = filter_by_budget(filter_by_category(search.restaurants, request.category), request.budget)
        if not places:
            return self._result(request, "no_results", f'"{area}" 지역에서 조건에 맞는 식당을 찾을 수 없습니다.')

        intelligences = await asyncio.gather(*[self._resolve_safe(p.name, area) for p in places])
        weights = PRIORITY_WEIGHTS[request.priority]
        scored = []
        for place, intelligence in zip(places, intelligences):
            candidate = _Candidate(place, intelligence)
            scored.append((candidate, score_candidate(candidate, weights, request.purpose)))

        scored.sort(key=lambda item: item[1].total, reverse=True)

        recommendations = []
        for rank, (candidate, scores) in enumerate(scored[:request.limit], start=1):
            recommendations.append(RecommendedRestaurant(
                rank=rank,
                name=candidate.place.name,
                address=candidate.place.place.road_address or candidate.place.place.address,
                category=candidate.place.category,
                grade=candidate.grade,
                star_rating=stars_for_grade(candidate.grade),
                has_violations=candidate.has_violations,
                combined_rating=candidate.rating,
                review_count=candidate.review_count,
                price_range=candidate.price_range,
                scores=scores,
                highlights=build_highlights(candidate),
            ))

        label = PRIORITY_LABELS[request.priority]
        purpose = f"{request.purpose} " if request.purpose else ""
        message = f'"{area}" {purpose}추천 Top {len(recommendations)} ({label})'
        logger.debug(f"🏆 {message}")
        return self._result(request, "success", message, total=len(places), recommendations=recommendations)
