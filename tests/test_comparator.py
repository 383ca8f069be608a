import pytest
from unittest.mock import AsyncMock, MagicMock

from restaurant_intel.comparator import Comparator, build_recommendation, find_best_value, to_compared
from restaurant_intel.errors import CompareValidationError
from restaurant_intel.models import (
    CompareRequest,
    HygieneInfo,
    PlatformRating,
    RestaurantIdentity,
    RestaurantIntelligence,
    RestaurantQuery,
)
from restaurant_intel.scoring import build_rating_info, compute_scores


def _intel(name, grade=None, rating=None, reviews=0, violations=0, price=None):
    hygiene = HygieneInfo.build(grade, violations)
    ratings = build_rating_info(PlatformRating("kakao", None, 0), PlatformRating("naver", rating, reviews))
    return RestaurantIntelligence(
        identity=RestaurantIdentity(name=name, address=f"서울특별시 강남구 {name}"),
        hygiene=hygiene,
        ratings=ratings,
        price_range=price,
        business_hours=None,
        scores=compute_scores(hygiene, ratings),
    )


def _comparator(intelligences):
    resolver = MagicMock()
    resolver.resolve = AsyncMock(side_effect=lambda name, region: intelligences.get(name))
    return Comparator(resolver), resolver


def _request(*names, criteria=None):
    return CompareRequest(restaurants=[RestaurantQuery(name=n, region="강남구") for n in names], criteria=criteria)


@pytest.mark.asyncio
@pytest.mark.parametrize("request_obj", [
    _request("A"),
    _request("A", "B", "C", "D", "E", "F"),
    CompareRequest(restaurants=[RestaurantQuery("A", "강남구"), RestaurantQuery(" ", "강남구")]),
    CompareRequest(restaurants=[RestaurantQuery("A", "강남구"), RestaurantQuery("B", "")]),
    _request("A", "B", criteria=[]),
    _request("A", "B", criteria=["hygiene", "rating", "price", "reviews", "hygiene"]),
    _request("A", "B", criteria=["ambience"]),
])
async def test_invalid_requests_fail_before_lookup(request_obj):
    comparator, resolver = _comparator({})
    with pytest.raises(CompareValidationError):
        await comparator.compare(request_obj)
    resolver.resolve.assert_not_called()


@pytest.mark.asyncio
async def test_best_of_reference_pair():
    """A(AAA, 4.5, 328) vs B(AA, 4.2, 256): A wins hygiene and rating."""
    comparator, _ = _comparator({
        "A": _intel("A", grade="AAA", rating=4.5, reviews=328),
        "B": _intel("B", grade="AA", rating=4.2, reviews=256),
    })

    result = await comparator.compare(_request("A", "B"))

    assert result.status == "complete"
    assert result.message == "2개 식당 비교 완료"
    analysis = result.comparison.analysis
    assert analysis.best_hygiene == "A"
    assert analysis.best_rating == "A"
    assert analysis.recommendation == '위생과 평점 모두 고려 시 "A" 추천'


@pytest.mark.asyncio
async def test_full_tie_goes_to_first_listed():
    comparator, _ = _comparator({
        "first": _intel("first", grade="AA", rating=4.0, reviews=10),
        "second": _intel("second", grade="AA", rating=4.0, reviews=10),
    })

    analysis = (await comparator.compare(_request("first", "second"))).comparison.analysis

    assert analysis.best_hygiene == "first"
    assert analysis.best_rating == "first"
    assert analysis.best_value == "first"


@pytest.mark.asyncio
async def test_hygiene_tie_broken_by_grade():
    """AAA with 2 violations (60) ties A without any (60); AAA wins on grade."""
    comparator, _ = _comparator({
        "A급": _intel("A급", grade="A"),
        "AAA급": _intel("AAA급", grade="AAA", violations=2),
    })
    analysis = (await comparator.compare(_request("A급", "AAA급"))).comparison.analysis
    assert analysis.best_hygiene == "AAA급"


@pytest.mark.asyncio
async def test_rating_tie_broken_by_reviews():
    comparator, _ = _comparator({
        "few": _intel("few", rating=4.0, reviews=10),
        "many": _intel("many", rating=4.0, reviews=500),
    })
    analysis = (await comparator.compare(_request("few", "many"))).comparison.analysis
    assert analysis.best_rating == "many"


@pytest.mark.asyncio
async def test_only_requested_criteria_are_analyzed():
    comparator, _ = _comparator({"A": _intel("A", grade="AAA"), "B": _intel("B")})
    analysis = (await comparator.compare(_request("A", "B", criteria=["rating"]))).comparison.analysis
    assert analysis.best_hygiene is None
    assert analysis.best_value is None
    assert analysis.best_rating is not None


@pytest.mark.asyncio
async def test_fewer_than_two_found_is_partial_without_comparison():
    comparator, _ = _comparator({"A": _intel("A")})

    result = await comparator.compare(_request("A", "B", "C"))

    assert result.status == "partial"
    assert result.comparison is None
    assert result.found == ["A"]
    assert result.not_found == ["B", "C"]
    assert result.message == '"A"만 찾았습니다. 비교를 위해 최소 2개의 식당이 필요합니다.'


@pytest.mark.asyncio
async def test_nothing_found():
    comparator, _ = _comparator({})
    result = await comparator.compare(_request("A", "B"))
    assert result.status == "partial"
    assert result.message == "비교할 식당을 찾을 수 없습니다."


@pytest.mark.asyncio
async def test_partial_with_enough_found_still_compares():
    comparator, resolver = _comparator({})

    async def resolve(name, region):
        if name == "B":
            raise RuntimeError("boom")
        return {"A": _intel("A"), "C": _intel("C")}[name]

    resolver.resolve.side_effect = resolve

    result = await comparator.compare(_request("A", "B", "C"))

    assert result.status == "partial"
    assert result.comparison is not None
    assert [r.name for r in result.comparison.restaurants] == ["A", "C"]
    assert result.message == "2개 식당 비교 완료 (1개 식당 미발견: B)"


def test_best_value_uses_price_weight():
    cheap = to_compared(_intel("cheap", grade="A", price="low"))      # overall 56 / 1.0
    fancy = to_compared(_intel("fancy", grade="AAA", price="high"))   # overall 80 / 2.0
    assert find_best_value([fancy, cheap]) == "cheap"


def test_recommendation_lists_distinct_winners():
    a = to_compared(_intel("A", grade="AAA", rating=3.0, reviews=10))
    b = to_compared(_intel("B", grade="A", rating=5.0, reviews=10))
    text = build_recommendation([a, b], "A", "B", "A")
    # overall: A 0.6*100 + 0.4*60 = 84, B 0.6*60 + 0.4*100 = 76
    assert text == '위생 중시: "A", 평점 중시: "B". 종합적으로 "A" 추천'


def test_recommendation_without_winners():
    a = to_compared(_intel("A"))
    b = to_compared(_intel("B"))
    assert build_recommendation([a, b], None, None, None) == '종합적으로 "A" 추천'


def test_compared_view_exposes_platform_scores():
    view = to_compared(_intel("A", rating=4.2, reviews=30))
    assert view.kakao_rating is None
    assert view.naver_rating == 4.2
    assert view.combined_rating == 4.2
    assert view.review_count == 30
