import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from restaurant_intel.cache import CacheService
from restaurant_intel.clients import food_safety_client, kakao_client, naver_client
from restaurant_intel.clients.food_safety_client import FoodSafetyClient
from restaurant_intel.clients.kakao_client import KakaoClient
from restaurant_intel.clients.naver_client import NaverClient
from restaurant_intel.errors import ProviderError
from restaurant_intel.registry_fetcher import FoodSafetyRegistry, FoodSafetyViolations, format_date


@pytest.fixture(autouse=True)
def reset_singletons():
    """Every test gets fresh client singletons."""
    for cls in (KakaoClient, NaverClient, FoodSafetyClient):
        cls._instance = None
        cls._initialized = False
    yield
    for cls in (KakaoClient, NaverClient, FoodSafetyClient):
        cls._instance = None
        cls._initialized = False


def _grade_row(name, addr, level="우수"):
    return {
        "BSSH_NM": name, "ADDR": addr, "LCNS_NO": "123", "INDUTY_NM": "일반음식점",
        "HG_ASGN_LV": level, "ASGN_FROM": "20230101", "ASGN_TO": "20260101",
    }


def _violation_row(name, addr, date):
    return {
        "PRCSCITYPOINT_BSSHNM": name, "ADDR": addr, "DSPS_DCSNDT": date,
        "DSPS_TYPECD_NM": "영업정지", "DSPSCN": "", "VILTCN": "위생기준 위반",
        "DSPS_BGNDT": date, "DSPS_ENDDT": None,
    }


def _food_client(rows=None, error=None):
    client = MagicMock()
    if error is not None:
        client.fetch = AsyncMock(side_effect=error)
    else:
        client.fetch = AsyncMock(return_value={"total_count": len(rows), "row": rows})
    return client


def test_singleton():
    assert KakaoClient() is KakaoClient()
    assert KakaoClient() is not FoodSafetyClient()


def test_format_date():
    assert format_date("20240315") == "2024-03-15"
    assert format_date("2024-03-15") == "2024-03-15"
    assert format_date(None) is None


def test_food_safety_url_encoding():
    with patch.object(food_safety_client, "FOOD_API_KEY", "KEY"):
        client = FoodSafetyClient()
    url = client.build_url("C004", {"UPSO_NM": "할매 국밥", "EMPTY": ""}, 1, 100)
    assert url == "http://openapi.foodsafetykorea.go.kr/api/KEY/C004/json/1/100/UPSO_NM=%ED%95%A0%EB%A7%A4%20%EA%B5%AD%EB%B0%A5"


@pytest.mark.asyncio
async def test_food_safety_result_codes():
    with patch.object(food_safety_client, "FOOD_API_KEY", "KEY"):
        client = FoodSafetyClient()

    client.get_json = AsyncMock(return_value={"C004": {"total_count": "1", "row": [{"BSSH_NM": "x"}], "RESULT": {"CODE": "INFO-000"}}})
    data = await client.fetch("C004", {"UPSO_NM": "x"})
    assert data == {"total_count": 1, "row": [{"BSSH_NM": "x"}]}

    client.get_json = AsyncMock(return_value={"C004": {"RESULT": {"CODE": "INFO-200", "MSG": "해당하는 데이터가 없습니다."}}})
    with pytest.raises(ProviderError) as exc:
        await client.fetch("C004")
    assert exc.value.code == "INFO-200"

    client.get_json = AsyncMock(return_value={"RESULT": {"CODE": "INFO-100", "MSG": "인증키가 유효하지 않습니다."}})
    with pytest.raises(ProviderError) as exc:
        await client.fetch("C004")
    assert exc.value.code == "INFO-100"


@pytest.mark.asyncio
async def test_food_safety_without_key():
    with patch.object(food_safety_client, "FOOD_API_KEY", None):
        client = FoodSafetyClient()
    with pytest.raises(ProviderError) as exc:
        await client.fetch("C004")
    assert exc.value.code == "NO_API_KEY"


@pytest.mark.asyncio
async def test_registry_exact_match_by_name_and_region():
    client = _food_client([
        _grade_row("할매국밥", "부산광역시 중구 1"),
        _grade_row("할매국밥", "서울특별시 종로구 관철동 1", level="매우우수"),
    ])
    registry = FoodSafetyRegistry(client, CacheService(enabled=True))

    record = await registry.by_name_region("할매국밥", "종로구")

    assert record.address == "서울특별시 종로구 관철동 1"
    assert record.grade == "AAA"
    assert record.grade_label == "매우 우수"
    assert record.star_rating == 3
    assert record.grade_date == "2023-01-01"
    client.fetch.assert_awaited_once_with("C004", {"UPSO_NM": "할매국밥"})

    # cached
    await registry.by_name_region("할매국밥", "종로구")
    assert client.fetch.await_count == 1


@pytest.mark.asyncio
async def test_registry_no_data_is_empty():
    client = _food_client(error=ProviderError("no data", "INFO-200"))
    registry = FoodSafetyRegistry(client)
    assert await registry.by_name("할매국밥") == []
    assert await registry.by_name_region("할매국밥", "종로구") is None


@pytest.mark.asyncio
async def test_registry_other_errors_propagate():
    client = _food_client(error=ProviderError("bad key", "INFO-100"))
    registry = FoodSafetyRegistry(client)
    with pytest.raises(ProviderError):
        await registry.by_name("할매국밥")


@pytest.mark.asyncio
async def test_violations_filtered_sorted_and_capped():
    rows = [_violation_row("할매국밥", "서울특별시 종로구 1", f"2024010{i}") for i in range(1, 8)]
    rows.append(_violation_row("할매국밥", "부산광역시 중구 1", "20240301"))
    rows.append(_violation_row("다른집", "서울특별시 종로구 1", "20240302"))
    violations = FoodSafetyViolations(_food_client(rows))

    history = await violations.for_restaurant("할매국밥", "종로구", limit=5)

    assert history.total_count == 7
    assert history.has_more is True
    assert len(history.recent_items) == 5
    assert history.recent_items[0].date == "2024-01-07"
    assert history.recent_items[0].content == "영업정지"
    assert history.recent_items[0].reason == "위생기준 위반"


@pytest.mark.asyncio
async def test_violations_no_data():
    violations = FoodSafetyViolations(_food_client(error=ProviderError("no data", "INFO-200")))
    history = await violations.for_restaurant("할매국밥", "종로구")
    assert history.total_count == 0
    assert history.has_more is False


def _kakao_page(total, docs, is_end=True):
    return {"meta": {"total_count": total, "pageable_count": total, "is_end": is_end}, "documents": docs}


def _doc(id):
    return {
        "id": id, "place_name": f"식당{id}", "address_name": "서울특별시 마포구 연남동 1",
        "road_address_name": "서울특별시 마포구 동교로 1", "phone": "", "category_name": "음식점 > 한식",
        "x": "126.9", "y": "37.5", "place_url": f"http://place.map.kakao.com/{id}",
    }


@pytest.mark.asyncio
async def test_kakao_area_too_many():
    with patch.object(kakao_client, "KAKAO_API_KEY", "KEY"):
        client = KakaoClient()
    client._search_page = AsyncMock(return_value=_kakao_page(120, [_doc("1")], is_end=False))

    result = await client.search_area("강남구")

    assert result.status == "too_many"
    assert result.total_count == 120
    assert "역삼역" in result.suggestions
    assert client._search_page.await_count == 1


@pytest.mark.asyncio
async def test_kakao_area_ready_fetches_remaining_pages():
    with patch.object(kakao_client, "KAKAO_API_KEY", "KEY"):
        client = KakaoClient()
    client._search_page = AsyncMock(side_effect=[
        _kakao_page(20, [_doc(str(i)) for i in range(15)], is_end=False),
        _kakao_page(20, [_doc(str(i)) for i in range(14, 20)]),
    ])

    result = await client.search_area("연남동")

    assert result.status == "ready"
    assert len(result.candidates) == 20
    assert result.candidates[0].road_address == "서울특별시 마포구 동교로 1"
    assert client._search_page.await_args_list[1].kwargs["page"] == 2


@pytest.mark.asyncio
async def test_kakao_area_not_found_and_no_key():
    with patch.object(kakao_client, "KAKAO_API_KEY", "KEY"):
        client = KakaoClient()
    client._search_page = AsyncMock(return_value=_kakao_page(0, []))
    assert (await client.search_area("없는동네")).status == "not_found"

    client.api_key = None
    assert await client.search_by_text("할매국밥 종로구", "FD6") == []


@pytest.mark.asyncio
async def test_naver_search_picks_best_and_caches_none():
    with patch.object(naver_client, "NAVER_CLIENT_ID", "id"), patch.object(naver_client, "NAVER_CLIENT_SECRET", "secret"):
        client = NaverClient(cache=CacheService(enabled=True))
    client.get_json = AsyncMock(return_value={"items": [
        {"title": "할매국밥 2호점", "link": "", "category": "술집", "address": "부산", "roadAddress": "", "mapx": "1", "mapy": "2"},
        {"title": "<b>할매국밥</b>", "link": "https://m.place.naver.com/place/42", "category": "한식>국밥",
         "address": "서울특별시 종로구 관철동 1", "roadAddress": "", "mapx": "3", "mapy": "4"},
    ]})

    match = await client.search("할매국밥", "서울특별시 종로구 관철동 1")
    assert match.id == "42"
    assert match.price_range == "medium"

    client.get_json = AsyncMock(return_value={"items": []})
    assert await client.search("없는집", "종로구") is None
    assert await client.search("없는집", "종로구") is None
    assert client.get_json.await_count == 1
