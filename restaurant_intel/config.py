# restaurant_intel/config.py
from dotenv import load_dotenv
import os

load_dotenv()

# API Keys
KAKAO_API_KEY = os.getenv("KAKAO_API_KEY")
NAVER_CLIENT_ID = os.getenv("NAVER_CLIENT_ID")
NAVER_CLIENT_SECRET = os.getenv("NAVER_CLIENT_SECRET")
FOOD_API_KEY = os.getenv("FOOD_API_KEY")

# Runtime parameters
CONCURRENCY = int(os.getenv("CONCURRENCY", "10"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CACHE_ENABLED = os.getenv("CACHE_ENABLED", "true").lower() != "false"

# Shared cache, enabled by REDIS_URL or REDIS_HOST; in-process memory otherwise
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", "")
REDIS_KEY_PREFIX = "restaurant_intel:"

# URLs
KAKAO_URL = "https://dapi.kakao.com/v2/local/search/keyword.json"
NAVER_URL = "https://openapi.naver.com/v1/search/local.json"
FOOD_SAFETY_URL = "http://openapi.foodsafetykorea.go.kr/api"

# Timeouts (seconds)
KAKAO_TIMEOUT = 5
NAVER_TIMEOUT = 5
FOOD_SAFETY_TIMEOUT = 10

# Food Safety Korea service ids
SERVICE_HYGIENE_GRADE = "C004"
SERVICE_VIOLATION = "I2630"
FOOD_SAFETY_MAX_RESULTS = 100

# Kakao category group codes
CATEGORY_RESTAURANT = "FD6"
CATEGORY_CAFE = "CE7"

# Directory search limits
SEARCH_PAGE_SIZE = 5
AREA_PAGE_SIZE = 15
AREA_MAX_PAGES = 3
AREA_TOO_MANY_THRESHOLD = 50
DIRECTORY_MAX_RESULTS = 5

# Ratings provider
NAVER_MAX_RESULTS = 5
RATING_MATCH_MIN_SCORE = 30

# Resolver
VIOLATION_RECENT_LIMIT = 5
MAX_AMBIGUOUS_CANDIDATES = 5

# Cache TTLs (seconds)
DAY = 24 * 60 * 60
TTL_INTELLIGENCE = DAY
TTL_HYGIENE_GRADE = 7 * DAY
TTL_VIOLATION = 7 * DAY
TTL_RATINGS = DAY
DEFAULT_TTL = 60 * 60

# Bulk lookup
BATCH_SIZE = 5
BATCH_DELAY = 0.1

# File names
INPUT_CSV = os.getenv("INPUT_CSV", "restaurants.csv")
OUTPUT_CSV = os.getenv("OUTPUT_CSV", "hygiene_report.csv")
BULK_FILTER = os.getenv("BULK_FILTER", "all")

# Narrower sub-areas suggested when an area search is too broad
AREA_SUGGESTIONS = {
    "강남구": ["역삼역", "강남역", "삼성역", "선릉역", "청담동", "논현동", "신사동"],
    "서초구": ["강남역", "서초역", "교대역", "양재역", "방배동", "반포동"],
    "마포구": ["홍대입구역", "합정역", "망원동", "연남동", "상수역"],
    "송파구": ["잠실역", "석촌역", "송파역", "문정동", "방이동"],
    "영등포구": ["여의도역", "영등포역", "당산역", "문래동"],
    "종로구": ["광화문역", "종각역", "안국역", "삼청동", "북촌"],
    "중구": ["명동역", "을지로역", "충무로역", "동대문역"],
    "용산구": ["이태원역", "녹사평역", "한남동", "용산역"],
    "성동구": ["성수역", "왕십리역", "서울숲역", "뚝섬역"],
    "광진구": ["건대입구역", "구의역", "아차산역"],
    "구로구": ["신도림역", "구로디지털단지역", "대림역"],
}


def get_area_suggestions(area: str) -> list:
    """Return narrower sub-areas for a district, or generic ones for unknown areas."""
    for district, suggestions in AREA_SUGGESTIONS.items():
        if district in area:
            return list(suggestions)
    return [f"{area} 역 근처", f"{area} 중심가", f"{area} 동쪽", f"{area} 서쪽"]
