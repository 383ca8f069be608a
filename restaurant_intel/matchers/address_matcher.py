import re
from dataclasses import dataclass
from typing import List, Optional

# Short province/metropolitan forms and the full names they stand for
SIDO_ALIASES = {
    "서울": ["서울특별시", "서울시"],
    "부산": ["부산광역시", "부산시"],
    "대구": ["대구광역시", "대구시"],
    "인천": ["인천광역시", "인천시"],
    "광주": ["광주광역시", "광주시"],
    "대전": ["대전광역시", "대전시"],
    "울산": ["울산광역시", "울산시"],
    "세종": ["세종특별자치시", "세종시"],
    "경기": ["경기도"],
    "강원": ["강원도", "강원특별자치도"],
    "충북": ["충청북도"],
    "충남": ["충청남도"],
    "전북": ["전라북도", "전북특별자치도"],
    "전남": ["전라남도"],
    "경북": ["경상북도"],
    "경남": ["경상남도"],
    "제주": ["제주특별자치도", "제주도"],
}

ADMIN_SUFFIXES = ("구", "시", "동")
DEFAULT_SUFFIXES = ("구", "동")

_SIDO_PATTERN = re.compile(
    r"^(서울특별시|부산광역시|대구광역시|인천광역시|광주광역시|대전광역시|울산광역시"
    r"|세종특별자치시|경기도|강원도|강원특별자치도|충청북도|충청남도|전라북도"
    r"|전북특별자치도|전라남도|경상북도|경상남도|제주특별자치도|제주도)"
)
_SIGUNGU_PATTERN = re.compile(r"^([가-힣]+[시군구])")
_EUPMYEONDONG_PATTERN = re.compile(r"^([가-힣0-9]+[읍면동가로])")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class ParsedAddress:
    full: str
    sido: Optional[str] = None
    sigungu: Optional[str] = None
    eupmyeondong: Optional[str] = None


def _normalize(text: str) -> str:
    return _WHITESPACE.sub("", text.lower())


def parse_address(address: str) -> ParsedAddress:
    """
    Split a full Korean address into its administrative levels.

    Only addresses that start with a full province/metropolitan name are
    parsed; anything else comes back with just `full` set.
    """
    result = ParsedAddress(full=address)

    sido_match = _SIDO_PATTERN.match(address)
    if not sido_match:
        return result
    result.sido = sido_match.group(1)

    rest = address[len(result.sido):].strip()
    sigungu_match = _SIGUNGU_PATTERN.match(rest)
    if not sigungu_match:
        return result
    result.sigungu = sigungu_match.group(1)

    rest = rest[len(result.sigungu):].strip()
    dong_match = _EUPMYEONDONG_PATTERN.match(rest)
    if dong_match:
        result.eupmyeondong = dong_match.group(1)

    return result


def normalize_region(region: str) -> List[str]:
    """
    Expand a user-typed region into every spelling an address may use.

    Args:
        region (str): Region as typed by the user, e.g. "서울 강남" or "역삼".

    Returns:
        List[str]: Unique candidate spellings, the original first.
    """
    candidates = [region]

    for alias, full_names in SIDO_ALIASES.items():
        if alias in region:
            candidates.extend(region.replace(alias, full) for full in full_names)

    if not region.endswith(ADMIN_SUFFIXES):
        candidates.extend(f"{region}{suffix}" for suffix in DEFAULT_SUFFIXES)

    return list(dict.fromkeys(candidates))


def match_address(address: str, region: str) -> bool:
    """True if any spelling of `region` is contained in `address`."""
    if not address or not region:
        return False

    normalized_address = _normalize(address)
    return any(_normalize(r) in normalized_address for r in normalize_region(region))


def match_name(name: str, search_name: str) -> bool:
    """Case/whitespace-insensitive containment in either direction."""
    if not name or not search_name:
        return False

    normalized_name = _normalize(name)
    normalized_search = _normalize(search_name)
    return normalized_search in normalized_name or normalized_name in normalized_search


def match_restaurant(
    restaurant_name: str,
    restaurant_address: str,
    search_name: str,
    search_region: str,
) -> bool:
    return match_name(restaurant_name, search_name) and match_address(restaurant_address, search_region)
