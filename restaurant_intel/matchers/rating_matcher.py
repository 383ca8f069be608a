import re
from typing import List, Optional, Tuple

from restaurant_intel.config import RATING_MATCH_MIN_SCORE
from restaurant_intel.models import RatingMatch

EXACT_NAME_SCORE = 100
PARTIAL_NAME_SCORE = 50
ADDRESS_SCORE = 30
FOOD_CATEGORY_SCORE = 10
FOOD_CATEGORY_TERMS = ("음식점", "카페")

_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")


def strip_html(text: str) -> str:
    return _TAG.sub("", text or "")


def _normalize(text: str) -> str:
    return _WHITESPACE.sub("", (text or "").lower())


def score_rating_candidate(candidate: RatingMatch, name: str, address: str) -> int:
    """
    Score how well a ratings-provider candidate matches the restaurant we hold.

    Args:
        candidate (RatingMatch): Candidate returned by the ratings provider.
        name (str): Resolved restaurant name.
        address (str): Resolved restaurant address.

    Returns:
        int: 0-140. Exact name 100 (else containment 50), address containment
             +30, food/cafe category +10.
    """
    cand_name = _normalize(strip_html(candidate.name))
    cand_addr = _normalize(candidate.address)
    norm_name = _normalize(name)
    norm_addr = _normalize(address)

    score = 0
    if cand_name and cand_name == norm_name:
        score += EXACT_NAME_SCORE
    elif cand_name and norm_name and (norm_name in cand_name or cand_name in norm_name):
        score += PARTIAL_NAME_SCORE

    if cand_addr and norm_addr and (norm_addr in cand_addr or cand_addr in norm_addr):
        score += ADDRESS_SCORE

    if any(term in (candidate.category or "") for term in FOOD_CATEGORY_TERMS):
        score += FOOD_CATEGORY_SCORE

    return score


def find_best_rating_match(
    candidates: List[RatingMatch],
    name: str,
    address: str,
    min_score: int = RATING_MATCH_MIN_SCORE,
) -> Optional[RatingMatch]:
    """
    Pick the highest-scoring candidate; the first one wins ties.

    Returns None when nothing reaches `min_score`. No match is not an error.
    """
    best: Optional[Tuple[int, RatingMatch]] = None
    for cand in candidates:
        score = score_rating_candidate(cand, name, address)
        if best is None or score > best[0]:
            best = (score, cand)

    if best is None or best[0] < min_score:
        return None
    return best[1]
