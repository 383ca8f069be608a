"""
Deterministic scores derived from a resolved restaurant.

All rounding here is half-up (82.5 -> 83), not Python's banker's rounding.
"""
import math
from typing import Iterable, Optional

from restaurant_intel.models import HygieneInfo, PlatformRating, RatingInfo, ScoreSet

GRADE_BASE_SCORES = {"AAA": 100, "AA": 80, "A": 60}
NO_GRADE_BASE_SCORE = 40
VIOLATION_PENALTY = 20
MAX_VIOLATION_PENALTY = 40
NO_RATING_SCORE = 50

HYGIENE_WEIGHT = 0.6
POPULARITY_WEIGHT = 0.4


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def grade_base_score(grade: Optional[str]) -> int:
    return GRADE_BASE_SCORES.get(grade, NO_GRADE_BASE_SCORE)


def hygiene_score(grade: Optional[str], violation_count: int) -> int:
    penalty = min(violation_count * VIOLATION_PENALTY, MAX_VIOLATION_PENALTY)
    return max(0, grade_base_score(grade) - penalty)


def popularity_score(combined: Optional[float]) -> int:
    if combined is None:
        return NO_RATING_SCORE
    return min(100, int(round_half_up(combined * 20)))


def overall_score(hygiene: int, popularity: int) -> int:
    return int(round_half_up(HYGIENE_WEIGHT * hygiene + POPULARITY_WEIGHT * popularity))


def combined_rating(platforms: Iterable[PlatformRating]) -> Optional[float]:
    """
    Review-count-weighted mean of the platform scores, one decimal.

    Falls back to the plain mean when no platform reports reviews; None when
    no platform has a score at all.
    """
    rated = [p for p in platforms if p.score is not None]
    if not rated:
        return None
    total_reviews = sum(p.review_count for p in rated)
    if total_reviews == 0:
        value = sum(p.score for p in rated) / len(rated)
    else:
        value = sum(p.score * p.review_count for p in rated) / total_reviews
    return round_half_up(value, 1)


def build_rating_info(*platforms: PlatformRating) -> RatingInfo:
    return RatingInfo(platforms=tuple(platforms), combined=combined_rating(platforms))


def compute_scores(hygiene: HygieneInfo, ratings: RatingInfo) -> ScoreSet:
    h = hygiene_score(hygiene.grade, hygiene.violation_count)
    p = popularity_score(ratings.combined)
    return ScoreSet(hygiene=h, popularity=p, overall=overall_score(h, p))
