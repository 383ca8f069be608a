"""
Typed data models for the restaurant intelligence pipeline.
All data structures used throughout the codebase should be defined here.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

# Registry grade text -> normalized grade
REGISTRY_GRADE_MAP = {
    "매우우수": "AAA",
    "우수": "AA",
    "좋음": "A",
}
GRADE_LABELS = {"AAA": "매우 우수", "AA": "우수", "A": "좋음"}
GRADE_STARS = {"AAA": 3, "AA": 2, "A": 1}
GRADE_RANK = {"AAA": 3, "AA": 2, "A": 1}


def stars_for_grade(grade: Optional[str]) -> int:
    """Star rating (0-3) for a hygiene grade."""
    return GRADE_STARS.get(grade, 0)


# --- Provider records ---------------------------------------------------------

@dataclass(frozen=True)
class RestaurantIdentity:
    """Who a restaurant is, as reported by whichever provider resolved it."""
    name: str
    address: str
    category: str = ""
    phone: Optional[str] = None
    external_ref: Optional[str] = None


@dataclass(frozen=True)
class DirectoryPlace:
    """Place record returned by the map/business directory."""
    id: str
    name: str
    address: str
    road_address: str = ""
    phone: str = ""
    category: str = ""
    longitude: Optional[str] = None
    latitude: Optional[str] = None
    place_url: Optional[str] = None

    def to_identity(self) -> RestaurantIdentity:
        return RestaurantIdentity(
            name=self.name,
            address=self.road_address or self.address,
            category=self.category,
            phone=self.phone or None,
            external_ref=self.place_url,
        )


@dataclass
class AreaSearchResult:
    """Directory answer for an area query: not_found, too_many or ready."""
    status: str
    total_count: int
    candidates: List[DirectoryPlace] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    message: str = ""


@dataclass(frozen=True)
class RegistryRecord:
    """Hygiene grade record from the government food-safety registry."""
    name: str
    address: str
    license_no: str = ""
    business_type: str = ""
    grade: Optional[str] = None
    grade_label: Optional[str] = None
    grade_date: Optional[str] = None
    valid_until: Optional[str] = None

    @property
    def has_grade(self) -> bool:
        return self.grade is not None

    @property
    def star_rating(self) -> int:
        return stars_for_grade(self.grade)

    def to_identity(self) -> RestaurantIdentity:
        return RestaurantIdentity(
            name=self.name,
            address=self.address,
            category=self.business_type,
            external_ref=self.license_no or None,
        )


@dataclass(frozen=True)
class ViolationItem:
    """One administrative disciplinary action."""
    date: str
    type: str
    content: str
    reason: str
    period_start: Optional[str] = None
    period_end: Optional[str] = None


@dataclass(frozen=True)
class ViolationHistory:
    total_count: int = 0
    recent_items: Tuple[ViolationItem, ...] = ()
    has_more: bool = False

    @classmethod
    def empty(cls) -> "ViolationHistory":
        return cls()


@dataclass(frozen=True)
class RatingMatch:
    """Best consumer-ratings match for a (name, address) pair."""
    id: str
    name: str
    address: str
    category: str = ""
    score: Optional[float] = None
    review_count: int = 0
    price_range: Optional[str] = None
    business_hours: Optional[str] = None


# --- Aggregate ----------------------------------------------------------------

@dataclass(frozen=True)
class HygieneInfo:
    grade: Optional[str] = None
    grade_label: Optional[str] = None
    star_rating: int = 0
    has_violations: bool = False
    violation_count: int = 0

    @classmethod
    def build(cls, grade: Optional[str], violation_count: int) -> "HygieneInfo":
        """Build hygiene info keeping stars and the violation flag consistent with their sources."""
        return cls(
            grade=grade,
            grade_label=GRADE_LABELS.get(grade),
            star_rating=stars_for_grade(grade),
            has_violations=violation_count > 0,
            violation_count=violation_count,
        )


@dataclass(frozen=True)
class PlatformRating:
    platform: str
    score: Optional[float]
    review_count: int = 0


@dataclass(frozen=True)
class RatingInfo:
    platforms: Tuple[PlatformRating, ...] = ()
    combined: Optional[float] = None

    @property
    def review_count(self) -> int:
        return sum(p.review_count for p in self.platforms)

    def score_for(self, platform: str) -> Optional[float]:
        for p in self.platforms:
            if p.platform == platform:
                return p.score
        return None


@dataclass(frozen=True)
class ScoreSet:
    hygiene: int
    popularity: int
    overall: int


@dataclass(frozen=True)
class RestaurantIntelligence:
    """Aggregate root: one resolved restaurant with hygiene, ratings and scores."""
    identity: RestaurantIdentity
    hygiene: HygieneInfo
    ratings: RatingInfo
    price_range: Optional[str]
    business_hours: Optional[str]
    scores: ScoreSet

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def address(self) -> str:
        return self.identity.address

    @property
    def category(self) -> str:
        return self.identity.category


# --- Resolution ---------------------------------------------------------------

@dataclass
class Resolution:
    """Outcome of one resolver strategy: found, not_found or ambiguous."""
    status: str
    identity: Optional[RestaurantIdentity] = None
    registry_record: Optional[RegistryRecord] = None
    candidates: List[RegistryRecord] = field(default_factory=list)
    source: str = ""

    @classmethod
    def not_found(cls) -> "Resolution":
        return cls(status="not_found")

    @property
    def is_found(self) -> bool:
        return self.status == "found"


@dataclass
class LookupCandidate:
    name: str
    address: str
    grade: str


@dataclass
class LookupFailure:
    code: str
    message: str
    candidates: List[LookupCandidate] = field(default_factory=list)


@dataclass
class HygieneLookupData:
    restaurant: RestaurantIdentity
    hygiene_grade: Optional[RegistryRecord]
    violations: ViolationHistory


@dataclass
class HygieneLookupResult:
    """Single-restaurant lookup outcome; exactly one of data/error is set."""
    success: bool
    data: Optional[HygieneLookupData] = None
    error: Optional[LookupFailure] = None


# --- Area search --------------------------------------------------------------

@dataclass
class EnhancedPlace:
    """Directory place enriched with whatever intelligence could be resolved."""
    place: DirectoryPlace
    hygiene: Optional[HygieneInfo] = None
    ratings: Optional[RatingInfo] = None
    price_range: Optional[str] = None
    business_hours: Optional[str] = None

    @property
    def name(self) -> str:
        return self.place.name

    @property
    def category(self) -> str:
        return self.place.category

    @property
    def combined_rating(self) -> Optional[float]:
        return self.ratings.combined if self.ratings else None

    @property
    def grade(self) -> Optional[str]:
        return self.hygiene.grade if self.hygiene else None


@dataclass
class AreaSummary:
    avg_rating: Optional[float]
    with_hygiene_grade: int
    clean_ratio: str
    grade_distribution: dict


@dataclass
class EnhancedAreaResult:
    status: str
    total_count: int
    restaurants: List[EnhancedPlace] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    summary: Optional[AreaSummary] = None
    message: str = ""


# --- Recommendation -----------------------------------------------------------

@dataclass
class RecommendRequest:
    area: str
    purpose: Optional[str] = None
    category: Optional[str] = None
    priority: str = "balanced"
    budget: str = "any"
    limit: int = 5


@dataclass(frozen=True)
class ScoreWeights:
    hygiene: float
    rating: float
    reviews: float
    violation_penalty: float
    purpose: float


@dataclass
class RecommendScores:
    total: int
    hygiene: int
    rating: int
    reviews: int
    purpose: int


@dataclass
class RecommendedRestaurant:
    rank: int
    name: str
    address: str
    category: str
    grade: Optional[str]
    star_rating: int
    has_violations: bool
    combined_rating: Optional[float]
    review_count: int
    price_range: Optional[str]
    scores: RecommendScores
    highlights: List[str] = field(default_factory=list)


@dataclass
class RecommendResult:
    status: str
    area: str
    filters: dict
    total_candidates: int
    recommendations: List[RecommendedRestaurant] = field(default_factory=list)
    message: str = ""


# --- Comparison ---------------------------------------------------------------

@dataclass
class RestaurantQuery:
    name: str
    region: str


@dataclass
class CompareRequest:
    restaurants: List[RestaurantQuery]
    criteria: Optional[List[str]] = None


@dataclass
class ComparedRestaurant:
    name: str
    address: str
    grade: Optional[str]
    star_rating: int
    has_violations: bool
    kakao_rating: Optional[float]
    naver_rating: Optional[float]
    combined_rating: Optional[float]
    review_count: int
    price_range: Optional[str]
    scores: ScoreSet


@dataclass
class ComparisonAnalysis:
    best_hygiene: Optional[str]
    best_rating: Optional[str]
    best_value: Optional[str]
    recommendation: str


@dataclass
class ComparisonResult:
    restaurants: List[ComparedRestaurant]
    analysis: ComparisonAnalysis


@dataclass
class CompareResult:
    status: str
    message: str
    found: List[str] = field(default_factory=list)
    not_found: List[str] = field(default_factory=list)
    comparison: Optional[ComparisonResult] = None


# --- Bulk hygiene -------------------------------------------------------------

@dataclass
class BulkHygieneEntry:
    place: DirectoryPlace
    hygiene_grade: Optional[RegistryRecord]
    violations: Optional[ViolationHistory]
    match_reason: str


@dataclass
class BulkHygieneResult:
    total_checked: int
    matched_count: int
    results: List[BulkHygieneEntry] = field(default_factory=list)
