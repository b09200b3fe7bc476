import hashlib
import json
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Category(str, Enum):
    FOOD = "food"
    ELECTRONICS = "electronics"
    PERSONAL_CARE = "personal-care"
    GENERAL = "general"


class AnalysisMode(str, Enum):
    ENVIRONMENTAL_ONLY = "environmental_only"
    FOOD_ONLY = "food_only"
    COMBINED = "combined"


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EnrichmentSource(str, Enum):
    AI = "ai"
    FALLBACK = "fallback"


class FieldSource(str, Enum):
    AI = "ai"
    HEURISTIC = "heuristic"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# --- Input ---
class NutritionFacts(_Frozen):
    """Per-serving nutrition; weights in grams, energy in kcal."""

    calories: Optional[float] = Field(default=None, ge=0)
    protein: Optional[float] = Field(default=None, ge=0)
    carbs: Optional[float] = Field(default=None, ge=0)
    fat: Optional[float] = Field(default=None, ge=0)
    fiber: Optional[float] = Field(default=None, ge=0)
    sugar: Optional[float] = Field(default=None, ge=0)
    sodium: Optional[float] = Field(default=None, ge=0)
    serving_size: Optional[str] = None


OPTIONAL_FACT_FIELDS: Tuple[str, ...] = (
    "brand",
    "category",
    "ingredients",
    "certifications",
    "packaging",
    "materials",
    "origin_country",
    "nutrition",
    "organic",
    "fair_trade",
    "locally_sourced",
    "carbon_neutral",
)


class ProductFacts(_Frozen):
    product_name: str = Field(min_length=1)
    brand: str = ""
    category: Category = Category.GENERAL
    category_label: str = ""
    ingredients: Tuple[str, ...] = ()
    certifications: Tuple[str, ...] = ()
    packaging: str = "unknown packaging"
    materials: str = ""
    origin_country: str = "unspecified"
    nutrition: Optional[NutritionFacts] = None
    organic: bool = False
    fair_trade: bool = False
    locally_sourced: bool = False
    carbon_neutral: bool = False
    provided_fields: FrozenSet[str] = frozenset()

    @property
    def has_food_facts(self) -> bool:
        return self.nutrition is not None

    def completeness(self) -> float:
        """Fraction of optional fields present in the raw payload."""
        present = sum(1 for f in OPTIONAL_FACT_FIELDS if f in self.provided_fields)
        return round(present / len(OPTIONAL_FACT_FIELDS), 4)

    def fingerprint(self) -> str:
        data = self.model_dump(mode="json")
        data["provided_fields"] = sorted(self.provided_fields)
        canonical = _canonical_json(data)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _canonical_json(data: dict) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


# --- Scoring ---
class SubScoreSet(_Frozen):
    dimension: str  # "environmental" or "food"
    scores: Dict[str, int]
    overall_score: int = Field(ge=0, le=100)
    certifications: Tuple[str, ...] = ()
    nutrient_levels: Dict[str, str] = Field(default_factory=dict)
    health_benefits: Tuple[str, ...] = ()
    health_concerns: Tuple[str, ...] = ()
    flagged_additives: Tuple[str, ...] = ()
    impact_summary: str = ""

    def get(self, name: str, default: Optional[int] = None) -> Optional[int]:
        return self.scores.get(name, default)

    def __getitem__(self, name: str) -> int:
        return self.scores[name]

    @property
    def health_score(self) -> int:
        return self.scores["health_score"]

    @property
    def sustainability_score(self) -> int:
        return self.scores["sustainability_score"]


class EnrichedSignals(_Frozen):
    product_name: str
    environmental: Optional[SubScoreSet] = None
    food: Optional[SubScoreSet] = None
    certifications: Tuple[str, ...] = ()
    key_insights: Tuple[str, ...] = ()
    action_recommendations: Tuple[str, ...] = ()
    impact_summary: str = ""
    source: EnrichmentSource = EnrichmentSource.FALLBACK
    field_sources: Dict[str, FieldSource] = Field(default_factory=dict)
    disagreement: Optional[float] = None
    completeness: float = 0.0

    @property
    def ai_succeeded(self) -> bool:
        return self.source == EnrichmentSource.AI


# --- Output ---
class EcoScore(_Frozen):
    overall_score: int
    breakdown: Dict[str, int]
    certifications: Tuple[str, ...] = ()
    impact_summary: str = ""


class FoodAnalysis(_Frozen):
    health_score: int
    sustainability_score: int
    nutritional_analysis: Dict[str, str] = Field(default_factory=dict)
    health_benefits: Tuple[str, ...] = ()
    health_concerns: Tuple[str, ...] = ()
    overall_rating: str


class UnifiedAnalysisResult(_Frozen):
    product_name: str
    unified_score: int = Field(ge=0, le=100)
    sustainability_grade: str
    confidence_level: ConfidenceLevel
    analysis_type: AnalysisMode
    eco_score: Optional[EcoScore] = None
    food_analysis: Optional[FoodAnalysis] = None
    key_insights: Tuple[str, ...] = ()
    action_recommendations: Tuple[str, ...] = ()
    enrichment_source: EnrichmentSource = EnrichmentSource.FALLBACK
    fingerprint: str = ""


# --- HTTP surface ---
class HealthResponse(BaseModel):
    status: str
    cpu_percent: float
    rss_bytes: int


class CacheStatsResponse(BaseModel):
    size: int = 0
    alive_entries: int = 0
    ttl_seconds: float = 0.0
    max_entries: int = 0
    keys: list = Field(default_factory=list)


class MetricsResponse(BaseModel):
    avg_latency: float
    avg_unified_score: float
    fallback_rate: float
    latency_trend: list
    score_trend: list
    count: int
