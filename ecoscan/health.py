"""Health scoring for food products.

Nutrients are bucketed per serving (``low`` / ``moderate`` / ``high``) against
fixed thresholds and the buckets are folded into a 0-100 health score with a
penalty/bonus table. The sourcing ``sustainability_score`` looks at flags,
category hints and ingredient tokens, including a denylist of flagged additives.

Products without nutrition facts are not food-scored at all: ``score_health``
returns ``None`` so the aggregator can pick ``environmental_only`` mode.
"""
from __future__ import annotations
import re
from typing import Dict, Iterable, List, Optional, Tuple

from ecoscan.schemas import NutritionFacts, ProductFacts, SubScoreSet

# (value below -> "low", value above -> "high"), per serving; grams except calories (kcal)
NUTRIENT_THRESHOLDS: Dict[str, Tuple[float, float]] = {
    "calories": (100.0, 400.0),
    "sugar": (5.0, 12.5),
    "sodium": (0.14, 0.6),  # 140 mg / 600 mg
    "fat": (3.0, 17.5),
    "fiber": (2.5, 5.0),
    "protein": (5.0, 10.0),
}
# beneficial nutrients reach "high" at the threshold itself
INCLUSIVE_HIGH: Tuple[str, ...] = ("fiber", "protein")

BUCKET_ADJUSTMENTS: Dict[str, Dict[str, int]] = {
    "calories": {"low": 5, "moderate": 0, "high": -10},
    "sugar": {"low": 5, "moderate": -5, "high": -20},
    "sodium": {"low": 5, "moderate": -5, "high": -20},
    "fat": {"low": 3, "moderate": 0, "high": -10},
    "fiber": {"low": -3, "moderate": 5, "high": 15},
    "protein": {"low": 0, "moderate": 3, "high": 10},
    "additives_concern": {"none": 0, "minimal": -3, "moderate": -8, "high": -15},
}
HEALTH_BASELINE = 60

ADDITIVE_DENYLIST: Dict[str, Tuple[str, ...]] = {
    "msg": (r"\bmsg\b", r"\bmonosodium glutamate"),
    "artificial color": (r"\bartificial colou?r", r"\bfd&c\b"),
    "artificial flavor": (r"\bartificial flavou?r",),
    "preservative": (r"\bpreservative",),
    "hydrogenated oil": (r"\bhydrogenated",),
    "high fructose corn syrup": (r"\bhigh fructose corn syrup", r"\bhfcs\b"),
    "sodium nitrite": (r"\bsodium nitrite",),
    "bha": (r"\bbha\b",),
    "bht": (r"\bbht\b",),
    "tbhq": (r"\btbhq\b",),
    "aspartame": (r"\baspartame",),
}
_DENYLIST_RE = {label: [re.compile(p, re.IGNORECASE) for p in pats] for label, pats in ADDITIVE_DENYLIST.items()}

SUSTAINABILITY_BASELINE = 50
ADDITIVE_PENALTY = 8
ADDITIVE_PENALTY_CAP = 32
SOURCING_TOKEN_BONUS = 5
SOURCING_TOKENS: Tuple[str, ...] = ("organic", "non gmo")

# category-label hints for sourcing impact
CATEGORY_HINTS: Tuple[Tuple[Tuple[str, ...], int], ...] = (
    (("meat", "beef", "pork", "lamb"), -15),
    (("dairy", "cheese", "milk", "yogurt"), -8),
    (("seafood", "fish"), -5),
    (("plant", "vegan", "fruit", "vegetable", "legume", "grain", "salad"), 10),
)


def _clamp(x: float, lo: int = 0, hi: int = 100) -> int:
    return int(max(lo, min(hi, round(x))))


def bucket(nutrient: str, value: float) -> str:
    low, high = NUTRIENT_THRESHOLDS[nutrient]
    if value < low:
        return "low"
    if value > high or (nutrient in INCLUSIVE_HIGH and value == high):
        return "high"
    return "moderate"


def nutrient_buckets(nutrition: NutritionFacts) -> Dict[str, str]:
    levels: Dict[str, str] = {}
    for nutrient in NUTRIENT_THRESHOLDS:
        value = getattr(nutrition, nutrient)
        if value is not None:
            levels[nutrient] = bucket(nutrient, value)
    return levels


def find_flagged_additives(ingredients: Iterable[str]) -> Tuple[str, ...]:
    """Denylist labels matched in the ingredient list, in denylist order."""
    text = " | ".join(ingredients)
    return tuple(label for label, pats in _DENYLIST_RE.items() if any(p.search(text) for p in pats))


def additives_concern(count: int) -> str:
    if count == 0:
        return "none"
    if count == 1:
        return "minimal"
    if count == 2:
        return "moderate"
    return "high"


def _sourcing_tokens(facts: ProductFacts) -> List[str]:
    text = " ".join(list(facts.ingredients) + list(facts.certifications)).lower()
    text = re.sub(r"[\-_]", " ", text)
    return [t for t in SOURCING_TOKENS if re.search(r"\b" + re.escape(t) + r"\b", text)]


def health_score(levels: Dict[str, str]) -> int:
    score = HEALTH_BASELINE
    for nutrient, level in levels.items():
        score += BUCKET_ADJUSTMENTS.get(nutrient, {}).get(level, 0)
    return _clamp(score)


def sustainability_score(facts: ProductFacts, flagged: Tuple[str, ...]) -> int:
    score = SUSTAINABILITY_BASELINE
    if facts.organic:
        score += 15
    if facts.locally_sourced:
        score += 10
    if facts.fair_trade:
        score += 5
    label = facts.category_label.lower()
    for words, delta in CATEGORY_HINTS:
        if any(re.search(r"\b" + w, label) for w in words):
            score += delta
    score += SOURCING_TOKEN_BONUS * len(_sourcing_tokens(facts))
    score -= min(ADDITIVE_PENALTY * len(flagged), ADDITIVE_PENALTY_CAP)
    return _clamp(score)


def _benefits(facts: ProductFacts, levels: Dict[str, str]) -> List[str]:
    out: List[str] = []
    ingredients = " ".join(facts.ingredients).lower()
    if levels.get("fiber") == "high":
        out.append("Good source of dietary fiber")
    if levels.get("protein") == "high":
        out.append("High in protein")
    if levels.get("sodium") == "low":
        out.append("Low in sodium")
    if levels.get("sugar") == "low":
        out.append("Low in sugar")
    if "whole grain" in ingredients:
        out.append("Contains whole grains")
    if "omega" in ingredients:
        out.append("Contains beneficial omega-3 fatty acids")
    if facts.organic:
        out.append("Reduced exposure to synthetic pesticides")
    return out


def _concerns(nutrition: NutritionFacts, levels: Dict[str, str], flagged: Tuple[str, ...]) -> List[str]:
    out: List[str] = []
    if levels.get("sugar") == "high":
        out.append("High sugar content may contribute to blood sugar spikes")
    if levels.get("sodium") == "high":
        out.append("High sodium content may affect blood pressure")
    if levels.get("fat") == "high":
        out.append("High fat content per serving")
    if levels.get("calories") == "high":
        out.append(f"Energy dense: {round(nutrition.calories)} kcal per serving")
    if flagged:
        out.append("Contains flagged additives: " + ", ".join(flagged))
    return out


def score_health(facts: ProductFacts) -> Optional[SubScoreSet]:
    """Food health and sourcing scores, or ``None`` when there are no nutrition facts."""
    nutrition = facts.nutrition
    if nutrition is None:
        return None
    flagged = find_flagged_additives(facts.ingredients)
    levels = nutrient_buckets(nutrition)
    levels["additives_concern"] = additives_concern(len(flagged))

    h = health_score(levels)
    s = sustainability_score(facts, flagged)
    return SubScoreSet(
        dimension="food",
        scores={"health_score": h, "sustainability_score": s},
        overall_score=_clamp((h + s) / 2),
        nutrient_levels=levels,
        health_benefits=tuple(_benefits(facts, levels)),
        health_concerns=tuple(_concerns(nutrition, levels, flagged)),
        flagged_additives=flagged,
    )


__all__ = [
    "score_health",
    "bucket",
    "nutrient_buckets",
    "find_flagged_additives",
    "NUTRIENT_THRESHOLDS",
    "BUCKET_ADJUSTMENTS",
    "ADDITIVE_DENYLIST",
]
