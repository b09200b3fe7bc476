"""Deterministic, offline substitute for AI enrichment.

Sub-scores pass through unchanged; insights and recommendations come from fixed
message templates keyed on score thresholds. No I/O, no randomness: identical
inputs always yield identical signals.
"""
from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Tuple

from ecoscan.config import MAX_INSIGHTS, MAX_RECOMMENDATIONS
from ecoscan.schemas import (
    Category,
    EnrichedSignals,
    EnrichmentSource,
    FieldSource,
    ProductFacts,
    SubScoreSet,
)

LOW_SCORE_THRESHOLD = 50
SPREAD_THRESHOLD = 20

DIMENSION_LABELS: Dict[str, str] = {
    "packaging": "packaging",
    "carbon": "carbon footprint",
    "materials": "materials",
    "health_score": "nutrition",
    "sustainability_score": "sourcing sustainability",
}
WEIGHTED_DIMENSIONS: Tuple[str, ...] = ("packaging", "carbon", "materials")
FOOD_DIMENSIONS: Tuple[str, ...] = ("health_score", "sustainability_score")

LOW_SCORE_TEMPLATE = "Consider alternatives with better {dimension}"
WEAKEST_DIMENSION_TIPS: Dict[str, str] = {
    "packaging": "Choose products with recyclable or minimal packaging",
    "carbon": "Look for locally sourced or carbon-neutral options",
    "materials": "Prefer products made from recycled, organic or certified materials",
}
CATEGORY_TIPS: Dict[Category, str] = {
    Category.FOOD: "Consider local, seasonal alternatives to reduce carbon footprint",
    Category.ELECTRONICS: "Look for energy-efficient models with longer warranties",
    Category.PERSONAL_CARE: "Solid bars and refillable containers cut packaging waste",
}


def _dedupe(items: Iterable[str], limit: int) -> Tuple[str, ...]:
    seen = set()
    out: List[str] = []
    for it in items:
        key = it.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(it.strip())
        if len(out) >= limit:
            break
    return tuple(out)


def _extremes(env: SubScoreSet) -> Tuple[str, str]:
    # ties resolve to the first dimension in WEIGHTED_DIMENSIONS order
    strongest = max(WEIGHTED_DIMENSIONS, key=lambda d: env.scores[d])
    weakest = min(WEIGHTED_DIMENSIONS, key=lambda d: env.scores[d])
    return strongest, weakest


def heuristic_insights(
    facts: ProductFacts,
    env: Optional[SubScoreSet],
    food: Optional[SubScoreSet],
    certifications: Tuple[str, ...] = (),
) -> Tuple[str, ...]:
    insights: List[str] = []
    if env is not None and food is not None:
        avg = (env.overall_score + food.health_score) / 2
        if avg >= 75:
            insights.append("Excellent choice for both health and environment")
        elif avg <= 45:
            insights.append("Consider alternatives for better health and environmental impact")

    if env is not None:
        strongest, weakest = _extremes(env)
        insights.append(f"Strongest environmental performance in {DIMENSION_LABELS[strongest]}")
        if env.scores[strongest] - env.scores[weakest] > SPREAD_THRESHOLD:
            insights.append(f"Improvement needed in {DIMENSION_LABELS[weakest]}")

    if certifications:
        insights.append("Recognized certifications: " + ", ".join(certifications))

    if food is not None:
        if food.health_score >= 80:
            insights.append("Excellent nutritional profile with high health benefits")
        elif food.health_score <= 40:
            insights.append("Consider healthier alternatives for better nutrition")
        if food.sustainability_score >= 75:
            insights.append("Environmentally friendly food choice")
        elif food.sustainability_score <= 45:
            insights.append("High sourcing impact - consider sustainable alternatives")
        insights.extend(food.health_benefits[:1])
        insights.extend(food.health_concerns[:1])

    tip = CATEGORY_TIPS.get(facts.category)
    if tip and not (facts.category == Category.FOOD and facts.locally_sourced):
        insights.append(tip)
    return _dedupe(insights, MAX_INSIGHTS)


def heuristic_recommendations(
    facts: ProductFacts,
    env: Optional[SubScoreSet],
    food: Optional[SubScoreSet],
    certifications: Tuple[str, ...] = (),
) -> Tuple[str, ...]:
    recs: List[str] = []
    if env is not None:
        for dim in WEIGHTED_DIMENSIONS:
            if env.scores[dim] < LOW_SCORE_THRESHOLD:
                recs.append(LOW_SCORE_TEMPLATE.format(dimension=DIMENSION_LABELS[dim]))
    if food is not None:
        for dim in FOOD_DIMENSIONS:
            if food.scores[dim] < LOW_SCORE_THRESHOLD:
                recs.append(LOW_SCORE_TEMPLATE.format(dimension=DIMENSION_LABELS[dim]))
        levels = food.nutrient_levels
        if levels.get("sodium") == "high":
            recs.append("Look for low-sodium alternatives")
        if levels.get("sugar") == "high":
            recs.append("Choose products with less added sugar")
        if food.flagged_additives:
            recs.append("Choose products without artificial additives")
    if env is not None:
        _, weakest = _extremes(env)
        if env.scores[weakest] < 70:
            recs.append(WEAKEST_DIMENSION_TIPS[weakest])
    if not certifications:
        recs.append("Look for products with clear sustainability certifications")
    if not recs:
        recs.append("Keep choosing products with strong sustainability credentials")
    return _dedupe(recs, MAX_RECOMMENDATIONS)


def heuristic_field_sources(env: Optional[SubScoreSet], food: Optional[SubScoreSet]) -> Dict[str, FieldSource]:
    fields: List[str] = []
    if env is not None:
        fields.extend(WEIGHTED_DIMENSIONS)
    if food is not None:
        fields.extend(FOOD_DIMENSIONS)
    fields.extend(("certifications", "insights", "recommendations"))
    return {f: FieldSource.HEURISTIC for f in fields}


def fallback_enrich(
    facts: ProductFacts,
    environmental: Optional[SubScoreSet],
    food: Optional[SubScoreSet],
) -> EnrichedSignals:
    """Heuristic enrichment used whenever the AI gateway fails or is disabled."""
    certifications = environmental.certifications if environmental is not None else ()
    return EnrichedSignals(
        product_name=facts.product_name,
        environmental=environmental,
        food=food,
        certifications=certifications,
        key_insights=heuristic_insights(facts, environmental, food, certifications),
        action_recommendations=heuristic_recommendations(facts, environmental, food, certifications),
        impact_summary=environmental.impact_summary if environmental is not None else "",
        source=EnrichmentSource.FALLBACK,
        field_sources=heuristic_field_sources(environmental, food),
        disagreement=None,
        completeness=facts.completeness(),
    )


__all__ = [
    "fallback_enrich",
    "heuristic_insights",
    "heuristic_recommendations",
    "LOW_SCORE_TEMPLATE",
    "DIMENSION_LABELS",
]
