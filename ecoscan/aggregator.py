"""Fold environmental and food signals into one UnifiedAnalysisResult.

Pure: no I/O, no clock, no randomness.
"""
from __future__ import annotations
from typing import Optional

from ecoscan.config import (
    CONFIDENCE_COMPLETENESS_THRESHOLD,
    DISAGREEMENT_TOLERANCE,
    GRADE_THRESHOLDS,
    LOWEST_GRADE,
    UNIFIED_WEIGHTS,
)
from ecoscan.schemas import (
    AnalysisMode,
    ConfidenceLevel,
    EcoScore,
    EnrichedSignals,
    FoodAnalysis,
    SubScoreSet,
    UnifiedAnalysisResult,
)

_LEVELS = (ConfidenceLevel.LOW, ConfidenceLevel.MEDIUM, ConfidenceLevel.HIGH)


def _clamp(x: float, lo: int = 0, hi: int = 100) -> int:
    return int(max(lo, min(hi, round(x))))


def grade_for(score: float) -> str:
    for lower, grade in GRADE_THRESHOLDS:
        if score >= lower:
            return grade
    return LOWEST_GRADE


def select_mode(env: Optional[SubScoreSet], food: Optional[SubScoreSet]) -> AnalysisMode:
    if env is None and food is None:
        raise ValueError("at least one of environmental or food scores is required")
    if food is None:
        return AnalysisMode.ENVIRONMENTAL_ONLY
    if env is None:
        return AnalysisMode.FOOD_ONLY
    return AnalysisMode.COMBINED


def unified_score(env: Optional[SubScoreSet], food: Optional[SubScoreSet]) -> int:
    mode = select_mode(env, food)
    if mode == AnalysisMode.ENVIRONMENTAL_ONLY:
        return env.overall_score
    if mode == AnalysisMode.FOOD_ONLY:
        return _clamp(0.5 * food.health_score + 0.5 * food.sustainability_score)
    w_env = UNIFIED_WEIGHTS["environmental"]
    w_health = UNIFIED_WEIGHTS["health"]
    total = w_env + w_health
    return _clamp((w_env * env.overall_score + w_health * food.health_score) / total)


def assess_confidence(enriched: EnrichedSignals) -> ConfidenceLevel:
    """high: AI + rich input; medium: exactly one of the two; low: neither.

    A large average disagreement between AI and heuristic sub-scores costs one level.
    """
    rich = enriched.completeness >= CONFIDENCE_COMPLETENESS_THRESHOLD
    idx = int(enriched.ai_succeeded) + int(rich)
    if enriched.ai_succeeded and enriched.disagreement is not None and enriched.disagreement > DISAGREEMENT_TOLERANCE:
        idx = max(0, idx - 1)
    return _LEVELS[idx]


def _eco_score(env: SubScoreSet, enriched: EnrichedSignals) -> EcoScore:
    return EcoScore(
        overall_score=env.overall_score,
        breakdown=dict(env.scores),
        certifications=enriched.certifications,
        impact_summary=enriched.impact_summary or env.impact_summary,
    )


def _food_analysis(food: SubScoreSet) -> FoodAnalysis:
    return FoodAnalysis(
        health_score=food.health_score,
        sustainability_score=food.sustainability_score,
        nutritional_analysis=dict(food.nutrient_levels),
        health_benefits=food.health_benefits,
        health_concerns=food.health_concerns,
        overall_rating=grade_for((food.health_score + food.sustainability_score) / 2),
    )


def aggregate(
    env: Optional[SubScoreSet],
    food: Optional[SubScoreSet],
    enriched: EnrichedSignals,
) -> UnifiedAnalysisResult:
    """Build the final result; ``enriched`` sub-scores win over the baselines passed in."""
    env = enriched.environmental if env is not None and enriched.environmental is not None else env
    food = enriched.food if food is not None and enriched.food is not None else food
    mode = select_mode(env, food)
    score = unified_score(env, food)
    return UnifiedAnalysisResult(
        product_name=enriched.product_name,
        unified_score=score,
        sustainability_grade=grade_for(score),
        confidence_level=assess_confidence(enriched),
        analysis_type=mode,
        eco_score=_eco_score(env, enriched) if env is not None else None,
        food_analysis=_food_analysis(food) if food is not None else None,
        key_insights=enriched.key_insights,
        action_recommendations=enriched.action_recommendations,
        enrichment_source=enriched.source,
    )


__all__ = ["aggregate", "grade_for", "select_mode", "unified_score", "assess_confidence"]
