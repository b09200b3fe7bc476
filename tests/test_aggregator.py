import pytest

from ecoscan.aggregator import aggregate, assess_confidence, grade_for, select_mode, unified_score
from ecoscan.schemas import (
    AnalysisMode,
    ConfidenceLevel,
    EnrichedSignals,
    EnrichmentSource,
    SubScoreSet,
)


def _env(overall=70):
    scores = {"packaging": overall, "carbon": overall, "materials": overall, "health": 60}
    return SubScoreSet(dimension="environmental", scores=scores, overall_score=overall, impact_summary="ok")


def _food(health=80, sustainability=60):
    return SubScoreSet(
        dimension="food",
        scores={"health_score": health, "sustainability_score": sustainability},
        overall_score=(health + sustainability) // 2,
        nutrient_levels={"sugar": "low"},
    )


def _signals(env=None, food=None, source=EnrichmentSource.FALLBACK, completeness=0.5, disagreement=None):
    return EnrichedSignals(
        product_name="Thing",
        environmental=env,
        food=food,
        source=source,
        completeness=completeness,
        disagreement=disagreement,
        key_insights=("insight",),
        action_recommendations=("recommendation",),
    )


@pytest.mark.parametrize("score,grade", [
    (100, "A"), (90, "A"), (89, "B"), (75, "B"), (74, "C"), (60, "C"), (59, "D"), (40, "D"), (39, "E"), (0, "E"),
])
def test_grade_boundaries(score, grade):
    assert grade_for(score) == grade


def test_select_mode():
    assert select_mode(_env(), None) == AnalysisMode.ENVIRONMENTAL_ONLY
    assert select_mode(None, _food()) == AnalysisMode.FOOD_ONLY
    assert select_mode(_env(), _food()) == AnalysisMode.COMBINED
    with pytest.raises(ValueError):
        select_mode(None, None)


def test_unified_score_per_mode():
    assert unified_score(_env(42), None) == 42
    assert unified_score(None, _food(80, 60)) == 70
    assert unified_score(_env(74), _food(85, 10)) == 80


@pytest.mark.parametrize("source,completeness,expected", [
    (EnrichmentSource.AI, 0.9, ConfidenceLevel.HIGH),
    (EnrichmentSource.AI, 0.7, ConfidenceLevel.HIGH),
    (EnrichmentSource.AI, 0.3, ConfidenceLevel.MEDIUM),
    (EnrichmentSource.FALLBACK, 0.9, ConfidenceLevel.MEDIUM),
    (EnrichmentSource.FALLBACK, 0.3, ConfidenceLevel.LOW),
])
def test_confidence_matrix(source, completeness, expected):
    assert assess_confidence(_signals(source=source, completeness=completeness)) == expected


def test_disagreement_lowers_confidence():
    agree = _signals(source=EnrichmentSource.AI, completeness=0.9, disagreement=5.0)
    disagree = _signals(source=EnrichmentSource.AI, completeness=0.9, disagreement=40.0)
    sparse = _signals(source=EnrichmentSource.AI, completeness=0.1, disagreement=40.0)
    assert assess_confidence(agree) == ConfidenceLevel.HIGH
    assert assess_confidence(disagree) == ConfidenceLevel.MEDIUM
    assert assess_confidence(sparse) == ConfidenceLevel.LOW


def test_aggregate_environmental_only():
    env = _env(42)
    result = aggregate(env, None, _signals(env=env))
    assert result.analysis_type == AnalysisMode.ENVIRONMENTAL_ONLY
    assert result.food_analysis is None
    assert result.eco_score.overall_score == 42
    assert result.sustainability_grade == "D"
    assert result.confidence_level == ConfidenceLevel.LOW


def test_aggregate_prefers_enriched_scores():
    baseline, enriched_env = _env(50), _env(80)
    food = _food(90, 70)
    result = aggregate(baseline, food, _signals(env=enriched_env, food=food, source=EnrichmentSource.AI))
    assert result.unified_score == 85
    assert result.eco_score.breakdown["packaging"] == 80
    assert result.food_analysis.overall_rating == "B"
    assert result.food_analysis.nutritional_analysis == {"sugar": "low"}
    assert result.enrichment_source == EnrichmentSource.AI
    assert result.key_insights == ("insight",)
