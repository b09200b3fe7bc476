from ecoscan.config import MAX_INSIGHTS, MAX_RECOMMENDATIONS
from ecoscan.environmental import score_environment
from ecoscan.fallback import fallback_enrich
from ecoscan.health import score_health
from ecoscan.normalizer import normalize
from ecoscan.schemas import EnrichmentSource, FieldSource


def _fallback(raw):
    facts = normalize(raw)
    env, food = score_environment(facts), score_health(facts)
    return env, food, fallback_enrich(facts, env, food)


def test_fallback_reuses_baseline_scores(quinoa):
    env, food, enriched = _fallback(quinoa)
    assert enriched.source == EnrichmentSource.FALLBACK
    assert not enriched.ai_succeeded
    assert enriched.environmental == env
    assert enriched.food == food
    assert enriched.disagreement is None
    assert enriched.completeness == 0.75
    assert set(enriched.field_sources.values()) == {FieldSource.HEURISTIC}


def test_low_scores_produce_template_recommendations(bottle):
    _, food, enriched = _fallback(bottle)
    assert food is None
    recs = enriched.action_recommendations
    assert "Consider alternatives with better packaging" in recs
    assert "Consider alternatives with better carbon footprint" in recs
    assert "Look for products with clear sustainability certifications" in recs
    assert len(recs) <= MAX_RECOMMENDATIONS


def test_food_recommendations(chips):
    _, _, enriched = _fallback(chips)
    assert "Choose products without artificial additives" in enriched.action_recommendations
    assert "Consider alternatives with better nutrition" in enriched.action_recommendations
    assert "High sourcing impact - consider sustainable alternatives" in enriched.key_insights


def test_insights_capped_and_unique(quinoa):
    _, _, enriched = _fallback(quinoa)
    insights = enriched.key_insights
    assert 0 < len(insights) <= MAX_INSIGHTS
    assert len({i.lower() for i in insights}) == len(insights)
    assert "Excellent choice for both health and environment" in insights


def test_fallback_is_deterministic(chips):
    assert _fallback(chips)[2] == _fallback(chips)[2]
