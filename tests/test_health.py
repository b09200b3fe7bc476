import pytest

from ecoscan.health import bucket, find_flagged_additives, score_health
from ecoscan.normalizer import normalize
from ecoscan.schemas import ProductFacts


def test_bucket_boundaries():
    assert bucket("sugar", 4.9) == "low"
    assert bucket("sugar", 5.0) == "moderate"
    assert bucket("sugar", 12.5) == "moderate"
    assert bucket("sugar", 12.6) == "high"
    assert bucket("sodium", 0.7) == "high"


def test_no_nutrition_means_no_food_scores(bottle):
    assert score_health(normalize(bottle)) is None
    assert score_health(ProductFacts(product_name="Apple")) is None


def test_flagged_additives():
    flagged = find_flagged_additives(["Sugar", "Monosodium Glutamate", "FD&C Red 40", "BHT"])
    assert flagged == ("msg", "artificial color", "bht")
    assert find_flagged_additives(["oats", "honey"]) == ()


def test_quinoa_health(quinoa):
    food = score_health(normalize(quinoa))
    assert food.health_score == 85
    assert food.sustainability_score == 85
    assert food.nutrient_levels["fiber"] == "high"
    assert food.nutrient_levels["additives_concern"] == "none"
    assert "Good source of dietary fiber" in food.health_benefits
    assert food.health_concerns == ()


def test_chips_health(chips):
    facts = normalize(chips)
    food = score_health(facts)
    assert food.health_score == 42
    assert food.flagged_additives == ("msg", "artificial color", "preservative")
    assert food.nutrient_levels["additives_concern"] == "high"
    assert len(food.health_benefits) <= 1
    assert any("flagged additives" in c for c in food.health_concerns)

    clean = facts.model_copy(update={"ingredients": ("potatoes", "sunflower oil", "salt")})
    assert score_health(clean).sustainability_score > food.sustainability_score


def test_category_hint_moves_sustainability():
    nutrition = {"calories": 200}
    beef = score_health(normalize({"name": "Burger", "category": "meat", "nutrition": nutrition}))
    lentils = score_health(normalize({"name": "Lentils", "category": "legume grocery", "nutrition": nutrition}))
    assert beef.sustainability_score < lentils.sustainability_score


@pytest.mark.parametrize("nutrient,value,level", [
    ("fiber", 2.4, "low"),
    ("fiber", 2.5, "moderate"),
    ("fiber", 5.0, "high"),
    ("protein", 4.9, "low"),
    ("protein", 10.0, "high"),
    ("sodium", 0.13, "low"),
    ("sodium", 0.14, "moderate"),
    ("sodium", 0.6, "moderate"),
    ("sodium", 0.61, "high"),
])
def test_bucket_threshold_inclusivity(nutrient, value, level):
    assert bucket(nutrient, value) == level
